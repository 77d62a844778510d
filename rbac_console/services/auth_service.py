"""Auth service — login, impersonation and per-request principals."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy.orm import Session

from rbac_console.authz.evaluator import effective_permissions
from rbac_console.authz.model import Principal
from rbac_console.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ResourceNotFoundError,
    ValidationError,
)
from rbac_console.core.security import create_access_token, verify_password
from rbac_console.models.user import User
from rbac_console.services.role_service import role_service

logger = logging.getLogger(__name__)


class AuthService:
    """Handles authentication and builds principals from stored role assignments."""

    @staticmethod
    def authenticate(db: Session, name: str, password: str) -> Dict[str, Any]:
        """Check credentials and return an access token with the session snapshot.

        Raises:
            AuthenticationError: If the name is unknown, the password does not
                match, or the account is deactivated.
        """
        user = db.query(User).filter(User.name == name).first()
        if not user or not verify_password(password, user.hashed_password):
            logger.info("Login failed for %r", name)
            raise AuthenticationError("Invalid name or password")
        if not user.is_active:
            raise AuthenticationError("Account is deactivated")

        user.last_login_at = datetime.now(timezone.utc)
        db.commit()

        principal = AuthService.load_principal(db, user.id)
        logger.info("Login successful for %r", name)
        return AuthService.issue(principal)

    @staticmethod
    def login_as(db: Session, actor: Principal, user_id: int) -> Dict[str, Any]:
        """Issue a token for ``user_id`` on behalf of ``actor``.

        The target may hold no permission the actor lacks, so acting as
        someone never widens what the actor can do.
        """
        if actor.user_id == user_id:
            raise ValidationError("Already signed in as this user")
        try:
            principal = AuthService.load_principal(db, user_id, impersonator_id=actor.user_id)
        except AuthenticationError as e:
            raise ResourceNotFoundError(e.message)
        beyond = sorted(principal.effective_permissions - actor.effective_permissions)
        if beyond:
            logger.warning("User %r may not act as %r: %s", actor.name, principal.name, beyond)
            raise AuthorizationError(
                f"Cannot act as '{principal.name}': holds permission(s) you lack: {', '.join(beyond)}"
            )
        logger.info("User %r is now acting as %r", actor.name, principal.name)
        return AuthService.issue(principal)

    @staticmethod
    def load_principal(db: Session, user_id: int, impersonator_id: int = None) -> Principal:
        """Current roles and effective permissions of ``user_id``, read fresh."""
        user = db.query(User).filter(User.id == user_id).first()
        if not user or not user.is_active:
            raise AuthenticationError("User not found or deactivated")
        roles = role_service.grants_for(db, user.role_ids)
        return Principal(
            user_id=user.id,
            name=user.name,
            role_ids=tuple(user.role_ids),
            roles=tuple(roles),
            effective_permissions=effective_permissions(roles),
            impersonator_id=impersonator_id,
        )

    @staticmethod
    def issue(principal: Principal) -> Dict[str, Any]:
        token_data = {"sub": str(principal.user_id), "name": principal.name}
        if principal.impersonator_id is not None:
            token_data["imp"] = principal.impersonator_id
        return {
            "access_token": create_access_token(token_data),
            "token_type": "bearer",
            "session": AuthService.snapshot(principal),
        }

    @staticmethod
    def snapshot(principal: Principal) -> Dict[str, Any]:
        primary = principal.primary_role
        return {
            "user": {"id": principal.user_id, "name": principal.name},
            "role_ids": list(principal.role_ids),
            "roles": [
                {"id": role.id, "name": role.name, "permissions": sorted(role.permission_names)}
                for role in principal.roles
            ],
            "primary_role": primary.name if primary else None,
            "permissions": sorted(principal.effective_permissions),
            "impersonator_id": principal.impersonator_id,
        }


auth_service = AuthService()
