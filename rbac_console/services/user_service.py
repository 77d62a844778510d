"""User service — user CRUD and role assignment."""

import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from rbac_console.core.exceptions import (
    ResourceConflictError,
    ResourceNotFoundError,
    ValidationError,
)
from rbac_console.core.security import hash_password
from rbac_console.models.role import Role
from rbac_console.models.user import User, UserRole

logger = logging.getLogger(__name__)


class UserService:
    """Manages users and their ordered role assignments."""

    @staticmethod
    def list_users(db: Session) -> List[User]:
        """All users, newest first."""
        return db.query(User).order_by(User.id.desc()).all()

    @staticmethod
    def get(db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ResourceNotFoundError(f"User {user_id} not found")
        return user

    @staticmethod
    def get_by_name(db: Session, name: str) -> Optional[User]:
        return db.query(User).filter(User.name == name).first()

    @staticmethod
    def create(
        db: Session,
        name: str,
        password: str,
        role_ids: Iterable[int] = (),
    ) -> User:
        """Create a user holding ``role_ids`` in the given order."""
        name = name.strip()
        if not name:
            raise ValidationError("User name must not be empty")
        if UserService.get_by_name(db, name):
            raise ResourceConflictError(f"User '{name}' already exists")
        ids = UserService._resolve_role_ids(db, role_ids)

        try:
            user = User(name=name, hashed_password=hash_password(password), is_active=True)
            db.add(user)
            db.flush()
            for role_id in ids:
                user.role_links.append(UserRole(role_id=role_id))
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(user)
        logger.info("Created user %r with roles %s", name, ids)
        return user

    @staticmethod
    def replace_roles(db: Session, user_id: int, role_ids: Iterable[int]) -> User:
        """Delete every assignment of the user, then insert ``role_ids``."""
        user = UserService.get(db, user_id)
        ids = UserService._resolve_role_ids(db, role_ids)
        try:
            user.role_links.clear()
            db.flush()
            for role_id in ids:
                user.role_links.append(UserRole(role_id=role_id))
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(user)
        logger.info("Replaced roles of user %r with %s", user.name, ids)
        return user

    @staticmethod
    def set_active(db: Session, user_id: int, is_active: bool) -> User:
        user = UserService.get(db, user_id)
        user.is_active = is_active
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def delete(db: Session, user_id: int, actor_id: Optional[int] = None) -> None:
        """Delete a user and its assignments. Users cannot delete themselves."""
        user = UserService.get(db, user_id)
        if actor_id is not None and actor_id == user_id:
            raise ValidationError("You cannot delete the account you are signed in with")
        name = user.name
        try:
            db.delete(user)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("Deleted user %r", name)

    @staticmethod
    def _resolve_role_ids(db: Session, role_ids: Iterable[int]) -> List[int]:
        ids: List[int] = []
        for role_id in role_ids:
            if role_id not in ids:
                ids.append(role_id)
        if not ids:
            return ids
        existing = {role_id for (role_id,) in db.query(Role.id).filter(Role.id.in_(ids)).all()}
        unknown = [role_id for role_id in ids if role_id not in existing]
        if unknown:
            raise ValidationError(f"Unknown role id(s): {', '.join(str(i) for i in unknown)}")
        return ids


user_service = UserService()
