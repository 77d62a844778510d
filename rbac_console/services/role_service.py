"""Role service — role CRUD and the administrator role protection."""

import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from rbac_console.authz.model import RoleGrant
from rbac_console.core.config import settings
from rbac_console.core.exceptions import (
    ProtectedRoleError,
    ResourceConflictError,
    ResourceNotFoundError,
    ValidationError,
)
from rbac_console.models.permission import Permission
from rbac_console.models.role import Role, RolePermission

logger = logging.getLogger(__name__)


def _dedupe(names: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for name in names:
        if name not in seen:
            seen.add(name)
            ordered.append(name)
    return ordered


class RoleService:
    """Manages roles and their permission sets.

    A permission set is always replaced as a whole: every existing grant of
    the role is deleted and the new set inserted in the same transaction.
    """

    @staticmethod
    def is_admin_role(role: Role) -> bool:
        return role.name == settings.ADMIN_ROLE_NAME

    @staticmethod
    def list_roles(db: Session) -> List[Role]:
        return db.query(Role).order_by(Role.id).all()

    @staticmethod
    def get(db: Session, role_id: int) -> Role:
        role = db.query(Role).filter(Role.id == role_id).first()
        if not role:
            raise ResourceNotFoundError(f"Role {role_id} not found")
        return role

    @staticmethod
    def get_by_name(db: Session, name: str) -> Optional[Role]:
        return db.query(Role).filter(Role.name == name).first()

    @staticmethod
    def grants_for(db: Session, role_ids: Iterable[int]) -> List[RoleGrant]:
        """Evaluator view of ``role_ids``, in the given order; unknown ids are skipped."""
        ids = list(role_ids)
        if not ids:
            return []
        by_id = {role.id: role for role in db.query(Role).filter(Role.id.in_(ids)).all()}
        grants = []
        for role_id in ids:
            role = by_id.get(role_id)
            if role is None:
                logger.warning("Role id %s is assigned but no longer exists", role_id)
                continue
            grants.append(RoleGrant(id=role.id, name=role.name, permission_names=role.permission_names))
        return grants

    @staticmethod
    def create(
        db: Session,
        name: str,
        permission_names: Iterable[str] = (),
        description: Optional[str] = None,
    ) -> Role:
        """Create a role with an initial permission set."""
        name = name.strip()
        if not name:
            raise ValidationError("Role name must not be empty")
        if RoleService.get_by_name(db, name):
            raise ResourceConflictError(f"Role '{name}' already exists")

        permissions = RoleService._resolve_permissions(db, permission_names)
        if name == settings.ADMIN_ROLE_NAME:
            RoleService._require_full_set(db, permissions)

        try:
            role = Role(name=name, description=description)
            db.add(role)
            db.flush()
            for permission in permissions:
                role.permission_links.append(RolePermission(permission_id=permission.id))
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(role)
        logger.info("Created role %r with %d permission(s)", name, len(permissions))
        return role

    @staticmethod
    def update(
        db: Session,
        role_id: int,
        name: str,
        permission_names: Iterable[str],
        description: Optional[str] = None,
    ) -> Role:
        """Rename a role and replace its whole permission set."""
        role = RoleService.get(db, role_id)
        name = name.strip()
        if not name:
            raise ValidationError("Role name must not be empty")
        if RoleService.is_admin_role(role) and name != role.name:
            raise ProtectedRoleError(f"The administrator role '{role.name}' cannot be renamed")
        if name != role.name and RoleService.get_by_name(db, name):
            raise ResourceConflictError(f"Role '{name}' already exists")

        permissions = RoleService._resolve_permissions(db, permission_names)
        if RoleService.is_admin_role(role):
            RoleService._require_full_set(db, permissions)

        try:
            role.name = name
            role.description = description
            role.permission_links.clear()
            db.flush()
            for permission in permissions:
                role.permission_links.append(RolePermission(permission_id=permission.id))
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(role)
        logger.info("Updated role %r: %d permission(s)", name, len(permissions))
        return role

    @staticmethod
    def delete(db: Session, role_id: int) -> None:
        """Delete a role and its assignments; the administrator role is protected."""
        role = RoleService.get(db, role_id)
        if RoleService.is_admin_role(role):
            raise ProtectedRoleError(f"The administrator role '{role.name}' cannot be deleted")
        name = role.name
        try:
            db.delete(role)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("Deleted role %r", name)

    @staticmethod
    def ensure_admin_integrity(db: Session) -> Role:
        """Create the administrator role if absent and grant it every permission."""
        role = RoleService.get_by_name(db, settings.ADMIN_ROLE_NAME)
        if role is None:
            role = Role(name=settings.ADMIN_ROLE_NAME, description="Full system access")
            db.add(role)
            db.flush()
            logger.info("Created administrator role %r", role.name)

        held = {link.permission_id for link in role.permission_links}
        missing = db.query(Permission).filter(~Permission.id.in_(held)).all() if held else (
            db.query(Permission).all()
        )
        for permission in missing:
            role.permission_links.append(RolePermission(permission_id=permission.id))
        db.commit()
        db.refresh(role)
        if missing:
            logger.info("Granted %d missing permission(s) to %r", len(missing), role.name)
        return role

    @staticmethod
    def _resolve_permissions(db: Session, names: Iterable[str]) -> List[Permission]:
        wanted = _dedupe(names)
        if not wanted:
            return []
        found = {p.name: p for p in db.query(Permission).filter(Permission.name.in_(wanted)).all()}
        unknown = [name for name in wanted if name not in found]
        if unknown:
            raise ValidationError(f"Unknown permission(s): {', '.join(unknown)}")
        return [found[name] for name in wanted]

    @staticmethod
    def _require_full_set(db: Session, permissions: List[Permission]) -> None:
        total = db.query(Permission).count()
        if len(permissions) != total:
            raise ProtectedRoleError(
                f"The administrator role must hold all {total} permissions"
            )


role_service = RoleService()
