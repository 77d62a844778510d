"""Permission service — read and maintain the permission tree."""

import logging
from typing import List, Optional, Set

from sqlalchemy.orm import Session

from rbac_console.authz.tree import (
    PermissionRecord,
    PermissionTreeNode,
    build_permission_tree,
    would_create_cycle,
)
from rbac_console.core.config import settings
from rbac_console.core.exceptions import (
    ResourceConflictError,
    ResourceNotFoundError,
    ValidationError,
)
from rbac_console.models.permission import Permission
from rbac_console.models.role import Role, RolePermission

logger = logging.getLogger(__name__)


class PermissionService:
    """Reads the permission catalogue and applies tree maintenance."""

    @staticmethod
    def list_permissions(db: Session) -> List[Permission]:
        return db.query(Permission).order_by(Permission.id).all()

    @staticmethod
    def records(db: Session) -> List[PermissionRecord]:
        return [
            PermissionRecord(id=p.id, name=p.name, parent_id=p.parent_id)
            for p in PermissionService.list_permissions(db)
        ]

    @staticmethod
    def names(db: Session) -> Set[str]:
        return {name for (name,) in db.query(Permission.name).all()}

    @staticmethod
    def tree(db: Session) -> List[PermissionTreeNode]:
        """Nested view of the catalogue, built from the flat rows."""
        return build_permission_tree(PermissionService.records(db))

    @staticmethod
    def get(db: Session, permission_id: int) -> Permission:
        permission = db.query(Permission).filter(Permission.id == permission_id).first()
        if not permission:
            raise ResourceNotFoundError(f"Permission {permission_id} not found")
        return permission

    @staticmethod
    def create(db: Session, name: str, parent_id: Optional[int] = None) -> Permission:
        """Add a node to the tree and grant it to the administrator role."""
        name = name.strip()
        if not name:
            raise ValidationError("Permission name must not be empty")
        if db.query(Permission).filter(Permission.name == name).first():
            raise ResourceConflictError(f"Permission '{name}' already exists")
        if parent_id is not None and not db.query(Permission).filter(Permission.id == parent_id).first():
            raise ValidationError(f"Parent permission {parent_id} does not exist")

        try:
            permission = Permission(name=name, parent_id=parent_id)
            db.add(permission)
            db.flush()
            PermissionService._grant_to_admin(db, permission)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(permission)
        logger.info("Created permission %r (parent=%s)", name, parent_id)
        return permission

    @staticmethod
    def move(db: Session, permission_id: int, parent_id: Optional[int]) -> Permission:
        """Re-parent a node, refusing moves that would form a cycle."""
        permission = PermissionService.get(db, permission_id)
        if parent_id is not None:
            PermissionService.get(db, parent_id)
        if would_create_cycle(PermissionService.records(db), permission_id, parent_id):
            raise ValidationError(
                f"Moving permission {permission_id} under {parent_id} would create a cycle"
            )
        permission.parent_id = parent_id
        db.commit()
        db.refresh(permission)
        return permission

    @staticmethod
    def delete(db: Session, permission_id: int) -> None:
        """Delete a leaf node and every role grant that references it."""
        permission = PermissionService.get(db, permission_id)
        if db.query(Permission).filter(Permission.parent_id == permission_id).count():
            raise ResourceConflictError(
                f"Permission '{permission.name}' still has child permissions"
            )
        name = permission.name
        try:
            db.delete(permission)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("Deleted permission %r", name)

    @staticmethod
    def _grant_to_admin(db: Session, permission: Permission) -> None:
        admin = db.query(Role).filter(Role.name == settings.ADMIN_ROLE_NAME).first()
        if admin is None:
            logger.warning(
                "Administrator role %r is missing; permission %r not granted to it",
                settings.ADMIN_ROLE_NAME, permission.name,
            )
            return
        admin.permission_links.append(RolePermission(permission_id=permission.id))


permission_service = PermissionService()
