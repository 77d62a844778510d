"""Permissions API router — catalogue listing and tree maintenance."""

from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rbac_console.api.deps import RequirePermission, get_current_principal
from rbac_console.authz.model import Principal
from rbac_console.authz.permissions import PERMISSION_ADMIN
from rbac_console.db.session import get_db
from rbac_console.schemas.schemas import (
    MessageResponse, PermissionCreate, PermissionMove, PermissionOut, PermissionTreeOut,
)
from rbac_console.services.audit_service import audit_service
from rbac_console.services.permission_service import permission_service

router = APIRouter(prefix="/permissions", tags=["permissions"])


def _parent(db: Session, parent_id: Optional[int]) -> List[str]:
    return [permission_service.get(db, parent_id).name] if parent_id is not None else []


@router.get("", response_model=List[PermissionOut])
async def list_permissions(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Flat catalogue; any signed-in user may read it."""
    return permission_service.list_permissions(db)


@router.get("/tree", response_model=List[PermissionTreeOut])
async def permission_tree(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return [asdict(node) for node in permission_service.tree(db)]


@router.post("", response_model=PermissionOut, status_code=201)
async def create_permission(
    body: PermissionCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission(PERMISSION_ADMIN)),
):
    permission = permission_service.create(db, body.name, body.parent_id)
    audit_service.record(
        db, principal, "permission.created", permission.id, permission.name,
        after=_parent(db, permission.parent_id),
    )
    return permission


@router.put("/{permission_id}/parent", response_model=PermissionOut)
async def move_permission(
    permission_id: int,
    body: PermissionMove,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission(PERMISSION_ADMIN)),
):
    """Re-parent a node; moves that would create a cycle are rejected."""
    before = _parent(db, permission_service.get(db, permission_id).parent_id)
    permission = permission_service.move(db, permission_id, body.parent_id)
    audit_service.record(
        db, principal, "permission.moved", permission.id, permission.name,
        before, _parent(db, permission.parent_id),
    )
    return permission


@router.delete("/{permission_id}", response_model=MessageResponse)
async def delete_permission(
    permission_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission(PERMISSION_ADMIN)),
):
    """Delete a leaf permission along with every grant of it."""
    permission = permission_service.get(db, permission_id)
    name, before = permission.name, _parent(db, permission.parent_id)
    permission_service.delete(db, permission_id)
    audit_service.record(db, principal, "permission.deleted", permission_id, name, before=before)
    return MessageResponse(message=f"Permission '{name}' deleted")
