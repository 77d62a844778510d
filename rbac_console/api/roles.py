"""Roles API router — role CRUD with whole-set permission replacement."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rbac_console.api.deps import RequirePermission
from rbac_console.authz.model import Principal
from rbac_console.authz.permissions import ADD_ROLE, DELETE_ROLE, MODIFY_ROLE, QUERY_ROLE
from rbac_console.db.session import get_db
from rbac_console.models.role import Role
from rbac_console.schemas.schemas import MessageResponse, RoleCreate, RoleOut, RoleUpdate
from rbac_console.services.audit_service import audit_service
from rbac_console.services.role_service import role_service

router = APIRouter(prefix="/roles", tags=["roles"])


def _role_out(role: Role) -> RoleOut:
    return RoleOut(
        id=role.id,
        name=role.name,
        description=role.description,
        permissions=role.permission_names,
        is_admin=role_service.is_admin_role(role),
        created_at=role.created_at,
    )


@router.get("", response_model=List[RoleOut])
async def list_roles(
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission(QUERY_ROLE)),
):
    return [_role_out(r) for r in role_service.list_roles(db)]


@router.get("/{role_id}", response_model=RoleOut)
async def get_role(
    role_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission(QUERY_ROLE)),
):
    return _role_out(role_service.get(db, role_id))


@router.post("", response_model=RoleOut, status_code=201)
async def create_role(
    body: RoleCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission(ADD_ROLE)),
):
    role = role_service.create(db, body.name, body.permissions, body.description)
    audit_service.record(db, principal, "role.created", role.id, role.name, after=role.permission_names)
    return _role_out(role)


@router.put("/{role_id}", response_model=RoleOut)
async def update_role(
    role_id: int,
    body: RoleUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission(MODIFY_ROLE)),
):
    """Rename the role and replace its entire permission set."""
    before = role_service.get(db, role_id).permission_names
    role = role_service.update(db, role_id, body.name, body.permissions, body.description)
    audit_service.record(db, principal, "role.updated", role.id, role.name, before, role.permission_names)
    return _role_out(role)


@router.delete("/{role_id}", response_model=MessageResponse)
async def delete_role(
    role_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission(DELETE_ROLE)),
):
    """Delete a role; users holding it simply lose it."""
    role = role_service.get(db, role_id)
    name, permission_names = role.name, role.permission_names
    role_service.delete(db, role_id)
    audit_service.record(db, principal, "role.deleted", role_id, name, before=permission_names)
    return MessageResponse(message=f"Role '{name}' deleted")
