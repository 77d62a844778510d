"""Users API router — list, create, assign roles, delete."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rbac_console.api.deps import RequirePermission
from rbac_console.authz.model import Principal
from rbac_console.authz.permissions import ADD_USER, DELETE_USER, MODIFY_USER, QUERY_USER
from rbac_console.db.session import get_db
from rbac_console.models.user import User
from rbac_console.schemas.schemas import (
    MessageResponse, RoleBrief, UserCreate, UserOut, UserRolesUpdate,
)
from rbac_console.services.audit_service import audit_service
from rbac_console.services.user_service import user_service

router = APIRouter(prefix="/users", tags=["users"])


def _user_out(user: User) -> UserOut:
    roles = [RoleBrief(id=link.role.id, name=link.role.name) for link in user.role_links]
    return UserOut(
        id=user.id,
        name=user.name,
        is_active=user.is_active,
        roles=roles,
        primary_role=roles[0].name if roles else None,
        last_login_at=user.last_login_at,
        created_at=user.created_at,
    )


@router.get("", response_model=List[UserOut])
async def list_users(
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission(QUERY_USER)),
):
    """All users with their roles in assignment order."""
    return [_user_out(u) for u in user_service.list_users(db)]


@router.post("", response_model=UserOut, status_code=201)
async def create_user(
    body: UserCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission(ADD_USER)),
):
    user = user_service.create(db, body.name, body.password, body.role_ids)
    audit_service.record(db, principal, "user.created", user.id, user.name, after=user.role_names)
    return _user_out(user)


@router.put("/{user_id}/roles", response_model=UserOut)
async def update_user_roles(
    user_id: int,
    body: UserRolesUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission(MODIFY_USER)),
):
    """Replace the user's role list; the first id becomes the primary role."""
    before = user_service.get(db, user_id).role_names
    user = user_service.replace_roles(db, user_id, body.role_ids)
    audit_service.record(db, principal, "user.roles_changed", user.id, user.name, before, user.role_names)
    return _user_out(user)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission(DELETE_USER)),
):
    user = user_service.get(db, user_id)
    name, role_names = user.name, user.role_names
    user_service.delete(db, user_id, actor_id=principal.user_id)
    audit_service.record(db, principal, "user.deleted", user_id, name, before=role_names)
    return MessageResponse(message=f"User '{name}' deleted")
