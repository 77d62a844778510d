"""Auth API router — login, login-as, refresh, logout, me."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from rbac_console.api.deps import RequirePermission, get_current_principal
from rbac_console.authz.model import Principal
from rbac_console.authz.permissions import USER_ADMIN
from rbac_console.db.session import get_db
from rbac_console.schemas.schemas import (
    LoginRequest, LoginAsRequest, TokenResponse, SessionOut, MessageResponse,
)
from rbac_console.services.auth_service import auth_service
from rbac_console.services.audit_service import audit_service
from rbac_console.core.exceptions import AuthenticationError, ResourceNotFoundError, ValidationError

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: Session = Depends(get_db)):
    """Authenticate and return a JWT with the session snapshot."""
    try:
        result = auth_service.authenticate(db, body.name, body.password)
    except AuthenticationError as e:
        audit_service.record(db, None, "login.failed", target_name=body.name)
        raise HTTPException(status_code=401, detail=str(e))
    principal = auth_service.load_principal(db, result["session"]["user"]["id"])
    audit_service.record(db, principal, "login", target_id=principal.user_id, target_name=principal.name)
    return result


@router.post("/login-as", response_model=TokenResponse)
async def login_as(
    body: LoginAsRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission(USER_ADMIN)),
):
    """Act as another user without their password."""
    try:
        result = auth_service.login_as(db, principal, body.user_id)
    except ResourceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    acting_as = result["session"]["user"]
    audit_service.record(db, principal, "login_as", target_id=acting_as["id"], target_name=acting_as["name"])
    return result


@router.post("/refresh", response_model=TokenResponse)
async def refresh(principal: Principal = Depends(get_current_principal)):
    """Re-issue the token with the caller's current roles and permissions."""
    return auth_service.issue(principal)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Record the logout; the client discards its token."""
    audit_service.record(db, principal, "logout", target_id=principal.user_id, target_name=principal.name)
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=SessionOut)
async def get_me(principal: Principal = Depends(get_current_principal)):
    """Current identity, roles and effective permissions."""
    return auth_service.snapshot(principal)
