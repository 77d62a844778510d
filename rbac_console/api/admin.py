"""Audit API router — access history."""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rbac_console.api.deps import RequirePermission
from rbac_console.authz.model import Principal
from rbac_console.authz.permissions import AUDIT_LOG
from rbac_console.db.session import get_db
from rbac_console.schemas.schemas import AccessHistoryOut
from rbac_console.services.audit_service import audit_service

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/audit", response_model=AccessHistoryOut)
async def access_history(
    event: Optional[str] = Query(None, description="e.g. login, role.updated"),
    target_type: Optional[str] = Query(None, pattern="^(user|role|permission)$"),
    actor: Optional[str] = Query(None, description="Acting user name"),
    target: Optional[str] = Query(None, description="User, role or permission name"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission(AUDIT_LOG)),
):
    """Sign-ins and grant changes, newest first."""
    return audit_service.history(db, event, target_type, actor, target, page, page_size)
