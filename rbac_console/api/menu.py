"""Menu API router — the caller's visible navigation tree."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from rbac_console.api.deps import get_current_principal
from rbac_console.authz.model import Principal
from rbac_console.schemas.schemas import MenuNodeOut
from rbac_console.services.menu_service import menu_service

router = APIRouter(prefix="/menu", tags=["menu"])


@router.get("", response_model=List[MenuNodeOut])
async def get_menu(
    hidden: Optional[List[str]] = Query(None, description="Node ids hidden locally by the client"),
    principal: Principal = Depends(get_current_principal),
):
    """Menu filtered by the caller's permissions and the supplied hides."""
    return menu_service.resolve(principal, hidden or ())


@router.get("/catalog", response_model=List[MenuNodeOut])
async def get_menu_catalog(principal: Principal = Depends(get_current_principal)):
    """Every node with the permission that gates it, unfiltered."""
    return menu_service.catalogue()
