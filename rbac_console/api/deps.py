"""Shared FastAPI dependencies: the calling principal and permission guards."""

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from rbac_console.authz.evaluator import missing_permissions
from rbac_console.authz.model import Principal
from rbac_console.core.exceptions import AuthenticationError, forbidden, unauthorized
from rbac_console.core.security import get_token_payload
from rbac_console.db.session import get_db
from rbac_console.services.auth_service import auth_service


async def get_current_principal(
    request: Request,
    payload: dict = Depends(get_token_payload),
    db: Session = Depends(get_db),
) -> Principal:
    """Load the caller with permissions read from the database on every request.

    The principal is also left on ``request.state`` for the access log.
    """
    try:
        principal = auth_service.load_principal(db, int(payload["sub"]), payload.get("imp"))
    except AuthenticationError as e:
        raise unauthorized(e.message)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject")
    request.state.principal = principal
    return principal


class RequirePermission:
    """Dependency that admits only principals holding every named permission.

    Usage::

        @router.get("/roles", dependencies=[Depends(RequirePermission(QUERY_ROLE))])
    """

    def __init__(self, *permissions: str):
        self.permissions = permissions

    async def __call__(self, principal: Principal = Depends(get_current_principal)) -> Principal:
        missing = missing_permissions(principal.effective_permissions, self.permissions)
        if missing:
            raise forbidden(f"Missing permission(s): {', '.join(missing)}")
        return principal
