"""CORS and access-log middleware."""

import time
import logging

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from rbac_console.core.config import settings

logger = logging.getLogger("rbac_console.http")


def acting_user(request: Request) -> str:
    """Who a request ran as, e.g. ``viewer`` or ``viewer(via 1)`` when impersonated."""
    principal = getattr(request.state, "principal", None)
    if principal is None:
        return "-"
    if principal.impersonator_id is not None:
        return f"{principal.name}(via {principal.impersonator_id})"
    return principal.name


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Log every API call with the user it ran as.

    Refused calls (401/403) are logged at WARNING. API responses carry
    identity and permission data and are never cached.
    """

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()

        response: Response = await call_next(request)

        elapsed_ms = (time.perf_counter() - started) * 1000
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store"

        refused = response.status_code in (401, 403)
        logger.log(
            logging.WARNING if refused else logging.INFO,
            "%s %s %s %.1fms user=%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            acting_user(request),
        )
        return response


def setup_middleware(app: FastAPI) -> None:
    """Configure all middleware for the application."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(AccessLogMiddleware)
