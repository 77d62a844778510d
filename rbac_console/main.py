"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rbac_console import __version__
from rbac_console.core.config import settings
from rbac_console.core.middleware import setup_middleware
from rbac_console.core.exceptions import RBACConsoleError
from rbac_console.db.session import SessionLocal, get_db

from rbac_console.api.auth import router as auth_router
from rbac_console.api.users import router as users_router
from rbac_console.api.roles import router as roles_router
from rbac_console.api.permissions import router as permissions_router
from rbac_console.api.menu import router as menu_router
from rbac_console.api.admin import router as admin_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("rbac_console")


def run_startup_checks() -> None:
    """Restore the administrator role's full grant and verify menu gates."""
    from rbac_console.services.menu_service import menu_service
    from rbac_console.services.role_service import role_service

    db = SessionLocal()
    try:
        role_service.ensure_admin_integrity(db)
        unknown = menu_service.check_integrity(db)
        if unknown:
            logger.warning("%d menu node(s) are gated by unknown permissions", len(unknown))
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting %s API", settings.APP_NAME)
    try:
        run_startup_checks()
        logger.info("Administrator role verified")
    except SQLAlchemyError as e:
        logger.warning("Database not available at startup: %s", e)

    yield

    logger.info("Shutting down %s API", settings.APP_NAME)


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Role-based access control administration console",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware
setup_middleware(app)


@app.exception_handler(RBACConsoleError)
async def rbac_exception_handler(request: Request, exc: RBACConsoleError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=503,
        content={"detail": "Database unavailable"},
    )


# Register routers
app.include_router(auth_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(roles_router, prefix="/api")
app.include_router(permissions_router, prefix="/api")
app.include_router(menu_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/api/health")
async def health(db: Session = Depends(get_db)):
    """Liveness plus a round trip to the database."""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("Health check could not reach the database: %s", e)
        return JSONResponse(status_code=503, content={"status": "degraded", "database": "unreachable"})
    return {"status": "ok", "database": "ok"}
