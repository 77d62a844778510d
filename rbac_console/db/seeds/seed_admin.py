"""Seed the administrator user from env vars."""

from sqlalchemy.orm import Session
from rbac_console.core.config import settings
from rbac_console.services.role_service import role_service
from rbac_console.services.user_service import user_service


def seed_admin(db: Session) -> None:
    """Create the administrator user if not already present."""
    admin_role = role_service.get_by_name(db, settings.ADMIN_ROLE_NAME)
    if not admin_role:
        print(f"⚠️  '{settings.ADMIN_ROLE_NAME}' role not found. Run seed_roles first.")
        return

    if user_service.get_by_name(db, settings.ADMIN_USER_NAME):
        print(f"ℹ️  Admin user '{settings.ADMIN_USER_NAME}' already exists, skipping.")
        return

    user_service.create(db, settings.ADMIN_USER_NAME, settings.ADMIN_USER_PASSWORD, [admin_role.id])
    print(f"✅ Created admin user: {settings.ADMIN_USER_NAME}")
