"""Seed sample users for demo purposes."""

from sqlalchemy.orm import Session
from rbac_console.services.role_service import role_service
from rbac_console.services.user_service import user_service

SAMPLE_PASSWORD = "password123"

# user name -> role names, first is the primary role
SAMPLE_USERS = {
    "editor": ["编辑"],
    "viewer": ["访客"],
    "reviewer": ["审核员"],
    "dualuser": ["访客", "编辑"],
}


def seed_sample_data(db: Session) -> None:
    """Insert sample users holding the demo roles."""
    created = 0
    for name, role_names in SAMPLE_USERS.items():
        if user_service.get_by_name(db, name):
            continue
        roles = [role_service.get_by_name(db, role_name) for role_name in role_names]
        if not all(roles):
            print(f"⚠️  Roles for '{name}' not found. Run seed_roles first.")
            continue
        user_service.create(db, name, SAMPLE_PASSWORD, [role.id for role in roles])
        created += 1

    print(f"✅ Seeded {created} sample user(s)")
