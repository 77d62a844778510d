"""Seed default roles into the database."""

from sqlalchemy.orm import Session
from rbac_console.authz import permissions as perms
from rbac_console.services.role_service import role_service


def seed_roles(db: Session) -> None:
    """Ensure the administrator role, then insert the demo roles if missing."""
    admin = role_service.ensure_admin_integrity(db)

    roles_data = [
        {
            "name": "编辑",
            "description": "Manage users and business content",
            "permissions": [
                perms.USER_ADMIN, perms.QUERY_USER, perms.ADD_USER, perms.MODIFY_USER,
                perms.BUSINESS_ADMIN,
            ],
        },
        {
            "name": "访客",
            "description": "Read-only access to users and roles",
            "permissions": [perms.QUERY_USER, perms.QUERY_ROLE],
        },
        {
            "name": "审核员",
            "description": "Business review queues",
            "permissions": [perms.BUSINESS_AUDIT],
        },
    ]

    for role_data in roles_data:
        if not role_service.get_by_name(db, role_data["name"]):
            role_service.create(db, role_data["name"], role_data["permissions"], role_data["description"])

    print(f"✅ Seeded {len(roles_data) + 1} roles ('{admin.name}' holds {len(admin.permission_links)} permissions)")
