"""Models package — import all models so metadata.create_all can discover them."""

from rbac_console.models.permission import Permission
from rbac_console.models.role import Role, RolePermission
from rbac_console.models.user import User, UserRole
from rbac_console.models.access_event import AccessEvent

__all__ = [
    "Permission", "Role", "RolePermission",
    "User", "UserRole", "AccessEvent",
]
