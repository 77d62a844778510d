"""Permission evaluation and menu visibility."""

from rbac_console.authz.evaluator import (
    effective_permissions,
    has_permission,
    missing_permissions,
    permissions_for,
    resolve_roles,
)
from rbac_console.authz.hides import LocalHideStore, reset_all, toggle_hidden
from rbac_console.authz.menu import resolve_visible_menu
from rbac_console.authz.model import Identity, IdentityRecord, MenuNode, Principal, RoleGrant
from rbac_console.authz.navigation import SYSTEM_MENU
from rbac_console.authz.session import LoginOutcome, LoginStatus, MenuView, SessionContext, SessionState

__all__ = [
    "effective_permissions", "has_permission", "missing_permissions",
    "permissions_for", "resolve_roles",
    "LocalHideStore", "reset_all", "toggle_hidden",
    "resolve_visible_menu",
    "Identity", "IdentityRecord", "MenuNode", "Principal", "RoleGrant",
    "SYSTEM_MENU",
    "LoginOutcome", "LoginStatus", "MenuView", "SessionContext", "SessionState",
]
