"""Menu service — resolve the static navigation tree for a principal."""

import logging
from typing import Any, Dict, Iterable, List, Sequence

from sqlalchemy.orm import Session

from rbac_console.authz.menu import find_unknown_permissions, menu_to_dict, resolve_visible_menu
from rbac_console.authz.model import MenuNode, Principal
from rbac_console.authz.navigation import SYSTEM_MENU
from rbac_console.services.permission_service import permission_service

logger = logging.getLogger(__name__)


class MenuService:
    """Serves the navigation tree, filtered or in full."""

    def __init__(self, tree: Sequence[MenuNode] = SYSTEM_MENU):
        self.tree = tuple(tree)

    def resolve(self, principal: Principal, hidden: Iterable[str] = ()) -> List[Dict[str, Any]]:
        """Visible menu for ``principal`` with the client's local hides applied."""
        visible = resolve_visible_menu(self.tree, principal.effective_permissions, hidden)
        return [menu_to_dict(node) for node in visible]

    def catalogue(self) -> List[Dict[str, Any]]:
        """Unfiltered tree with each node's required permission."""
        return [menu_to_dict(node) for node in self.tree]

    def check_integrity(self, db: Session) -> List[tuple]:
        """Report menu gates naming permissions that are not in the catalogue."""
        return find_unknown_permissions(self.tree, permission_service.names(db))


menu_service = MenuService()
