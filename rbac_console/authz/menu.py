"""Menu visibility resolver.

Two independent sources decide whether a navigation node renders:

* the local hide set, a personal preference checked first, which removes the
  node together with its whole subtree;
* the node's own ``required_permission``, which must be in the effective
  permission set. Gates are evaluated per node and never inherited.

After filtering, a container without a ``path`` and without surviving
children is dropped. Resolution never mutates its input and keeps sibling
order.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from rbac_console.authz.model import MenuNode

logger = logging.getLogger("rbac_console.authz")


def resolve_visible_menu(
    tree: Optional[Iterable[MenuNode]],
    effective_permissions: Optional[Iterable[str]],
    local_hides: Optional[Iterable[str]],
) -> Tuple[MenuNode, ...]:
    """Filtered copy of ``tree`` for the given grants and hidden ids."""
    granted = frozenset(effective_permissions or ())
    hidden = frozenset(local_hides or ())
    return _filter_nodes(tree or (), granted, hidden)


def _filter_nodes(nodes: Iterable[MenuNode], granted: frozenset, hidden: frozenset) -> Tuple[MenuNode, ...]:
    visible = []
    for node in nodes:
        kept = _filter_node(node, granted, hidden)
        if kept is not None:
            visible.append(kept)
    return tuple(visible)


def _filter_node(node: MenuNode, granted: frozenset, hidden: frozenset) -> Optional[MenuNode]:
    if node.id in hidden:
        return None
    if node.required_permission is not None and node.required_permission not in granted:
        return None
    children = _filter_nodes(node.children, granted, hidden)
    if node.path is None and not children:
        return None
    return replace(node, children=children)


def iter_menu_nodes(tree: Iterable[MenuNode]) -> Iterator[MenuNode]:
    """Depth-first, parent-before-children walk."""
    for node in tree:
        yield node
        yield from iter_menu_nodes(node.children)


def menu_node_ids(tree: Iterable[MenuNode]) -> List[str]:
    return [node.id for node in iter_menu_nodes(tree)]


def find_menu_node(tree: Iterable[MenuNode], node_id: str) -> Optional[MenuNode]:
    for node in iter_menu_nodes(tree):
        if node.id == node_id:
            return node
    return None


def find_unknown_permissions(
    tree: Iterable[MenuNode], catalogue: Iterable[str]
) -> List[Tuple[str, str]]:
    """(node id, permission) pairs for gates naming permissions not in ``catalogue``.

    Such nodes already resolve as hidden; this only reports them.
    """
    known = set(catalogue)
    unknown = [
        (node.id, node.required_permission)
        for node in iter_menu_nodes(tree)
        if node.required_permission is not None and node.required_permission not in known
    ]
    for node_id, permission in unknown:
        logger.warning(
            "Menu node %r requires unknown permission %r; it will never be shown",
            node_id, permission,
        )
    return unknown


def menu_to_dict(node: MenuNode) -> Dict[str, Any]:
    return {
        "id": node.id,
        "label": node.label,
        "path": node.path,
        "required_permission": node.required_permission,
        "children": [menu_to_dict(child) for child in node.children],
    }


def menu_from_dict(data: Dict[str, Any]) -> MenuNode:
    return MenuNode(
        id=data["id"],
        label=data["label"],
        path=data.get("path"),
        required_permission=data.get("required_permission"),
        children=tuple(menu_from_dict(child) for child in data.get("children") or ()),
    )
