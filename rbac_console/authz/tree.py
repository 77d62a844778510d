"""Conversion between persisted flat permission rows and the runtime tree."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

logger = logging.getLogger("rbac_console.authz")


@dataclass(frozen=True)
class PermissionRecord:
    """One persisted permission row."""
    id: int
    name: str
    parent_id: Optional[int] = None


@dataclass
class PermissionTreeNode:
    id: int
    name: str
    parent_id: Optional[int] = None
    children: List["PermissionTreeNode"] = field(default_factory=list)


def build_permission_tree(records: Iterable[PermissionRecord]) -> List[PermissionTreeNode]:
    """Build the forest from flat rows, preserving row order among siblings.

    Rows whose parent is missing are promoted to roots and rows caught in a
    parent cycle are dropped; both are logged as data-integrity anomalies.
    """
    rows = list(records)
    nodes: Dict[int, PermissionTreeNode] = {
        row.id: PermissionTreeNode(id=row.id, name=row.name, parent_id=row.parent_id)
        for row in rows
    }

    roots: List[PermissionTreeNode] = []
    for row in rows:
        node = nodes[row.id]
        if row.parent_id is None:
            roots.append(node)
        elif row.parent_id not in nodes:
            logger.warning(
                "Permission %r references missing parent %s; treating it as a root",
                row.name, row.parent_id,
            )
            roots.append(node)
        else:
            nodes[row.parent_id].children.append(node)

    reachable = {node.id for node in iter_tree(roots)}
    for row in rows:
        if row.id not in reachable:
            logger.warning("Permission %r is part of a parent cycle; skipping it", row.name)
    return roots


def flatten_permission_tree(tree: Iterable[PermissionTreeNode]) -> List[PermissionRecord]:
    """Depth-first, parent-before-children flat form of ``tree``."""
    return [
        PermissionRecord(id=node.id, name=node.name, parent_id=node.parent_id)
        for node in iter_tree(tree)
    ]


def iter_tree(tree: Iterable[PermissionTreeNode]):
    stack = list(reversed(list(tree)))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def ancestor_ids(records: Iterable[PermissionRecord], permission_id: int) -> List[int]:
    """Ids from the direct parent up to the root; stops on a cycle."""
    parents = {row.id: row.parent_id for row in records}
    chain: List[int] = []
    seen: Set[int] = {permission_id}
    current = parents.get(permission_id)
    while current is not None and current not in seen:
        chain.append(current)
        seen.add(current)
        current = parents.get(current)
    return chain


def would_create_cycle(
    records: Iterable[PermissionRecord], permission_id: int, new_parent_id: Optional[int]
) -> bool:
    """True if re-parenting ``permission_id`` under ``new_parent_id`` closes a loop."""
    if new_parent_id is None:
        return False
    if new_parent_id == permission_id:
        return True
    return permission_id in ancestor_ids(records, new_parent_id)
