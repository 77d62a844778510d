"""Authorization evaluator.

Effective permissions are the union of every role a user holds. No role is
privileged over another and no permission implies any other. Every function
here is total: unknown roles or permission names fail closed (contribute
nothing) and are logged rather than raised.
"""

import logging
from collections.abc import Collection
from typing import Any, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple

from rbac_console.authz.model import RoleGrant

logger = logging.getLogger("rbac_console.authz")


def effective_permissions(
    roles: Optional[Iterable[Optional[RoleGrant]]],
    known_permissions: Optional[Iterable[str]] = None,
) -> FrozenSet[str]:
    """Union of ``permission_names`` across ``roles``.

    When ``known_permissions`` is given, names outside that catalogue are
    dropped and reported as data-integrity anomalies.
    """
    known: Optional[Set[str]] = set(known_permissions) if known_permissions is not None else None
    granted: Set[str] = set()
    for role in roles or ():
        if role is None:
            continue
        names = set(role.permission_names)
        if known is not None:
            unknown = names - known
            if unknown:
                logger.warning(
                    "Role %r grants unknown permission(s) %s; treating them as not granted",
                    role.name, sorted(unknown),
                )
                names &= known
        granted |= names
    return frozenset(granted)


def resolve_roles(
    role_ids: Optional[Iterable[int]], registry: Mapping[int, RoleGrant]
) -> List[RoleGrant]:
    """Look up ``role_ids`` in ``registry``, keeping order; unknown ids are skipped."""
    resolved: List[RoleGrant] = []
    seen: Set[int] = set()
    for role_id in role_ids or ():
        if role_id in seen:
            continue
        seen.add(role_id)
        role = registry.get(role_id)
        if role is None:
            logger.warning("Role id %s is not registered; it grants nothing", role_id)
            continue
        resolved.append(role)
    return resolved


def permissions_for(
    role_ids: Optional[Iterable[int]],
    registry: Mapping[int, RoleGrant],
    known_permissions: Optional[Iterable[str]] = None,
) -> FrozenSet[str]:
    """Effective permissions of a user holding ``role_ids``."""
    return effective_permissions(resolve_roles(role_ids, registry), known_permissions)


def has_permission(holder: Any, permission: str) -> bool:
    """Check ``permission`` against a session, a principal or a plain set.

    ``holder`` may expose ``effective_permissions`` or be any collection of
    names (set, list, tuple). ``None`` (no session) never holds anything, and
    a bare string is not treated as a collection of names.
    """
    if holder is None or not isinstance(permission, str):
        return False
    granted = getattr(holder, "effective_permissions", holder)
    if not isinstance(granted, Collection) or isinstance(granted, (str, bytes)):
        return False
    return permission in granted


def missing_permissions(granted: Iterable[str], required: Iterable[str]) -> Tuple[str, ...]:
    """Required names absent from ``granted``, in the order they were required."""
    have = set(granted or ())
    return tuple(name for name in required if name not in have)
