"""Plain data types shared by the evaluator, the menu resolver and the session."""

from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple


@dataclass(frozen=True)
class RoleGrant:
    """A role as seen by the evaluator: its id, name and granted permission names."""
    id: int
    name: str
    permission_names: FrozenSet[str] = frozenset()

    def __post_init__(self):
        object.__setattr__(self, "permission_names", frozenset(self.permission_names))


@dataclass(frozen=True)
class Identity:
    """Authenticated user identity with its ordered role ids."""
    id: int
    name: str
    role_ids: Tuple[int, ...] = ()
    impersonator_id: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "role_ids", tuple(self.role_ids))


@dataclass(frozen=True)
class IdentityRecord:
    """What an identity provider returns: the identity plus its resolved roles.

    ``credentials`` is the bearer token that goes with this identity. The
    provider hands it back untouched; the session adopts it on commit.
    """
    identity: Identity
    roles: Tuple[RoleGrant, ...] = ()
    credentials: Optional[str] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "roles", tuple(self.roles))


@dataclass(frozen=True)
class Principal:
    """Server-side caller of a request, with permissions computed per request."""
    user_id: int
    name: str
    role_ids: Tuple[int, ...]
    roles: Tuple[RoleGrant, ...]
    effective_permissions: FrozenSet[str]
    impersonator_id: Optional[int] = None

    @property
    def primary_role(self) -> Optional[RoleGrant]:
        return self.roles[0] if self.roles else None


@dataclass(frozen=True)
class MenuNode:
    """Static navigation entry.

    ``required_permission`` gates this node only; children carry their own
    gates. A node without ``path`` is a pure container.
    """
    id: str
    label: str
    path: Optional[str] = None
    required_permission: Optional[str] = None
    children: Tuple["MenuNode", ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "children", tuple(self.children))
