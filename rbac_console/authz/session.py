"""Session/identity holder and the menu view bound to it.

``SessionContext`` is an explicit object, created once per client and passed
to whatever needs identity or permission data. Its lifecycle is::

    ANONYMOUS -> AUTHENTICATING -> AUTHENTICATED -> ANONYMOUS (logout)

Every identity switch bumps ``generation``. Results of a network call are
committed only if the generation and identity they were requested under are
still current, so a slow fetch can never leak into a newer session.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, List, Optional, Protocol, Sequence, Tuple

from rbac_console.authz.evaluator import effective_permissions, has_permission
from rbac_console.authz.hides import LocalHideStore
from rbac_console.authz.menu import resolve_visible_menu
from rbac_console.authz.model import Identity, IdentityRecord, MenuNode, RoleGrant
from rbac_console.authz.navigation import SYSTEM_MENU
from rbac_console.core.exceptions import AuthenticationError, ConnectivityError, RBACConsoleError

logger = logging.getLogger("rbac_console.authz")


class SessionState(str, enum.Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


class LoginStatus(str, enum.Enum):
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"
    UNREACHABLE = "unreachable"
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class LoginOutcome:
    """Result of a login or impersonation attempt, shown to the user as-is."""
    status: LoginStatus
    message: str = ""
    identity: Optional[Identity] = None

    @property
    def ok(self) -> bool:
        return self.status == LoginStatus.AUTHENTICATED


class IdentityProvider(Protocol):
    """Authentication check and role lookup collaborator.

    ``authenticate``, ``refresh`` and ``impersonate`` return a record whose
    ``credentials`` are not yet in use; the session hands them to
    ``adopt_credentials`` only after the result is known to be current.

    Methods raise ``AuthenticationError`` for unknown or rejected identities,
    ``ConnectivityError`` when the backing service is unreachable, and another
    ``RBACConsoleError`` for any other refusal.
    """

    async def authenticate(self, name: str, password: str) -> IdentityRecord: ...

    async def refresh(self) -> IdentityRecord: ...

    async def impersonate(self, user_id: int) -> IdentityRecord: ...

    async def fetch_permission_names(self, credentials: Optional[str] = None) -> Sequence[str]: ...

    def adopt_credentials(self, credentials: str) -> None: ...

    def discard_credentials(self) -> None: ...


SessionListener = Callable[["SessionContext"], None]


class SessionContext:
    """Holds the current identity, its roles and its effective permissions."""

    def __init__(self, provider: IdentityProvider):
        self._provider = provider
        self._state = SessionState.ANONYMOUS
        self._identity: Optional[Identity] = None
        self._roles: Tuple[RoleGrant, ...] = ()
        self._permissions: FrozenSet[str] = frozenset()
        self._generation = 0
        self._listeners: List[SessionListener] = []

    # ---- read side ----
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def roles(self) -> Tuple[RoleGrant, ...]:
        return self._roles

    @property
    def primary_role(self) -> Optional[RoleGrant]:
        """First assigned role, used for display only."""
        return self._roles[0] if self._roles else None

    @property
    def effective_permissions(self) -> FrozenSet[str]:
        return self._permissions

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_authenticated(self) -> bool:
        return self._state == SessionState.AUTHENTICATED

    def has_permission(self, permission: str) -> bool:
        return has_permission(self._permissions, permission)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ---- lifecycle ----
    async def login(self, name: str, password: str) -> LoginOutcome:
        """Authenticate and load roles; failures are reported, never raised."""
        self._provider.discard_credentials()
        generation = self._switch(SessionState.AUTHENTICATING)
        try:
            record = await self._provider.authenticate(name, password)
            known = await self._provider.fetch_permission_names(record.credentials)
        except AuthenticationError as e:
            logger.info("Login rejected for %r: %s", name, e.message)
            return self._fail(generation, LoginStatus.REJECTED, e.message)
        except ConnectivityError as e:
            logger.warning("Login for %r could not reach the server: %s", name, e.message)
            return self._fail(generation, LoginStatus.UNREACHABLE, e.message)
        except RBACConsoleError as e:
            logger.info("Login for %r refused: %s", name, e.message)
            return self._fail(generation, LoginStatus.REJECTED, e.message)

        if generation != self._generation:
            logger.info("Discarding login result for %r from a superseded session", name)
            return LoginOutcome(LoginStatus.SUPERSEDED, "Session changed during login")

        self._commit(record, known)
        logger.info("Signed in as %r", record.identity.name)
        return LoginOutcome(LoginStatus.AUTHENTICATED, identity=record.identity)

    async def refresh(self) -> bool:
        """Re-read the current identity's roles without re-authenticating.

        Returns False when there is nothing to refresh or the result arrived
        for a session that is no longer current. Errors propagate and leave
        the existing state untouched.
        """
        if not self.is_authenticated or self._identity is None:
            return False
        generation = self._generation
        user_id = self._identity.id

        record = await self._provider.refresh()
        known = await self._provider.fetch_permission_names(record.credentials)

        if generation != self._generation or self._identity is None or self._identity.id != user_id:
            logger.info("Discarding refresh result for user %s from a superseded session", user_id)
            return False
        if record.identity.id != user_id:
            logger.warning(
                "Refresh for user %s returned user %s; ignoring it", user_id, record.identity.id
            )
            return False

        self._commit(record, known)
        return True

    async def impersonate(self, user_id: int) -> LoginOutcome:
        """Switch to another user's identity without their credentials.

        The current session stays in place until the new identity is loaded.
        """
        if not self.is_authenticated:
            return LoginOutcome(LoginStatus.REJECTED, "Not signed in")
        generation = self._generation
        try:
            record = await self._provider.impersonate(user_id)
            known = await self._provider.fetch_permission_names(record.credentials)
        except ConnectivityError as e:
            return LoginOutcome(LoginStatus.UNREACHABLE, e.message)
        except RBACConsoleError as e:
            return LoginOutcome(LoginStatus.REJECTED, e.message)

        if generation != self._generation:
            logger.info("Discarding impersonation of user %s from a superseded session", user_id)
            return LoginOutcome(LoginStatus.SUPERSEDED, "Session changed during impersonation")

        self._generation += 1
        self._commit(record, known)
        logger.info("Now acting as %r", record.identity.name)
        return LoginOutcome(LoginStatus.AUTHENTICATED, identity=record.identity)

    def logout(self) -> None:
        """Drop identity and every derived value. Always succeeds."""
        self._provider.discard_credentials()
        self._switch(SessionState.ANONYMOUS)

    # ---- internals ----
    def _switch(self, state: SessionState) -> int:
        self._generation += 1
        self._state = state
        self._identity = None
        self._roles = ()
        self._permissions = frozenset()
        self._notify()
        return self._generation

    def _fail(self, generation: int, status: LoginStatus, message: str) -> LoginOutcome:
        if generation == self._generation:
            self._state = SessionState.ANONYMOUS
            self._notify()
        return LoginOutcome(status, message)

    def _commit(self, record: IdentityRecord, known: Optional[Iterable[str]]) -> None:
        if record.credentials is not None:
            self._provider.adopt_credentials(record.credentials)
        self._state = SessionState.AUTHENTICATED
        self._identity = record.identity
        self._roles = record.roles
        self._permissions = effective_permissions(record.roles, known)
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Session listener %r failed", listener)


MenuListener = Callable[["MenuView"], None]


class MenuView:
    """Visible menu for a session, kept in step with permissions and hides.

    Changes from either source mark the view dirty; ``current()`` resolves
    again against the latest values. Anonymous sessions see nothing.
    """

    def __init__(
        self,
        session: SessionContext,
        hides: LocalHideStore,
        tree: Sequence[MenuNode] = SYSTEM_MENU,
    ):
        self._session = session
        self._hides = hides
        self._tree = tuple(tree)
        self._menu: Tuple[MenuNode, ...] = ()
        self._dirty = True
        self._resolved_generation: Optional[int] = None
        self._listeners: List[MenuListener] = []
        self._unsubscribers = [
            session.subscribe(self.invalidate),
            hides.subscribe(self.invalidate),
        ]

    def invalidate(self, *_source) -> None:
        self._dirty = True
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Menu listener %r failed", listener)

    def current(self) -> Tuple[MenuNode, ...]:
        if self._dirty or self._resolved_generation != self._session.generation:
            if self._session.is_authenticated:
                self._menu = resolve_visible_menu(
                    self._tree, self._session.effective_permissions, self._hides.hidden
                )
            else:
                self._menu = ()
            self._resolved_generation = self._session.generation
            self._dirty = False
        return self._menu

    def subscribe(self, listener: MenuListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
