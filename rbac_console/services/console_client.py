"""HTTP client for the console API; the identity provider behind ``SessionContext``."""

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from rbac_console.authz.model import Identity, IdentityRecord, RoleGrant
from rbac_console.core.config import settings
from rbac_console.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConnectivityError,
    RBACConsoleError,
    ResourceConflictError,
    ResourceNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_ERRORS = {
    401: AuthenticationError,
    403: AuthorizationError,
    404: ResourceNotFoundError,
    409: ResourceConflictError,
}


def record_from_session(session: Dict[str, Any], credentials: Optional[str] = None) -> IdentityRecord:
    """Build an ``IdentityRecord`` from the ``session`` block of a token response."""
    user = session["user"]
    identity = Identity(
        id=user["id"],
        name=user["name"],
        role_ids=session.get("role_ids") or (),
        impersonator_id=session.get("impersonator_id"),
    )
    roles = [
        RoleGrant(id=role["id"], name=role["name"], permission_names=role.get("permissions") or ())
        for role in session.get("roles") or ()
    ]
    return IdentityRecord(identity=identity, roles=roles, credentials=credentials)


class ConsoleClient:
    """Async API client holding the bearer token of the signed-in user.

    Tokens returned by the identity calls ride on the ``IdentityRecord`` and
    are only used for later requests once ``adopt_credentials`` installs them.

    Transport failures and 5xx responses surface as ``ConnectivityError``;
    4xx responses map onto the matching ``RBACConsoleError`` subclass.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout if timeout is not None else settings.API_TIMEOUT_SECONDS,
            transport=transport,
        )
        self._token: Optional[str] = None

    @property
    def token(self) -> Optional[str]:
        return self._token

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ConsoleClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ---- identity provider ----
    async def authenticate(self, name: str, password: str) -> IdentityRecord:
        data = await self._request("POST", "/auth/login", json={"name": name, "password": password})
        return self._accept(data)

    async def refresh(self) -> IdentityRecord:
        data = await self._request("POST", "/auth/refresh")
        return self._accept(data)

    async def impersonate(self, user_id: int) -> IdentityRecord:
        data = await self._request("POST", "/auth/login-as", json={"user_id": user_id})
        return self._accept(data)

    async def fetch_permission_names(self, credentials: Optional[str] = None) -> Sequence[str]:
        data = await self._request("GET", "/permissions", token=credentials)
        return [item["name"] for item in data]

    def adopt_credentials(self, credentials: str) -> None:
        self._token = credentials

    def discard_credentials(self) -> None:
        self._token = None

    # ---- administration ----
    async def list_users(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/users")

    async def create_user(self, name: str, password: str, role_ids: Sequence[int] = ()) -> Dict[str, Any]:
        return await self._request(
            "POST", "/users", json={"name": name, "password": password, "role_ids": list(role_ids)}
        )

    async def set_user_roles(self, user_id: int, role_ids: Sequence[int]) -> Dict[str, Any]:
        return await self._request("PUT", f"/users/{user_id}/roles", json={"role_ids": list(role_ids)})

    async def delete_user(self, user_id: int) -> Dict[str, Any]:
        return await self._request("DELETE", f"/users/{user_id}")

    async def list_roles(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/roles")

    async def create_role(self, name: str, permissions: Sequence[str], description: str = None) -> Dict[str, Any]:
        return await self._request(
            "POST", "/roles",
            json={"name": name, "permissions": list(permissions), "description": description},
        )

    async def update_role(
        self, role_id: int, name: str, permissions: Sequence[str], description: str = None
    ) -> Dict[str, Any]:
        return await self._request(
            "PUT", f"/roles/{role_id}",
            json={"name": name, "permissions": list(permissions), "description": description},
        )

    async def delete_role(self, role_id: int) -> Dict[str, Any]:
        return await self._request("DELETE", f"/roles/{role_id}")

    async def permission_tree(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/permissions/tree")

    # ---- internals ----
    @staticmethod
    def _accept(data: Dict[str, Any]) -> IdentityRecord:
        return record_from_session(data["session"], credentials=data["access_token"])

    async def _request(self, method: str, url: str, token: Optional[str] = None, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        token = token or self._token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            resp = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise ConnectivityError(f"Cannot reach {self._client.base_url}: {e}")

        if resp.status_code >= 500:
            raise ConnectivityError(f"Server error {resp.status_code} on {method} {url}")
        if resp.status_code >= 400:
            raise self._error_for(resp)
        return resp.json()

    @staticmethod
    def _error_for(resp: httpx.Response) -> RBACConsoleError:
        try:
            body = resp.json()
        except ValueError:
            body = None
        detail = body.get("detail") if isinstance(body, dict) else None
        if not isinstance(detail, str):
            detail = resp.reason_phrase or f"HTTP {resp.status_code}"
        error_cls = _STATUS_ERRORS.get(resp.status_code, ValidationError)
        return error_cls(detail)
