"""
Hosted platform client.

The platform provides password authentication (GoTrue), a row store behind a
PostgREST API and realtime change feeds. Everything above this module talks to
it through the ``PlatformClient`` protocol so tests can substitute an
in-memory fake.
"""

import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from core.config import Settings, get_settings

logger = logging.getLogger(__name__)

Filters = dict[str, str]


class PlatformError(Exception):
    """Error returned by (or while reaching) the hosted platform."""

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    @property
    def is_transient(self) -> bool:
        """Network failures and 5xx responses are worth retrying."""
        return self.status_code is None or self.status_code >= 500


def eq(value: Any) -> str:
    """PostgREST equality filter."""
    return f"eq.{value}"


def in_(values: list[Any]) -> str:
    """PostgREST membership filter."""
    return "in.(" + ",".join(str(v) for v in values) + ")"


@runtime_checkable
class PlatformClient(Protocol):
    """Operations the application needs from the hosted platform."""

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Filters | None = None,
        order: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
        token: str | None = None,
    ) -> list[dict[str, Any]]: ...

    async def insert(self, table: str, row: dict[str, Any], *, token: str | None = None) -> dict[str, Any]: ...

    async def update(
        self, table: str, values: dict[str, Any], *, filters: Filters, token: str | None = None
    ) -> list[dict[str, Any]]: ...

    async def delete(self, table: str, *, filters: Filters, token: str | None = None) -> list[dict[str, Any]]: ...

    async def upsert(self, table: str, row: dict[str, Any], *, token: str | None = None) -> dict[str, Any]: ...

    async def password_grant(self, email: str, password: str) -> httpx.Response: ...

    async def sign_up(self, email: str, password: str, redirect_to: str | None = None) -> dict[str, Any]: ...

    async def sign_out(self, token: str) -> None: ...

    async def recover(self, email: str, redirect_to: str | None = None) -> None: ...

    async def get_user(self, token: str) -> dict[str, Any]: ...


class SupabasePlatform:
    """``PlatformClient`` implementation over the platform's HTTP APIs."""

    def __init__(
        self,
        url: str,
        anon_key: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not url or not anon_key:
            logger.error("Missing platform credentials; authentication will not work properly")
        self.url = url
        self.anon_key = anon_key
        self._client = httpx.AsyncClient(base_url=url, timeout=timeout, transport=transport)

    def _headers(self, token: str | None = None, **extra: str) -> dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token or self.anon_key}",
        }
        headers.update(extra)
        return headers

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Platform request failed: {method} {path}: {e}")
            raise PlatformError(f"Platform unreachable: {e}") from e

        if response.status_code >= 400:
            raise self._error_from(response)
        return response

    @staticmethod
    def _error_from(response: httpx.Response) -> PlatformError:
        message = response.reason_phrase or "Platform error"
        code = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = (
                body.get("message")
                or body.get("msg")
                or body.get("error_description")
                or body.get("error")
                or message
            )
            code = body.get("code") or body.get("error_code")
            if code is not None:
                code = str(code)
        return PlatformError(str(message), status_code=response.status_code, code=code)

    # =========================================================================
    # Rows
    # =========================================================================

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Filters | None = None,
        order: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
        token: str | None = None,
    ) -> list[dict[str, Any]]:
        """Select rows from a table."""
        params: dict[str, Any] = {"select": columns}
        params.update(filters or {})
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit
        if offset is not None:
            params["offset"] = offset

        response = await self._request("GET", f"/rest/v1/{table}", params=params, headers=self._headers(token))
        return response.json()

    async def insert(self, table: str, row: dict[str, Any], *, token: str | None = None) -> dict[str, Any]:
        """Insert a row and return it as stored."""
        response = await self._request(
            "POST",
            f"/rest/v1/{table}",
            json=row,
            headers=self._headers(token, Prefer="return=representation"),
        )
        rows = response.json()
        return rows[0] if rows else {}

    async def update(
        self, table: str, values: dict[str, Any], *, filters: Filters, token: str | None = None
    ) -> list[dict[str, Any]]:
        """Update the rows matching ``filters``."""
        response = await self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=filters,
            json=values,
            headers=self._headers(token, Prefer="return=representation"),
        )
        return response.json()

    async def delete(self, table: str, *, filters: Filters, token: str | None = None) -> list[dict[str, Any]]:
        """Delete the rows matching ``filters`` and return them."""
        if not filters:
            raise ValueError("Refusing to delete without filters")
        response = await self._request(
            "DELETE",
            f"/rest/v1/{table}",
            params=filters,
            headers=self._headers(token, Prefer="return=representation"),
        )
        return response.json()

    async def upsert(self, table: str, row: dict[str, Any], *, token: str | None = None) -> dict[str, Any]:
        """Insert a row or merge it into the existing one."""
        response = await self._request(
            "POST",
            f"/rest/v1/{table}",
            json=row,
            headers=self._headers(token, Prefer="return=representation,resolution=merge-duplicates"),
        )
        rows = response.json()
        return rows[0] if rows else {}

    # =========================================================================
    # Auth
    # =========================================================================

    async def password_grant(self, email: str, password: str) -> httpx.Response:
        """
        Exchange credentials for a session.

        The raw response is returned whatever its status so callers can relay it.
        """
        try:
            return await self._client.post(
                "/auth/v1/token",
                params={"grant_type": "password"},
                json={"email": email, "password": password, "gotrue_meta_security": {}},
                headers={"apikey": self.anon_key, "Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.error(f"Password grant failed: {e}")
            raise PlatformError(f"Platform unreachable: {e}") from e

    async def sign_up(self, email: str, password: str, redirect_to: str | None = None) -> dict[str, Any]:
        """Register a new account."""
        params = {"redirect_to": redirect_to} if redirect_to else None
        response = await self._request(
            "POST",
            "/auth/v1/signup",
            params=params,
            json={"email": email, "password": password},
            headers=self._headers(),
        )
        return response.json()

    async def sign_out(self, token: str) -> None:
        """Revoke the session behind ``token``."""
        await self._request("POST", "/auth/v1/logout", headers=self._headers(token))

    async def recover(self, email: str, redirect_to: str | None = None) -> None:
        """Send a password reset email."""
        params = {"redirect_to": redirect_to} if redirect_to else None
        await self._request(
            "POST",
            "/auth/v1/recover",
            params=params,
            json={"email": email},
            headers=self._headers(),
        )

    async def get_user(self, token: str) -> dict[str, Any]:
        """Resolve an access token to its user."""
        response = await self._request("GET", "/auth/v1/user", headers=self._headers(token))
        return response.json()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()


# Global client instance (lazy-initialized)
_platform: SupabasePlatform | None = None


def get_platform(app_settings: Settings | None = None) -> SupabasePlatform:
    """
    Get or create the platform client.

    The client is a singleton reused across requests.
    """
    global _platform

    if _platform is None:
        cfg = app_settings or get_settings()
        _platform = SupabasePlatform(
            url=cfg.SUPABASE_URL,
            anon_key=cfg.SUPABASE_ANON_KEY,
            timeout=cfg.PLATFORM_TIMEOUT_SECONDS,
        )
        logger.info(f"Initialized platform client for {cfg.SUPABASE_URL or '<unset>'}")

    return _platform


async def close_platform() -> None:
    """
    Close the platform client.

    Should be called during application shutdown.
    """
    global _platform

    if _platform is not None:
        await _platform.close()
        _platform = None
        logger.info("Closed platform client")
