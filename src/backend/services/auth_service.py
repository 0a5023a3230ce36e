"""
Authentication service.

Thin layer over the platform's auth API:
- Credential exchange (relayed verbatim to the caller)
- Sign-up, sign-out and password reset
- Access token -> user resolution with retry on transient failures
- Profile lookup and admin detection
- Last-known address tracking on sign-in
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

import httpx
import structlog

from db.platform import PlatformClient, PlatformError
from models.documents import ProfileRow
from repositories.profile_repository import ProfileRepository
from schemas.auth import AuthUser

logger = structlog.get_logger(__name__)


class AuthService:
    """Authentication flows against the hosted platform."""

    def __init__(
        self,
        platform: PlatformClient,
        admin_emails: tuple[str, ...] | list[str] = (),
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.platform = platform
        self.admin_emails = {email.lower() for email in admin_emails}
        self.retry_attempts = retry_attempts
        self.retry_backoff_seconds = retry_backoff_seconds
        self._sleep = sleep

    # =========================================================================
    # Sessions
    # =========================================================================

    async def sign_in(self, email: str, password: str, ip_address: Optional[str] = None) -> httpx.Response:
        """
        Exchange credentials for a session.

        The platform's response is returned unchanged. On success the caller's
        address is recorded, best effort.
        """
        logger.info("sign_in_attempt", email=email)
        response = await self.platform.password_grant(email, password)

        if response.status_code != 200:
            logger.warning("sign_in_failed", email=email, status_code=response.status_code)
            return response

        if ip_address:
            try:
                session = response.json()
            except ValueError:
                session = {}
            user_id = (session.get("user") or {}).get("id")
            token = session.get("access_token")
            if user_id and token:
                await self.update_user_ip(user_id, ip_address, token)

        return response

    async def sign_up(self, email: str, password: str, redirect_to: Optional[str] = None) -> dict[str, Any]:
        """Register a new account. Raises ``PlatformError`` on failure."""
        logger.info("sign_up_attempt", email=email)
        try:
            data = await self.platform.sign_up(email, password, redirect_to)
        except PlatformError as e:
            logger.error("sign_up_failed", email=email, error=e.message)
            raise
        logger.info("sign_up_succeeded", email=email)
        return data

    async def sign_out(self, token: str) -> None:
        """Revoke a session; failures are logged only."""
        try:
            await self.platform.sign_out(token)
            logger.info("sign_out_succeeded")
        except PlatformError as e:
            logger.error("sign_out_failed", error=e.message)

    async def reset_password(self, email: str, redirect_to: Optional[str] = None) -> Optional[str]:
        """Send a reset email; returns an error message or None."""
        logger.info("password_reset_requested", email=email)
        try:
            await self.platform.recover(email, redirect_to)
        except PlatformError as e:
            logger.error("password_reset_failed", email=email, error=e.message)
            return e.message
        return None

    async def get_user_with_retry(self, token: str) -> dict[str, Any]:
        """
        Resolve an access token to its platform user.

        Transient failures are retried with exponential backoff (2, 4, 8 ...
        times the base delay); auth rejections are raised at once.
        """
        attempt = 0
        while True:
            try:
                return await self.platform.get_user(token)
            except PlatformError as e:
                if not e.is_transient or attempt >= self.retry_attempts:
                    if e.is_transient:
                        logger.error("session_lookup_exhausted", attempts=attempt + 1, error=e.message)
                    raise
                attempt += 1
                delay = (2 ** attempt) * self.retry_backoff_seconds
                logger.info(
                    "session_lookup_retry",
                    attempt=attempt,
                    max_attempts=self.retry_attempts,
                    delay_seconds=delay,
                    error=e.message,
                )
                await self._sleep(delay)

    async def resolve_user(self, token: str) -> AuthUser:
        """Access token -> ``AuthUser`` with the admin flag resolved."""
        user = await self.get_user_with_retry(token)
        user_id = str(user.get("id", ""))
        email = user.get("email") or ""
        profile = await self.fetch_profile(user_id, token)
        return AuthUser(
            id=user_id,
            email=email,
            access_token=token,
            is_admin=self.is_admin(email, profile),
        )

    # =========================================================================
    # Profiles
    # =========================================================================

    async def fetch_profile(self, user_id: str, token: str) -> Optional[ProfileRow]:
        """The user's profile, or None when missing or unreadable."""
        try:
            return await ProfileRepository(self.platform, token=token).get_by_id(user_id)
        except PlatformError as e:
            logger.error("profile_fetch_failed", user_id=user_id, error=e.message)
            return None

    def is_admin(self, email: str, profile: Optional[ProfileRow]) -> bool:
        """Configured admin emails win over the profile flag."""
        if email and email.lower() in self.admin_emails:
            return True
        return bool(profile and profile.is_admin)

    async def update_user_ip(self, user_id: str, ip_address: str, token: str) -> None:
        """Record the user's address; failures are logged only."""
        if not user_id or not ip_address:
            return
        try:
            await ProfileRepository(self.platform, token=token).record_ip(user_id, ip_address)
            logger.info("user_ip_recorded", user_id=user_id)
        except PlatformError as e:
            logger.error("user_ip_record_failed", user_id=user_id, error=e.message)
