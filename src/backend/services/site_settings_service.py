"""
Site settings with a local fallback.

Settings are written to the platform's ``site_settings`` table and always to
the local store, so that a platform outage never loses an update. Reads of
the ``voting_ended`` flag consult the local store first.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from db.platform import PlatformClient, PlatformError
from repositories.site_settings_repository import SiteSettingsRepository
from services.local_store import LocalStore

logger = structlog.get_logger(__name__)

VOTING_ENDED_KEY = "voting_ended"


@dataclass
class SettingUpdate:
    """Outcome of ``update_site_setting``."""

    success: bool
    stored_remotely: bool
    error: Optional[str] = None


class SiteSettingsService:
    """Site-wide settings (voting status and friends)."""

    def __init__(self, platform: PlatformClient, store: LocalStore, token: str | None = None):
        self.repo = SiteSettingsRepository(platform, token=token)
        self.store = store

    async def update_site_setting(self, key: str, value: str) -> SettingUpdate:
        """Upsert a setting remotely and locally; local-only when the platform fails."""
        logger.info("site_setting_updating", key=key, value_length=len(value))

        stored_remotely = True
        remote_error: Optional[str] = None
        try:
            await self.repo.upsert(key, value)
        except PlatformError as e:
            stored_remotely = False
            remote_error = e.message
            logger.warning("site_setting_remote_failed", key=key, error=e.message)

        try:
            self.store.set(key, value)
        except OSError as e:
            logger.error("site_setting_local_failed", key=key, error=str(e))
            if not stored_remotely:
                return SettingUpdate(success=False, stored_remotely=False, error=remote_error or str(e))

        return SettingUpdate(success=True, stored_remotely=stored_remotely, error=remote_error)

    async def is_voting_ended(self) -> bool:
        """Local store first, then the platform; a true result is cached locally."""
        if self.store.get(VOTING_ENDED_KEY) == "true":
            return True

        try:
            value = await self.repo.get(VOTING_ENDED_KEY)
        except PlatformError as e:
            logger.error("voting_status_unavailable", error=e.message)
            return False

        if value == "true":
            self.store.set(VOTING_ENDED_KEY, "true")
            return True
        return False

    async def set_voting_ended(self, ended: bool) -> SettingUpdate:
        return await self.update_site_setting(VOTING_ENDED_KEY, "true" if ended else "false")
