"""
Site settings repository (key/value rows).
"""

from typing import Optional

from db.platform import PlatformClient, eq
from models.documents import SITE_SETTINGS_TABLE


class SiteSettingsRepository:
    """Repository for site setting rows."""

    def __init__(self, platform: PlatformClient, token: str | None = None):
        self.platform = platform
        self.token = token

    async def get(self, key: str) -> Optional[str]:
        """Get a setting value, or None if unset."""
        rows = await self.platform.select(
            SITE_SETTINGS_TABLE,
            columns="value",
            filters={"key": eq(key)},
            limit=1,
            token=self.token,
        )
        return rows[0].get("value") if rows else None

    async def upsert(self, key: str, value: str) -> None:
        """Create or replace a setting."""
        await self.platform.upsert(SITE_SETTINGS_TABLE, {"key": key, "value": value}, token=self.token)
