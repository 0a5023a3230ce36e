"""
Profile repository for platform row operations.

Profiles mirror auth users and carry the admin and has-voted flags.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from db.platform import PlatformClient, PlatformError, eq, in_
from models.documents import PROFILES_IP_TABLE, PROFILES_TABLE, ProfileRow

logger = logging.getLogger(__name__)

# Keep ``in.(...)`` filters well below URL length limits
EMAIL_LOOKUP_CHUNK = 200


class ProfileRepository:
    """Repository for profile rows."""

    def __init__(self, platform: PlatformClient, token: str | None = None):
        self.platform = platform
        self.token = token

    async def get_by_id(self, user_id: str) -> Optional[ProfileRow]:
        """Get a profile by user id."""
        rows = await self.platform.select(
            PROFILES_TABLE,
            filters={"id": eq(user_id)},
            limit=1,
            token=self.token,
        )
        return ProfileRow.model_validate(rows[0]) if rows else None

    async def list_emails(self, user_ids: list[str]) -> list[str]:
        """Emails of the given users (profiles that do not exist are skipped)."""
        emails: list[str] = []
        unique_ids = list(dict.fromkeys(user_ids))
        for start in range(0, len(unique_ids), EMAIL_LOOKUP_CHUNK):
            chunk = unique_ids[start:start + EMAIL_LOOKUP_CHUNK]
            rows = await self.platform.select(
                PROFILES_TABLE,
                columns="id,email",
                filters={"id": in_(chunk)},
                token=self.token,
            )
            emails.extend(row["email"] for row in rows if row.get("email"))
        return emails

    async def set_has_voted(self, user_id: str, has_voted: bool) -> None:
        """Set the has-voted flag."""
        await self.platform.update(
            PROFILES_TABLE,
            {"has_voted": has_voted},
            filters={"id": eq(user_id)},
            token=self.token,
        )

    async def record_ip(self, user_id: str, ip_address: str) -> None:
        """
        Record the voter's last known address.

        Uses the ``profiles_ip`` table when it exists, otherwise stores the
        address in the profile's metadata column.
        """
        now = datetime.now(timezone.utc).isoformat()
        try:
            await self.platform.upsert(
                PROFILES_IP_TABLE,
                {"user_id": user_id, "ip_address": ip_address, "last_login": now},
                token=self.token,
            )
        except PlatformError as e:
            logger.info(f"profiles_ip unavailable ({e.message}), storing address in profile metadata")
            await self.platform.update(
                PROFILES_TABLE,
                {"metadata": {"ip_address": ip_address, "last_login": now}},
                filters={"id": eq(user_id)},
                token=self.token,
            )
