"""
Candidate repository for platform row operations.
"""

from typing import Any, Optional

from db.platform import PlatformClient, eq
from models.documents import CANDIDATES_TABLE, CandidateRow


class CandidateRepository:
    """Repository for candidate rows."""

    def __init__(self, platform: PlatformClient, token: str | None = None):
        self.platform = platform
        self.token = token

    async def list_all(self) -> list[CandidateRow]:
        """All candidates ordered by name."""
        rows = await self.platform.select(CANDIDATES_TABLE, order="name.asc", token=self.token)
        return [CandidateRow.model_validate(row) for row in rows]

    async def get_by_id(self, candidate_id: int) -> Optional[CandidateRow]:
        """Get a candidate by id."""
        rows = await self.platform.select(
            CANDIDATES_TABLE,
            filters={"id": eq(candidate_id)},
            limit=1,
            token=self.token,
        )
        return CandidateRow.model_validate(rows[0]) if rows else None

    async def create(self, values: dict[str, Any]) -> CandidateRow:
        """Insert a candidate."""
        created = await self.platform.insert(CANDIDATES_TABLE, values, token=self.token)
        return CandidateRow.model_validate(created)

    async def update(self, candidate_id: int, values: dict[str, Any]) -> Optional[CandidateRow]:
        """Update a candidate; returns None when no row matched."""
        rows = await self.platform.update(
            CANDIDATES_TABLE,
            values,
            filters={"id": eq(candidate_id)},
            token=self.token,
        )
        return CandidateRow.model_validate(rows[0]) if rows else None

    async def delete(self, candidate_id: int) -> bool:
        """Delete a candidate; returns whether a row was removed."""
        rows = await self.platform.delete(CANDIDATES_TABLE, filters={"id": eq(candidate_id)}, token=self.token)
        return bool(rows)
