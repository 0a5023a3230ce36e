"""
Vote repository for platform row operations.

Reads go through ``VotePages`` so that vote sets larger than any single
response limit are always read in full.
"""

from typing import Any, AsyncIterator, Optional

from db.platform import Filters, PlatformClient, eq
from models.documents import VOTES_TABLE, VoteRow

DEFAULT_PAGE_SIZE = 1000


class VotePages:
    """
    Lazy, restartable sequence of vote batches.

    Each ``async for`` starts again from the first page and issues one request
    per batch, stopping after the first page shorter than ``page_size``.
    """

    def __init__(
        self,
        platform: PlatformClient,
        page_size: int = DEFAULT_PAGE_SIZE,
        filters: Filters | None = None,
        columns: str = "*",
        token: str | None = None,
    ):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.platform = platform
        self.page_size = page_size
        self.filters = filters
        self.columns = columns
        self.token = token

    def __aiter__(self) -> AsyncIterator[list[dict[str, Any]]]:
        return self._batches()

    async def _batches(self) -> AsyncIterator[list[dict[str, Any]]]:
        offset = 0
        while True:
            rows = await self.platform.select(
                VOTES_TABLE,
                columns=self.columns,
                filters=self.filters,
                order="id.asc",
                limit=self.page_size,
                offset=offset,
                token=self.token,
            )
            if rows:
                yield rows
            if len(rows) < self.page_size:
                return
            offset += self.page_size


class VoteRepository:
    """Repository for vote rows."""

    def __init__(self, platform: PlatformClient, token: str | None = None, page_size: int = DEFAULT_PAGE_SIZE):
        self.platform = platform
        self.token = token
        self.page_size = page_size

    def pages(self, filters: Filters | None = None, columns: str = "*") -> VotePages:
        """Page iterator over votes matching ``filters``."""
        return VotePages(self.platform, self.page_size, filters=filters, columns=columns, token=self.token)

    async def fetch_all(self) -> list[VoteRow]:
        """
        Fetch every vote.

        Any failing page aborts the whole fetch; no partial result is returned.
        """
        votes: list[VoteRow] = []
        async for batch in self.pages():
            votes.extend(VoteRow.model_validate(row) for row in batch)
        return votes

    async def list_voter_ids(self, candidate_id: int) -> list[str]:
        """Voter ids of every vote for a candidate."""
        voter_ids: list[str] = []
        async for batch in self.pages(filters={"candidate_id": eq(candidate_id)}, columns="id,user_id"):
            voter_ids.extend(str(row["user_id"]) for row in batch)
        return voter_ids

    async def get_by_user(self, user_id: str) -> Optional[VoteRow]:
        """Get the voter's current vote, if any."""
        rows = await self.platform.select(
            VOTES_TABLE,
            filters={"user_id": eq(user_id)},
            limit=1,
            token=self.token,
        )
        return VoteRow.model_validate(rows[0]) if rows else None

    async def create(
        self,
        user_id: str,
        candidate_id: int,
        transaction_id: str,
        ip_address: Optional[str] = None,
    ) -> VoteRow:
        """Insert a vote row and return it as stored."""
        row: dict[str, Any] = {
            "user_id": user_id,
            "candidate_id": candidate_id,
            "transaction_id": transaction_id,
        }
        if ip_address:
            row["ip_address"] = ip_address

        created = await self.platform.insert(VOTES_TABLE, row, token=self.token)
        return VoteRow.model_validate(created)

    async def delete(self, vote_id: int) -> bool:
        """Delete a vote by id; returns whether a row was removed."""
        deleted = await self.platform.delete(VOTES_TABLE, filters={"id": eq(vote_id)}, token=self.token)
        return bool(deleted)
