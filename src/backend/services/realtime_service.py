"""
Realtime subscription glue.

Keeps the vote aggregation fresh without polling: any insert, update or
delete on ``candidates`` or ``votes`` triggers a full re-fetch of that
collection. Subscriptions live from ``start()`` (application startup) to
``stop()`` (shutdown).
"""

from typing import Awaitable, Callable, Protocol, runtime_checkable

import structlog

from db.realtime import ChangeEvent, ChangeHandler
from models.documents import CANDIDATES_TABLE, VOTES_TABLE
from services.vote_aggregation import VotingService

logger = structlog.get_logger(__name__)


@runtime_checkable
class ChangeFeed(Protocol):
    """Source of row-level change notifications."""

    async def subscribe(self, table: str, handler: ChangeHandler) -> str: ...

    async def unsubscribe(self, topic: str) -> None: ...


class RealtimeSubscriptions:
    """Subscribes the voting service to candidate and vote changes."""

    def __init__(self, feed: ChangeFeed, voting: VotingService):
        self.feed = feed
        self.voting = voting
        self._topics: list[str] = []

    @property
    def is_active(self) -> bool:
        return bool(self._topics)

    def _refetchers(self) -> dict[str, Callable[[], Awaitable[bool]]]:
        return {
            CANDIDATES_TABLE: self.voting.fetch_candidates,
            VOTES_TABLE: self.voting.fetch_votes,
        }

    def _handler_for(self, table: str, refetch: Callable[[], Awaitable[bool]]) -> ChangeHandler:
        async def on_change(event: ChangeEvent) -> None:
            logger.info("realtime_change", table=table, change=event.type)
            await refetch()

        return on_change

    async def start(self) -> None:
        """Open one subscription per collection."""
        if self._topics:
            return
        for table, refetch in self._refetchers().items():
            topic = await self.feed.subscribe(table, self._handler_for(table, refetch))
            self._topics.append(topic)
            logger.info("realtime_subscribed", table=table, topic=topic)

    async def stop(self) -> None:
        """Close every subscription."""
        topics, self._topics = self._topics, []
        for topic in topics:
            await self.feed.unsubscribe(topic)
            logger.info("realtime_unsubscribed", topic=topic)

    async def __aenter__(self) -> "RealtimeSubscriptions":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
