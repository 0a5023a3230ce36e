"""
Realtime change feed transport.

Speaks the platform's channel protocol over a websocket: one channel per
table, joined with a ``postgres_changes`` filter, kept alive with a periodic
heartbeat. Reconnection is left to the caller.
"""

import asyncio
import itertools
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import websockets

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "1.0.0"


@dataclass
class ChangeEvent:
    """A row-level change notification."""

    table: str
    type: str  # INSERT, UPDATE or DELETE
    record: dict[str, Any] = field(default_factory=dict)
    old_record: dict[str, Any] = field(default_factory=dict)


ChangeHandler = Callable[[ChangeEvent], Awaitable[None]]


def socket_url(platform_url: str, api_key: str) -> str:
    """Build the realtime websocket URL from the platform URL."""
    base = platform_url.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    return f"{base}/realtime/v1/websocket?apikey={api_key}&vsn={PROTOCOL_VERSION}"


class RealtimeConnection:
    """Websocket connection multiplexing table change channels."""

    def __init__(
        self,
        platform_url: str,
        api_key: str,
        heartbeat_interval: float = 30.0,
        connect: Callable[[str], Awaitable[Any]] | None = None,
    ):
        self.url = socket_url(platform_url, api_key)
        self.api_key = api_key
        self.heartbeat_interval = heartbeat_interval
        self._connect = connect or websockets.connect
        self._ws: Any = None
        self._refs = itertools.count(1)
        self._handlers: dict[str, ChangeHandler] = {}
        self._tables: dict[str, str] = {}
        self._tasks: list[asyncio.Task] = []
        self._dispatches: set[asyncio.Task] = set()

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    async def connect(self) -> None:
        """Open the websocket and start the reader and heartbeat loops."""
        if self._ws is not None:
            return
        self._ws = await self._connect(self.url)
        self._tasks = [
            asyncio.create_task(self._read_loop()),
            asyncio.create_task(self._heartbeat_loop()),
        ]
        logger.info("Realtime connection opened")

    async def _send(self, topic: str, event: str, payload: dict[str, Any]) -> None:
        message = {"topic": topic, "event": event, "payload": payload, "ref": str(next(self._refs))}
        await self._ws.send(json.dumps(message))

    async def subscribe(
        self,
        table: str,
        handler: ChangeHandler,
        schema: str = "public",
        event: str = "*",
    ) -> str:
        """Join a channel for changes on ``table``; returns the channel topic."""
        if self._ws is None:
            await self.connect()

        topic = f"realtime:{schema}:{table}"
        self._handlers[topic] = handler
        self._tables[topic] = table
        await self._send(
            topic,
            "phx_join",
            {
                "config": {
                    "broadcast": {"self": False},
                    "presence": {"key": ""},
                    "postgres_changes": [{"event": event, "schema": schema, "table": table}],
                },
                "access_token": self.api_key,
            },
        )
        logger.info(f"Subscribed to {topic}")
        return topic

    async def unsubscribe(self, topic: str) -> None:
        """Leave a channel."""
        if self._handlers.pop(topic, None) is None:
            return
        self._tables.pop(topic, None)
        if self._ws is not None:
            await self._send(topic, "phx_leave", {})
        logger.info(f"Unsubscribed from {topic}")

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            await self._send("phoenix", "heartbeat", {})

    async def _read_loop(self) -> None:
        async for raw in self._ws:
            try:
                message = json.loads(raw)
            except (TypeError, ValueError):
                logger.warning("Ignoring malformed realtime frame")
                continue
            self._handle_message(message)
        logger.info("Realtime connection closed by server")

    def _handle_message(self, message: dict[str, Any]) -> None:
        topic = message.get("topic", "")
        event = message.get("event")

        if event == "phx_error":
            logger.warning(f"Realtime channel error on {topic}: {message.get('payload')}")
            return
        if event != "postgres_changes":
            return

        handler = self._handlers.get(topic)
        if handler is None:
            return

        data = (message.get("payload") or {}).get("data") or {}
        change = ChangeEvent(
            table=data.get("table") or self._tables.get(topic, ""),
            type=data.get("type", ""),
            record=data.get("record") or {},
            old_record=data.get("old_record") or {},
        )
        task = asyncio.create_task(handler(change))
        self._dispatches.add(task)
        task.add_done_callback(self._dispatch_done)

    def _dispatch_done(self, task: asyncio.Task) -> None:
        self._dispatches.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Realtime handler failed: {task.exception()}")

    async def close(self) -> None:
        """Leave all channels and close the websocket."""
        for topic in list(self._handlers):
            try:
                await self.unsubscribe(topic)
            except websockets.ConnectionClosed:
                logger.info(f"Connection already closed while leaving {topic}")
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except (asyncio.CancelledError, websockets.ConnectionClosed):
                pass
        self._tasks = []
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
            logger.info("Realtime connection closed")
