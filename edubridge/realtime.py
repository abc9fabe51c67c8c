"""Realtime subscription to new direct messages.

:class:`RealtimeChannel` opens the backend SDK channel
``messages-for-<user_id>`` asking for INSERTs on ``public.messages`` where
``recipient_id`` is the user. The SDK invokes its change callback
synchronously from the socket reader; rows are queued there and handed to the
registered callbacks by a consumer task, one at a time in arrival order.

Example:
    >>> channel = RealtimeChannel(client, user_id)
    >>> channel.on_insert(lambda row: print(row["content"]))
    >>> await channel.subscribe()
    >>> await channel.wait_closed()
"""

import asyncio
import inspect
from typing import Any, Protocol

from edubridge.interfaces import InsertCallback
from edubridge.logging import logger
from edubridge.types import PostgresChangeData

SUBSCRIBED = "SUBSCRIBED"


class ChannelSource(Protocol):
    """Backend client side of a channel (see :class:`edubridge.api.AsyncBackendClient`)."""

    async def channel(self, topic: str) -> Any: ...

    async def remove_channel(self, channel: Any) -> None: ...


class RealtimeChannel:
    """SDK channel delivering message inserts for one recipient.

    Args:
        backend: Client that creates and removes SDK channels
        user_id: Recipient whose incoming messages are streamed
    """

    def __init__(self, backend: ChannelSource, user_id: str) -> None:
        self.user_id = user_id
        self.topic = f"messages-for-{user_id}"
        self._backend = backend
        self._callbacks: list[InsertCallback] = []
        self._channel: Any = None
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._consumer_task: asyncio.Task[None] | None = None
        self.joined = False

    def on_insert(self, callback: InsertCallback) -> None:
        """Register ``callback(row)``; it may be a plain or async function."""
        self._callbacks.append(callback)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def subscribe(self) -> None:
        """Create the channel, register the change filter and join it."""
        channel = await self._backend.channel(self.topic)
        channel.on_postgres_changes(
            "INSERT",
            callback=self.handle_change,
            table="messages",
            schema="public",
            filter=f"recipient_id=eq.{self.user_id}",
        )
        self._channel = channel
        self._consumer_task = asyncio.create_task(self._consume())
        logger.info(f"📡 Subscribing to {self.topic}")
        await channel.subscribe(self.handle_status)

    async def unsubscribe(self) -> None:
        """Leave the channel and stop the consumer task."""
        if self._channel is None:
            return

        channel, self._channel = self._channel, None
        try:
            await self._backend.remove_channel(channel)
        finally:
            task, self._consumer_task = self._consumer_task, None
            if task is not None:
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
            self.joined = False
            logger.info(f"Left {self.topic}")

    async def wait_closed(self) -> None:
        """Wait until the channel is unsubscribed."""
        if self._consumer_task is not None:
            await asyncio.gather(self._consumer_task, return_exceptions=True)

    # -------------------------------------------------------------------------
    # SDK callbacks
    # -------------------------------------------------------------------------

    def handle_status(self, status: Any, error: Exception | None = None) -> None:
        """Track join state reported by the SDK."""
        state = str(getattr(status, "value", status))
        self.joined = state == SUBSCRIBED
        if self.joined:
            logger.info(f"✅ Joined {self.topic}")
        elif error is not None:
            logger.error(f"Channel {self.topic} {state}: {error}")
        else:
            logger.warning(f"Channel {self.topic} {state}")

    def handle_change(self, payload: Any) -> None:
        """Queue the inserted row carried by a postgres change payload.

        The row is ``payload["data"]["record"]``; payloads of any other shape
        are logged and dropped.
        """
        if not isinstance(payload, dict):
            logger.warning(f"Ignoring realtime payload that is not an object: {payload!r:.120}")
            return

        data: PostgresChangeData = payload.get("data", payload)  # type: ignore[assignment]
        if not isinstance(data, dict):
            logger.warning(f"Ignoring realtime payload without change data: {payload!r:.120}")
            return
        if data.get("type", "INSERT") != "INSERT":
            return

        record = data.get("record")
        if isinstance(record, dict) and record:
            self._queue.put_nowait(record)

    async def _consume(self) -> None:
        while True:
            record = await self._queue.get()
            await self._dispatch(record)

    async def _dispatch(self, record: dict[str, Any]) -> None:
        for callback in self._callbacks:
            try:
                result = callback(record)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Realtime callback failed for record {record.get('id')}")


__all__ = ["ChannelSource", "RealtimeChannel"]
