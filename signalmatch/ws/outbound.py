"""Per-connection outbound channel.

Every event for one connection is written by a single writer task, so
``websocket.send()`` is never called concurrently. The signaling core hands
events over with ``send_nowait`` while holding its lock and must not wait on
a slow client: when a connection's buffer is full the event is dropped.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

from websockets.asyncio.server import ServerConnection

from signalmatch.logger import logger
from .utils import is_websocket_closed


class OutboundChannel:
    """Bounded event buffer drained by one writer task."""

    def __init__(
        self,
        websocket: ServerConnection,
        *,
        maxsize: int = 256,
        name: str | None = None,
    ) -> None:
        self.websocket = websocket
        self.name = name or "outbound"
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=maxsize)
        self.sent = 0
        self.dropped = 0
        self._closed = False
        self._writer_task: asyncio.Task | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        if self._writer_task is None or self._writer_task.done():
            self._writer_task = asyncio.create_task(self._writer(), name=f"{self.name}-writer")

    def send_nowait(self, event: dict[str, Any]) -> bool:
        """Buffer an event. Returns False if it was not accepted."""
        if self._closed:
            return False
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                f"{self.name}: outbound buffer full ({self.queue.maxsize}), "
                f"dropping {event.get('event', 'unknown')}"
            )
            return False
        return True

    async def close(self) -> int:
        """Stop the writer and discard anything unsent. Returns the discard count."""
        self._closed = True
        task, self._writer_task = self._writer_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        discarded = 0
        while not self.queue.empty():
            self.queue.get_nowait()
            discarded += 1
        if discarded:
            logger.debug(f"{self.name}: discarded {discarded} unsent event(s)")
        return discarded

    async def _writer(self) -> None:
        while not self._closed:
            event = await self.queue.get()
            if is_websocket_closed(self.websocket):
                logger.debug(f"{self.name}: socket closed, dropping {event.get('event')}")
                continue
            try:
                await self.websocket.send(json.dumps(event))
                self.sent += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # The read loop notices a dead connection and cleans up
                logger.error(f"{self.name}: send failed: {e}")
