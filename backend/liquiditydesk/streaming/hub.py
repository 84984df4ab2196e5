from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable

from liquiditydesk.schemas.stream import StreamMessage

logger = logging.getLogger(__name__)

Send = Callable[[str], Awaitable[None]]


class Subscriber:
    """One connected viewer with its own bounded outbox.

    ``offer`` never waits: when the outbox is full the oldest pending
    message is dropped, so a slow viewer only ever hurts itself.
    """

    def __init__(self, send: Send, max_pending: int = 256) -> None:
        self._send = send
        self._outbox: asyncio.Queue[str] = asyncio.Queue(maxsize=max_pending)
        self.dropped = 0

    @property
    def pending(self) -> int:
        return self._outbox.qsize()

    def offer(self, message: str) -> None:
        try:
            self._outbox.put_nowait(message)
        except asyncio.QueueFull:
            self._outbox.get_nowait()
            self._outbox.put_nowait(message)
            self.dropped += 1

    async def run(self) -> None:
        """Drain the outbox into the transport until sending fails."""
        while True:
            message = await self._outbox.get()
            try:
                await self._send(message)
            except Exception:
                logger.info("Subscriber send failed; stopping its sender", exc_info=True)
                return


class SubscriberHub:
    def __init__(self, max_pending: int = 256) -> None:
        self._max_pending = max_pending
        self._subscribers: set[Subscriber] = set()

    def __len__(self) -> int:
        return len(self._subscribers)

    def subscribe(self, send: Send, catch_up: Iterable[StreamMessage] = ()) -> Subscriber:
        """Register a viewer; ``catch_up`` is queued ahead of any live message."""
        subscriber = Subscriber(send, self._max_pending)
        for message in catch_up:
            subscriber.offer(message.to_json())
        self._subscribers.add(subscriber)
        logger.info("Subscriber connected (%d total)", len(self._subscribers))
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.discard(subscriber)
            logger.info("Subscriber disconnected (%d total)", len(self._subscribers))

    def publish(self, message: StreamMessage) -> None:
        payload = message.to_json()
        for subscriber in list(self._subscribers):
            subscriber.offer(payload)
