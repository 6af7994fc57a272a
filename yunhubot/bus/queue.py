"""Async message bus with pub/sub dispatch."""

from __future__ import annotations

import asyncio
from typing import Callable, Awaitable

from loguru import logger

from .events import Session


SessionHandler = Callable[[Session], Awaitable[None]]


class MessageBus:
    """Two-queue bus: inbound sessions from webhooks, sent notifications from composers."""

    MAX_QUEUE_SIZE = 1000  # Prevent unbounded queue growth

    def __init__(self) -> None:
        self._inbound: asyncio.Queue[Session] = asyncio.Queue(
            maxsize=self.MAX_QUEUE_SIZE
        )
        self._sent: asyncio.Queue[Session] = asyncio.Queue(maxsize=self.MAX_QUEUE_SIZE)
        self._inbound_handlers: list[SessionHandler] = []
        self._sent_handlers: list[SessionHandler] = []
        self._running = False

    def on_inbound(self, handler: SessionHandler) -> None:
        """Register a handler for inbound sessions."""
        self._inbound_handlers.append(handler)

    def on_sent(self, handler: SessionHandler) -> None:
        """Register a handler for sent-message notifications."""
        self._sent_handlers.append(handler)

    async def publish_inbound(self, session: Session) -> bool:
        """Publish an inbound session. Returns False if queue is full."""
        if self._inbound.full():
            logger.error(f"Inbound queue full! Dropping {session.type} in {session.channel_id}")
            return False
        logger.debug(
            f"Inbound {session.type} from {session.user_id} in {session.channel_id}: {session.content[:80]}"
        )
        await self._inbound.put(session)
        return True

    async def publish_sent(self, session: Session) -> bool:
        """Publish a sent-message notification. Returns False if queue is full."""
        if self._sent.full():
            logger.error(f"Sent queue full! Dropping notification for {session.channel_id}")
            return False
        logger.debug(f"Sent {session.message_id} to {session.channel_id}")
        await self._sent.put(session)
        return True

    async def start(self) -> None:
        """Start processing sessions."""
        self._running = True
        await asyncio.gather(
            self._process(self._inbound, self._inbound_handlers, "Inbound"),
            self._process(self._sent, self._sent_handlers, "Sent"),
        )

    async def stop(self) -> None:
        """Stop processing sessions."""
        self._running = False

    async def _process(
        self,
        queue: asyncio.Queue[Session],
        handlers: list[SessionHandler],
        label: str,
    ) -> None:
        """Drain one queue into its handlers."""
        while self._running:
            try:
                session = await asyncio.wait_for(queue.get(), timeout=1.0)
                for handler in handlers:
                    try:
                        await handler(session)
                    except Exception as e:
                        logger.error(f"{label} handler error: {e}")
            except asyncio.TimeoutError:
                continue
            except Exception as e:
                logger.error(f"{label} processing error: {e}")
