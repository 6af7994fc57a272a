"""Abstract base class for chat channels."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..bus.elements import Content
    from ..bus.queue import MessageBus


class BaseChannel(ABC):
    """Base class for all chat channels."""

    def __init__(self, bus: "MessageBus") -> None:
        self._bus = bus

    @property
    @abstractmethod
    def name(self) -> str:
        """Channel name (e.g., 'yunhu')."""
        ...

    @abstractmethod
    async def start(self) -> None:
        """Start the channel (connect, begin listening)."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the channel (disconnect, clean up)."""
        ...

    @abstractmethod
    async def send(
        self, channel_id: str, content: "Content", quote_id: str | None = None
    ) -> list[dict[str, Any]]:
        """Send content to a target on this channel. Returns sent message records."""
        ...
