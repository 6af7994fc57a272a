"""Normalized session types shared by channels and the bus."""

from __future__ import annotations

import weakref
from dataclasses import dataclass, field
from typing import Any


# Session kinds
MESSAGE = "message"
FRIEND_ADDED = "friend-added"
GUILD_MEMBER_ADDED = "guild-member-added"
GUILD_MEMBER_REMOVED = "guild-member-removed"
GUILD_DELETED = "guild-deleted"
SEND = "send"


@dataclass(frozen=True)
class SessionElement:
    """One item of normalized inbound message content.

    ``type`` is one of ``text``, ``at``, ``quote`` or ``image``. File and
    video attachments arrive as ``text`` placeholders.
    """

    type: str
    value: str

    @classmethod
    def text(cls, content: str) -> SessionElement:
        return cls("text", content)

    @classmethod
    def at(cls, user_id: str) -> SessionElement:
        return cls("at", user_id)

    @classmethod
    def quote(cls, message_id: str) -> SessionElement:
        return cls("quote", message_id)

    @classmethod
    def image(cls, image_key: str) -> SessionElement:
        return cls("image", image_key)


@dataclass
class SessionMessage:
    """The message carried by a session."""

    id: str
    content: str = ""
    elements: list[SessionElement] = field(default_factory=list)
    timestamp: int = 0
    quote_id: str | None = None


@dataclass
class Session:
    """A platform event normalized into the generic bot session model."""

    type: str
    platform: str = "yunhu"
    self_id: str = ""
    user_id: str = ""
    nickname: str = ""
    channel_id: str = ""
    guild_id: str | None = None
    operator_id: str | None = None
    subtype: str | None = None
    message: SessionMessage | None = None
    timestamp: int = 0
    event_id: str = ""
    command: dict[str, Any] | None = None
    raw: weakref.ref | None = field(default=None, repr=False, compare=False)

    @property
    def content(self) -> str:
        return self.message.content if self.message else ""

    @property
    def message_id(self) -> str | None:
        return self.message.id if self.message else None

    @property
    def raw_event(self) -> Any:
        """The source event, if it is still alive. Diagnostics only."""
        return self.raw() if self.raw is not None else None
