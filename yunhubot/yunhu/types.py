"""Yunhu wire types: webhook events and the outbound send payload."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for camelCase wire payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )


# ---------------------------------------------------------------------------
# Inbound events
# ---------------------------------------------------------------------------


class EventHeader(WireModel):
    event_id: str = ""
    event_time: int = 0
    event_type: str


class InboundEvent(WireModel):
    """Webhook envelope. ``event`` is parsed lazily by event type."""

    version: str = ""
    header: EventHeader
    event: dict[str, Any] = Field(default_factory=dict)


class Sender(WireModel):
    sender_id: str
    sender_type: str = "user"
    sender_user_level: str = "unknown"  # owner | administrator | member | unknown
    sender_nickname: str = ""


class Chat(WireModel):
    chat_id: str
    chat_type: Literal["bot", "group"]


class Button(WireModel):
    text: str
    action_type: Literal[1, 2, 3]  # 1: open url, 2: copy, 3: report value
    url: str | None = None
    value: str | None = None


class MessageContent(WireModel):
    text: str | None = None
    image_key: str | None = None
    file_key: str | None = None
    video_key: str | None = None
    buttons: list[Any] | None = None
    at: list[str] | None = None


class Message(WireModel):
    msg_id: str
    parent_id: str | None = None
    send_time: int = 0  # milliseconds
    chat_id: str
    chat_type: Literal["bot", "group"]
    content_type: str = "text"
    content: MessageContent = Field(default_factory=MessageContent)
    command_id: int | None = None
    command_name: str | None = None


class Member(WireModel):
    member_id: str
    member_nickname: str = ""


class Inviter(WireModel):
    inviter_id: str
    inviter_nickname: str = ""


class Operator(WireModel):
    operator_id: str
    operator_nickname: str = ""


class MessageEvent(WireModel):
    sender: Sender
    message: Message
    chat: Chat | None = None


class BotFollowedEvent(WireModel):
    sender: Sender
    chat: Chat | None = None


class GroupMemberJoinedEvent(WireModel):
    sender: Sender
    chat: Chat
    joined_member: Member


class GroupMemberLeavedEvent(WireModel):
    sender: Sender
    chat: Chat
    leaved_member: Member
    leave_type: Literal["self", "kicked"] = "self"


class GroupMemberInvitedEvent(WireModel):
    sender: Sender
    chat: Chat
    invited_member: Member
    inviter: Inviter


class GroupMemberKickedEvent(WireModel):
    sender: Sender
    chat: Chat
    kicked_member: Member
    operator: Operator


class GroupDisbandedEvent(WireModel):
    sender: Sender
    chat: Chat
    operator: Operator


MESSAGE_NORMAL = "message.receive.normal"
MESSAGE_INSTRUCTION = "message.receive.instruction"
BOT_FOLLOWED = "bot.followed"
GROUP_MEMBER_JOINED = "group.member.joined"
GROUP_MEMBER_LEAVED = "group.member.leaved"
GROUP_MEMBER_INVITED = "group.member.invited"
GROUP_MEMBER_KICKED = "group.member.kicked"
GROUP_DISBANDED = "group.disbanded"

EVENT_VARIANTS: dict[str, type[WireModel]] = {
    MESSAGE_NORMAL: MessageEvent,
    MESSAGE_INSTRUCTION: MessageEvent,
    BOT_FOLLOWED: BotFollowedEvent,
    GROUP_MEMBER_JOINED: GroupMemberJoinedEvent,
    GROUP_MEMBER_LEAVED: GroupMemberLeavedEvent,
    GROUP_MEMBER_INVITED: GroupMemberInvitedEvent,
    GROUP_MEMBER_KICKED: GroupMemberKickedEvent,
    GROUP_DISBANDED: GroupDisbandedEvent,
}


# ---------------------------------------------------------------------------
# Outbound payload
# ---------------------------------------------------------------------------

# contentType -> content field carrying the payload for that type
CONTENT_FIELDS = {
    "text": "text",
    "markdown": "text",
    "image": "imageKey",
    "file": "fileKey",
    "video": "videoKey",
}


def split_channel_id(channel_id: str) -> tuple[str, str]:
    """Split ``<id>:<kind>`` into its parts."""
    target_id, sep, kind = channel_id.rpartition(":")
    if not sep or not target_id or not kind:
        raise ValueError(f"Channel id must look like '<id>:<kind>', got {channel_id!r}")
    return target_id, kind


@dataclass
class PayloadContent:
    text: str = ""
    image_key: str = ""
    file_key: str = ""
    video_key: str = ""
    buttons: list[dict[str, Any]] = field(default_factory=list)
    at: list[str] = field(default_factory=list)

    def get(self, wire_field: str) -> str:
        return {
            "text": self.text,
            "imageKey": self.image_key,
            "fileKey": self.file_key,
            "videoKey": self.video_key,
        }[wire_field]


@dataclass
class OutboundPayload:
    """The send buffer owned by one compose operation.

    ``content`` may hold stale fields from earlier elements; only the
    field matching ``content_type`` goes on the wire.
    """

    recv_id: str
    recv_type: str
    content_type: str = "text"
    content: PayloadContent = field(default_factory=PayloadContent)
    parent_id: str | None = None

    @classmethod
    def from_target(cls, channel_id: str, parent_id: str | None = None) -> OutboundPayload:
        recv_id, recv_type = split_channel_id(channel_id)
        return cls(recv_id=recv_id, recv_type=recv_type, parent_id=parent_id)

    def has_content(self) -> bool:
        """True if the field matching the current content type is non-empty."""
        return bool(self.content.get(CONTENT_FIELDS[self.content_type]))

    def reset(self) -> None:
        """Clear every content field and fall back to text."""
        self.content = PayloadContent()
        self.content_type = "text"

    def to_wire(self) -> dict[str, Any]:
        wire_field = CONTENT_FIELDS[self.content_type]
        content: dict[str, Any] = {wire_field: self.content.get(wire_field)}
        if self.content.buttons:
            # The platform takes rows of buttons; everything goes on one row.
            content["buttons"] = [list(self.content.buttons)]
        if self.content.at:
            content["at"] = list(self.content.at)

        payload: dict[str, Any] = {
            "recvId": self.recv_id,
            "recvType": self.recv_type,
            "contentType": self.content_type,
            "content": content,
        }
        if self.parent_id:
            payload["parentId"] = self.parent_id
        return payload
