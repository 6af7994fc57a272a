"""Map Yunhu webhook events onto the generic session model."""

from __future__ import annotations

import weakref
from typing import Any, Callable

from loguru import logger
from pydantic import ValidationError

from ..bus import events
from ..bus.events import Session, SessionElement, SessionMessage
from .errors import MalformedEventError, UnrecognizedEventError
from .types import (
    EVENT_VARIANTS,
    BotFollowedEvent,
    Chat,
    GroupDisbandedEvent,
    GroupMemberInvitedEvent,
    GroupMemberJoinedEvent,
    GroupMemberKickedEvent,
    GroupMemberLeavedEvent,
    InboundEvent,
    Message,
    MessageEvent,
    WireModel,
)


FILE_PLACEHOLDER = "[file]"
VIDEO_PLACEHOLDER = "[video]"


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = ".".join(str(p) for p in error["loc"])
        parts.append(f"{loc}: {error['msg']}")
    return "; ".join(parts)


def parse_event(payload: InboundEvent | dict[str, Any]) -> InboundEvent:
    """Parse a webhook body into an envelope."""
    if isinstance(payload, InboundEvent):
        return payload
    try:
        return InboundEvent.model_validate(payload)
    except ValidationError as e:
        raise MalformedEventError("", _describe(e)) from e


def parse_variant(event: InboundEvent) -> WireModel:
    """Parse the event body into the variant named by its type."""
    event_type = event.header.event_type
    model = EVENT_VARIANTS.get(event_type)
    if model is None:
        raise UnrecognizedEventError(event_type)
    try:
        return model.model_validate(event.event)
    except ValidationError as e:
        raise MalformedEventError(event_type, _describe(e)) from e


def channel_of(chat: Chat) -> str:
    return f"{chat.chat_id}:{chat.chat_type}"


def decode_elements(message: Message) -> list[SessionElement]:
    """Turn message content into session elements."""
    content = message.content
    elements: list[SessionElement] = []
    if message.parent_id:
        elements.append(SessionElement.quote(message.parent_id))
    if content.text:
        elements.append(SessionElement.text(content.text))
    for user_id in content.at or []:
        elements.append(SessionElement.at(user_id))
    if content.image_key:
        elements.append(SessionElement.image(content.image_key))
    if content.file_key:
        elements.append(SessionElement.text(FILE_PLACEHOLDER))
    if content.video_key:
        elements.append(SessionElement.text(VIDEO_PLACEHOLDER))
    return elements


def _message(session: Session, data: MessageEvent) -> None:
    sender, message = data.sender, data.message
    session.type = events.MESSAGE
    session.user_id = sender.sender_id
    session.nickname = sender.sender_nickname
    if message.chat_type == "bot":
        # One-to-one chat: reply to the sender, not the bot's chat id
        session.channel_id = f"{sender.sender_id}:user"
    else:
        session.channel_id = f"{message.chat_id}:{message.chat_type}"
        session.guild_id = message.chat_id
    session.timestamp = message.send_time
    session.message = SessionMessage(
        id=message.msg_id,
        content=message.content.text or "",
        elements=decode_elements(message),
        timestamp=message.send_time,
        quote_id=message.parent_id,
    )
    if message.command_id is not None or message.command_name:
        session.command = {"id": message.command_id, "name": message.command_name}


def _followed(session: Session, data: BotFollowedEvent) -> None:
    session.type = events.FRIEND_ADDED
    session.user_id = data.sender.sender_id
    session.nickname = data.sender.sender_nickname
    session.channel_id = f"{data.sender.sender_id}:user"


def _joined(session: Session, data: GroupMemberJoinedEvent) -> None:
    session.type = events.GUILD_MEMBER_ADDED
    session.user_id = data.joined_member.member_id
    session.nickname = data.joined_member.member_nickname
    session.channel_id = channel_of(data.chat)
    session.guild_id = data.chat.chat_id


def _invited(session: Session, data: GroupMemberInvitedEvent) -> None:
    session.type = events.GUILD_MEMBER_ADDED
    session.subtype = "invite"
    session.user_id = data.invited_member.member_id
    session.nickname = data.invited_member.member_nickname
    session.operator_id = data.inviter.inviter_id
    session.channel_id = channel_of(data.chat)
    session.guild_id = data.chat.chat_id


def _leaved(session: Session, data: GroupMemberLeavedEvent) -> None:
    session.type = events.GUILD_MEMBER_REMOVED
    session.subtype = "leave" if data.leave_type == "self" else "kick"
    session.user_id = data.leaved_member.member_id
    session.nickname = data.leaved_member.member_nickname
    session.channel_id = channel_of(data.chat)
    session.guild_id = data.chat.chat_id


def _kicked(session: Session, data: GroupMemberKickedEvent) -> None:
    session.type = events.GUILD_MEMBER_REMOVED
    session.subtype = "kick"
    session.user_id = data.kicked_member.member_id
    session.nickname = data.kicked_member.member_nickname
    session.operator_id = data.operator.operator_id
    session.channel_id = channel_of(data.chat)
    session.guild_id = data.chat.chat_id


def _disbanded(session: Session, data: GroupDisbandedEvent) -> None:
    session.type = events.GUILD_DELETED
    session.user_id = data.sender.sender_id
    session.nickname = data.sender.sender_nickname
    session.operator_id = data.operator.operator_id
    session.channel_id = channel_of(data.chat)
    session.guild_id = data.chat.chat_id


_PROJECTIONS: dict[type[WireModel], Callable[[Session, Any], None]] = {
    MessageEvent: _message,
    BotFollowedEvent: _followed,
    GroupMemberJoinedEvent: _joined,
    GroupMemberInvitedEvent: _invited,
    GroupMemberLeavedEvent: _leaved,
    GroupMemberKickedEvent: _kicked,
    GroupDisbandedEvent: _disbanded,
}


def normalize(
    payload: InboundEvent | dict[str, Any], self_id: str = ""
) -> Session | None:
    """Normalize a webhook event into a session.

    Returns None for event types with no mapping. Raises
    MalformedEventError when a recognized event is missing fields.

    The session only holds a weak reference to the parsed event. Pass an
    already parsed InboundEvent and keep it alive for as long as
    ``session.raw_event`` is needed; when given a dict, the event built
    here is dropped on return and ``raw_event`` is None.
    """
    event = parse_event(payload)
    try:
        data = parse_variant(event)
    except UnrecognizedEventError as e:
        logger.debug(f"Ignoring event: {e}")
        return None

    session = Session(
        type="",
        self_id=self_id,
        event_id=event.header.event_id,
        timestamp=event.header.event_time,
        raw=weakref.ref(event),
    )
    _PROJECTIONS[type(data)](session, data)
    return session
