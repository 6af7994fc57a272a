"""Compose outbound element sequences into Yunhu send requests.

One composer instance is one compose operation: ``prepare`` builds the
send buffer, ``visit`` folds elements into it in order, and ``flush``
sends it and resets it. The buffer can carry only one content type per
send, so the last content-bearing element decides what goes out:

    text, image, flush   -> one image message (the text is dropped)
    image, text, flush   -> one text message (the image key is dropped)

Callers that want several media delivered flush between them.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable

import httpx
from loguru import logger

from ..bus import events
from ..bus.elements import Content, Element, escape, normalize_content
from ..bus.events import Session, SessionMessage
from .errors import MediaError, RemoteUploadError
from .types import Button, OutboundPayload

if TYPE_CHECKING:
    from ..media.upload import UploadPipeline
    from .client import YunhuClient


UPLOAD_FAILED = "[upload failed]"
MEDIA_TYPES = ("image", "file", "video")

# Failures that only cost the element, not the whole message
_ELEMENT_FAILURES = (MediaError, RemoteUploadError, httpx.HTTPError, OSError)

_BUTTON_ACTIONS = {"link": 1, "input": 2, "action": 3}


class MessageComposer:
    """Accumulate elements into one send buffer and flush it."""

    def __init__(
        self,
        client: YunhuClient,
        uploader: UploadPipeline,
        channel_id: str,
        quote_id: str | None = None,
        on_sent: Callable[[Session], Awaitable[Any]] | None = None,
        self_id: str = "",
    ) -> None:
        self._client = client
        self._uploader = uploader
        self._channel_id = channel_id
        self._quote_id = quote_id
        self._on_sent = on_sent
        self._self_id = self_id
        self._payload: OutboundPayload | None = None
        self.results: list[dict[str, Any]] = []

    @property
    def payload(self) -> OutboundPayload:
        if self._payload is None:
            raise RuntimeError("MessageComposer.prepare() has not been called")
        return self._payload

    async def prepare(self) -> None:
        """Start a fresh buffer for the target channel."""
        self._payload = OutboundPayload.from_target(self._channel_id, self._quote_id)

    async def send(self, content: Content) -> list[dict[str, Any]]:
        """Run a whole compose operation and return the sent message records."""
        await self.prepare()
        await self.render(normalize_content(content))
        await self.flush()
        return self.results

    async def render(self, elements: Iterable[Element]) -> None:
        for element in elements:
            await self.visit(element)

    async def visit(self, element: Element) -> None:
        payload = self.payload
        content = payload.content
        kind, attrs = element.type, element.attrs

        if kind == "text":
            content.text += escape(str(attrs.get("content", "")))
            payload.content_type = "text"
        elif kind == "markdown":
            content.text += escape(str(attrs.get("content", "")))
            payload.content_type = "markdown"
        elif kind == "at":
            user_id = attrs.get("id")
            content.text += f"@{attrs.get('name') or user_id} "
            if user_id and user_id not in content.at:
                content.at.append(user_id)
        elif kind == "br":
            content.text += "\n"
        elif kind == "p":
            await self.render(element.children)
            content.text += "\n\n"
        elif kind == "a":
            await self.render(element.children)
            if attrs.get("href"):
                content.text += f" ({attrs['href']})"
        elif kind in MEDIA_TYPES:
            await self._visit_media(kind, element)
        elif kind == "quote":
            payload.parent_id = attrs.get("id") or payload.parent_id
        elif kind == "button":
            content.buttons.append(self._button(element))
        else:
            await self.render(element.children)

    async def _visit_media(self, kind: str, element: Element) -> None:
        payload = self.payload
        try:
            key = await self._uploader.upload(kind, element)
        except _ELEMENT_FAILURES as e:
            logger.error(f"{kind.capitalize()} upload failed: {e}")
            payload.content.text += UPLOAD_FAILED
            payload.content_type = "text"
            return

        setattr(payload.content, f"{kind}_key", key)
        payload.content_type = kind

    @staticmethod
    def _button(element: Element) -> dict[str, Any]:
        attrs = element.attrs
        text = attrs.get("text") or "".join(
            str(child.attrs.get("content", ""))
            for child in element.children
            if child.type == "text"
        )
        action = _BUTTON_ACTIONS.get(attrs.get("type", "action"), 3)
        if action == 1:
            button = Button(text=text, action_type=1, url=attrs.get("href"))
        elif action == 2:
            button = Button(text=text, action_type=2, value=attrs.get("value") or text)
        else:
            button = Button(text=text, action_type=3, value=attrs.get("value") or attrs.get("id"))
        return button.model_dump(by_alias=True, exclude_none=True)

    async def flush(self) -> None:
        """Send the buffer if it holds content for its type, then reset it."""
        payload = self.payload
        try:
            if not payload.has_content():
                logger.warning(f"Nothing to send to {self._channel_id}")
                return
            message = await self._client.send_message(payload)
            await self._add_result(message, payload)
        finally:
            payload.reset()

    async def _add_result(self, message: dict[str, Any], payload: OutboundPayload) -> None:
        self.results.append(message)

        text = payload.content.text if payload.content_type in ("text", "markdown") else ""
        session = Session(
            type=events.SEND,
            self_id=self._self_id,
            user_id=self._self_id,
            channel_id=self._channel_id,
            timestamp=int(time.time() * 1000),
            message=SessionMessage(
                id=message.get("msgId", ""),
                content=text,
                timestamp=int(time.time() * 1000),
                quote_id=message.get("parentId") or payload.parent_id,
            ),
        )
        if self._on_sent is not None:
            await self._on_sent(session)
