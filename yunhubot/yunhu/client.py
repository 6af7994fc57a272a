"""Yunhu open API client."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
from loguru import logger

from .errors import RemoteAPIError, RemoteSendError, RemoteUploadError
from .types import OutboundPayload, split_channel_id

if TYPE_CHECKING:
    from ..media.resolver import MediaAsset


SUCCESS_CODE = 1

# Upload kind -> code the platform returns on success
UPLOAD_SUCCESS_CODES = {
    "image": 1,
    "video": 1,
    "file": 1,
}


class YunhuClient:
    """Thin wrapper over the bot HTTP API.

    The underlying ``httpx.AsyncClient`` is shared by every compose
    operation and media fetch, so it must outlive them.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        token: str,
        api_base: str,
        fetch_timeout: float = 30.0,
    ) -> None:
        self._http = http
        self._token = token
        self._api_base = api_base.rstrip("/")
        self._fetch_timeout = fetch_timeout

    @property
    def http(self) -> httpx.AsyncClient:
        return self._http

    def _url(self, path: str) -> str:
        return f"{self._api_base}{path}"

    async def _post(
        self,
        path: str,
        error: type[RemoteAPIError] = RemoteAPIError,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """POST to the API. A 2xx body that is not JSON raises ``error``."""
        response = await self._http.post(
            self._url(path), params={"token": self._token}, **kwargs
        )
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as e:
            raise error(
                response.status_code, f"non-JSON response: {response.text[:200]}"
            ) from e

    async def _call(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        """POST a JSON body and check the response code."""
        data = await self._post(path, json=body)
        if data.get("code") != SUCCESS_CODE:
            raise RemoteAPIError(data.get("code"), data.get("msg", ""))
        return data

    async def send_message(self, payload: OutboundPayload) -> dict[str, Any]:
        """Send one message. Returns the platform's message record."""
        data = await self._post(
            "/bot/send", RemoteSendError, json=payload.to_wire()
        )
        message = (data.get("data") or {}).get("messageInfo")
        if not message:
            raise RemoteSendError(data.get("code"), data.get("msg", ""))
        logger.debug(f"Sent {payload.content_type} message {message.get('msgId')}")
        return message

    async def upload(self, kind: str, asset: MediaAsset) -> str:
        """Store a binary and return its opaque key."""
        if kind not in UPLOAD_SUCCESS_CODES:
            raise ValueError(f"Unknown upload kind: {kind}")
        data = await self._post(
            f"/{kind}/upload",
            RemoteUploadError,
            files={kind: (asset.filename, asset.data, asset.mime_type)},
        )
        if data.get("code") != UPLOAD_SUCCESS_CODES[kind]:
            raise RemoteUploadError(data.get("code"), data.get("msg", ""))
        key = (data.get("data") or {}).get(f"{kind}Key")
        if not key:
            raise RemoteUploadError(data.get("code"), f"no {kind}Key in response")
        logger.debug(f"Uploaded {kind} {asset.filename} ({asset.size} bytes) as {key}")
        return key

    async def recall_message(self, message_id: str, channel_id: str) -> None:
        chat_id, chat_type = split_channel_id(channel_id)
        await self._call(
            "/bot/recall",
            {"msgId": message_id, "chatId": chat_id, "chatType": chat_type},
        )

    async def set_board(
        self,
        channel_id: str,
        content: str,
        content_type: str = "text",
        member_id: str | None = None,
        expire_time: int | None = None,
    ) -> None:
        """Set the board of one chat, optionally for a single member."""
        chat_id, chat_type = split_channel_id(channel_id)
        body: dict[str, Any] = {
            "chatId": chat_id,
            "chatType": chat_type,
            "contentType": content_type,
            "content": content,
        }
        if member_id:
            body["memberId"] = member_id
        if expire_time is not None:
            body["expireTime"] = expire_time
        await self._call("/bot/board", body)

    async def set_board_all(
        self,
        content: str,
        content_type: str = "text",
        expire_time: int | None = None,
    ) -> None:
        """Set the board in every chat the bot is in."""
        body: dict[str, Any] = {"contentType": content_type, "content": content}
        if expire_time is not None:
            body["expireTime"] = expire_time
        await self._call("/bot/board-all", body)

    async def dismiss_board(self, channel_id: str, member_id: str | None = None) -> None:
        chat_id, chat_type = split_channel_id(channel_id)
        body: dict[str, Any] = {"chatId": chat_id, "chatType": chat_type}
        if member_id:
            body["memberId"] = member_id
        await self._call("/bot/board-dismiss", body)

    async def dismiss_board_all(self) -> None:
        await self._call("/bot/board-all-dismiss", {})

    async def fetch(self, url: str) -> bytes:
        """Download a remote media file."""
        response = await self._http.get(
            url, follow_redirects=True, timeout=self._fetch_timeout
        )
        response.raise_for_status()
        return response.content
