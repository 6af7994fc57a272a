"""Tests for the Yunhu open API client."""

from __future__ import annotations

import json

import httpx
import pytest

from yunhubot.config.schema import API_PATH
from yunhubot.media.resolver import MediaAsset
from yunhubot.yunhu.client import YunhuClient
from yunhubot.yunhu.errors import RemoteAPIError, RemoteSendError, RemoteUploadError
from yunhubot.yunhu.types import OutboundPayload, PayloadContent


class TestSendMessage:
    """Test /bot/send."""

    @pytest.mark.asyncio
    async def test_posts_wire_payload_with_token(self, api) -> None:
        client = api.client(token="secret")
        payload = OutboundPayload.from_target("g1:group", parent_id="m0")
        payload.content.text = "hello"

        message = await client.send_message(payload)

        assert message["msgId"] == "m1"
        request = api.requests[0]
        assert request.method == "POST"
        assert request.url.path == f"{API_PATH}/bot/send"
        assert request.url.params["token"] == "secret"
        assert json.loads(request.content) == {
            "recvId": "g1",
            "recvType": "group",
            "contentType": "text",
            "content": {"text": "hello"},
            "parentId": "m0",
        }

    @pytest.mark.asyncio
    async def test_rejected_send_raises(self, api) -> None:
        api.respond("/bot/send", {"code": 1002, "msg": "recvId not found"})
        payload = OutboundPayload.from_target("u1:user")
        payload.content.text = "x"

        with pytest.raises(RemoteSendError) as exc_info:
            await api.client().send_message(payload)
        assert exc_info.value.code == 1002
        assert exc_info.value.message == "recvId not found"

    @pytest.mark.asyncio
    async def test_http_error_propagates(self, api) -> None:
        api.respond("/bot/send", {"msg": "boom"}, status=502)
        payload = OutboundPayload.from_target("u1:user")
        payload.content.text = "x"

        with pytest.raises(httpx.HTTPStatusError):
            await api.client().send_message(payload)

    @pytest.mark.asyncio
    async def test_non_json_body_raises_send_error(self, api) -> None:
        api.respond("/bot/send", "upstream timeout")
        payload = OutboundPayload.from_target("u1:user")
        payload.content.text = "x"

        with pytest.raises(RemoteSendError) as exc_info:
            await api.client().send_message(payload)
        assert "upstream timeout" in exc_info.value.message


class TestUpload:
    """Test binary uploads."""

    @pytest.mark.asyncio
    async def test_multipart_field_matches_kind(self, api) -> None:
        asset = MediaAsset(data=b"%PDF-1.4", mime_type="application/pdf", filename="doc.pdf")

        key = await api.client().upload("file", asset)

        assert key == "file-key-1"
        request = api.requests[0]
        assert request.url.path == f"{API_PATH}/file/upload"
        assert request.url.params["token"] == "tok"
        body = request.content
        assert b'name="file"; filename="doc.pdf"' in body
        assert b"Content-Type: application/pdf" in body
        assert b"%PDF-1.4" in body

    @pytest.mark.asyncio
    async def test_platform_message_is_kept(self, api) -> None:
        api.respond("/image/upload", {"code": -1, "msg": "图片格式不支持"})
        asset = MediaAsset(data=b"x", mime_type="image/png", filename="image.png")

        with pytest.raises(RemoteUploadError) as exc_info:
            await api.client().upload("image", asset)
        assert exc_info.value.message == "图片格式不支持"

    @pytest.mark.asyncio
    async def test_non_json_body_raises_upload_error(self, api) -> None:
        api.respond("/image/upload", "<html>bad gateway</html>")
        asset = MediaAsset(data=b"x", mime_type="image/png", filename="image.png")

        with pytest.raises(RemoteUploadError) as exc_info:
            await api.client().upload("image", asset)
        assert exc_info.value.code == 200
        assert "bad gateway" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_key_raises(self, api) -> None:
        api.respond("/video/upload", {"code": 1, "msg": "success", "data": {}})
        asset = MediaAsset(data=b"x", mime_type="video/mp4", filename="video.mp4")

        with pytest.raises(RemoteUploadError):
            await api.client().upload("video", asset)

    @pytest.mark.asyncio
    async def test_unknown_kind(self, api) -> None:
        asset = MediaAsset(data=b"x", mime_type="audio/mpeg", filename="a.mp3")
        with pytest.raises(ValueError):
            await api.client().upload("audio", asset)
        assert api.requests == []


class TestChatCalls:
    """Test recall and board calls."""

    @pytest.mark.asyncio
    async def test_recall_splits_channel(self, api) -> None:
        await api.client().recall_message("m5", "g1:group")

        request = api.requests[0]
        assert request.url.path == f"{API_PATH}/bot/recall"
        assert json.loads(request.content) == {"msgId": "m5", "chatId": "g1", "chatType": "group"}

    @pytest.mark.asyncio
    async def test_recall_failure_raises(self, api) -> None:
        api.respond("/bot/recall", {"code": 1003, "msg": "too late"})
        with pytest.raises(RemoteAPIError) as exc_info:
            await api.client().recall_message("m5", "u1:user")
        assert exc_info.value.code == 1003

    @pytest.mark.asyncio
    async def test_bad_channel_id(self, api) -> None:
        with pytest.raises(ValueError):
            await api.client().recall_message("m5", "no-kind")

    @pytest.mark.asyncio
    async def test_board_bodies(self, api) -> None:
        client = api.client()
        await client.set_board("g1:group", "notice", content_type="markdown", member_id="u2", expire_time=60)
        await client.set_board_all("all")
        await client.dismiss_board("u1:user")
        await client.dismiss_board_all()

        paths = [r.url.path.removeprefix(API_PATH) for r in api.requests]
        assert paths == ["/bot/board", "/bot/board-all", "/bot/board-dismiss", "/bot/board-all-dismiss"]
        bodies = [json.loads(r.content) for r in api.requests]
        assert bodies[0] == {
            "chatId": "g1",
            "chatType": "group",
            "contentType": "markdown",
            "content": "notice",
            "memberId": "u2",
            "expireTime": 60,
        }
        assert bodies[1] == {"contentType": "text", "content": "all"}
        assert bodies[2] == {"chatId": "u1", "chatType": "user"}
        assert bodies[3] == {}


class TestFetch:
    """Test media downloads."""

    @pytest.mark.asyncio
    async def test_follows_redirects(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/old.png":
                return httpx.Response(302, headers={"Location": "https://cdn.example.com/new.png"})
            return httpx.Response(200, content=b"png-bytes")

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = YunhuClient(http, "tok", "https://chat-go.jwzhd.com/open-apis/v1/")

        assert await client.fetch("https://cdn.example.com/old.png") == b"png-bytes"

    @pytest.mark.asyncio
    async def test_missing_remote_raises(self) -> None:
        http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(404)))
        client = YunhuClient(http, "tok", "https://chat-go.jwzhd.com/open-apis/v1")

        with pytest.raises(httpx.HTTPStatusError):
            await client.fetch("https://cdn.example.com/gone.png")


class TestWirePayload:
    """Test the outbound payload shape."""

    def test_only_active_field_is_sent(self) -> None:
        payload = OutboundPayload(
            recv_id="u1",
            recv_type="user",
            content_type="image",
            content=PayloadContent(text="stale", image_key="k1"),
        )
        assert payload.to_wire() == {
            "recvId": "u1",
            "recvType": "user",
            "contentType": "image",
            "content": {"imageKey": "k1"},
        }

    def test_has_content_follows_type(self) -> None:
        payload = OutboundPayload(recv_id="u1", recv_type="user", content=PayloadContent(text="hi"))
        assert payload.has_content()
        payload.content_type = "file"
        assert not payload.has_content()

    def test_reset(self) -> None:
        payload = OutboundPayload.from_target("u1:user", parent_id="q")
        payload.content.text = "x"
        payload.content.at.append("u2")
        payload.content_type = "markdown"

        payload.reset()

        assert payload.content == PayloadContent()
        assert payload.content_type == "text"
        assert payload.parent_id == "q"

    def test_channel_id_keeps_colons_in_id(self) -> None:
        payload = OutboundPayload.from_target("a:b:group")
        assert (payload.recv_id, payload.recv_type) == ("a:b", "group")
