"""Yunhu channel: webhook receiver plus the outbound send path."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from loguru import logger

from ..bus.elements import Content
from ..bus.queue import MessageBus
from ..config.schema import Config
from ..media.resolver import MediaResolver
from ..media.upload import UploadPipeline
from ..yunhu.client import YunhuClient
from ..yunhu.composer import MessageComposer
from ..yunhu.errors import MalformedEventError
from ..yunhu.normalizer import normalize, parse_event
from .base import BaseChannel


ONLINE = "online"
OFFLINE = "offline"


class YunhuChannel(BaseChannel):
    """Receives Yunhu webhooks and sends messages through the open API."""

    def __init__(
        self,
        bus: MessageBus,
        config: Config,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(bus)
        self._config = config
        self._http = http or httpx.AsyncClient(timeout=config.media.request_timeout)
        self._client = YunhuClient(
            self._http,
            config.yunhu.token,
            config.api_base,
            fetch_timeout=config.media.fetch_timeout,
        )
        self._resolver = MediaResolver(fetch=self._client.fetch)
        self._uploader = UploadPipeline(
            self._client, self._resolver, config.media.image_ceiling
        )
        self._status = OFFLINE
        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task | None = None
        self.app = self.create_app()

    @property
    def name(self) -> str:
        return "yunhu"

    @property
    def self_id(self) -> str:
        return self._config.yunhu.bot_id

    @property
    def status(self) -> str:
        return self._status

    @property
    def client(self) -> YunhuClient:
        return self._client

    def online(self) -> None:
        if self._status != ONLINE:
            logger.info("Yunhu bot online")
        self._status = ONLINE

    def offline(self) -> None:
        if self._status != OFFLINE:
            logger.info("Yunhu bot offline")
        self._status = OFFLINE

    def create_app(self) -> FastAPI:
        """Build the webhook app. The platform always gets 200 OK."""
        app = FastAPI(title="yunhubot webhook")

        @app.post(self._config.yunhu.path, response_class=PlainTextResponse)
        async def webhook(request: Request) -> str:
            await self.handle_webhook(await request.body())
            return "OK"

        return app

    async def handle_webhook(self, body: bytes) -> None:
        """Normalize one webhook body and publish the session, if any."""
        if self._status != ONLINE:
            self.online()

        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Dropping webhook with invalid JSON body: {e}")
            return

        try:
            event = parse_event(payload)
            session = normalize(event, self_id=self.self_id)
        except MalformedEventError as e:
            logger.warning(f"Dropping webhook: {e}")
            return

        if session is not None:
            await self._bus.publish_inbound(session)

    async def start(self) -> None:
        """Serve the webhook endpoint in the background."""
        gateway = self._config.gateway
        self._server = uvicorn.Server(
            uvicorn.Config(
                self.app, host=gateway.host, port=gateway.port, log_level="warning"
            )
        )
        self._serve_task = asyncio.create_task(self._server.serve())
        self.online()
        logger.info(
            f"Yunhu webhook listening on {gateway.host}:{gateway.port}{self._config.yunhu.path}"
        )

    async def stop(self) -> None:
        """Stop the webhook server and close the HTTP client."""
        if self._server is not None:
            self._server.should_exit = True
        if self._serve_task is not None:
            try:
                await self._serve_task
            except Exception as e:
                logger.warning(f"Error stopping webhook server: {e}")
            self._serve_task = None
        await self._http.aclose()
        self.offline()
        logger.info("Yunhu channel stopped")

    def composer(self, channel_id: str, quote_id: str | None = None) -> MessageComposer:
        """Start a compose operation against ``channel_id``."""
        return MessageComposer(
            self._client,
            self._uploader,
            channel_id,
            quote_id=quote_id,
            on_sent=self._bus.publish_sent,
            self_id=self.self_id,
        )

    async def send(
        self, channel_id: str, content: Content, quote_id: str | None = None
    ) -> list[dict[str, Any]]:
        """Send content to ``<id>:<user|group>``. Send failures propagate."""
        return await self.composer(channel_id, quote_id).send(content)

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        await self._client.recall_message(message_id, channel_id)
