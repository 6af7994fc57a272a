"""Shared fixtures: a fake Yunhu open API and synthetic images."""

from __future__ import annotations

import io
import json
import random
from typing import Any, Callable

import httpx
import pytest
from PIL import Image

from yunhubot.config.schema import API_PATH
from yunhubot.yunhu.client import YunhuClient


API_BASE = f"https://chat-go.jwzhd.com{API_PATH}"


class FakeAPI:
    """Records requests and answers like the bot API.

    Sends get sequential message ids, uploads get ``<kind>-key-N``.
    Override a route with ``respond(path, body, status)``.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._overrides: dict[str, tuple[int, dict[str, Any] | str]] = {}
        self._count = 0

    def respond(self, path: str, body: dict[str, Any] | str, status: int = 200) -> None:
        """Answer ``path`` with ``body``: JSON for a dict, raw text for a str."""
        self._overrides[path] = (status, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix(API_PATH)
        if path in self._overrides:
            status, body = self._overrides[path]
            if isinstance(body, str):
                return httpx.Response(status, text=body)
            return httpx.Response(status, json=body)

        self._count += 1
        if path == "/bot/send":
            sent = json.loads(request.content)
            info = {"msgId": f"m{self._count}", "recvId": sent["recvId"], "recvType": sent["recvType"]}
            return httpx.Response(200, json={"code": 1, "msg": "success", "data": {"messageInfo": info}})
        if path.endswith("/upload"):
            kind = path.split("/")[1]
            return httpx.Response(
                200, json={"code": 1, "msg": "success", "data": {f"{kind}Key": f"{kind}-key-{self._count}"}}
            )
        return httpx.Response(200, json={"code": 1, "msg": "success"})

    def http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def client(self, token: str = "tok") -> YunhuClient:
        return YunhuClient(self.http(), token, API_BASE)

    def sent(self) -> list[dict[str, Any]]:
        """JSON bodies of every /bot/send request, in order."""
        return [
            json.loads(r.content)
            for r in self.requests
            if r.url.path == f"{API_PATH}/bot/send"
        ]


@pytest.fixture
def api() -> FakeAPI:
    return FakeAPI()


def _noise(size: tuple[int, int], mode: str, seed: int) -> Image.Image:
    rng = random.Random(seed)
    channels = len(mode)
    data = bytes(rng.getrandbits(8) for _ in range(size[0] * size[1] * channels))
    return Image.frombytes(mode, size, data)


@pytest.fixture
def noise_image() -> Callable[..., Image.Image]:
    """Factory for deterministic random-noise images (incompressible)."""

    def make(size: tuple[int, int] = (300, 300), mode: str = "RGB", seed: int = 0) -> Image.Image:
        return _noise(size, mode, seed)

    return make


@pytest.fixture
def encode() -> Callable[..., bytes]:
    """Encode an image (or a list of frames) to bytes."""

    def run(image: Image.Image | list[Image.Image], fmt: str = "PNG", **options: Any) -> bytes:
        buffer = io.BytesIO()
        if isinstance(image, list):
            first, *rest = image
            first.save(buffer, format=fmt, save_all=True, append_images=rest, **options)
        else:
            image.save(buffer, format=fmt, **options)
        return buffer.getvalue()

    return run
