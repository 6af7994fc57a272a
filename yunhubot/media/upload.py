"""Resolve, compress and upload media to the platform store."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from loguru import logger

from .compressor import IMAGE_CEILING, compress_asset
from .resolver import KIND_DEFAULTS, MediaResolver

if TYPE_CHECKING:
    from ..yunhu.client import YunhuClient


class UploadPipeline:
    """Turn a media reference into an opaque platform key."""

    def __init__(
        self,
        client: YunhuClient,
        resolver: MediaResolver,
        image_ceiling: int = IMAGE_CEILING,
    ) -> None:
        self._client = client
        self._resolver = resolver
        self._image_ceiling = image_ceiling

    async def upload(self, kind: str, ref: Any) -> str:
        if kind not in KIND_DEFAULTS:
            raise ValueError(f"Unknown upload kind: {kind}")

        asset = await self._resolver.resolve(ref, kind)
        # Only images can be shrunk; oversized files and videos are left
        # for the platform to reject.
        if kind == "image" and asset.size > self._image_ceiling:
            logger.info(
                f"Image {asset.filename} is {asset.size} bytes, compressing to fit {self._image_ceiling}"
            )
            asset = await asyncio.to_thread(compress_asset, asset, self._image_ceiling)

        return await self._client.upload(kind, asset)
