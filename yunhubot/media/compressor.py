"""Shrink images to fit the platform's upload ceiling.

Still images get one geometric downscale and a JPEG re-encode at
quality 80. Animated images keep their format and are re-encoded at
stepped-down quality until one pass fits.
"""

from __future__ import annotations

import io
import math
from dataclasses import dataclass
from pathlib import PurePosixPath

from loguru import logger
from PIL import Image, ImageSequence, UnidentifiedImageError

from ..yunhu.errors import CompressionExceededError, MediaDecodeError
from .resolver import MediaAsset


IMAGE_CEILING = 10 * 1024 * 1024
JPEG_QUALITY = 80
SAFETY_MARGIN = 0.95
ANIMATED_QUALITY_STEPS = (80, 60, 40, 20)
# Animated formats without a quality knob lose palette colors instead
_PALETTE_FORMATS = ("GIF", "PNG")

_FORMAT_MIME = {
    "GIF": "image/gif",
    "WEBP": "image/webp",
    "PNG": "image/png",
}
_MIME_SUFFIX = {
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/png": ".png",
}


@dataclass
class CompressionResult:
    data: bytes
    mime: str


def compress(data: bytes, mime: str, ceiling: int = IMAGE_CEILING) -> CompressionResult:
    """Re-encode ``data`` so it fits in ``ceiling`` bytes.

    Input already within the ceiling is returned unchanged.
    """
    if len(data) <= ceiling:
        return CompressionResult(data, mime)

    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise MediaDecodeError(f"Cannot decode image ({mime}): {e}") from e

    if getattr(image, "is_animated", False) and image.format in _FORMAT_MIME:
        return _compress_animated(image, len(data), ceiling)
    return _compress_still(image, len(data), ceiling)


def _compress_still(image: Image.Image, size: int, ceiling: int) -> CompressionResult:
    ratio = math.sqrt(ceiling / size) * SAFETY_MARGIN
    width = max(1, int(image.width * ratio))
    height = max(1, int(image.height * ratio))

    if image.mode in ("RGBA", "LA", "P"):
        image = image.convert("RGBA")
        background = Image.new("RGB", image.size, (255, 255, 255))
        background.paste(image, mask=image.getchannel("A"))
        image = background
    elif image.mode != "RGB":
        image = image.convert("RGB")

    resized = image.resize((width, height), Image.Resampling.LANCZOS)
    buffer = io.BytesIO()
    resized.save(buffer, format="JPEG", quality=JPEG_QUALITY, optimize=True)
    output = buffer.getvalue()

    logger.info(
        f"Compressed image {size} → {len(output)} bytes "
        f"({image.width}x{image.height} → {width}x{height})"
    )
    if len(output) > ceiling:
        raise CompressionExceededError(len(output), ceiling)
    return CompressionResult(output, "image/jpeg")


def _encode_animated(image: Image.Image, quality: int) -> bytes:
    frames = []
    durations = []
    for frame in ImageSequence.Iterator(image):
        durations.append(frame.info.get("duration", image.info.get("duration", 100)))
        if image.format in _PALETTE_FORMATS:
            colors = max(2, 256 * quality // 100)
            frames.append(frame.convert("RGB").quantize(colors=colors))
        else:
            frames.append(frame.convert("RGBA"))

    options: dict = {
        "save_all": True,
        "append_images": frames[1:],
        "duration": durations,
        "loop": image.info.get("loop", 0),
    }
    if image.format in _PALETTE_FORMATS:
        options["optimize"] = True
    else:
        options["quality"] = quality

    buffer = io.BytesIO()
    frames[0].save(buffer, format=image.format, **options)
    return buffer.getvalue()


def _compress_animated(image: Image.Image, size: int, ceiling: int) -> CompressionResult:
    output = b""
    for quality in ANIMATED_QUALITY_STEPS:
        output = _encode_animated(image, quality)
        logger.debug(f"Animated {image.format} at quality {quality}: {len(output)} bytes")
        if len(output) <= ceiling:
            logger.info(f"Compressed animated image {size} → {len(output)} bytes")
            return CompressionResult(output, _FORMAT_MIME[image.format])
    raise CompressionExceededError(len(output), ceiling)


def compress_asset(asset: MediaAsset, ceiling: int = IMAGE_CEILING) -> MediaAsset:
    """Compress an asset and rename it to match the output container."""
    result = compress(asset.data, asset.mime_type, ceiling)
    if result.data is asset.data:
        return asset

    suffix = _MIME_SUFFIX.get(result.mime, "")
    filename = str(PurePosixPath(asset.filename).with_suffix(suffix)) if suffix else asset.filename
    return MediaAsset(data=result.data, mime_type=result.mime, filename=filename)
