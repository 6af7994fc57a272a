"""Turn media references into bytes, a MIME type and a filename.

A reference is one of:

    - a structured element or mapping with ``src``/``url`` or inline ``data``
    - raw bytes
    - a ``data:<mime>;base64,<payload>`` string
    - an ``http(s)://`` URL
    - a local path (plain string, ``Path`` or ``file://`` URL)

MIME precedence: explicit attribute, data-URI MIME, extension lookup,
then the per-kind default. Nothing is sniffed from the bytes.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import mimetypes
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Awaitable, Callable, Union
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

from loguru import logger

from ..bus.elements import Element
from ..yunhu.errors import UnsupportedReferenceError


# kind -> (default MIME, default extension)
KIND_DEFAULTS = {
    "image": ("image/png", ".png"),
    "video": ("video/mp4", ".mp4"),
    "file": ("application/octet-stream", ".bin"),
}

_DATA_URI = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^;,]*)*),(?P<payload>.*)$", re.DOTALL)


@dataclass
class MediaAsset:
    """Resolved media, consumed immediately by compression or upload."""

    data: bytes
    mime_type: str
    filename: str

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class BytesRef:
    data: bytes


@dataclass(frozen=True)
class DataUriRef:
    mime: str | None
    payload: str  # base64


@dataclass(frozen=True)
class RemoteUrlRef:
    url: str


@dataclass(frozen=True)
class LocalPathRef:
    path: Path


@dataclass(frozen=True)
class StructuredRef:
    source: MediaReference
    mime: str | None = None
    filename: str | None = None


MediaReference = Union[StructuredRef, BytesRef, DataUriRef, RemoteUrlRef, LocalPathRef]


def _parse_data_uri(value: str) -> DataUriRef:
    match = _DATA_URI.match(value)
    if not match or ";base64" not in match.group("params"):
        raise UnsupportedReferenceError("Only base64 data URIs are supported")
    return DataUriRef(mime=match.group("mime"), payload=match.group("payload"))


def _classify_source(value: Any) -> MediaReference:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return BytesRef(bytes(value))
    if isinstance(value, Path):
        return LocalPathRef(value)
    if isinstance(value, str) and value:
        if value.startswith("data:"):
            return _parse_data_uri(value)
        if value.startswith(("http://", "https://")):
            return RemoteUrlRef(value)
        if value.startswith("file://"):
            return LocalPathRef(Path(url2pathname(urlparse(value).path)))
        return LocalPathRef(Path(value).expanduser())
    raise UnsupportedReferenceError(f"Unsupported media reference: {type(value).__name__}")


def classify(ref: Any) -> MediaReference:
    """Decide which reference variant ``ref`` is."""
    attrs: Mapping[str, Any] | None = None
    if isinstance(ref, Element):
        attrs = ref.attrs
    elif isinstance(ref, Mapping):
        attrs = ref
    if attrs is None:
        return _classify_source(ref)

    data = attrs.get("data")
    url = attrs.get("url") or attrs.get("src")
    if data is not None:
        if isinstance(data, str) and not data.startswith("data:"):
            source: MediaReference = DataUriRef(mime=None, payload=data)
        else:
            source = _classify_source(data)
    elif url:
        source = _classify_source(url)
    else:
        raise UnsupportedReferenceError("Structured media needs a url or inline data")
    return StructuredRef(
        source=source,
        mime=attrs.get("mime"),
        filename=attrs.get("filename") or attrs.get("title"),
    )


async def _read_file(path: Path) -> bytes:
    return await asyncio.to_thread(path.read_bytes)


class MediaResolver:
    """Resolve media references using the given fetch/read transports."""

    def __init__(
        self,
        fetch: Callable[[str], Awaitable[bytes]],
        read: Callable[[Path], Awaitable[bytes]] = _read_file,
    ) -> None:
        self._fetch = fetch
        self._read = read

    async def resolve(self, ref: Any, kind: str = "file") -> MediaAsset:
        if kind not in KIND_DEFAULTS:
            raise ValueError(f"Unknown media kind: {kind}")
        default_mime, default_ext = KIND_DEFAULTS[kind]

        data, explicit_name, declared_mime, source_name = await self._load(classify(ref))

        guessed = mimetypes.guess_type(source_name)[0] if source_name else None
        mime = declared_mime or guessed or default_mime

        if explicit_name:
            filename = explicit_name
        elif source_name and guessed:
            filename = source_name
        elif declared_mime and declared_mime != default_mime:
            filename = f"{kind}{mimetypes.guess_extension(declared_mime) or default_ext}"
        else:
            filename = f"{kind}{default_ext}"

        logger.debug(f"Resolved {kind} reference to {filename} ({mime}, {len(data)} bytes)")
        return MediaAsset(data=data, mime_type=mime, filename=filename)

    async def _load(
        self, reference: MediaReference
    ) -> tuple[bytes, str | None, str | None, str | None]:
        """Return (bytes, explicit filename, declared MIME, source name)."""
        if isinstance(reference, StructuredRef):
            data, _, mime, name = await self._load(reference.source)
            return data, reference.filename, reference.mime or mime, name
        if isinstance(reference, BytesRef):
            return reference.data, None, None, None
        if isinstance(reference, DataUriRef):
            try:
                data = base64.b64decode(reference.payload, validate=False)
            except (binascii.Error, ValueError) as e:
                raise UnsupportedReferenceError(f"Invalid base64 payload: {e}") from e
            return data, None, reference.mime, None
        if isinstance(reference, RemoteUrlRef):
            data = await self._fetch(reference.url)
            name = unquote(PurePosixPath(urlparse(reference.url).path).name)
            return data, None, None, name or None
        if isinstance(reference, LocalPathRef):
            data = await self._read(reference.path)
            return data, None, None, reference.path.name or None
        raise UnsupportedReferenceError(f"Unsupported media reference: {reference!r}")
