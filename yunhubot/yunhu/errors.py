"""Error types for the Yunhu adapter."""

from __future__ import annotations


class YunhuError(Exception):
    """Base class for all adapter errors."""


class MalformedEventError(YunhuError):
    """A recognized webhook event is missing fields or has invalid ones."""

    def __init__(self, event_type: str, detail: str) -> None:
        self.event_type = event_type
        self.detail = detail
        super().__init__(f"Malformed {event_type or 'webhook'} event: {detail}")


class UnrecognizedEventError(YunhuError):
    """The webhook event type has no mapping."""

    def __init__(self, event_type: str) -> None:
        self.event_type = event_type
        super().__init__(f"Unrecognized event type: {event_type}")


class MediaError(YunhuError):
    """A media element could not be turned into an upload."""


class UnsupportedReferenceError(MediaError):
    """The media reference matches none of the supported shapes."""


class CompressionExceededError(MediaError):
    """The image could not be brought under the upload ceiling."""

    def __init__(self, size: int, ceiling: int) -> None:
        self.size = size
        self.ceiling = ceiling
        super().__init__(
            f"Compressed image is {size} bytes, still above the {ceiling} byte ceiling"
        )


class MediaDecodeError(MediaError):
    """The image bytes could not be decoded."""


class RemoteAPIError(YunhuError):
    """The platform answered with a non-success code."""

    def __init__(self, code: int | None, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"Yunhu API error {code}: {message}")


class RemoteUploadError(RemoteAPIError):
    """Binary upload rejected by the platform."""


class RemoteSendError(RemoteAPIError):
    """Message send rejected by the platform."""
