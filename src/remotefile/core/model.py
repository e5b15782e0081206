from __future__ import annotations
import enum
from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class Metadata:
    url: str                    # redirect-resolved
    content_length: int | None  # None = unknown/unbounded
    etag: str | None
    mime: str | None


class State(enum.Enum):
    """Conceptual state of a remote file handle."""
    IDLE = "idle"
    REQUEST_PENDING = "request_pending"
    STREAM_ACTIVE = "stream_active"
    SEEK_PENDING = "seek_pending"


class RemoteFileError(IOError):
    """Base class for every error raised by remotefile."""
    pass


class ProbeError(RemoteFileError):
    """Raised when the metadata query fails or returns a non-success status."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransportError(RemoteFileError):
    """Raised on a network-level failure (connection, timeout) while streaming."""

    def __init__(self, message: str, *, timeout: bool = False):
        super().__init__(message)
        self.timeout = timeout


class StatusError(RemoteFileError):
    """Raised when a range request answers with a non-success status."""

    def __init__(self, status_code: int, message: str | None = None):
        super().__init__(message or f"Range request failed with status {status_code}")
        self.status_code = status_code

    @property
    def is_server_error(self) -> bool:
        return 500 <= self.status_code < 600


class InvalidSeekError(RemoteFileError, ValueError):
    """Raised when a seek target is unrepresentable or outside the resource."""
    pass


class InternalStateError(RemoteFileError):
    """Raised when the read/seek state machine finds an impossible state."""
    pass


class RangeNotSupportedError(RemoteFileError):
    """Raised when the server ignores the Range header for a non-zero offset."""
    pass


class RangeMismatchError(RemoteFileError):
    """Raised when Content-Range confirms a different start than requested."""
    pass
