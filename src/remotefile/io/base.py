"""Base protocols and shared constants for the transport layer."""

from typing import Protocol, runtime_checkable

from ..core.model import RangeMismatchError, RangeNotSupportedError  # noqa: F401  re-export


HEAD_TIMEOUT = 30           # seconds, metadata probe
GET_TIMEOUT = 60            # seconds, range requests
CHUNK_SIZE = 64 * 1024      # bytes per streamed chunk


@runtime_checkable
class ChunkStream(Protocol):
    """Protocol for a lazily drained range response (sync)."""

    def next_chunk(self) -> bytes | None:
        """Return the next non-empty chunk, or None once the body is exhausted.
        Transport failures → raise TransportError.
        """
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class AsyncChunkStream(Protocol):
    """Protocol for a lazily drained range response (async)."""

    async def next_chunk(self) -> bytes | None:
        """Return the next non-empty chunk, or None once the body is exhausted.
        Transport failures → raise TransportError.
        """
        ...

    async def aclose(self) -> None:
        ...
