"""Cursor bookkeeping shared by the sync and async remote files."""

from __future__ import annotations
import io
import logging
from typing import Any

from .model import Metadata, State
from .retry import DEFAULT_MAX_RETRIES, RetryPolicy
from .util import resolve_seek

logger = logging.getLogger(__name__)


class RemoteFileBase:
    """Everything about a remote file handle that never touches the network.

    Subclasses own the transport and implement the suspendable parts
    (issuing range requests, draining chunks, completing seeks).
    """

    def __init__(self, metadata: Metadata, *, max_retries: int = DEFAULT_MAX_RETRIES):
        self.url = metadata.url
        self.content_length = metadata.content_length
        self.etag = metadata.etag
        self.mime = metadata.mime

        self._pos = 0
        self._request: tuple[int, Any] | None = None   # (target offset, in-flight request)
        self._stream: Any = None
        self._leftover: bytes | None = None            # never empty
        self._seek: int | None = None
        self._retry = RetryPolicy(max_retries)

    @property
    def metadata(self) -> Metadata:
        return Metadata(url=self.url, content_length=self.content_length, etag=self.etag, mime=self.mime)

    @property
    def position(self) -> int:
        return self._pos

    def tell(self) -> int:
        return self._pos

    @property
    def retry_budget(self) -> int:
        return self._retry.remaining

    @property
    def state(self) -> State:
        if self._seek is not None:
            return State.SEEK_PENDING
        if self._request is not None:
            return State.REQUEST_PENDING
        if self._stream is not None:
            return State.STREAM_ACTIVE
        return State.IDLE

    def start_seek(self, offset: int, whence: int = io.SEEK_SET) -> None:
        """Validate and record a seek target. Never does I/O."""
        self._seek = resolve_seek(offset, whence, self._pos, self.content_length)

    def _take_seek_target(self) -> int | None:
        """Pending seek target that still needs work, clearing trivial ones."""
        if self._seek is None:
            return None
        if self._seek == self._pos:
            self._seek = None
            return None
        return self._seek

    def _past_end(self, offset: int) -> bool:
        return self.content_length is not None and offset >= self.content_length

    def _deliver(self, chunk: bytes, view: memoryview) -> int:
        """Copy as much of `chunk` as fits, keep the rest as leftover."""
        if self.content_length is not None:
            remaining = self.content_length - self._pos
            if len(chunk) > remaining:
                logger.debug("Discarding %d bytes past content length", len(chunk) - remaining)
                chunk = chunk[:remaining]
        size = min(len(chunk), len(view))
        view[:size] = chunk[:size]
        self._pos += size
        self._leftover = chunk[size:] if size < len(chunk) else None
        return size

    def __repr__(self) -> str:
        request = f"request at {self._request[0]}" if self._request is not None else None
        leftover = len(self._leftover) if self._leftover is not None else 0
        return (f"{type(self).__name__}(url={self.url!r}, content_length={self.content_length}, "
                f"etag={self.etag!r}, pos={self._pos}, request={request}, "
                f"leftover={leftover}, seek={self._seek})")
