"""Synchronous remote file using requests."""

import io
import logging
from typing import Callable, Optional

import requests
import urllib3

from ..core.file_base import RemoteFileBase
from ..core.model import (
    InternalStateError, Metadata, ProbeError, RemoteFileError, StatusError, TransportError,
)
from ..core.retry import DEFAULT_MAX_RETRIES
from ..core.util import check_range_response, metadata_from_headers
from .base import ChunkStream, CHUNK_SIZE, GET_TIMEOUT, HEAD_TIMEOUT

logger = logging.getLogger(__name__)

Opener = Callable[[requests.Session, str, int], ChunkStream]

# Module-level session for connection pooling
_session = None


def get_session() -> requests.Session:
    """Get or create the global requests session."""
    global _session
    if _session is None:
        _session = requests.Session()
    return _session


def _is_timeout(exc: requests.RequestException) -> bool:
    if isinstance(exc, requests.Timeout):
        return True
    # iter_content re-raises urllib3 read timeouts as a plain ConnectionError
    return bool(exc.args) and isinstance(exc.args[0], urllib3.exceptions.TimeoutError)


def _transport_error(exc: requests.RequestException, what: str) -> TransportError:
    return TransportError(f"{what} failed: {exc}", timeout=_is_timeout(exc))


def probe(session: requests.Session, url: str, *, timeout: float = HEAD_TIMEOUT) -> Metadata:
    """Single HEAD request: resolved URL, length, etag and content type."""
    logger.debug("HEAD %s", url)
    try:
        response = session.head(url, allow_redirects=True, timeout=timeout,
                                headers={"Accept-Encoding": "identity"})
    except requests.RequestException as e:
        raise ProbeError(f"HEAD request failed: {e}") from e
    if not 200 <= response.status_code < 300:
        raise ProbeError(f"HEAD request failed with status {response.status_code}",
                         status_code=response.status_code)
    return metadata_from_headers(response.url, response.headers)


class RangeStream:
    """Body of a streamed range response, drained one chunk at a time."""

    def __init__(self, response: requests.Response, chunk_size: int = CHUNK_SIZE):
        self._response = response
        self._chunks = response.iter_content(chunk_size)
        self._done = False

    def next_chunk(self) -> bytes | None:
        while not self._done:
            try:
                chunk = next(self._chunks)
            except StopIteration:
                self._done = True
                self._response.close()
                break
            except requests.RequestException as e:
                raise _transport_error(e, "Reading range response") from e
            if chunk:
                return chunk
        return None

    def close(self) -> None:
        self._done = True
        self._response.close()


def open_from(session: requests.Session, url: str, offset: int, *,
              chunk_size: int = CHUNK_SIZE, timeout: float = GET_TIMEOUT) -> RangeStream:
    """Request every byte from `offset` to the end and return the lazy body."""
    logger.debug("GET %s bytes_from=%d", url, offset)
    headers = {"Range": f"bytes={offset}-", "Accept-Encoding": "identity"}
    try:
        response = session.get(url, headers=headers, stream=True, timeout=timeout)
    except requests.RequestException as e:
        raise _transport_error(e, "Range request") from e

    try:
        if not 200 <= response.status_code < 300:
            raise StatusError(response.status_code)
        check_range_response(response.status_code, response.headers, offset)
    except RemoteFileError:
        response.close()
        raise
    return RangeStream(response, chunk_size)


class RemoteFile(RemoteFileBase, io.RawIOBase):
    """Raw binary file over HTTP range requests.

    Wrap in io.BufferedReader for buffered reads, or use directly: readinto()
    may return short counts before end of data.
    """

    def __init__(self, session: requests.Session, metadata: Metadata, *,
                 opener: Opener = open_from, max_retries: int = DEFAULT_MAX_RETRIES):
        super().__init__(metadata, max_retries=max_retries)
        self._session = session   # shared, never closed here
        self._opener = opener

    @classmethod
    def open(cls, session: requests.Session, url: str, **kwargs) -> "RemoteFile":
        return cls(session, probe(session, url), **kwargs)

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def _check_closed(self):
        if self.closed:
            raise ValueError("I/O operation on closed file.")

    def _open(self, offset: int) -> ChunkStream:
        stream = self._opener(self._session, self.url, offset)
        if stream is None:
            raise InternalStateError("range request resolved without a response stream")
        return stream

    def _drop_stream(self) -> None:
        stream, self._stream = self._stream, None
        self._leftover = None
        if stream is not None:
            stream.close()

    def _next_chunk(self) -> bytes | None:
        while True:
            try:
                if self._stream is None:
                    self._stream = self._open(self._pos)
                chunk = self._stream.next_chunk()
            except RemoteFileError as exc:
                self._drop_stream()
                if not self._retry.consume(exc):
                    raise
                logger.warning("%s, retrying... attempts left: %d", exc, self._retry.remaining)
                continue
            if chunk is not None:
                self._retry.reset()
            return chunk

    def readinto(self, buffer) -> int:
        self._check_closed()
        if self._seek is not None:
            self.complete_seek()
        if self._past_end(self._pos):
            return 0
        view = memoryview(buffer).cast("B")
        if len(view) == 0:
            return 0

        chunk, self._leftover = self._leftover, None
        if chunk is None:
            chunk = self._next_chunk()
            if chunk is None:
                return 0
        return self._deliver(chunk, view)

    def complete_seek(self) -> int:
        self._check_closed()
        target = self._take_seek_target()
        if target is None:
            return self._pos

        self._drop_stream()
        if self._past_end(target):
            logger.debug("Seek to %d is at or past end, no request needed", target)
        else:
            while True:
                try:
                    self._stream = self._open(target)
                    break
                except RemoteFileError as exc:
                    if not self._retry.consume(exc):
                        raise
                    logger.warning("%s, retrying... attempts left: %d", exc, self._retry.remaining)

        self._pos = target
        self._seek = None
        return self._pos

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        self._check_closed()
        self.start_seek(offset, whence)
        return self.complete_seek()

    def close(self):
        """Release the active response. The shared session stays open."""
        if self.closed:
            return
        try:
            self._seek = None
            self._drop_stream()
        finally:
            super().close()


def open_remote_file(url: str, session: Optional[requests.Session] = None, **kwargs) -> RemoteFile:
    """Probe `url` and open a synchronous remote file on it."""
    return RemoteFile.open(session or get_session(), url, **kwargs)
