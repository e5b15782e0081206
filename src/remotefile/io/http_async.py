"""Asynchronous remote file using httpx."""

import asyncio
import io
import logging
from typing import Awaitable, Callable, Optional

import httpx

from ..core.file_base import RemoteFileBase
from ..core.model import (
    InternalStateError, Metadata, ProbeError, RemoteFileError, StatusError, TransportError,
)
from ..core.retry import DEFAULT_MAX_RETRIES
from ..core.util import check_range_response, metadata_from_headers
from .base import AsyncChunkStream, CHUNK_SIZE, GET_TIMEOUT

logger = logging.getLogger(__name__)

Opener = Callable[[httpx.AsyncClient, str, int], Awaitable[AsyncChunkStream]]

# Global async client, used only when the caller brings none
_client: Optional[httpx.AsyncClient] = None


def get_client() -> httpx.AsyncClient:
    """Get or create the global httpx AsyncClient."""
    global _client
    if _client is None:
        _client = httpx.AsyncClient(timeout=GET_TIMEOUT, follow_redirects=True)
    return _client


async def close_global_client():
    """Close the global httpx client. Call this at application shutdown."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


def _transport_error(exc: httpx.HTTPError, what: str) -> TransportError:
    return TransportError(f"{what} failed: {exc}", timeout=isinstance(exc, httpx.TimeoutException))


async def probe_async(client: httpx.AsyncClient, url: str) -> Metadata:
    """Single HEAD request: resolved URL, length, etag and content type."""
    logger.debug("HEAD %s", url)
    try:
        response = await client.head(url, follow_redirects=True,
                                     headers={"Accept-Encoding": "identity"})
    except httpx.HTTPError as e:
        raise ProbeError(f"HEAD request failed: {e}") from e
    if not response.is_success:
        raise ProbeError(f"HEAD request failed with status {response.status_code}",
                         status_code=response.status_code)
    return metadata_from_headers(str(response.url), response.headers)


class AsyncRangeStream:
    """Body of a streamed range response, drained one chunk at a time."""

    def __init__(self, response: httpx.Response, chunk_size: int = CHUNK_SIZE):
        self._response = response
        self._chunks = response.aiter_bytes(chunk_size)
        self._done = False
        self._interrupted = False

    async def next_chunk(self) -> bytes | None:
        if self._interrupted:
            raise TransportError("range response was interrupted mid-chunk")
        while not self._done:
            try:
                chunk = await self._chunks.__anext__()
            except StopAsyncIteration:
                self._done = True
                await self._response.aclose()
                break
            except httpx.HTTPError as e:
                raise _transport_error(e, "Reading range response") from e
            except BaseException:
                # the body iterator is finished now, so the rest is not end of data
                self._interrupted = True
                self._done = True
                await self._response.aclose()
                raise
            if chunk:
                return chunk
        return None

    async def aclose(self) -> None:
        self._done = True
        await self._response.aclose()


async def open_from_async(client: httpx.AsyncClient, url: str, offset: int,
                          *, chunk_size: int = CHUNK_SIZE) -> AsyncRangeStream:
    """Request every byte from `offset` to the end and return the lazy body."""
    logger.debug("GET %s bytes_from=%d", url, offset)
    headers = {"Range": f"bytes={offset}-", "Accept-Encoding": "identity"}
    request = client.build_request("GET", url, headers=headers)
    try:
        response = await client.send(request, stream=True)
    except httpx.HTTPError as e:
        raise _transport_error(e, "Range request") from e

    try:
        if not response.is_success:
            raise StatusError(response.status_code)
        check_range_response(response.status_code, response.headers, offset)
    except RemoteFileError:
        await response.aclose()
        raise
    return AsyncRangeStream(response, chunk_size)


class AsyncRemoteFile(RemoteFileBase):
    """Seekable, readable view of a remote resource backed by HTTP range requests.

    No request is made until data is actually demanded. The in-flight range
    request is kept as a task, so cancelling a read or seek does not lose it
    and a later seek to the same offset waits on it instead of re-requesting.

    One cursor: not safe for concurrent use by several tasks.
    """

    def __init__(self, client: httpx.AsyncClient, metadata: Metadata, *,
                 opener: Opener = open_from_async, max_retries: int = DEFAULT_MAX_RETRIES):
        super().__init__(metadata, max_retries=max_retries)
        self._client = client   # shared, never closed here
        self._opener = opener
        self._closed = False

    @classmethod
    async def open(cls, client: httpx.AsyncClient, url: str, **kwargs) -> "AsyncRemoteFile":
        metadata = await probe_async(client, url)
        return cls(client, metadata, **kwargs)

    @property
    def closed(self) -> bool:
        return self._closed

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def _check_closed(self):
        if self._closed:
            raise ValueError("I/O operation on closed file.")

    # --- network state ---
    def _issue_request(self, offset: int) -> None:
        task = asyncio.ensure_future(self._opener(self._client, self.url, offset))
        self._request = (offset, task)

    async def _await_request(self) -> AsyncChunkStream:
        """Suspend until the in-flight request resolves to a stream."""
        if self._request is None:
            raise InternalStateError("no range request in flight")
        _, task = self._request
        try:
            stream = await asyncio.shield(task)
        finally:
            if task.done():
                self._request = None
        if stream is None:
            raise InternalStateError("range request resolved without a response stream")
        return stream

    async def _drop_request(self) -> None:
        if self._request is None:
            return
        _, task = self._request
        self._request = None
        if not task.done():
            # wait for the cancellation to land so only one request is ever open
            task.cancel()
            await asyncio.wait([task])
        if task.cancelled() or task.exception() is not None:
            return
        stream = task.result()
        if stream is not None:
            await stream.aclose()

    async def _drop_stream(self) -> None:
        stream, self._stream = self._stream, None
        self._leftover = None
        if stream is not None:
            await stream.aclose()

    async def _reset(self) -> None:
        await self._drop_request()
        await self._drop_stream()

    async def _next_chunk(self) -> bytes | None:
        """Next chunk at the cursor, opening a request if none is underway."""
        if self._request is not None and self._request[0] != self._pos:
            await self._drop_request()
        while True:
            try:
                if self._stream is None:
                    if self._request is None:
                        self._issue_request(self._pos)
                    self._stream = await self._await_request()
                try:
                    chunk = await self._stream.next_chunk()
                except RemoteFileError:
                    raise
                except BaseException:
                    # a stream interrupted mid-chunk cannot resume; reopen at the cursor next time
                    await self._drop_stream()
                    raise
            except RemoteFileError as exc:
                await self._drop_stream()
                if not self._retry.consume(exc):
                    raise
                logger.warning("%s, retrying... attempts left: %d", exc, self._retry.remaining)
                continue
            if chunk is not None:
                self._retry.reset()
            return chunk

    # --- read ---
    async def readinto(self, buffer) -> int:
        """Fill up to len(buffer) bytes; 0 means end of data. Short reads happen."""
        self._check_closed()
        if self._seek is not None:
            await self.complete_seek()
        if self._past_end(self._pos):
            return 0
        view = memoryview(buffer).cast("B")
        if len(view) == 0:
            return 0

        chunk, self._leftover = self._leftover, None
        if chunk is None:
            chunk = await self._next_chunk()
            if chunk is None:
                return 0
        return self._deliver(chunk, view)

    async def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            return await self.readall()
        buffer = bytearray(size)
        n = await self.readinto(buffer)
        return bytes(buffer[:n])

    async def readall(self) -> bytes:
        data = bytearray()
        buffer = bytearray(CHUNK_SIZE)
        while n := await self.readinto(buffer):
            data += buffer[:n]
        return bytes(data)

    async def readexactly(self, n: int) -> bytes:
        """Loop over short reads until `n` bytes arrive, like asyncio.StreamReader."""
        if n < 0:
            raise ValueError("readexactly size can not be less than zero")
        data = bytearray()
        buffer = bytearray(min(n, CHUNK_SIZE))
        while len(data) < n:
            got = await self.readinto(memoryview(buffer)[:n - len(data)])
            if got == 0:
                raise asyncio.IncompleteReadError(bytes(data), n)
            data += buffer[:got]
        return bytes(data)

    # --- seek ---
    async def complete_seek(self) -> int:
        """Reconcile a recorded seek with the cursor. Idempotent."""
        self._check_closed()
        target = self._take_seek_target()
        if target is None:
            return self._pos

        if self._past_end(target):
            logger.debug("Seek to %d is at or past end, no request needed", target)
            await self._reset()
            self._pos = target
            self._seek = None
            return self._pos

        if self._request is None or self._request[0] != target:
            await self._reset()
            self._issue_request(target)
        else:
            await self._drop_stream()

        while True:
            try:
                stream = await self._await_request()
                break
            except RemoteFileError as exc:
                if not self._retry.consume(exc):
                    raise
                logger.warning("%s, retrying... attempts left: %d", exc, self._retry.remaining)
                self._issue_request(target)

        self._stream = stream
        self._leftover = None
        self._pos = target
        self._seek = None
        return self._pos

    async def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        self._check_closed()
        self.start_seek(offset, whence)
        return await self.complete_seek()

    # --- teardown ---
    async def aclose(self) -> None:
        """Abort any in-flight request and release the active response."""
        if self._closed:
            return
        self._seek = None
        try:
            await self._reset()
        finally:
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()


async def open_remote_file_async(url: str, client: Optional[httpx.AsyncClient] = None,
                                 **kwargs) -> AsyncRemoteFile:
    """Probe `url` and open an asynchronous remote file on it."""
    return await AsyncRemoteFile.open(client or get_client(), url, **kwargs)
