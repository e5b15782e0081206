"""remotefile - seekable, readable file objects over HTTP range requests."""

import io as _stdio

from .core.model import (                                             # re-export
    Metadata, State, RemoteFileError, ProbeError, TransportError, StatusError,
    InvalidSeekError, InternalStateError, RangeNotSupportedError, RangeMismatchError,
)
from .core.retry import DEFAULT_MAX_RETRIES, RetryPolicy, is_transient
from .io import (
    RemoteFile, AsyncRemoteFile, open_remote_file, open_remote_file_async,
    probe, probe_async, close_global_client,
)


async def open_remote(url: str, client=None, **kwargs) -> AsyncRemoteFile:
    """Open `url` as an async file. Uses a shared httpx client unless one is given."""
    return await open_remote_file_async(url, client, **kwargs)


def open_remote_sync(url: str, session=None, *, buffered: bool = False, **kwargs):
    """Open `url` as a raw sync file, or an io.BufferedReader when `buffered`."""
    raw = open_remote_file(url, session, **kwargs)
    if buffered:
        return _stdio.BufferedReader(raw)
    return raw


__all__ = [
    "open_remote", "open_remote_sync",
    "RemoteFile", "AsyncRemoteFile", "Metadata", "State",
    "RemoteFileError", "ProbeError", "TransportError", "StatusError",
    "InvalidSeekError", "InternalStateError", "RangeNotSupportedError", "RangeMismatchError",
    "RetryPolicy", "is_transient", "DEFAULT_MAX_RETRIES",
    "probe", "probe_async", "close_global_client",
]
