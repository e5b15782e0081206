"""Transport layer for remotefile - HEAD probes and streamed range requests."""

# Re-export these for import convenience
from .base import ChunkStream, AsyncChunkStream, RangeNotSupportedError, RangeMismatchError
from .http_sync import RemoteFile, RangeStream, get_session, open_from, open_remote_file, probe
from .http_async import (
    AsyncRemoteFile, AsyncRangeStream, close_global_client, get_client, open_from_async,
    open_remote_file_async, probe_async,
)
