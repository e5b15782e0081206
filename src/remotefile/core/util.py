from __future__ import annotations
import io
import operator
import re
from typing import Mapping

from .model import InvalidSeekError, Metadata, RangeMismatchError, RangeNotSupportedError

MAX_OFFSET = 2**63 - 1  # largest offset a seek may resolve to

_CONTENT_RANGE_RE = re.compile(r"^\s*bytes\s+(\d+)-(\d+)/(\d+|\*)\s*$", re.IGNORECASE)


def resolve_seek(offset: int, whence: int, position: int, content_length: int | None) -> int:
    """Turn a (offset, whence) pair into an absolute offset or raise InvalidSeekError."""
    offset = operator.index(offset)
    if whence == io.SEEK_SET:
        target = offset
    elif whence == io.SEEK_CUR:
        target = position + offset
    elif whence == io.SEEK_END:
        if content_length is None:
            raise InvalidSeekError("cannot seek from end without known content length")
        target = content_length + offset
    else:
        raise InvalidSeekError(f"invalid whence ({whence}, should be 0, 1 or 2)")

    if target < 0:
        raise InvalidSeekError(f"negative seek position {target}")
    if target > MAX_OFFSET:
        raise InvalidSeekError(f"seek position {target} is not representable")
    if content_length is not None and target > content_length:
        raise InvalidSeekError(f"invalid seek beyond end ({target} > {content_length})")
    return target


def parse_content_length(value: str | None) -> int | None:
    """Return a positive length, or None when absent or invalid."""
    if not value:
        return None
    try:
        length = int(value.strip())
    except ValueError:
        return None
    return length if length > 0 else None


def metadata_from_headers(url: str, headers: Mapping[str, str]) -> Metadata:
    return Metadata(
        url=url,
        content_length=parse_content_length(headers.get("content-length")),
        etag=headers.get("etag") or None,
        mime=headers.get("content-type") or None,
    )


def parse_content_range_start(value: str | None) -> int | None:
    """First byte of a `bytes a-b/n` Content-Range value, None if unparsable."""
    if not value:
        return None
    m = _CONTENT_RANGE_RE.match(value)
    return int(m.group(1)) if m else None


def check_range_response(status_code: int, headers: Mapping[str, str], offset: int) -> None:
    """Fail fast when a successful response does not start at `offset`."""
    if status_code == 206:
        start = parse_content_range_start(headers.get("content-range"))
        if start is not None and start != offset:
            raise RangeMismatchError(f"requested bytes from {offset}, server sent from {start}")
    elif status_code == 200 and offset > 0:
        raise RangeNotSupportedError(f"server ignored Range request at offset {offset}")
