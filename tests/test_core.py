import io

import pytest

from remotefile.core.model import (
    InvalidSeekError, Metadata, ProbeError, RangeMismatchError, RangeNotSupportedError,
    RemoteFileError, StatusError, TransportError,
)
from remotefile.core.retry import DEFAULT_MAX_RETRIES, RetryPolicy, is_transient
from remotefile.core.util import (
    MAX_OFFSET, check_range_response, metadata_from_headers, parse_content_length,
    parse_content_range_start, resolve_seek,
)


class TestResolveSeek:
    """Test seek target resolution."""

    def test_from_start(self):
        assert resolve_seek(10, io.SEEK_SET, 0, 100) == 10

    def test_from_current(self):
        assert resolve_seek(5, io.SEEK_CUR, 20, 100) == 25
        assert resolve_seek(-20, io.SEEK_CUR, 20, 100) == 0

    def test_from_end(self):
        assert resolve_seek(0, io.SEEK_END, 7, 100) == 100
        assert resolve_seek(-10, io.SEEK_END, 7, 100) == 90

    def test_end_relative_matches_absolute(self):
        assert resolve_seek(0, io.SEEK_END, 0, 100) == resolve_seek(100, io.SEEK_SET, 0, 100)

    def test_exactly_at_length_allowed(self):
        assert resolve_seek(100, io.SEEK_SET, 0, 100) == 100

    def test_beyond_length_rejected(self):
        with pytest.raises(InvalidSeekError):
            resolve_seek(101, io.SEEK_SET, 0, 100)
        with pytest.raises(InvalidSeekError):
            resolve_seek(1, io.SEEK_END, 0, 100)

    def test_negative_rejected(self):
        with pytest.raises(InvalidSeekError):
            resolve_seek(-1, io.SEEK_SET, 0, 100)
        with pytest.raises(InvalidSeekError):
            resolve_seek(-11, io.SEEK_CUR, 10, None)

    def test_unrepresentable_rejected(self):
        with pytest.raises(InvalidSeekError):
            resolve_seek(MAX_OFFSET + 1, io.SEEK_SET, 0, None)
        with pytest.raises(InvalidSeekError):
            resolve_seek(MAX_OFFSET, io.SEEK_CUR, 1, None)

    def test_end_needs_known_length(self):
        with pytest.raises(InvalidSeekError, match="content length"):
            resolve_seek(0, io.SEEK_END, 0, None)

    def test_unknown_length_is_unbounded(self):
        assert resolve_seek(10**12, io.SEEK_SET, 0, None) == 10**12

    def test_bad_whence(self):
        with pytest.raises(InvalidSeekError):
            resolve_seek(0, 3, 0, 100)

    def test_invalid_seek_is_value_and_os_error(self):
        with pytest.raises(ValueError):
            resolve_seek(-1, io.SEEK_SET, 0, None)
        with pytest.raises(OSError):
            resolve_seek(-1, io.SEEK_SET, 0, None)

    def test_non_integer_offset(self):
        with pytest.raises(TypeError):
            resolve_seek(1.5, io.SEEK_SET, 0, None)


class TestHeaders:
    """Test header parsing helpers."""

    @pytest.mark.parametrize("value,expected", [
        ("1000", 1000), (" 42 ", 42), ("0", None), ("-5", None), ("abc", None), ("", None), (None, None),
    ])
    def test_parse_content_length(self, value, expected):
        assert parse_content_length(value) == expected

    def test_metadata_from_headers(self):
        meta = metadata_from_headers("http://host/f", {
            "content-length": "12", "etag": '"abc"', "content-type": "image/png",
        })
        assert meta == Metadata(url="http://host/f", content_length=12, etag='"abc"', mime="image/png")

    def test_metadata_all_optional(self):
        meta = metadata_from_headers("http://host/f", {})
        assert meta.content_length is None
        assert meta.etag is None
        assert meta.mime is None

    def test_parse_content_range_start(self):
        assert parse_content_range_start("bytes 10-99/100") == 10
        assert parse_content_range_start("bytes 0-9/*") == 0
        assert parse_content_range_start("bytes */100") is None
        assert parse_content_range_start(None) is None


class TestRangeConfirmation:
    """Test validation of range responses."""

    def test_partial_content_matching_start(self):
        check_range_response(206, {"content-range": "bytes 50-99/100"}, 50)

    def test_partial_content_without_header_trusted(self):
        check_range_response(206, {}, 50)

    def test_partial_content_wrong_start(self):
        with pytest.raises(RangeMismatchError):
            check_range_response(206, {"content-range": "bytes 0-99/100"}, 50)

    def test_full_body_at_zero_ok(self):
        check_range_response(200, {}, 0)

    def test_full_body_at_offset_rejected(self):
        with pytest.raises(RangeNotSupportedError):
            check_range_response(200, {}, 10)


class TestRetryPolicy:
    """Test transient classification and budget accounting."""

    def test_transient_classification(self):
        assert is_transient(TransportError("slow", timeout=True))
        assert is_transient(StatusError(500))
        assert is_transient(StatusError(503))
        assert not is_transient(TransportError("connection reset"))
        assert not is_transient(StatusError(404))
        assert not is_transient(StatusError(416))
        assert not is_transient(ProbeError("nope"))
        assert not is_transient(ValueError("x"))

    def test_budget_bounded(self):
        policy = RetryPolicy()
        assert policy.remaining == DEFAULT_MAX_RETRIES == 3
        err = StatusError(502)
        assert [policy.consume(err) for _ in range(4)] == [True, True, True, False]
        assert policy.remaining == 0

    def test_fatal_does_not_spend_budget(self):
        policy = RetryPolicy()
        assert not policy.consume(StatusError(403))
        assert policy.remaining == 3

    def test_reset(self):
        policy = RetryPolicy(max_retries=2)
        policy.consume(StatusError(500))
        policy.reset()
        assert policy.remaining == 2

    def test_zero_budget(self):
        assert not RetryPolicy(max_retries=0).consume(StatusError(500))

    def test_negative_budget_rejected(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=-1)


class TestErrors:
    """Test the error taxonomy."""

    def test_hierarchy(self):
        for exc in (ProbeError("x"), TransportError("x"), StatusError(500), InvalidSeekError("x")):
            assert isinstance(exc, RemoteFileError)
            assert isinstance(exc, IOError)

    def test_status_error_message(self):
        err = StatusError(503)
        assert err.status_code == 503
        assert err.is_server_error
        assert "503" in str(err)

    def test_head_error_status(self):
        assert ProbeError("gone", status_code=404).status_code == 404
