import random

import pytest
from werkzeug import Request, Response


class RangeApp:
    """pytest-httpserver handler serving `data` with `bytes=N-` range support.

    Records every request and can inject failures into GET responses.
    """

    def __init__(self, data: bytes):
        self.data = data
        self.calls: list[tuple[str, str | None]] = []
        self.fail_next = 0          # number of GETs to fail
        self.fail_status = 500
        self.send_length = True     # Content-Length on HEAD
        self.honour_ranges = True
        self.shift = 0              # misreport Content-Range start by this much

    @property
    def gets(self) -> list[str | None]:
        return [rng for method, rng in self.calls if method == "GET"]

    def __call__(self, request: Request) -> Response:
        self.calls.append((request.method, request.headers.get("Range")))
        headers = {
            "Accept-Ranges": "bytes",
            "ETag": '"v1"',
            "Content-Type": "application/octet-stream",
        }
        if request.method == "HEAD":
            if self.send_length:
                headers["Content-Length"] = str(len(self.data))
            return Response(status=200, headers=headers)

        if self.fail_next > 0:
            self.fail_next -= 1
            return Response(b"injected failure", status=self.fail_status)

        range_header = request.headers.get("Range")
        if range_header and self.honour_ranges:
            # Parse range header: bytes=start-
            start = int(range_header.replace("bytes=", "").split("-")[0])
            total = len(self.data)
            if start >= total:
                return Response(status=416, headers={"Content-Range": f"bytes */{total}"})
            headers["Content-Range"] = f"bytes {start + self.shift}-{total - 1}/{total}"
            return Response(self.data[start:], status=206, headers=headers)

        return Response(self.data, status=200, headers=headers)


@pytest.fixture
def test_data() -> bytes:
    return random.Random(1234).randbytes(100_000)


@pytest.fixture
def range_app(httpserver, test_data) -> RangeApp:
    app = RangeApp(test_data)
    httpserver.expect_request("/data.bin").respond_with_handler(app)
    return app


@pytest.fixture
def data_url(httpserver, range_app) -> str:
    return httpserver.url_for("/data.bin")
