"""Tests for the x.com web client."""

import threading
import time
from unittest.mock import patch

import httpx
import pytest
import respx

from bookmark_harvester.client import XWebClient, status_url
from bookmark_harvester.errors import FetchError, FetchTimeout

BASE = "https://x.test"
STATUS_URL = f"{BASE}/alice/status/1790000000000000001"


class TricklingStream(httpx.SyncByteStream):
    """A body that keeps sending a byte every 50ms until released."""

    def __init__(self, release: threading.Event):
        self.release = release

    def __iter__(self):
        yield b"<html>"
        while not self.release.wait(0.05):
            yield b"."


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("bookmark_harvester.client.time.sleep") as sleep:
        yield sleep


class TestStatusUrl:
    def test_default_base(self):
        assert (
            status_url("alice", "1790000000000000001", "https://x.com")
            == "https://x.com/alice/status/1790000000000000001"
        )


class TestXWebClient:
    @respx.mock
    def test_fetch_status_page(self):
        route = respx.get(STATUS_URL).mock(
            return_value=httpx.Response(200, text="<html>ok</html>")
        )

        with XWebClient("fake_auth", "fake_ct0", base_url=BASE) as client:
            html = client.fetch_status_page("alice", "1790000000000000001")

        assert html == "<html>ok</html>"
        request = route.calls.last.request
        assert "auth_token=fake_auth" in request.headers["cookie"]
        assert "ct0=fake_ct0" in request.headers["cookie"]
        assert "Mozilla" in request.headers["user-agent"]

    @respx.mock
    def test_retries_then_succeeds(self, no_sleep):
        route = respx.get(STATUS_URL)
        route.side_effect = [
            httpx.Response(500),
            httpx.Response(502),
            httpx.Response(200, text="recovered"),
        ]

        with XWebClient(base_url=BASE) as client:
            assert client.fetch_with_retry(STATUS_URL) == "recovered"

        assert route.call_count == 3
        assert no_sleep.call_count == 2
        no_sleep.assert_called_with(1.5)

    @respx.mock
    def test_gives_up_after_retry_budget(self, no_sleep):
        route = respx.get(STATUS_URL).mock(return_value=httpx.Response(503))

        with XWebClient(base_url=BASE) as client:
            with pytest.raises(FetchError, match="HTTP 503") as exc_info:
                client.fetch_with_retry(STATUS_URL)

        assert exc_info.value.status_code == 503
        assert route.call_count == 3

    @respx.mock
    def test_timeout_raises_fetch_timeout(self):
        route = respx.get(STATUS_URL).mock(side_effect=httpx.ReadTimeout("slow"))

        with XWebClient(base_url=BASE, timeout=10.0) as client:
            with pytest.raises(FetchTimeout, match="Timed out after 10s"):
                client.fetch_with_retry(STATUS_URL)

        assert route.call_count == 3

    @respx.mock
    def test_connection_error(self):
        respx.get(STATUS_URL).mock(side_effect=httpx.ConnectError("refused"))

        with XWebClient(base_url=BASE, max_retries=0) as client:
            with pytest.raises(FetchError, match="Request failed"):
                client.fetch_with_retry(STATUS_URL)

    @respx.mock
    def test_auth_failure(self):
        respx.get(STATUS_URL).mock(return_value=httpx.Response(401))

        with XWebClient("bad", "bad", base_url=BASE, max_retries=0) as client:
            with pytest.raises(FetchError, match="authentication failed"):
                client.fetch_status_page("alice", "1790000000000000001")

    @respx.mock
    def test_rate_limit_message(self):
        respx.get(STATUS_URL).mock(return_value=httpx.Response(429))

        with XWebClient(base_url=BASE, max_retries=0) as client:
            with pytest.raises(FetchError, match="rate limited") as exc_info:
                client.fetch_status_page("alice", "1790000000000000001")

        assert exc_info.value.status_code == 429

    @respx.mock
    def test_slow_body_hits_total_timeout(self):
        release = threading.Event()
        route = respx.get(STATUS_URL).mock(
            side_effect=lambda request: httpx.Response(200, stream=TricklingStream(release))
        )

        with XWebClient(base_url=BASE, timeout=0.3, max_retries=0) as client:
            started = time.monotonic()
            try:
                with pytest.raises(FetchTimeout, match="Timed out"):
                    client.fetch_with_retry(STATUS_URL)
                elapsed = time.monotonic() - started
            finally:
                release.set()

        assert elapsed < 1.5
        assert route.call_count == 1

    @respx.mock
    def test_slow_body_is_retried(self, no_sleep):
        release = threading.Event()
        route = respx.get(STATUS_URL)
        route.side_effect = [
            httpx.Response(200, stream=TricklingStream(release)),
            httpx.Response(200, text="fast"),
        ]

        with XWebClient(base_url=BASE, timeout=0.3, max_retries=1) as client:
            try:
                assert client.fetch_with_retry(STATUS_URL) == "fast"
            finally:
                release.set()

        assert route.call_count == 2
        no_sleep.assert_called_once_with(1.5)
