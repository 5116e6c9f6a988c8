"""HTTP client for x.com post detail pages.

Authentication uses the web session cookies (auth_token + ct0), the same way
a logged-in browser tab does, so the detail page comes back with the
embedded page state that the thread reconstructor parses.

Each request is bounded by a total timeout and retried a fixed number of
times with a fixed backoff. The base URL can be overridden with the
BOOKMARK_HARVESTER_BASE_URL environment variable.
"""

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout

import httpx

from .errors import FetchError, FetchTimeout

logger = logging.getLogger(__name__)

BASE_URL = os.environ.get("BOOKMARK_HARVESTER_BASE_URL", "https://x.com")

REQUEST_TIMEOUT = 10.0
MAX_RETRIES = 2
RETRY_DELAY = 1.5

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)


def status_url(author_handle: str, post_id: str, base_url: str = BASE_URL) -> str:
    return f"{base_url}/{author_handle}/status/{post_id}"


class XWebClient:
    """Fetch x.com documents with cookie auth and browser-like headers."""

    def __init__(
        self,
        auth_token: str = "",
        ct0: str = "",
        timeout: float = REQUEST_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
        base_url: str = BASE_URL,
    ):
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.base_url = base_url
        cookies = {}
        if auth_token:
            cookies["auth_token"] = auth_token
        if ct0:
            cookies["ct0"] = ct0
        self._client = httpx.Client(
            headers={
                "Accept": (
                    "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
                ),
                "Accept-Language": "en-US,en;q=0.5",
                "User-Agent": USER_AGENT,
            },
            cookies=cookies,
            timeout=timeout,
            follow_redirects=True,
        )
        # abandoned reads keep a worker until their next chunk or read timeout
        self._executor = ThreadPoolExecutor(
            max_workers=max_retries + 1, thread_name_prefix="xweb-fetch"
        )

    def fetch_status_page(self, author_handle: str, post_id: str) -> str:
        """Fetch the detail page of one post and return its HTML."""
        return self.fetch_with_retry(status_url(author_handle, post_id, self.base_url))

    def fetch_with_retry(self, url: str) -> str:
        """GET ``url``, retrying timeouts and failures up to the retry budget.

        Raises the last FetchError once every attempt has failed.
        """
        attempt = 0
        while True:
            try:
                return self._get(url)
            except FetchError as e:
                if attempt >= self.max_retries:
                    logger.warning(
                        "Giving up on %s after %d attempts: %s", url, attempt + 1, e
                    )
                    raise
                attempt += 1
                logger.debug(
                    "Request to %s failed (%s), retry %d/%d in %.1fs",
                    url,
                    e,
                    attempt,
                    self.max_retries,
                    self.retry_delay,
                )
                time.sleep(self.retry_delay)

    def _get(self, url: str) -> str:
        """GET ``url`` within ``timeout`` seconds in total.

        httpx applies its timeout to each connect and read, so a server that
        keeps trickling bytes never trips it. The read runs on a worker thread
        and is abandoned once the overall deadline passes.
        """
        cancelled = threading.Event()
        future = self._executor.submit(self._read, url, cancelled)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeout as e:
            cancelled.set()
            raise FetchTimeout(f"Timed out after {self.timeout:.0f}s") from e

    def _read(self, url: str, cancelled: threading.Event) -> str:
        try:
            with self._client.stream("GET", url) as response:
                self._check_status(response)
                body = bytearray()
                for chunk in response.iter_bytes():
                    if cancelled.is_set():
                        raise FetchTimeout(f"Timed out after {self.timeout:.0f}s")
                    body += chunk
                return body.decode(response.encoding or "utf-8", errors="replace")
        except httpx.TimeoutException as e:
            raise FetchTimeout(f"Timed out after {self.timeout:.0f}s") from e
        except httpx.HTTPError as e:
            raise FetchError(f"Request failed: {e}") from e

    def _check_status(self, response: httpx.Response) -> None:
        if response.status_code == 429:
            reset_time = response.headers.get("x-rate-limit-reset")
            wait_msg = ""
            if reset_time:
                wait_seconds = int(reset_time) - int(time.time())
                if wait_seconds > 0:
                    wait_msg = f" Retry in {wait_seconds}s."
            raise FetchError(f"HTTP 429: rate limited.{wait_msg}", status_code=429)

        if response.status_code in (401, 403):
            raise FetchError(
                f"HTTP {response.status_code}: authentication failed. Your session "
                "cookies may be expired; run `setup` again.",
                status_code=response.status_code,
            )

        if not response.is_success:
            raise FetchError(
                f"HTTP {response.status_code}", status_code=response.status_code
            )

    def close(self) -> None:
        self._client.close()
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
