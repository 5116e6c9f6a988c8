"""Playwright browser session used for rendered x.com pages.

Each detail view is opened in its own browser context (separate page state,
never brought to the foreground) and the context is always closed when the
caller is done with it, even if navigation fails.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from playwright.sync_api import Browser, BrowserContext, Page, Playwright, sync_playwright
from playwright.sync_api import Error as PlaywrightError

from .errors import RenderError

logger = logging.getLogger(__name__)

PAGE_LOAD_TIMEOUT_MS = 30000
VIEWPORT = {"width": 1280, "height": 2000}


def session_cookies(auth_token: str, ct0: str) -> list[dict]:
    cookies = []
    for name, value in (("auth_token", auth_token), ("ct0", ct0)):
        if value:
            cookies.append(
                {
                    "name": name,
                    "value": value,
                    "domain": ".x.com",
                    "path": "/",
                    "secure": True,
                    "httpOnly": name == "auth_token",
                    "sameSite": "Lax",
                }
            )
    return cookies


class BrowserSession:
    """A headless Chromium with the user's x.com session cookies."""

    def __init__(self, auth_token: str = "", ct0: str = "", headless: bool = True):
        self._cookies = session_cookies(auth_token, ct0)
        self.headless = headless
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    def __enter__(self):
        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(headless=self.headless)
        return self

    def __exit__(self, *args):
        self.close()

    def close(self) -> None:
        if self._browser is not None:
            self._browser.close()
            self._browser = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None

    def new_context(self) -> BrowserContext:
        if self._browser is None:
            raise RenderError("Browser session is not started")
        context = self._browser.new_context(viewport=VIEWPORT)
        if self._cookies:
            context.add_cookies(self._cookies)
        return context

    @contextmanager
    def isolated_page(
        self, url: str, timeout_ms: int = PAGE_LOAD_TIMEOUT_MS
    ) -> Iterator[Page]:
        """Open ``url`` in a fresh context and yield the loaded page.

        Navigation failures surface as RenderError. The context is closed on
        the way out in every case.
        """
        context = None
        try:
            context = self.new_context()
            page = context.new_page()
            page.goto(url, wait_until="load", timeout=timeout_ms)
        except PlaywrightError as e:
            if context is not None:
                context.close()
            raise RenderError(f"Failed to open {url}: {e}") from e

        try:
            yield page
        finally:
            try:
                context.close()
            except PlaywrightError as e:
                logger.debug("Error closing context for %s: %s", url, e)
