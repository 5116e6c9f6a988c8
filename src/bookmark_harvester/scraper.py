"""Scrape every rendered post on the bookmarks timeline.

A scrape is two passes over a live Playwright page:

1. click every "Show more" control so truncated post text is expanded,
2. parse the rendered document and run the post extractor on each post
   element in DOM order, keeping the first occurrence of each post id.

``TimelineWatcher`` re-runs the scrape when the timeline container stops
mutating (new posts loaded by scrolling, for example).
"""

import logging
import time
from typing import Callable

from bs4 import BeautifulSoup
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page

from .diagnostics import NULL_OBSERVER
from .extractor import POST_SELECTOR, extract_post, parse_html
from .models import ExtractedPost

logger = logging.getLogger(__name__)

BOOKMARKS_URL = "https://x.com/i/bookmarks"
SHOW_MORE_SELECTOR = '[data-testid="tweet-text-show-more-link"]'
TIMELINE_SELECTOR = '[data-testid="primaryColumn"]'

# Timing, in milliseconds
SHOW_MORE_PACING_MS = 100
SHOW_MORE_SETTLE_MS = 300
MUTATION_SETTLE_MS = 1000
WATCH_POLL_MS = 250

SHOW_MORE_SPAN_SELECTOR = f'{POST_SELECTOR} span:text-is("Show more")'

_MUTATION_BINDING = "__bookmarkHarvesterMutation"
_OBSERVER_SCRIPT = """
(args) => {
  const [selector, binding] = args;
  const start = () => {
    const timeline = document.querySelector(selector);
    if (!timeline) {
      setTimeout(start, 1000);
      return;
    }
    new MutationObserver(() => window[binding]()).observe(timeline, {
      childList: true,
      subtree: true,
    });
  };
  start();
}
"""


def scrape_document(document: str | BeautifulSoup, observer=NULL_OBSERVER) -> list[ExtractedPost]:
    """Extract all posts from a rendered document, first occurrence per id wins."""
    soup = parse_html(document) if isinstance(document, str) else document

    posts: list[ExtractedPost] = []
    seen_ids: set[str] = set()
    elements = soup.select(POST_SELECTOR)
    for element in elements:
        post = extract_post(element)
        if post is None:
            observer.event("scrape.skip_element")
            continue
        if post.post_id in seen_ids:
            observer.event("scrape.duplicate", post_id=post.post_id)
            continue
        seen_ids.add(post.post_id)
        posts.append(post)

    logger.debug(
        "Extracted %d posts from %d post elements", len(posts), len(elements)
    )
    return posts


def expand_truncated_posts(
    page: Page,
    pacing_ms: int = SHOW_MORE_PACING_MS,
    settle_ms: int = SHOW_MORE_SETTLE_MS,
) -> int:
    """Click every "Show more" control on the page, one at a time.

    Element handles are collected up front; a clicked control is removed from
    the page, so positional locators would drift onto the next one.

    Returns the number of controls clicked.
    """
    controls = page.query_selector_all(SHOW_MORE_SELECTOR)
    controls += page.query_selector_all(SHOW_MORE_SPAN_SELECTOR)

    clicked = 0
    for control in controls:
        try:
            control.click()
            clicked += 1
        except PlaywrightError as e:
            logger.debug("Failed to expand truncated post: %s", e)
        page.wait_for_timeout(pacing_ms)

    if controls:
        page.wait_for_timeout(settle_ms)
    return clicked


class TimelineScraper:
    """Scrape the posts currently rendered on a Playwright page."""

    def __init__(self, page: Page, observer=NULL_OBSERVER):
        self.page = page
        self._observer = observer

    def open(self, url: str = BOOKMARKS_URL, timeout_ms: int = 30000) -> None:
        self.page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        self.page.wait_for_selector(POST_SELECTOR, timeout=timeout_ms)

    def scrape(self) -> list[ExtractedPost]:
        expanded = expand_truncated_posts(self.page)
        if expanded:
            logger.debug("Expanded %d truncated posts", expanded)
        posts = scrape_document(self.page.content(), self._observer)
        self._observer.event("scrape.done", count=len(posts), expanded=expanded)
        return posts


class TimelineWatcher:
    """Re-scrape the timeline whenever its markup settles after a change.

    Mutations under the timeline container are reported from the page through
    an exposed binding. A scrape runs once the page has been quiet for
    ``settle_ms``; further mutations during that window push it back.
    """

    def __init__(
        self,
        scraper: TimelineScraper,
        on_posts: Callable[[list[ExtractedPost]], None],
        settle_ms: int = MUTATION_SETTLE_MS,
        poll_ms: int = WATCH_POLL_MS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.scraper = scraper
        self.on_posts = on_posts
        self.settle_ms = settle_ms
        self.poll_ms = poll_ms
        self._clock = clock
        self._last_mutation: float | None = None
        self._installed = False
        self.scrape_count = 0

    def notify_mutation(self) -> None:
        self._last_mutation = self._clock()

    def install(self) -> None:
        page = self.scraper.page
        page.expose_function(_MUTATION_BINDING, self.notify_mutation)
        page.evaluate(_OBSERVER_SCRIPT, [TIMELINE_SELECTOR, _MUTATION_BINDING])
        self._installed = True

    def settled(self) -> bool:
        if self._last_mutation is None:
            return False
        return (self._clock() - self._last_mutation) * 1000 >= self.settle_ms

    def run_once(self) -> None:
        posts = self.scraper.scrape()
        # drop mutations caused by the scrape's own "Show more" clicks
        self._last_mutation = None
        self.scrape_count += 1
        self.on_posts(posts)

    def watch(self, duration_s: float) -> int:
        """Scrape now, then after every settled burst of mutations.

        Returns the number of scrapes performed.
        """
        if not self._installed:
            self.install()
        self.run_once()

        deadline = self._clock() + duration_s
        while self._clock() < deadline:
            self.scraper.page.wait_for_timeout(self.poll_ms)
            if self.settled():
                logger.info("Timeline changed, re-scraping")
                self.run_once()
        return self.scrape_count
