"""Fetch the full text of long-form article posts.

Article bodies are rendered client-side, so the detail view is opened in an
isolated browser context, given time to settle, and the rendered document is
scraped:

- title: the link-preview card's layout title, else a directional span of
  plausible title length inside the card
- body: the longest post-text block on the page; if that is too short, the
  page's long paragraph-like blocks; if still too short, the long lines of
  the main column
"""

import logging
import math
import re

from playwright.sync_api import Error as PlaywrightError

from .browser import PAGE_LOAD_TIMEOUT_MS, BrowserSession
from .client import status_url
from .errors import RenderError
from .extractor import POST_SELECTOR, POST_TEXT_SELECTOR, parse_html
from .models import ArticleFetchResult

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 200
SETTLE_MS = 4000

MIN_BODY_LENGTH = 50
MIN_FALLBACK_LENGTH = 100
MIN_BLOCK_LENGTH = 50
MAX_COLUMN_LINES = 20

CARD_SELECTOR = '[data-testid="card.wrapper"]'
CARD_TITLE_SELECTOR = '[data-testid^="card.layout"]'
PARAGRAPH_SELECTOR = '[dir="auto"] > span, p[dir="auto"]'
MAIN_COLUMN_SELECTOR = '[data-testid="primaryColumn"]'


def estimate_read_time(content: str | None) -> int | None:
    """Minutes to read ``content`` at 200 words per minute, None when empty."""
    if not content:
        return None
    minutes = math.ceil(len(content.split()) / WORDS_PER_MINUTE)
    return minutes if minutes > 0 else None


def extract_article(html: str) -> tuple[str | None, str | None]:
    """Return (body, title) scraped from a rendered article detail page."""
    soup = parse_html(html)

    main_post = soup.select_one(POST_SELECTOR)
    if main_post is None:
        logger.debug("No post element on article page")
        return None, None

    title = None
    card = main_post.select_one(CARD_SELECTOR)
    if card is not None:
        card_title = card.select_one(CARD_TITLE_SELECTOR)
        if card_title is not None:
            title = card_title.get_text().strip() or None
        span = card.select_one('span[dir="ltr"]')
        if title is None and span is not None:
            text = span.get_text().strip()
            if 10 < len(text) < 200:
                title = text

    texts = [el.get_text().strip() for el in soup.select(POST_TEXT_SELECTOR)]
    texts = [t for t in texts if t]
    content = max(texts, key=len) if texts else ""

    if len(content) < MIN_BODY_LENGTH:
        paragraphs: list[str] = []
        for el in soup.select(PARAGRAPH_SELECTOR):
            text = el.get_text().strip()
            if (
                len(text) > MIN_BLOCK_LENGTH
                and "keyboard shortcuts" not in text
                and not text.startswith("@")
                and text not in paragraphs
            ):
                paragraphs.append(text)
        if paragraphs:
            content = "\n\n".join(paragraphs)

    if len(content) < MIN_FALLBACK_LENGTH:
        column = soup.select_one(MAIN_COLUMN_SELECTOR)
        if column is not None:
            lines = [line.strip() for line in column.get_text("\n").split("\n")]
            lines = [
                line
                for line in lines
                if len(line) > MIN_BLOCK_LENGTH
                and "keyboard" not in line
                and not line.startswith("©")
            ]
            if lines:
                content = "\n\n".join(lines[:MAX_COLUMN_LINES])

    content = re.sub(r"\n{3,}", "\n\n", content).strip()
    return content or None, title


class ArticleFetcher:
    """Render article detail pages one at a time and scrape their text."""

    def __init__(
        self,
        session: BrowserSession,
        settle_ms: int = SETTLE_MS,
        load_timeout_ms: int = PAGE_LOAD_TIMEOUT_MS,
    ):
        self.session = session
        self.settle_ms = settle_ms
        self.load_timeout_ms = load_timeout_ms

    def fetch(self, author_handle: str, post_id: str) -> ArticleFetchResult:
        url = status_url(author_handle, post_id)
        try:
            with self.session.isolated_page(url, self.load_timeout_ms) as page:
                page.wait_for_timeout(self.settle_ms)
                html = page.content()
            content, title = extract_article(html)
        except (RenderError, PlaywrightError) as e:
            logger.warning("Article fetch failed for %s: %s", post_id, e)
            return ArticleFetchResult(error=str(e))
        except Exception as e:
            logger.warning("Article scrape failed for %s: %r", post_id, e)
            return ArticleFetchResult(error=str(e) or type(e).__name__)

        if content is None:
            return ArticleFetchResult(title=title, error="Failed to scrape article content")

        return ArticleFetchResult(
            content=content,
            title=title,
            estimated_read_time=estimate_read_time(content),
        )

    __call__ = fetch
