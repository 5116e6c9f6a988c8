"""Tests for article content fetching."""

from contextlib import contextmanager
from unittest.mock import MagicMock

import pytest
from playwright.sync_api import Error as PlaywrightError

from bookmark_harvester.articles import ArticleFetcher, estimate_read_time, extract_article
from bookmark_harvester.errors import RenderError

LONG_BODY = " ".join(["word"] * 450)


def _page_html(inner: str, column_extra: str = "") -> str:
    return (
        '<html><body><div data-testid="primaryColumn">'
        f'<article data-testid="tweet">{inner}</article>{column_extra}'
        "</div></body></html>"
    )


class FakeSession:
    """Stands in for BrowserSession; records how many pages were closed."""

    def __init__(self, html=None, error=None):
        self.html = html
        self.error = error
        self.opened = []
        self.closed = 0

    @contextmanager
    def isolated_page(self, url, timeout_ms):
        self.opened.append(url)
        if self.error is not None:
            raise self.error
        page = MagicMock()
        page.content.return_value = self.html
        try:
            yield page
        finally:
            self.closed += 1


class TestEstimateReadTime:
    @pytest.mark.parametrize(
        "content, expected",
        [
            (None, None),
            ("", None),
            ("one", 1),
            (" ".join(["w"] * 200), 1),
            (" ".join(["w"] * 201), 2),
            (LONG_BODY, 3),
        ],
    )
    def test_minutes(self, content, expected):
        assert estimate_read_time(content) == expected


class TestExtractArticle:
    def test_no_post_element(self):
        assert extract_article("<html><body>Sign in</body></html>") == (None, None)

    def test_longest_post_text(self):
        html = _page_html(
            '<div data-testid="tweetText">short</div>'
            f'<div data-testid="tweetText">{LONG_BODY}</div>'
        )
        content, title = extract_article(html)
        assert content == LONG_BODY
        assert title is None

    def test_card_layout_title(self):
        html = _page_html(
            '<div data-testid="card.wrapper">'
            '<div data-testid="card.layoutLarge.detail"><span>Shipping Faster</span></div>'
            "</div>"
            f'<div data-testid="tweetText">{LONG_BODY}</div>'
        )
        assert extract_article(html)[1] == "Shipping Faster"

    def test_card_directional_title(self):
        html = _page_html(
            '<div data-testid="card.wrapper"><span dir="ltr">How I Built a $10M Business</span></div>'
            f'<div data-testid="tweetText">{LONG_BODY}</div>'
        )
        assert extract_article(html)[1] == "How I Built a $10M Business"

    def test_paragraph_fallback(self):
        first = "The first paragraph of the article is long enough to count here."
        second = "The second paragraph also clears the minimum block length easily."
        html = _page_html(
            '<div data-testid="tweetText">Read this</div>'
            f'<div dir="auto"><span>{first}</span></div>'
            f'<p dir="auto">{second}</p>'
            f'<p dir="auto">{second}</p>'
            '<div dir="auto"><span>@someone wrote something long enough to be a block of text</span></div>'
        )
        content, _ = extract_article(html)
        assert content == f"{first}\n\n{second}"

    def test_main_column_fallback(self):
        line = "A line of the main column that is comfortably longer than fifty chars."
        lines = "".join(f"<div>{line} {i}</div>" for i in range(25))
        html = _page_html(
            '<div data-testid="tweetText">Tiny</div>',
            column_extra=f"<section>{lines}<div>View keyboard shortcuts and a long footer line here</div></section>",
        )
        content, _ = extract_article(html)
        parts = content.split("\n\n")
        assert len(parts) == 20
        assert parts[0] == f"{line} 0"
        assert not any("keyboard" in p for p in parts)

    def test_collapses_blank_runs(self):
        body = "First part of the body that is long enough.\n\n\n\nSecond part that keeps it going."
        html = _page_html(f'<div data-testid="tweetText">{body}</div>')
        content, _ = extract_article(html)
        assert content == (
            "First part of the body that is long enough.\n\nSecond part that keeps it going."
        )


class TestArticleFetcher:
    def test_fetch(self):
        session = FakeSession(html=_page_html(f'<div data-testid="tweetText">{LONG_BODY}</div>'))

        result = ArticleFetcher(session, settle_ms=0)("carol", "1790000000000000003")

        assert result.error is None
        assert result.content == LONG_BODY
        assert result.estimated_read_time == 3
        assert session.opened == ["https://x.com/carol/status/1790000000000000003"]
        assert session.closed == 1

    def test_no_content_is_error(self):
        session = FakeSession(html="<html><body></body></html>")

        result = ArticleFetcher(session, settle_ms=0).fetch("carol", "1")

        assert result.content is None
        assert result.error == "Failed to scrape article content"
        assert session.closed == 1

    def test_render_error(self):
        session = FakeSession(error=RenderError("Failed to open page"))

        result = ArticleFetcher(session).fetch("carol", "1")

        assert result.error == "Failed to open page"
        assert result.content is None

    def test_playwright_error_inside_page(self):
        session = FakeSession(html="")
        fetcher = ArticleFetcher(session, settle_ms=0)

        original = session.isolated_page

        @contextmanager
        def failing_page(url, timeout_ms):
            with original(url, timeout_ms) as page:
                page.wait_for_timeout.side_effect = PlaywrightError("Target closed")
                yield page

        session.isolated_page = failing_page
        result = fetcher.fetch("carol", "1")

        assert "Target closed" in result.error
        assert session.closed == 1
