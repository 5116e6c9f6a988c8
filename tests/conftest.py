"""Shared test fixtures."""

from pathlib import Path

import pytest

from bookmark_harvester.models import (
    ArticleFetchStatus,
    Category,
    LocalBookmark,
    SyncStatus,
)

FIXTURES_DIR = Path(__file__).parent / "fixtures"

CAPTURED_AT = "2025-02-11T08:00:00+00:00"


@pytest.fixture
def timeline_html() -> str:
    """A rendered bookmarks timeline with one post of each kind."""
    return (FIXTURES_DIR / "timeline.html").read_text(encoding="utf-8")


@pytest.fixture
def thread_page_html() -> str:
    """A post detail page carrying the conversation in __NEXT_DATA__."""
    return (FIXTURES_DIR / "thread_page.html").read_text(encoding="utf-8")


def _bookmark(post_id: str, **overrides) -> LocalBookmark:
    values = {
        "local_id": LocalBookmark.local_id_for(post_id),
        "post_id": post_id,
        "author_handle": "alice",
        "author_name": "Alice Example",
        "bookmarked_at": CAPTURED_AT,
    }
    values.update(overrides)
    return LocalBookmark(**values)


@pytest.fixture
def make_bookmark():
    """Factory for LocalBookmark records with sensible defaults."""
    return _bookmark


@pytest.fixture
def sample_bookmarks() -> list[LocalBookmark]:
    """A small collection covering every category."""
    return [
        _bookmark(
            "1790000000000000001",
            content="1/5 A thread about scraping",
            external_urls=["https://example.com/article"],
            created_at="2025-02-10T18:30:00.000Z",
        ),
        _bookmark(
            "1790000000000000002",
            author_handle="bob",
            author_name="Bob",
            content="Check out this chart",
            media_urls=["https://pbs.twimg.com/media/chart1.jpg"],
            category=Category.MEDIA,
            sync_status=SyncStatus.SYNCED,
        ),
        _bookmark(
            "1790000000000000003",
            author_handle="carol",
            author_name="Carol",
            is_article=True,
            article_title="How I Built a $10M Business",
            category=Category.ARTICLE,
            article_fetch_status=ArticleFetchStatus.PENDING,
        ),
    ]
