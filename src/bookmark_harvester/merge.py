"""Fold scraped and expanded records into a bookmark collection.

The collection is a plain list of LocalBookmark owned by the caller for the
duration of a call; entries are updated in place and new entries appended.
Identity is the post id: no function here ever leaves two entries with the
same ``post_id`` in the list it returns.

Thread and article expansion go upstream one candidate at a time with a
fixed pause between candidates. A failing candidate is recorded in the
report and never stops the rest of the batch.
"""

import logging
import time
from typing import Callable

from .categorizer import Discovery, discoveries, transition
from .diagnostics import NULL_OBSERVER
from .errors import HarvesterError
from .models import (
    ArticleFetchResult,
    ArticleFetchStatus,
    ExpansionReport,
    ExtractedPost,
    LocalBookmark,
    SyncStatus,
    ThreadFetchResult,
    utc_now_iso,
)
from .threads import is_thread_candidate

logger = logging.getLogger(__name__)

REQUEST_DELAY = 1.5

ThreadFetch = Callable[[str, str], ThreadFetchResult]
ArticleFetch = Callable[[str, str], ArticleFetchResult]
Progress = Callable[[int, int], None]

# Fields refreshed from a re-scrape of an already stored post
_SCRAPED_FIELDS = (
    "author_handle",
    "author_name",
    "author_avatar_url",
    "content",
    "media_urls",
    "external_urls",
    "has_video",
)


def _mark_pending(bookmark: LocalBookmark) -> None:
    bookmark.sync_status = SyncStatus.PENDING
    bookmark.sync_error = None


def _tag_thread_member(bookmark: LocalBookmark, thread_id: str, position: int) -> None:
    before = (bookmark.is_thread, bookmark.thread_id, bookmark.thread_position, bookmark.category)
    bookmark.is_thread = True
    bookmark.thread_id = thread_id
    bookmark.thread_position = position
    bookmark.category = transition(bookmark.category, Discovery.THREAD_EXPANDED)
    if before != (bookmark.is_thread, thread_id, position, bookmark.category):
        _mark_pending(bookmark)


def merge_expansion(
    base: list[LocalBookmark],
    candidate: LocalBookmark,
    result: ThreadFetchResult,
) -> list[LocalBookmark]:
    """Merge one thread expansion into ``base`` and return it.

    Errored results and results with at most one post leave ``base``
    untouched. Otherwise the candidate becomes position 0 of a thread keyed
    by its post id; later posts tag matching entries or are appended as new
    pending bookmarks captured at the candidate's capture time.
    """
    if result.error or len(result.posts) <= 1:
        return base

    thread_id = candidate.post_id
    by_post_id = {b.post_id: b for b in base}

    head = by_post_id.get(candidate.post_id)
    if head is not None:
        _tag_thread_member(head, thread_id, 0)

    for position, post in enumerate(result.posts):
        if position == 0 or post.post_id == candidate.post_id:
            continue
        existing = by_post_id.get(post.post_id)
        if existing is not None:
            _tag_thread_member(existing, thread_id, position)
            continue
        post.position = position
        member = LocalBookmark.from_thread_post(
            post, thread_id=thread_id, bookmarked_at=candidate.bookmarked_at
        )
        base.append(member)
        by_post_id[member.post_id] = member

    return base


def expand_threads(
    bookmarks: list[LocalBookmark],
    fetch_thread: ThreadFetch,
    on_progress: Progress | None = None,
    delay: float = REQUEST_DELAY,
    observer=NULL_OBSERVER,
) -> ExpansionReport:
    """Reconstruct every thread candidate in ``bookmarks``, in input order.

    Returns a report holding the merged collection (a new list; entries are
    shared with the input and updated in place) and the (post_id, error)
    pairs of candidates that could not be expanded.
    """
    candidates = [b for b in bookmarks if is_thread_candidate(b)]
    expanded = list(bookmarks)
    report = ExpansionReport(bookmarks=expanded)
    if not candidates:
        return report

    logger.info("Found %d potential threads to expand", len(candidates))
    total = len(candidates)

    fetched_any = False
    for processed, candidate in enumerate(candidates, start=1):
        if is_thread_candidate(candidate):
            if fetched_any and delay > 0:
                time.sleep(delay)
            fetched_any = True
            result = _fetch_thread(fetch_thread, candidate)
            if result.error:
                report.failures.append((candidate.post_id, result.error))
            elif len(result.posts) > 1:
                logger.info(
                    "Found %d posts in thread %s", len(result.posts), candidate.post_id
                )
            merge_expansion(expanded, candidate, result)
            observer.event(
                "merge.thread",
                post_id=candidate.post_id,
                posts=len(result.posts),
                error=result.error,
            )
        else:
            # Tagged as a member of a thread expanded earlier in this batch
            observer.event("merge.thread_skipped", post_id=candidate.post_id)

        report.processed = processed
        if on_progress is not None:
            on_progress(processed, total)

    return report


def _fetch_thread(fetch_thread: ThreadFetch, candidate: LocalBookmark) -> ThreadFetchResult:
    try:
        return fetch_thread(candidate.author_handle, candidate.post_id)
    except HarvesterError as e:
        return ThreadFetchResult(original_post_id=candidate.post_id, error=str(e))


def apply_article(bookmark: LocalBookmark, result: ArticleFetchResult) -> bool:
    """Record an article fetch on ``bookmark``; True when content was stored.

    A record whose article fields change goes back to ``pending``.
    """
    before = (
        bookmark.article_content,
        bookmark.article_title,
        bookmark.estimated_read_time,
        bookmark.article_fetch_status,
    )
    if result.content:
        bookmark.article_content = result.content
        bookmark.article_title = result.title or bookmark.article_title
        bookmark.estimated_read_time = result.estimated_read_time
        bookmark.article_fetch_status = ArticleFetchStatus.FETCHED
    else:
        bookmark.article_fetch_status = ArticleFetchStatus.ERROR

    after = (
        bookmark.article_content,
        bookmark.article_title,
        bookmark.estimated_read_time,
        bookmark.article_fetch_status,
    )
    if after != before:
        _mark_pending(bookmark)
    return bool(result.content)


def expand_articles(
    bookmarks: list[LocalBookmark],
    fetch_article: ArticleFetch,
    on_progress: Progress | None = None,
    delay: float = REQUEST_DELAY,
    observer=NULL_OBSERVER,
) -> ExpansionReport:
    """Fetch the full text of every article bookmark that doesn't have it yet."""
    targets = [b for b in bookmarks if b.is_article and not b.article_content]
    expanded = list(bookmarks)
    report = ExpansionReport(bookmarks=expanded)
    if not targets:
        return report

    logger.info("Found %d articles to fetch content for", len(targets))
    total = len(targets)

    for processed, article in enumerate(targets, start=1):
        try:
            result = fetch_article(article.author_handle, article.post_id)
        except HarvesterError as e:
            result = ArticleFetchResult(error=str(e))

        if not apply_article(article, result):
            report.failures.append(
                (article.post_id, result.error or "No article content found")
            )
        observer.event(
            "merge.article",
            post_id=article.post_id,
            fetched=article.article_fetch_status is ArticleFetchStatus.FETCHED,
        )

        report.processed = processed
        if on_progress is not None:
            on_progress(processed, total)
        if processed < total and delay > 0:
            time.sleep(delay)

    return report


def merge_scraped(
    base: list[LocalBookmark],
    posts: list[ExtractedPost],
    bookmarked_at: str | None = None,
) -> list[LocalBookmark]:
    """Fold a fresh timeline scrape into ``base`` and return it.

    Unknown posts become new pending bookmarks captured at ``bookmarked_at``.
    Known posts keep their identity, capture time, thread tags and article
    body; their scraped fields are refreshed, and a changed record goes back
    to ``pending`` so it is synced again.
    """
    captured_at = bookmarked_at or utc_now_iso()
    by_post_id = {b.post_id: b for b in base}

    for post in posts:
        existing = by_post_id.get(post.post_id)
        if existing is None:
            bookmark = LocalBookmark.from_post(post, bookmarked_at=captured_at)
            base.append(bookmark)
            by_post_id[post.post_id] = bookmark
            continue
        if _refresh_from_post(existing, post):
            _mark_pending(existing)

    return base


def _refresh_from_post(bookmark: LocalBookmark, post: ExtractedPost) -> bool:
    changed = False
    for name in _SCRAPED_FIELDS:
        value = getattr(post, name)
        if getattr(bookmark, name) != value:
            setattr(bookmark, name, list(value) if isinstance(value, list) else value)
            changed = True

    if bookmark.created_at is None and post.created_at:
        bookmark.created_at = post.created_at
        changed = True

    if post.is_article and not bookmark.is_article:
        bookmark.is_article = True
        bookmark.article_title = bookmark.article_title or post.article_title
        bookmark.article_fetch_status = ArticleFetchStatus.PENDING
        changed = True

    category = bookmark.category
    for event in discoveries(post):
        category = transition(category, event)
    if category != bookmark.category:
        bookmark.category = category
        changed = True

    return changed
