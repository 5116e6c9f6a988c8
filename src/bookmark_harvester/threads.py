"""Reconstruct a thread from a post's detail page.

x.com embeds the same conversation in several serialization shapes depending
on render path and rollout state. Parsing is an ordered list of independent
strategies, each a function ``(html, author_handle, post_id) -> posts | None``;
the first one that yields posts wins:

1. ``page_state``       walk the embedded page-state JSON for post objects
2. ``embedded_results`` decode the objects that follow ``"tweet_results":`` markers
3. ``permalink_scan``   status permalinks plus nearby ``"text"`` values

Only posts by the thread's author are kept. The result is deduplicated by
post id, capped at MAX_THREAD_LENGTH and numbered 0..n-1.
"""

import json
import logging
import re
from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterator

from .client import XWebClient
from .diagnostics import NULL_OBSERVER
from .errors import FetchError
from .extractor import parse_html
from .models import LocalBookmark, ParsedThreadPost, ThreadFetchResult

logger = logging.getLogger(__name__)

MAX_THREAD_LENGTH = 50
MAX_SEARCH_DEPTH = 20
LONG_POST_LENGTH = 250

# Platform date format: "Thu May 14 18:01:35 +0000 2020"
PLATFORM_DATE_FORMAT = "%a %b %d %H:%M:%S %z %Y"

THREAD_INDICATORS = [
    re.compile(r"\bthread\b", re.IGNORECASE),
    re.compile(r"\b1/\d+\b"),
    re.compile(r"\(\d+/\d+\)"),
    re.compile(r"\bpart 1\b", re.IGNORECASE),
    re.compile(r"^1\.\s"),
    re.compile("\U0001F9F5"),  # spool of thread emoji
]

_EMBEDDED_RESULT_RE = re.compile(r'"tweet_results"\s*:\s*')
_PERMALINK_RE = re.compile(r"/status/(\d{15,})")
_UNICODE_ESCAPE_RE = re.compile(r"\\u([0-9a-fA-F]{4})")
_INITIAL_STATE_RE = re.compile(r"window\.__INITIAL_STATE__\s*=\s*")
_OWN_DOMAINS = ("twitter.com", "x.com")

Strategy = Callable[[str, str, str], "list[ParsedThreadPost] | None"]


def is_thread_candidate(bookmark: LocalBookmark) -> bool:
    """Whether a bookmark looks like the start of a thread worth expanding."""
    if bookmark.is_thread and bookmark.thread_id:
        return False
    if any(indicator.search(bookmark.content) for indicator in THREAD_INDICATORS):
        return True
    return len(bookmark.content) > LONG_POST_LENGTH


# -- JSON helpers -------------------------------------------------------------


def iter_json_objects(root: object, max_depth: int = MAX_SEARCH_DEPTH) -> Iterator[dict]:
    """Yield every JSON object in ``root`` down to ``max_depth``, pre-order.

    Uses an explicit stack so the depth bound holds for arbitrarily nested
    input.
    """
    stack: list[tuple[object, int]] = [(root, 0)]
    while stack:
        value, depth = stack.pop()
        if depth > max_depth:
            continue
        if isinstance(value, dict):
            yield value
            children = list(value.values())
        elif isinstance(value, list):
            children = value
        else:
            continue
        stack.extend((child, depth + 1) for child in reversed(children))


def _dig(obj: object, *path: str) -> object:
    for key in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def _text_of(obj: dict) -> str | None:
    for key in ("full_text", "text"):
        if isinstance(obj.get(key), str):
            return obj[key]
    return None


def looks_like_post(obj: dict) -> bool:
    """A string id plus a string text, directly or under ``legacy``."""
    if not (isinstance(obj.get("id_str"), str) or isinstance(obj.get("rest_id"), str)):
        return False
    if _text_of(obj) is not None:
        return True
    legacy = obj.get("legacy")
    return isinstance(legacy, dict) and _text_of(legacy) is not None


def normalize_created_at(value: object) -> str | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.strptime(value, PLATFORM_DATE_FORMAT).isoformat()
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).isoformat()
    except ValueError:
        return None


def parse_post_object(obj: dict, author_handle: str) -> ParsedThreadPost | None:
    """Build a thread post from a post-shaped object, or None.

    Returns None when the post was written by someone other than
    ``author_handle`` (replies from other accounts are not thread members).
    """
    data = obj.get("legacy") if isinstance(obj.get("legacy"), dict) else obj
    user = _dig(obj, "core", "user_results", "result", "legacy")
    if not isinstance(user, dict):
        user = _dig(obj, "user", "legacy")
    if not isinstance(user, dict):
        user = {}

    handle = user.get("screen_name") or ""
    if not isinstance(handle, str) or handle.lower() != author_handle.lower():
        return None

    post_id = data.get("id_str") or obj.get("rest_id") or ""
    if not isinstance(post_id, str) or not post_id:
        return None

    entities = data.get("entities") if isinstance(data.get("entities"), dict) else {}
    media = _dig(data, "extended_entities", "media") or entities.get("media") or []
    media_urls = [
        m["media_url_https"]
        for m in media
        if isinstance(m, dict) and isinstance(m.get("media_url_https"), str)
    ]
    has_video = any(
        isinstance(m, dict) and m.get("type") in ("video", "animated_gif") for m in media
    )

    external_urls: list[str] = []
    for entity in entities.get("urls") or []:
        expanded = entity.get("expanded_url") if isinstance(entity, dict) else None
        if not isinstance(expanded, str) or not expanded:
            continue
        if any(domain in expanded for domain in _OWN_DOMAINS):
            continue
        if expanded not in external_urls:
            external_urls.append(expanded)

    reply_to = data.get("in_reply_to_status_id_str")
    return ParsedThreadPost(
        post_id=post_id,
        author_handle=handle,
        author_name=user.get("name") or handle,
        author_avatar_url=user.get("profile_image_url_https") or "",
        content=_text_of(data) or "",
        media_urls=media_urls,
        external_urls=external_urls,
        created_at=normalize_created_at(data.get("created_at")),
        is_reply=isinstance(reply_to, str) and bool(reply_to),
        reply_to_post_id=reply_to if isinstance(reply_to, str) and reply_to else None,
        has_video=has_video,
    )


# -- strategies ---------------------------------------------------------------


def find_page_state(html: str) -> list[object]:
    """Return every embedded page-state blob found in the document."""
    blobs: list[object] = []
    soup = parse_html(html)

    next_data = soup.find("script", id="__NEXT_DATA__")
    if next_data is not None and next_data.string:
        try:
            blobs.append(json.loads(next_data.string))
        except json.JSONDecodeError as e:
            logger.debug("Unreadable __NEXT_DATA__ blob: %s", e)

    decoder = json.JSONDecoder()
    for script in soup.find_all("script"):
        text = script.string or ""
        match = _INITIAL_STATE_RE.search(text)
        if not match:
            continue
        try:
            blob, _ = decoder.raw_decode(text, match.end())
        except json.JSONDecodeError as e:
            logger.debug("Unreadable __INITIAL_STATE__ blob: %s", e)
            continue
        blobs.append(blob)

    return blobs


def from_page_state(html: str, author_handle: str, post_id: str) -> list[ParsedThreadPost] | None:
    posts = []
    for blob in find_page_state(html):
        for obj in iter_json_objects(blob):
            if not looks_like_post(obj):
                continue
            post = parse_post_object(obj, author_handle)
            if post is not None:
                posts.append(post)
    return posts or None


def from_embedded_results(
    html: str, author_handle: str, post_id: str
) -> list[ParsedThreadPost] | None:
    posts = []
    decoder = json.JSONDecoder()
    for match in _EMBEDDED_RESULT_RE.finditer(html):
        try:
            data, _ = decoder.raw_decode(html, match.end())
        except json.JSONDecodeError:
            continue
        data = _unwrap_result(data)
        if data is None:
            continue
        post = parse_post_object(data, author_handle)
        if post is not None:
            posts.append(post)
    return posts or None


def _unwrap_result(data: object) -> dict | None:
    """Peel ``{"result": ...}`` and visibility wrappers off an embedded post."""
    if isinstance(data, dict) and isinstance(data.get("result"), dict):
        data = data["result"]
    if isinstance(data, dict) and data.get("__typename") == "TweetWithVisibilityResults":
        data = data.get("tweet")
    if not isinstance(data, dict) or data.get("__typename") == "TweetTombstone":
        return None
    return data


def decode_unicode_escapes(text: str) -> str:
    return _UNICODE_ESCAPE_RE.sub(lambda m: chr(int(m.group(1), 16)), text)


def from_permalinks(html: str, author_handle: str, post_id: str) -> list[ParsedThreadPost] | None:
    posts = []
    seen: set[str] = set()
    for match in _PERMALINK_RE.finditer(html):
        found_id = match.group(1)
        if found_id in seen:
            continue
        seen.add(found_id)

        nearby = re.search(
            r'"text"\s*:\s*"([^"]*)"[^}]*' + re.escape(found_id), html, re.IGNORECASE
        )
        content = decode_unicode_escapes(nearby.group(1)) if nearby else ""
        if not content:
            continue
        posts.append(
            ParsedThreadPost(
                post_id=found_id,
                author_handle=author_handle,
                author_name=author_handle,
                content=content,
            )
        )
    return posts or None


STRATEGIES: list[tuple[str, Strategy]] = [
    ("page_state", from_page_state),
    ("embedded_results", from_embedded_results),
    ("permalink_scan", from_permalinks),
]


def finalize_thread(posts: list[ParsedThreadPost]) -> list[ParsedThreadPost]:
    """Drop repeated ids (first wins), cap the length, number the positions."""
    seen: set[str] = set()
    unique = []
    for post in posts:
        if post.post_id in seen:
            continue
        seen.add(post.post_id)
        unique.append(post)
    return [
        replace(post, position=index)
        for index, post in enumerate(unique[:MAX_THREAD_LENGTH])
    ]


def parse_thread_document(
    html: str,
    author_handle: str,
    post_id: str,
    strategies: list[tuple[str, Strategy]] | None = None,
    observer=NULL_OBSERVER,
) -> list[ParsedThreadPost]:
    """Run the strategy cascade over a detail page."""
    for name, strategy in strategies or STRATEGIES:
        try:
            posts = strategy(html, author_handle, post_id)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.debug("Thread strategy %s failed for %s: %s", name, post_id, e)
            observer.event("thread.strategy_failed", strategy=name, post_id=post_id)
            continue
        if posts:
            observer.event(
                "thread.strategy_matched", strategy=name, post_id=post_id, count=len(posts)
            )
            return finalize_thread(posts)
        observer.event("thread.strategy_empty", strategy=name, post_id=post_id)
    return []


class ThreadReconstructor:
    """Fetch a post's detail page and rebuild the author's thread from it."""

    def __init__(self, client: XWebClient, observer=NULL_OBSERVER):
        self.client = client
        self._observer = observer

    def reconstruct(self, author_handle: str, post_id: str) -> ThreadFetchResult:
        try:
            html = self.client.fetch_status_page(author_handle, post_id)
        except FetchError as e:
            logger.warning("Failed to fetch thread %s: %s", post_id, e)
            return ThreadFetchResult(original_post_id=post_id, posts=[], error=str(e))

        posts = parse_thread_document(
            html, author_handle, post_id, observer=self._observer
        )
        logger.debug("Thread %s: %d posts by @%s", post_id, len(posts), author_handle)
        return ThreadFetchResult(original_post_id=post_id, posts=posts)

    __call__ = reconstruct


def reconstruct_thread(
    author_handle: str, post_id: str, client: XWebClient | None = None
) -> ThreadFetchResult:
    """One-off reconstruction; opens an anonymous client when none is given."""
    if client is not None:
        return ThreadReconstructor(client).reconstruct(author_handle, post_id)
    with XWebClient() as own_client:
        return ThreadReconstructor(own_client).reconstruct(author_handle, post_id)
