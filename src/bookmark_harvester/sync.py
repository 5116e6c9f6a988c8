"""Push bookmarks to the cloud backend (a Supabase/PostgREST table).

Rows are upserted into the ``bookmarks`` table keyed by (user_id, tweet_id),
so re-syncing a bookmark updates it in place. Failures are reported per
record and not retried here.
"""

import logging

import httpx

from .errors import SyncError
from .models import LocalBookmark, SyncResult

logger = logging.getLogger(__name__)

TABLE = "bookmarks"
CONFLICT_COLUMNS = "user_id,tweet_id"


def to_row(bookmark: LocalBookmark, user_id: str) -> dict:
    """Map a bookmark onto the backend's column names."""
    return {
        "user_id": user_id,
        "tweet_id": bookmark.post_id,
        "author_handle": bookmark.author_handle,
        "author_name": bookmark.author_name,
        "author_avatar_url": bookmark.author_avatar_url,
        "content": bookmark.content,
        "media_urls": bookmark.media_urls,
        "external_urls": bookmark.external_urls,
        "tweet_created_at": bookmark.created_at,
        "bookmarked_at": bookmark.bookmarked_at,
        "is_thread": bookmark.is_thread,
        "thread_id": bookmark.thread_id,
        "thread_position": bookmark.thread_position,
        "category": bookmark.category.value,
        "has_video": bookmark.has_video,
        "is_article": bookmark.is_article,
        "article_content": bookmark.article_content,
        "article_title": bookmark.article_title,
        "estimated_read_time": bookmark.estimated_read_time,
    }


class SyncClient:
    """Client for the backend's REST endpoint using the user's access token."""

    def __init__(
        self,
        url: str,
        api_key: str,
        user_id: str,
        access_token: str | None = None,
        timeout: float = 30.0,
    ):
        if not url or not api_key or not user_id:
            raise SyncError("Sync is not configured: url, api_key and user_id are required")
        self.user_id = user_id
        self._endpoint = f"{url.rstrip('/')}/rest/v1/{TABLE}"
        self._client = httpx.Client(
            headers={
                "apikey": api_key,
                "authorization": f"Bearer {access_token or api_key}",
                "content-type": "application/json",
                "prefer": "resolution=merge-duplicates,return=representation",
            },
            timeout=timeout,
        )

    def sync(self, bookmarks: list[LocalBookmark]) -> SyncResult:
        """Upsert ``bookmarks`` in one request."""
        if not bookmarks:
            return SyncResult()

        rows = [to_row(b, self.user_id) for b in bookmarks]
        try:
            response = self._client.post(
                self._endpoint, params={"on_conflict": CONFLICT_COLUMNS}, json=rows
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            message = _error_message(e.response)
            logger.warning("Sync rejected: %s", message)
            return SyncResult(errors=[(b.post_id, message) for b in bookmarks])
        except httpx.HTTPError as e:
            logger.warning("Sync request failed: %s", e)
            return SyncResult(errors=[(b.post_id, str(e)) for b in bookmarks])

        written = response.json() if response.content else []
        synced = len(written) if isinstance(written, list) else 0
        logger.info("Synced %d bookmarks", synced)
        return SyncResult(synced=synced)

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP {response.status_code}"
