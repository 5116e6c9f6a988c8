"""Local bookmark store.

Bookmarks are kept in .state/bookmarks.json as a JSON object:
    {
        "bookmarks": [{"local_id": "local_1234...", "post_id": "1234...", ...}],
        "last_scrape": "2025-01-15T14:30:00+00:00",
        "total": 142
    }

The store is keyed by ``local_id`` with a unique secondary index on
``post_id``; category and sync-status lookups scan the records.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from .models import Category, LocalBookmark, SyncStatus

logger = logging.getLogger(__name__)


class BookmarkStore:
    def __init__(self, state_dir: Path = Path(".state")):
        self.state_dir = state_dir
        self.state_file = state_dir / "bookmarks.json"
        self._records: dict[str, LocalBookmark] = {}
        self._by_post_id: dict[str, str] = {}
        self.last_scrape: str | None = None
        self._load()

    def _load(self) -> None:
        """Load state from disk."""
        if self.state_file.exists():
            data = json.loads(self.state_file.read_text())
            for raw in data.get("bookmarks", []):
                self._put(LocalBookmark.from_dict(raw))
            self.last_scrape = data.get("last_scrape")
            logger.info("Loaded %d bookmarks from state", len(self._records))
        else:
            logger.info("No existing state found. Starting fresh.")

    def save(self) -> None:
        """Persist state to disk."""
        self.state_dir.mkdir(parents=True, exist_ok=True)
        data = {
            "bookmarks": [b.to_dict() for b in self._records.values()],
            "last_scrape": self.last_scrape,
            "total": len(self._records),
        }
        self.state_file.write_text(json.dumps(data, indent=2, ensure_ascii=False))

    def mark_scraped(self) -> None:
        self.last_scrape = datetime.now(timezone.utc).isoformat()

    def _put(self, bookmark: LocalBookmark) -> None:
        previous = self._by_post_id.get(bookmark.post_id)
        if previous is not None and previous != bookmark.local_id:
            del self._records[previous]
        self._records[bookmark.local_id] = bookmark
        self._by_post_id[bookmark.post_id] = bookmark.local_id

    def upsert_many(self, bookmarks: list[LocalBookmark]) -> None:
        """Insert or replace bookmarks, one record per post id."""
        for bookmark in bookmarks:
            self._put(bookmark)

    def get(self, local_id: str) -> LocalBookmark | None:
        return self._records.get(local_id)

    def get_by_post_id(self, post_id: str) -> LocalBookmark | None:
        local_id = self._by_post_id.get(post_id)
        return self._records.get(local_id) if local_id else None

    def get_all(self) -> list[LocalBookmark]:
        return list(self._records.values())

    def get_by_category(self, category: Category | str) -> list[LocalBookmark]:
        category = Category(category)
        return [b for b in self._records.values() if b.category is category]

    def get_pending(self) -> list[LocalBookmark]:
        return [b for b in self._records.values() if b.sync_status is SyncStatus.PENDING]

    def update_sync_status(
        self, local_id: str, status: SyncStatus, error: str | None = None
    ) -> None:
        bookmark = self._records.get(local_id)
        if bookmark is None:
            return
        bookmark.sync_status = status
        if error:
            bookmark.sync_error = error
        elif status is SyncStatus.SYNCED:
            bookmark.sync_error = None

    def delete(self, local_id: str) -> None:
        bookmark = self._records.pop(local_id, None)
        if bookmark is not None:
            self._by_post_id.pop(bookmark.post_id, None)

    def clear(self) -> None:
        """Drop every bookmark (for a fresh re-scrape)."""
        self._records.clear()
        self._by_post_id.clear()
        self.last_scrape = None
        if self.state_file.exists():
            self.state_file.unlink()

    def stats(self) -> dict:
        by_category: dict[str, int] = {}
        pending = synced = errored = 0
        for bookmark in self._records.values():
            if bookmark.sync_status is SyncStatus.PENDING:
                pending += 1
            elif bookmark.sync_status is SyncStatus.SYNCED:
                synced += 1
            else:
                errored += 1
            key = bookmark.category.value
            by_category[key] = by_category.get(key, 0) + 1
        return {
            "total": len(self._records),
            "pending": pending,
            "synced": synced,
            "error": errored,
            "by_category": by_category,
        }

    @property
    def count(self) -> int:
        return len(self._records)
