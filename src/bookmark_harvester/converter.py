"""Convert LocalBookmark collections to CSV format."""

import csv
import io
from typing import TextIO

from .client import status_url
from .models import LocalBookmark

CSV_COLUMNS = [
    "post_id",
    "username",
    "display_name",
    "content",
    "date",
    "bookmarked_at",
    "post_url",
    "links",
    "media_urls",
    "category",
    "is_thread",
    "thread_id",
    "thread_position",
    "is_article",
    "article_title",
    "estimated_read_time",
    "sync_status",
]


def bookmarks_to_csv(bookmarks: list[LocalBookmark], output: TextIO | None = None) -> str:
    """Convert bookmarks to CSV format.

    Args:
        bookmarks: Bookmarks to convert, written in the given order.
        output: Optional file-like object to write to. If None, returns CSV as string.

    Returns:
        CSV content as a string (also written to output if provided).
    """
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=CSV_COLUMNS, quoting=csv.QUOTE_MINIMAL)
    writer.writeheader()

    for b in bookmarks:
        writer.writerow(
            {
                "post_id": b.post_id,
                "username": b.author_handle,
                "display_name": b.author_name,
                "content": b.article_content or b.content,
                "date": b.created_at or "",
                "bookmarked_at": b.bookmarked_at,
                "post_url": status_url(b.author_handle, b.post_id),
                "links": "|".join(b.external_urls),
                "media_urls": "|".join(b.media_urls),
                "category": b.category.value,
                "is_thread": "true" if b.is_thread else "false",
                "thread_id": b.thread_id or "",
                "thread_position": b.thread_position,
                "is_article": "true" if b.is_article else "false",
                "article_title": b.article_title or "",
                "estimated_read_time": b.estimated_read_time or "",
                "sync_status": b.sync_status.value,
            }
        )

    result = buf.getvalue()
    if output is not None:
        output.write(result)
    return result
