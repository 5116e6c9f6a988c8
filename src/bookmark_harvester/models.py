"""Data models for scraped posts, local bookmarks and expansion results."""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum


class Category(str, Enum):
    QUICK_TAKE = "quick_take"
    THREAD = "thread"
    ARTICLE = "article"
    MEDIA = "media"


class SyncStatus(str, Enum):
    PENDING = "pending"
    SYNCED = "synced"
    ERROR = "error"


class ArticleFetchStatus(str, Enum):
    PENDING = "pending"
    FETCHED = "fetched"
    ERROR = "error"


@dataclass
class ExtractedPost:
    """One post as rendered in the timeline."""

    post_id: str
    author_handle: str  # handle without @
    author_name: str
    author_avatar_url: str = ""
    content: str = ""
    media_urls: list[str] = field(default_factory=list)  # DOM order
    external_urls: list[str] = field(default_factory=list)  # unique, first-seen order
    created_at: str | None = None  # ISO-8601 from the <time> element
    is_reply: bool = False
    reply_to_post_id: str | None = None
    has_video: bool = False
    is_article: bool = False
    article_title: str | None = None


@dataclass
class ParsedThreadPost:
    """A post recovered from a detail page while reconstructing a thread."""

    post_id: str
    author_handle: str
    author_name: str
    author_avatar_url: str = ""
    content: str = ""
    media_urls: list[str] = field(default_factory=list)
    external_urls: list[str] = field(default_factory=list)
    created_at: str | None = None
    is_reply: bool = False
    reply_to_post_id: str | None = None
    has_video: bool = False
    position: int = 0


@dataclass
class ThreadFetchResult:
    original_post_id: str
    posts: list[ParsedThreadPost] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ArticleFetchResult:
    content: str | None = None
    title: str | None = None
    estimated_read_time: int | None = None
    error: str | None = None


@dataclass
class LocalBookmark:
    """The persisted unit. Identity within a collection is ``post_id``."""

    local_id: str
    post_id: str
    author_handle: str
    author_name: str
    bookmarked_at: str
    author_avatar_url: str = ""
    content: str = ""
    media_urls: list[str] = field(default_factory=list)
    external_urls: list[str] = field(default_factory=list)
    created_at: str | None = None
    is_reply: bool = False
    reply_to_post_id: str | None = None
    has_video: bool = False
    is_article: bool = False
    category: Category = Category.QUICK_TAKE
    is_thread: bool = False
    thread_id: str | None = None
    thread_position: int = 0
    sync_status: SyncStatus = SyncStatus.PENDING
    sync_error: str | None = None
    article_content: str | None = None
    article_title: str | None = None
    estimated_read_time: int | None = None
    article_fetch_status: ArticleFetchStatus | None = None

    @staticmethod
    def local_id_for(post_id: str) -> str:
        return f"local_{post_id}"

    @classmethod
    def from_post(
        cls, post: ExtractedPost, bookmarked_at: str | None = None
    ) -> "LocalBookmark":
        """Build the record created by a timeline scrape."""
        from .categorizer import categorize

        return cls(
            local_id=cls.local_id_for(post.post_id),
            post_id=post.post_id,
            author_handle=post.author_handle,
            author_name=post.author_name,
            author_avatar_url=post.author_avatar_url,
            content=post.content,
            media_urls=list(post.media_urls),
            external_urls=list(post.external_urls),
            created_at=post.created_at,
            is_reply=post.is_reply,
            reply_to_post_id=post.reply_to_post_id,
            has_video=post.has_video,
            is_article=post.is_article,
            bookmarked_at=bookmarked_at or utc_now_iso(),
            category=categorize(post),
            is_thread=post.is_reply,
            thread_id=post.reply_to_post_id,
            thread_position=0,
            sync_status=SyncStatus.PENDING,
            article_title=post.article_title,
            article_fetch_status=(
                ArticleFetchStatus.PENDING if post.is_article else None
            ),
        )

    @classmethod
    def from_thread_post(
        cls,
        post: ParsedThreadPost,
        thread_id: str,
        bookmarked_at: str,
        category: Category = Category.THREAD,
    ) -> "LocalBookmark":
        """Build the record synthesized for a newly discovered thread member."""
        return cls(
            local_id=cls.local_id_for(post.post_id),
            post_id=post.post_id,
            author_handle=post.author_handle,
            author_name=post.author_name,
            author_avatar_url=post.author_avatar_url,
            content=post.content,
            media_urls=list(post.media_urls),
            external_urls=list(post.external_urls),
            created_at=post.created_at,
            is_reply=post.is_reply,
            reply_to_post_id=post.reply_to_post_id,
            has_video=post.has_video,
            bookmarked_at=bookmarked_at,
            category=category,
            is_thread=True,
            thread_id=thread_id,
            thread_position=post.position,
            sync_status=SyncStatus.PENDING,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["category"] = self.category.value
        data["sync_status"] = self.sync_status.value
        data["article_fetch_status"] = (
            self.article_fetch_status.value if self.article_fetch_status else None
        )
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "LocalBookmark":
        values = dict(data)
        values["category"] = Category(values.get("category", "quick_take"))
        values["sync_status"] = SyncStatus(values.get("sync_status", "pending"))
        status = values.get("article_fetch_status")
        values["article_fetch_status"] = ArticleFetchStatus(status) if status else None
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in values.items() if k in known})


@dataclass
class ExpansionReport:
    """Outcome of a batch expansion: the merged collection plus per-item failures."""

    bookmarks: list[LocalBookmark]
    processed: int = 0
    failures: list[tuple[str, str]] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.failures)


@dataclass
class SyncResult:
    synced: int = 0
    errors: list[tuple[str, str]] = field(default_factory=list)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
