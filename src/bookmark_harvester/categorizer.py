"""Category assignment for bookmarks.

Categories move through an explicit transition table keyed by
(current category, discovery event). Detection events only ever move a post
up the precedence order article > thread > media > quick_take; joining an
expanded thread always lands on ``thread``.
"""

from enum import Enum

from .models import Category, ExtractedPost


class Discovery(str, Enum):
    ARTICLE_DETECTED = "article_detected"
    REPLY_DETECTED = "reply_detected"
    MEDIA_DETECTED = "media_detected"
    THREAD_EXPANDED = "thread_expanded"


_Q, _T, _A, _M = Category.QUICK_TAKE, Category.THREAD, Category.ARTICLE, Category.MEDIA

TRANSITIONS: dict[tuple[Category, Discovery], Category] = {
    (_Q, Discovery.ARTICLE_DETECTED): _A,
    (_Q, Discovery.REPLY_DETECTED): _T,
    (_Q, Discovery.MEDIA_DETECTED): _M,
    (_Q, Discovery.THREAD_EXPANDED): _T,
    (_M, Discovery.ARTICLE_DETECTED): _A,
    (_M, Discovery.REPLY_DETECTED): _T,
    (_M, Discovery.MEDIA_DETECTED): _M,
    (_M, Discovery.THREAD_EXPANDED): _T,
    (_T, Discovery.ARTICLE_DETECTED): _A,
    (_T, Discovery.REPLY_DETECTED): _T,
    (_T, Discovery.MEDIA_DETECTED): _T,
    (_T, Discovery.THREAD_EXPANDED): _T,
    (_A, Discovery.ARTICLE_DETECTED): _A,
    (_A, Discovery.REPLY_DETECTED): _A,
    (_A, Discovery.MEDIA_DETECTED): _A,
    (_A, Discovery.THREAD_EXPANDED): _T,
}


def transition(current: Category, event: Discovery) -> Category:
    return TRANSITIONS[(current, event)]


def discoveries(post: ExtractedPost) -> list[Discovery]:
    """Signals present on a scraped post, in table order."""
    found = []
    if post.is_article:
        found.append(Discovery.ARTICLE_DETECTED)
    if post.is_reply:
        found.append(Discovery.REPLY_DETECTED)
    if post.media_urls:
        found.append(Discovery.MEDIA_DETECTED)
    return found


def categorize(post: ExtractedPost) -> Category:
    """Map a scraped post to its category.

    article beats reply beats media beats plain text, regardless of the
    order in which the signals are applied.
    """
    category = Category.QUICK_TAKE
    for event in discoveries(post):
        category = transition(category, event)
    return category
