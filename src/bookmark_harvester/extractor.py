"""Parse one rendered post element into an ExtractedPost.

The element is the ``article[data-testid="tweet"]`` node of a rendered
timeline, handed over as a BeautifulSoup ``Tag``. x.com's markup is not a
stable interface: every signal below is a heuristic and a missing signal
degrades to an empty value. Only a missing post id or author handle makes
the element "not a post" (``None``).
"""

import logging
import re

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from .models import ExtractedPost

logger = logging.getLogger(__name__)

# Selectors for x.com's DOM - these may need updating if x.com changes its markup
POST_SELECTOR = 'article[data-testid="tweet"]'
POST_TEXT_SELECTOR = '[data-testid="tweetText"]'
SOCIAL_CONTEXT_SELECTOR = '[data-testid="socialContext"]'
VIDEO_PLAYER_SELECTOR = '[data-testid="videoPlayer"]'
VIDEO_COMPONENT_SELECTOR = '[data-testid="videoComponent"]'
PLAY_BUTTON_SELECTOR = '[data-testid="playButton"]'
PHOTO_SELECTOR = '[data-testid="tweetPhoto"]'
USER_NAME_SELECTOR = '[data-testid="User-Name"]'
MEDIA_IMAGE_SELECTOR = 'img[src*="pbs.twimg.com/media"]'
AVATAR_SELECTOR = 'img[src*="profile_images"]'

PERMALINK_RE = re.compile(r"/status/(\d{15,})")
RELATIVE_TIME_RE = re.compile(r"^\d+[hmd]$")
VIDEO_POSTER_MARKER = "ext_tw_video"

ARTICLE_TITLE_MIN = 10
ARTICLE_TITLE_MAX = 200


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def extract_post(element: Tag) -> ExtractedPost | None:
    """Extract a post from one rendered post element, or None if it isn't one."""
    try:
        return _extract(element)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        logger.debug("Skipping unparseable post element: %s", e)
        return None


def _extract(element: Tag) -> ExtractedPost | None:
    post_id = extract_post_id(element)
    if not post_id:
        return None

    author = extract_author(element)
    if not author:
        return None
    handle, name, avatar_url = author

    is_reply = is_reply_element(element)
    is_article, article_title = detect_article(element)

    return ExtractedPost(
        post_id=post_id,
        author_handle=handle,
        author_name=name,
        author_avatar_url=avatar_url,
        content=extract_content(element),
        media_urls=extract_media_urls(element),
        external_urls=extract_external_urls(element),
        created_at=extract_timestamp(element),
        is_reply=is_reply,
        reply_to_post_id=extract_reply_to_id(element) if is_reply else None,
        has_video=detect_video(element),
        is_article=is_article,
        article_title=article_title,
    )


def extract_post_id(element: Tag) -> str | None:
    for link in element.select('a[href*="/status/"]'):
        match = PERMALINK_RE.search(link.get("href", ""))
        if match:
            return match.group(1)
    return None


def extract_author(element: Tag) -> tuple[str, str, str] | None:
    """Return (handle, display name, avatar url) from the first profile link."""
    avatar = element.select_one(AVATAR_SELECTOR)
    avatar_url = avatar.get("src", "") if avatar else ""

    for link in element.select('a[href^="/"]'):
        href = link.get("href", "")
        if href == "/" or "/status/" in href or "/i/" in href:
            continue
        candidate = href[1:]
        if not candidate or "/" in candidate:
            continue
        name_span = link.find("span")
        name = name_span.get_text().strip() if name_span else ""
        return candidate, name or candidate, avatar_url

    return None


def extract_content(element: Tag) -> str:
    """Text of the post body with emoji alt text and line breaks kept."""
    container = element.select_one(POST_TEXT_SELECTOR)
    if container is None:
        return ""

    parts: list[str] = []
    for node in container.children:
        if isinstance(node, Comment):
            continue
        if isinstance(node, NavigableString):
            parts.append(str(node))
        elif isinstance(node, Tag):
            if node.name == "img" and node.get("alt"):
                parts.append(node["alt"])
            elif node.name in ("a", "span"):
                parts.append(node.get_text())
            elif node.name == "br":
                parts.append("\n")
    return "".join(parts).strip()


def extract_media_urls(element: Tag) -> list[str]:
    urls: list[str] = []

    for img in element.select(MEDIA_IMAGE_SELECTOR):
        src = img.get("src")
        if src:
            urls.append(src)

    for video in element.find_all("video"):
        source = video.find("source")
        src = source.get("src", "") if source else ""
        if src and not src.startswith("blob:"):
            urls.append(src)
        poster = video.get("poster")
        if poster:
            urls.append(poster)

    for player in element.select(VIDEO_PLAYER_SELECTOR):
        if player.select_one(VIDEO_COMPONENT_SELECTOR) is None:
            continue
        video = player.find("video")
        poster = video.get("poster") if video else None
        if poster and poster not in urls:
            urls.append(poster)

    for gif in element.select('video[aria-label*="GIF"], video[aria-label*="Animated"]'):
        poster = gif.get("poster")
        if poster and poster not in urls:
            urls.append(poster)

    return urls


def extract_external_urls(element: Tag) -> list[str]:
    """Expanded targets of shortened t.co links, deduplicated."""
    seen: dict[str, None] = {}
    for link in element.select('a[href*="t.co"]'):
        expanded = link.get("title") or link.get_text().strip()
        if expanded and expanded.startswith("http"):
            seen.setdefault(expanded, None)
    return list(seen)


def extract_timestamp(element: Tag) -> str | None:
    time_el = element.find("time")
    if time_el is None:
        return None
    return time_el.get("datetime") or None


def is_reply_element(element: Tag) -> bool:
    social = element.select_one(SOCIAL_CONTEXT_SELECTOR)
    if social is not None and "Replying to" in social.get_text():
        return True
    # Weaker signal: the thread connector line drawn in the avatar column.
    return _has_thread_connector(element)


def _has_thread_connector(element: Tag) -> bool:
    column = _first_avatar_column(element)
    if column is None:
        return False
    return column.select_one('div[style*="background-color"]') is not None


def _first_avatar_column(element: Tag) -> Tag | None:
    for outer in element.find_all("div", recursive=False):
        for inner in outer.find_all("div", recursive=False):
            first = next((c for c in inner.children if isinstance(c, Tag)), None)
            if first is not None and first.name == "div":
                return first
    return None


def extract_reply_to_id(element: Tag) -> str | None:
    link = element.select_one(f'{SOCIAL_CONTEXT_SELECTOR} a[href*="/status/"]')
    if link is None:
        return None
    match = re.search(r"/status/(\d+)", link.get("href", ""))
    return match.group(1) if match else None


def detect_video(element: Tag) -> bool:
    if element.select_one(VIDEO_PLAYER_SELECTOR) is not None:
        return True
    for video in element.find_all("video"):
        if VIDEO_POSTER_MARKER in (video.get("poster") or ""):
            return True
    if element.select_one(VIDEO_COMPONENT_SELECTOR) is not None:
        return True
    if element.select_one(PLAY_BUTTON_SELECTOR) is not None:
        return True
    return bool(element.select('[aria-label*="Video"], [aria-label*="Play video"]'))


def detect_article(element: Tag) -> tuple[bool, str | None]:
    """Detect a long-form article preview.

    Article previews render as an image card with a title and no inline post
    text, unlike ordinary image posts which carry both. A post linking to an
    article or note page also counts, without a title.
    """
    text_el = element.select_one(POST_TEXT_SELECTOR)
    has_text = text_el is not None and bool(text_el.get_text().strip())
    first_image = element.select_one(MEDIA_IMAGE_SELECTOR)
    has_media = (
        first_image is not None
        or element.select_one(PHOTO_SELECTOR) is not None
        or element.find("video") is not None
    )

    if not has_text and has_media:
        alt_text = first_image.get("alt") if first_image is not None else None
        return True, _article_title(element) or alt_text or None

    for link in element.select("a[href]"):
        href = link.get("href", "")
        if href.endswith("/article") or "/i/articles/" in href or "/i/notes/" in href:
            return True, None

    return False, None


def _article_title(element: Tag) -> str | None:
    author_block = element.select_one(USER_NAME_SELECTOR)
    directional = element.select('span[dir="ltr"]')
    directional_ids = {id(s) for s in directional}
    others = [s for s in element.find_all("span") if id(s) not in directional_ids]
    for span in directional + others:
        if author_block is not None and any(p is author_block for p in span.parents):
            continue
        text = span.get_text().strip()
        if _looks_like_title(text):
            return text
    return None


def _looks_like_title(text: str) -> bool:
    return (
        ARTICLE_TITLE_MIN < len(text) < ARTICLE_TITLE_MAX
        and not text.startswith("@")
        and not text.startswith("http")
        and ".com/" not in text
        and not RELATIVE_TIME_RE.match(text)
    )
