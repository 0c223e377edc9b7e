"""
Element mappers for the three AI call sites: news articles, tags and videos.

Every mapper checks the fields it needs and returns None for elements that
do not have the expected shape.
"""

from typing import Any, Optional

from update_tracker.models import NewsArticle, YouTubeVideo

THUMBNAIL_URL = "https://i.ytimg.com/vi/{video_id}/hqdefault.jpg"


def normalize_tag(tag: str) -> str:
    """Upper-cases the first character and lower-cases the rest ("AI" -> "Ai")."""
    return tag[:1].upper() + tag[1:].lower()


def thumbnail_url(video_id: str) -> str:
    """Builds the thumbnail URL for a video id."""
    return THUMBNAIL_URL.format(video_id=video_id)


def _text(element: dict, key: str) -> str:
    value = element.get(key)
    return value if isinstance(value, str) else ""


def map_news_article(element: Any) -> Optional[NewsArticle]:
    if not isinstance(element, dict):
        return None
    title = element.get("title")
    link = element.get("link")
    if not isinstance(title, str) or not isinstance(link, str):
        return None
    return NewsArticle(title=title, summary=_text(element, "summary"), link=link)


def map_tag(element: Any) -> Optional[str]:
    if not isinstance(element, str) or not element.strip():
        return None
    return normalize_tag(element.strip())


def map_video(element: Any) -> Optional[YouTubeVideo]:
    """Maps a video object; the thumbnail is always derived from the id."""
    if not isinstance(element, dict):
        return None
    video_id = element.get("id")
    if not isinstance(video_id, str) or not video_id:
        return None
    return YouTubeVideo(
        id=video_id,
        title=_text(element, "title"),
        thumbnailUrl=thumbnail_url(video_id),
        channelTitle=_text(element, "channelTitle"),
        publishedAt=_text(element, "publishedAt"),
        url=_text(element, "url"),
        description=_text(element, "description"),
    )
