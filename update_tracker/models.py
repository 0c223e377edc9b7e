"""
Data models for the Update Tracker dashboard.
"""

from typing import TypedDict, List, Optional


class LatestRelease(TypedDict):
    """Snapshot of the newest GitHub release of a repository."""

    name: Optional[str]
    tagName: str
    publishedAt: str
    url: str


class _RepositoryBase(TypedDict):
    id: int
    fullName: str
    url: str
    description: Optional[str]
    avatarUrl: str
    hasUpdate: bool


class Repository(_RepositoryBase, total=False):
    """A tracked GitHub repository."""

    latestRelease: LatestRelease


class NewsSource(TypedDict):
    """A news website, keyed by its canonical origin."""

    id: str
    url: str
    tags: List[str]


class NewsArticle(TypedDict):
    """Type definition for an AI-summarized article."""

    title: str
    summary: str
    link: str


class YouTubeTag(TypedDict):
    id: str
    name: str


class YouTubeVideo(TypedDict):
    """A video returned by the AI search; thumbnailUrl is derived from id."""

    id: str
    title: str
    thumbnailUrl: str
    channelTitle: str
    publishedAt: str
    url: str
    description: str


class ChatMessage(TypedDict):
    id: str
    role: str  # "user" or "assistant"
    text: str
