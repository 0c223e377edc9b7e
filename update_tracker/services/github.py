"""
GitHub REST API client.

This module provides the GitHubService class for looking up repositories and
their latest releases.
"""

import logging
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

import requests

from update_tracker.exceptions import GitHubError
from update_tracker.models import LatestRelease, Repository

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"


def parse_repo_url(url: str) -> Optional[Tuple[str, str]]:
    """Extracts (owner, repo) from a github.com URL."""
    # Example: https://github.com/netbirdio/netbird/releases -> ("netbirdio", "netbird")
    try:
        parsed = urlparse(url.strip())
    except (AttributeError, ValueError):
        return None
    if not parsed.scheme or parsed.hostname != "github.com":
        return None
    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) >= 2:
        return parts[0], parts[1]
    return None


def repository_from_details(details: Dict[str, Any]) -> Repository:
    """Maps a /repos/{owner}/{repo} payload to a tracked repository."""
    return Repository(
        id=details["id"],
        fullName=details["full_name"],
        url=details["html_url"],
        description=details.get("description"),
        avatarUrl=(details.get("owner") or {}).get("avatar_url", ""),
        hasUpdate=False,
    )


def release_snapshot(release: Dict[str, Any]) -> LatestRelease:
    return LatestRelease(
        name=release.get("name"),
        tagName=release["tag_name"],
        publishedAt=release["published_at"],
        url=release["html_url"],
    )


class GitHubService:
    """Thin wrapper around the GitHub REST endpoints the dashboard needs."""

    def __init__(
        self,
        api_base: str = GITHUB_API_BASE,
        token: Optional[str] = None,
        timeout: float = 10,
    ):
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.headers = {"Accept": "application/vnd.github+json"}
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

    def _get(self, path: str) -> Any:
        url = f"{self.api_base}{path}"
        try:
            resp = requests.get(url, headers=self.headers, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as req_err:
            logger.error("Network error fetching %s: %s", url, req_err)
            raise GitHubError(f"Request to {url} failed.") from req_err

    def fetch_repo_details(self, owner: str, repo: str) -> Dict[str, Any]:
        """Fetches repository metadata."""
        return self._get(f"/repos/{owner}/{repo}")

    def fetch_latest_release(self, owner: str, repo: str) -> Optional[Dict[str, Any]]:
        """Returns the newest release, or None when the repository has none."""
        releases = self._get(f"/repos/{owner}/{repo}/releases")
        return releases[0] if releases else None
