"""
Update Tracker Dashboard
Tracks GitHub repositories for new releases, collects AI-summarized news from
tracked sites, searches YouTube through Gemini and hosts the chat assistant.
"""

import logging
import threading
import uuid
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple
from urllib.parse import urlparse

from update_tracker import config
from update_tracker.exceptions import (
    DuplicateEntityError,
    GitHubError,
    InvalidUrlError,
    TrackerError,
)
from update_tracker.models import NewsArticle, NewsSource, Repository, YouTubeTag, YouTubeVideo
from update_tracker.parsers.mappers import normalize_tag
from update_tracker.services import db
from update_tracker.services.chat import ChatSession
from update_tracker.services.github import GitHubService, parse_repo_url, repository_from_details
from update_tracker.services.llm import LLMService
from update_tracker.services.news import NewsAggregator, NewsRefresher, all_tags, filter_sources
from update_tracker.services.poller import UpdateChecker, UpdateScheduler, merge_results
from update_tracker.services.relay_client import RelayLLMService

logger = logging.getLogger(__name__)


DEFAULT_PORTS = {"http": 80, "https": 443}


class VideoPage(NamedTuple):
    videos: List[YouTubeVideo]
    page: int
    has_more: bool


def canonical_origin(url: str) -> str:
    """Reduces a URL to scheme://host[:port]; the path is discarded."""
    try:
        parsed = urlparse(url.strip())
        host = parsed.hostname
        port = parsed.port
    except (AttributeError, ValueError) as e:
        raise InvalidUrlError("Please enter a valid URL.") from e
    scheme = parsed.scheme.lower()
    if not scheme or not host:
        raise InvalidUrlError("Please enter a valid URL.")
    if port and DEFAULT_PORTS.get(scheme) != port:
        return f"{scheme}://{host}:{port}"
    return f"{scheme}://{host}"


class Dashboard:
    """
    Every user-facing operation of the dashboard.

    Persisted collections are loaded at startup and written back through the
    store on every mutation.
    """

    def __init__(
        self,
        store: db.StateStore,
        github: GitHubService,
        llm: LLMService,
        poll_interval: float = 3600,
        news_refresh_interval: float = 3600,
        videos_per_page: int = 20,
    ):
        self.store = store
        self.github = github
        self.llm = llm
        self.videos_per_page = videos_per_page

        self.repositories: List[Repository] = store.load(db.REPOSITORIES_KEY)
        self.news_sources: List[NewsSource] = store.load(db.NEWS_SOURCES_KEY)
        self.video_tags: List[YouTubeTag] = store.load(db.YOUTUBE_TAGS_KEY)
        self.selected_repo_id: Optional[int] = None

        self.news = NewsAggregator(llm.fetch_and_summarize_news)
        self.news_refresher = NewsRefresher(
            self.news, lambda: list(self.news_sources), interval=news_refresh_interval
        )
        self.scheduler = UpdateScheduler(
            UpdateChecker(github),
            get_repositories=lambda: list(self.repositories),
            apply=self._apply_update_results,
            interval=poll_interval,
        )
        self._chat: Optional[ChatSession] = None
        self._polling_requested = False
        # Guards read-modify-write of self.repositories; the scheduler merges
        # from its own thread.
        self._repositories_lock = threading.Lock()

    # Repositories

    def _save_repositories(self) -> None:
        self.store.save(db.REPOSITORIES_KEY, self.repositories)

    def _is_tracked(self, full_name: str) -> bool:
        # GitHub owner and repository names are case-insensitive.
        return any(r["fullName"].lower() == full_name.lower() for r in self.repositories)

    def add_repository(self, url: str) -> Repository:
        """Looks up a github.com URL and starts tracking the repository."""
        parsed = parse_repo_url(url)
        if not parsed:
            raise InvalidUrlError("Invalid GitHub repository URL.")

        owner, repo = parsed
        with self._repositories_lock:
            if self._is_tracked(f"{owner}/{repo}"):
                raise DuplicateEntityError("Repository already added.")

        try:
            details = self.github.fetch_repo_details(owner, repo)
            repository = repository_from_details(details)
        except (GitHubError, KeyError, TypeError) as e:
            logger.error("Could not add repository %s/%s: %s", owner, repo, e)
            raise TrackerError(
                "Could not fetch repository. Please check the URL and try again."
            ) from e

        with self._repositories_lock:
            # Redirects and renames resolve to an id that may already be tracked.
            if any(r["id"] == repository["id"] for r in self.repositories):
                raise DuplicateEntityError("Repository already added.")
            self.repositories = [repository] + self.repositories
            self._save_repositories()

        logger.info("Tracking %s.", repository["fullName"])
        if not self.scheduler.is_running and self._polling_requested:
            self.scheduler.start()
        return repository

    def remove_repository(self, repo_id: int) -> None:
        with self._repositories_lock:
            self.repositories = [r for r in self.repositories if r["id"] != repo_id]
            self._save_repositories()
        if self.selected_repo_id == repo_id:
            self.selected_repo_id = None

    def mark_as_seen(self, repo_id: int) -> None:
        """Clears the update flag of a repository."""
        with self._repositories_lock:
            self.repositories = [
                {**r, "hasUpdate": False} if r["id"] == repo_id else r  # type: ignore[misc]
                for r in self.repositories
            ]
            self._save_repositories()

    def select_repository(self, repo_id: Optional[int]) -> None:
        self.selected_repo_id = repo_id

    @property
    def selected_repository(self) -> Optional[Repository]:
        return next(
            (r for r in self.repositories if r["id"] == self.selected_repo_id), None
        )

    def _apply_update_results(self, results: Dict[int, Repository]) -> None:
        with self._repositories_lock:
            self.repositories = merge_results(self.repositories, results)
            self._save_repositories()

    def check_updates(self) -> bool:
        """Runs a manual update check; True if its results were applied."""
        if not self.repositories:
            return False
        return self.scheduler.check_now()

    @property
    def is_checking(self) -> bool:
        return self.scheduler.is_checking

    def start_polling(self) -> None:
        """
        Polls repositories immediately and then hourly, once there is something
        to poll, and refreshes every news source in the background hourly.
        """
        self._polling_requested = True
        if self.repositories:
            self.scheduler.start()
        self.news_refresher.start()

    def stop_polling(self) -> None:
        self._polling_requested = False
        self.scheduler.stop()
        self.news_refresher.stop()

    # News

    def _save_news_sources(self) -> None:
        self.store.save(db.NEWS_SOURCES_KEY, self.news_sources)

    def _check_new_source(self, url: str) -> str:
        origin = canonical_origin(url)
        if any(canonical_origin(s["url"]) == origin for s in self.news_sources):
            raise DuplicateEntityError("News source already added.")
        return origin

    def suggest_news_tags(self, url: str) -> Tuple[str, List[str]]:
        """Validates a news site and returns its origin with AI-suggested tags."""
        origin = self._check_new_source(url)
        return origin, self.llm.generate_tags(origin)

    def add_news_source(self, url: str, tags: Iterable[str] = ()) -> NewsSource:
        origin = self._check_new_source(url)
        selected: List[str] = []
        for tag in tags:
            formatted = normalize_tag(tag.strip())
            if formatted and formatted not in selected:
                selected.append(formatted)

        source = NewsSource(id=uuid.uuid4().hex, url=origin, tags=selected)
        self.news_sources = [source] + self.news_sources
        self._save_news_sources()
        return source

    def remove_news_source(self, source_id: str) -> None:
        self.news_sources = [s for s in self.news_sources if s["id"] != source_id]
        self.news.forget(source_id)
        self._save_news_sources()

    def fetch_news(self) -> None:
        """Fetches every source that has not been fetched yet."""
        self.news.fetch_missing(self.news_sources)

    def refresh_news(self) -> None:
        self.news.refresh_all(self.news_sources)

    def articles_for(self, source_id: str) -> List[NewsArticle]:
        return list(self.news.articles.get(source_id, []))

    def all_news_tags(self) -> List[str]:
        return all_tags(self.news_sources)

    def filter_news_sources(self, active_tags: Iterable[str]) -> List[NewsSource]:
        return filter_sources(self.news_sources, active_tags)

    # Videos

    def _save_video_tags(self) -> None:
        self.store.save(db.YOUTUBE_TAGS_KEY, self.video_tags)

    def add_video_tag(self, name: str) -> YouTubeTag:
        tag_name = name.strip()
        if not tag_name:
            raise ValueError("Tag name cannot be empty.")
        if any(t["name"].lower() == tag_name.lower() for t in self.video_tags):
            raise DuplicateEntityError("Tag already added.")

        tag = YouTubeTag(id=uuid.uuid4().hex, name=tag_name)
        self.video_tags = self.video_tags + [tag]
        self._save_video_tags()
        return tag

    def remove_video_tag(self, tag_id: str) -> None:
        self.video_tags = [t for t in self.video_tags if t["id"] != tag_id]
        self._save_video_tags()

    def search_videos(
        self, sort_by: str = "date", time_frame: str = "week", page: int = 1
    ) -> VideoPage:
        """Searches videos for all tracked tags; raises TrackerError on bad AI output."""
        if not self.video_tags:
            return VideoPage(videos=[], page=page, has_more=False)

        videos = self.llm.search_videos(
            [t["name"] for t in self.video_tags],
            sort_by=sort_by,
            time_frame=time_frame,
            page=page,
            per_page=self.videos_per_page,
        )
        return VideoPage(
            videos=videos, page=page, has_more=len(videos) == self.videos_per_page
        )

    # Chat

    def chat(self) -> ChatSession:
        if self._chat is None:
            self._chat = ChatSession(self.llm)
        return self._chat

    def close(self) -> None:
        self.stop_polling()
        if self._chat is not None:
            self._chat.close()
            self._chat = None


def build_dashboard(settings: Optional[Dict] = None) -> Dashboard:
    """Wires the dashboard from config.json and the environment."""
    settings = settings or config.load_config()
    timeout = settings["request_timeout_seconds"]
    models = settings["models"]

    llm: LLMService
    if config.RELAY_URL:
        llm = RelayLLMService(
            config.RELAY_URL,
            timeout=timeout,
            flash_model=models["flash"],
            pro_model=models["pro"],
            thinking_budget=settings["thinking_budget"],
        )
    else:
        llm = LLMService(
            config.GEMINI_API_KEY,
            flash_model=models["flash"],
            pro_model=models["pro"],
            thinking_budget=settings["thinking_budget"],
        )

    return Dashboard(
        store=db.create_store(config.GCP_PROJECT_ID, settings["state_file"]),
        github=GitHubService(
            settings["github_api_base"], token=config.GITHUB_TOKEN, timeout=timeout
        ),
        llm=llm,
        poll_interval=settings["poll_interval_seconds"],
        news_refresh_interval=settings["news_refresh_interval_seconds"],
        videos_per_page=settings["videos_per_page"],
    )


def main():
    """Runs one refresh cycle and logs what changed."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if not config.RELAY_URL and not config.GEMINI_API_KEY:
        logger.warning("Neither RELAY_URL nor GEMINI_KEY set. AI features disabled.")

    dashboard = build_dashboard()
    try:
        if dashboard.check_updates():
            updated = [r["fullName"] for r in dashboard.repositories if r["hasUpdate"]]
            logger.info("Repositories with new releases: %s", ", ".join(updated) or "none")
        else:
            logger.info("No repositories tracked.")

        dashboard.fetch_news()
        for source in dashboard.news_sources:
            logger.info(
                "%s: %d articles", source["url"], len(dashboard.articles_for(source["id"]))
            )
    finally:
        dashboard.close()


if __name__ == "__main__":
    main()
