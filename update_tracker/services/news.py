"""
News aggregation.

This module provides the NewsAggregator class, which accumulates the articles
Gemini finds for each news source across repeated fetches, and the
NewsRefresher that refreshes every source in the background.
"""

import concurrent.futures
import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional

from update_tracker.models import NewsArticle, NewsSource

logger = logging.getLogger(__name__)


def all_tags(sources: Iterable[NewsSource]) -> List[str]:
    """Returns the sorted union of every source's tags."""
    tags = set()
    for source in sources:
        tags.update(source["tags"])
    return sorted(tags)


def filter_sources(
    sources: List[NewsSource], active_tags: Iterable[str]
) -> List[NewsSource]:
    """Keeps sources with at least one active tag; no active tag keeps all."""
    active = set(active_tags)
    if not active:
        return list(sources)
    return [s for s in sources if any(tag in active for tag in s["tags"])]


class NewsAggregator:
    """Keeps the accumulated articles of every source, newest first."""

    def __init__(self, summarize: Callable[[str], List[NewsArticle]]):
        self.summarize = summarize
        self.articles: Dict[str, List[NewsArticle]] = {}
        self.loading: Dict[str, bool] = {}
        self._lock = threading.Lock()

    def fetch_for_source(
        self, source: NewsSource, background: bool = False
    ) -> List[NewsArticle]:
        """
        Fetches the source and prepends articles whose link is not known yet.

        Returns the newly added articles. A failed fetch adds nothing; a
        manual (non-background) fetch still makes sure the source has a list.
        """
        source_id = source["id"]
        if not background:
            self.loading[source_id] = True
        try:
            fetched = self.summarize(source["url"])
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Failed to fetch news for %s: %s", source["url"], e)
            if not background:
                with self._lock:
                    self.articles.setdefault(source_id, [])
            return []
        finally:
            if not background:
                self.loading[source_id] = False

        with self._lock:
            current = self.articles.get(source_id, [])
            known_links = {a["link"] for a in current}
            new_articles = []
            for article in fetched:
                if article["link"] not in known_links:
                    known_links.add(article["link"])
                    new_articles.append(article)
            self.articles[source_id] = new_articles + current

        logger.info(
            "News for %s: %d fetched -> %d new.",
            source["url"],
            len(fetched),
            len(new_articles),
        )
        return new_articles

    def _fetch_many(self, sources: List[NewsSource], background: bool) -> None:
        if not sources:
            return
        with concurrent.futures.ThreadPoolExecutor() as executor:
            futures = [
                executor.submit(self.fetch_for_source, source, background)
                for source in sources
            ]
            concurrent.futures.wait(futures)

    def fetch_missing(self, sources: List[NewsSource]) -> None:
        """Fetches every source that has never been fetched."""
        self._fetch_many([s for s in sources if s["id"] not in self.articles], False)

    def refresh_all(self, sources: List[NewsSource]) -> None:
        """Background refresh of every source."""
        self._fetch_many(sources, True)

    def forget(self, source_id: str) -> None:
        with self._lock:
            self.articles.pop(source_id, None)
            self.loading.pop(source_id, None)


class NewsRefresher:
    """Runs a background refresh of every source once per interval."""

    def __init__(
        self,
        aggregator: NewsAggregator,
        get_sources: Callable[[], List[NewsSource]],
        interval: float = 3600,
    ):
        self.aggregator = aggregator
        self.get_sources = get_sources
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        # The first refresh waits a full interval; initial fetches are manual.
        while not self._stop.wait(self.interval):
            try:
                self.aggregator.refresh_all(self.get_sources())
            except Exception as e:  # pylint: disable=broad-exception-caught
                logger.error("Scheduled news refresh failed: %s", e)

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="news-refresher", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=5)
        self._thread = None
