"""
Repository update polling.

This module provides the UpdateChecker, which checks every tracked repository
for a fresh release, and the UpdateScheduler, which runs those checks
immediately, on a fixed interval and on demand.
"""

import concurrent.futures
import datetime
import logging
import threading
from typing import Callable, Dict, List, Optional, cast

from update_tracker.models import Repository
from update_tracker.services.github import GitHubService, parse_repo_url, release_snapshot

logger = logging.getLogger(__name__)

FRESHNESS_WINDOW = datetime.timedelta(days=3)


def _parse_timestamp(value: str) -> datetime.datetime:
    """Parses GitHub's ISO 8601 timestamps ("2024-01-01T00:00:00Z")."""
    parsed = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


def is_fresh(published_at: str, now: Optional[datetime.datetime] = None) -> bool:
    """True when the release was published strictly within the last 3 days."""
    now = now or datetime.datetime.now(datetime.timezone.utc)
    return _parse_timestamp(published_at) > now - FRESHNESS_WINDOW


def merge_results(
    repositories: List[Repository], results: Dict[int, Repository]
) -> List[Repository]:
    """Replaces checked entries by id; entries without a result are kept as-is."""
    return [results.get(repo["id"], repo) for repo in repositories]


class UpdateChecker:
    """Checks tracked repositories for new releases."""

    def __init__(self, github: GitHubService):
        self.github = github

    def check_repository(
        self, repository: Repository, now: Optional[datetime.datetime] = None
    ) -> Repository:
        """Returns an updated copy of the repository; never raises."""
        parsed = parse_repo_url(repository["url"])
        if not parsed:
            return repository

        updated = cast(Repository, dict(repository))
        try:
            release = self.github.fetch_latest_release(*parsed)
            if release:
                updated["hasUpdate"] = is_fresh(release["published_at"], now)
                updated["latestRelease"] = release_snapshot(release)
            else:
                updated["hasUpdate"] = False
                updated.pop("latestRelease", None)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Failed to check updates for %s: %s", repository["fullName"], e)
            updated = cast(Repository, dict(repository))
            updated["hasUpdate"] = False
        return updated

    def check_all(self, repositories: List[Repository]) -> Dict[int, Repository]:
        """Checks every repository in parallel and maps id -> updated entry."""
        results: Dict[int, Repository] = {}
        if not repositories:
            return results

        logger.info("--- Checking %d repositories for releases ---", len(repositories))
        with concurrent.futures.ThreadPoolExecutor() as executor:
            future_to_repo = {
                executor.submit(self.check_repository, repo): repo for repo in repositories
            }
            for future in concurrent.futures.as_completed(future_to_repo):
                repo = future_to_repo[future]
                try:
                    results[repo["id"]] = future.result()
                except Exception as exc:  # pylint: disable=broad-exception-caught
                    logger.error("%s generated an exception: %s", repo["fullName"], exc)
        return results


class UpdateScheduler:
    """
    Runs repository checks on a timer and on demand.

    Every run takes a token from a counter. When a run finishes, its results
    are applied only if no newer run has started meanwhile, so a slow run can
    never overwrite the results of a later one.
    """

    def __init__(
        self,
        checker: UpdateChecker,
        get_repositories: Callable[[], List[Repository]],
        apply: Callable[[Dict[int, Repository]], None],
        interval: float = 3600,
    ):
        self.checker = checker
        self.get_repositories = get_repositories
        self.apply = apply
        self.interval = interval

        self._lock = threading.Lock()
        self._latest_token = 0
        self._in_flight = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_checking(self) -> bool:
        with self._lock:
            return self._in_flight > 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def check_now(self) -> bool:
        """Runs one check. Returns True if its results were applied."""
        with self._lock:
            self._latest_token += 1
            token = self._latest_token
            self._in_flight += 1

        try:
            repositories = self.get_repositories()
            results = self.checker.check_all(repositories)
            with self._lock:
                if token != self._latest_token:
                    logger.info("Discarding results of superseded check #%d.", token)
                    return False
                self.apply(results)
            return True
        finally:
            with self._lock:
                self._in_flight -= 1

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.check_now()
            except Exception as e:  # pylint: disable=broad-exception-caught
                logger.error("Scheduled update check failed: %s", e)
            self._stop.wait(self.interval)

    def start(self) -> None:
        """Checks once immediately, then every interval, on a daemon thread."""
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="update-scheduler", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=5)
        self._thread = None
