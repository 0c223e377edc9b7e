"""Unit tests for the repository update poller."""

import datetime
import threading
import unittest
from unittest.mock import MagicMock

from update_tracker.exceptions import GitHubError
from update_tracker.services.poller import (
    UpdateChecker,
    UpdateScheduler,
    is_fresh,
    merge_results,
)

NOW = datetime.datetime(2024, 6, 10, 12, 0, 0, tzinfo=datetime.timezone.utc)


def _iso(moment):
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def _repo(repo_id, name="o/r", **extra):
    repo = {
        "id": repo_id,
        "fullName": name,
        "url": f"https://github.com/{name}",
        "description": None,
        "avatarUrl": "",
        "hasUpdate": False,
    }
    repo.update(extra)
    return repo


def _release(published_at):
    return {
        "name": "v1",
        "tag_name": "v1",
        "published_at": published_at,
        "html_url": "https://github.com/o/r/releases/tag/v1",
    }


class TestFreshness(unittest.TestCase):
    def test_window_boundary(self):
        stale = NOW - datetime.timedelta(days=3, seconds=1)
        fresh = NOW - datetime.timedelta(days=2, hours=23)
        self.assertFalse(is_fresh(_iso(stale), NOW))
        self.assertTrue(is_fresh(_iso(fresh), NOW))

    def test_exactly_three_days_is_not_fresh(self):
        self.assertFalse(is_fresh(_iso(NOW - datetime.timedelta(days=3)), NOW))


class TestUpdateChecker(unittest.TestCase):
    def setUp(self):
        self.github = MagicMock()
        self.checker = UpdateChecker(self.github)

    def test_fresh_release_sets_update(self):
        published = _iso(NOW - datetime.timedelta(days=1))
        self.github.fetch_latest_release.return_value = _release(published)

        result = self.checker.check_repository(_repo(1), now=NOW)

        self.github.fetch_latest_release.assert_called_once_with("o", "r")
        self.assertTrue(result["hasUpdate"])
        self.assertEqual(result["latestRelease"]["publishedAt"], published)

    def test_no_release_clears_release(self):
        self.github.fetch_latest_release.return_value = None
        repo = _repo(1, hasUpdate=True, latestRelease={"tagName": "v0"})

        result = self.checker.check_repository(repo, now=NOW)

        self.assertFalse(result["hasUpdate"])
        self.assertNotIn("latestRelease", result)
        # The input entry is not mutated.
        self.assertTrue(repo["hasUpdate"])

    def test_failure_degrades_without_raising(self):
        self.github.fetch_latest_release.side_effect = GitHubError("boom")
        repo = _repo(1, hasUpdate=True)

        result = self.checker.check_repository(repo, now=NOW)

        self.assertFalse(result["hasUpdate"])
        self.assertNotIn("latestRelease", result)

    def test_unparseable_url_left_unchanged(self):
        repo = _repo(1)
        repo["url"] = "https://example.com/o/r"
        self.assertIs(self.checker.check_repository(repo), repo)
        self.github.fetch_latest_release.assert_not_called()

    def test_check_all_isolates_failures(self):
        recent = _iso(datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(hours=1))

        def latest(owner, repo):
            if repo == "bad":
                raise GitHubError("unreachable")
            return _release(recent)

        self.github.fetch_latest_release.side_effect = latest
        repos = [_repo(1, "o/good"), _repo(2, "o/bad")]

        results = self.checker.check_all(repos)

        self.assertEqual(set(results), {1, 2})
        self.assertTrue(results[1]["hasUpdate"])
        self.assertFalse(results[2]["hasUpdate"])

    def test_check_twice_is_idempotent(self):
        published = _iso(NOW - datetime.timedelta(days=1))
        self.github.fetch_latest_release.return_value = _release(published)
        first = self.checker.check_repository(_repo(1), now=NOW)
        second = self.checker.check_repository(first, now=NOW)
        self.assertEqual(first, second)


class TestMergeResults(unittest.TestCase):
    def test_absent_entries_are_kept(self):
        repos = [_repo(1, "o/a"), _repo(2, "o/b"), _repo(3, "o/c")]
        results = {2: _repo(2, "o/b", hasUpdate=True)}

        merged = merge_results(repos, results)

        self.assertEqual([r["id"] for r in merged], [1, 2, 3])
        self.assertTrue(merged[1]["hasUpdate"])
        self.assertIs(merged[0], repos[0])

    def test_results_for_removed_entries_are_ignored(self):
        merged = merge_results([_repo(1)], {9: _repo(9)})
        self.assertEqual([r["id"] for r in merged], [1])


class TestUpdateScheduler(unittest.TestCase):
    def test_check_now_applies_results(self):
        checker = MagicMock()
        checker.check_all.return_value = {1: _repo(1, hasUpdate=True)}
        applied = []
        scheduler = UpdateScheduler(checker, lambda: [_repo(1)], applied.append)

        self.assertTrue(scheduler.check_now())
        self.assertEqual(applied, [{1: _repo(1, hasUpdate=True)}])
        self.assertFalse(scheduler.is_checking)

    def test_superseded_check_is_discarded(self):
        entered = threading.Event()
        release = threading.Event()
        calls = []

        def check_all(repositories):
            calls.append(len(calls))
            if len(calls) == 1:
                entered.set()
                release.wait(5)
                return {1: _repo(1, hasUpdate=False)}
            return {1: _repo(1, hasUpdate=True)}

        checker = MagicMock()
        checker.check_all.side_effect = check_all
        applied = []
        scheduler = UpdateScheduler(checker, lambda: [_repo(1)], applied.append)

        outcome = {}
        slow = threading.Thread(target=lambda: outcome.update(slow=scheduler.check_now()))
        slow.start()
        self.assertTrue(entered.wait(5))
        self.assertTrue(scheduler.is_checking)

        self.assertTrue(scheduler.check_now())
        release.set()
        slow.join(5)

        self.assertFalse(outcome["slow"])
        self.assertEqual(len(applied), 1)
        self.assertTrue(applied[0][1]["hasUpdate"])
        self.assertFalse(scheduler.is_checking)

    def test_start_checks_immediately_and_stop(self):
        checked = threading.Event()
        checker = MagicMock()
        checker.check_all.side_effect = lambda repos: checked.set() or {}
        scheduler = UpdateScheduler(checker, lambda: [_repo(1)], lambda r: None, interval=3600)

        scheduler.start()
        try:
            self.assertTrue(checked.wait(5))
            self.assertTrue(scheduler.is_running)
        finally:
            scheduler.stop()
        self.assertFalse(scheduler.is_running)


if __name__ == "__main__":
    unittest.main()
