"""Tests for the frontier: dedup, filtering, entry states, retries, budgets."""

from __future__ import annotations

import threading

from site_crawler.frontier import EnqueueStatus, Frontier
from site_crawler.types import EntryStatus


def _frontier(**kwargs) -> Frontier:
    return Frontier(base_domain="u.edu", **kwargs)


class TestPush:
    def test_same_canonical_url_enqueued_once(self):
        frontier = _frontier()
        first = frontier.push("https://u.edu/about/")
        second = frontier.push("https://u.edu/about#team")
        third = frontier.push("https://U.EDU/about?utm_source=x")

        assert first.status == EnqueueStatus.ENQUEUED
        assert first.normalized_url == "https://u.edu/about"
        assert second.status == EnqueueStatus.SKIPPED_SEEN
        assert third.status == EnqueueStatus.SKIPPED_SEEN
        assert frontier.qsize() == 1
        assert frontier.total_enqueued == 1

    def test_filters(self):
        frontier = _frontier()
        assert frontier.push("not a url").status == EnqueueStatus.SKIPPED_INVALID_URL
        assert frontier.push("https://other.org/").status == EnqueueStatus.SKIPPED_EXTERNAL
        assert frontier.push("https://u.edu/file.pdf").status == EnqueueStatus.SKIPPED_NOT_CRAWLABLE
        assert frontier.push("https://sub.u.edu/x").accepted
        assert frontier.total_enqueued == 1

    def test_seed_is_exempt_from_crawlability_filter(self):
        frontier = _frontier()
        assert frontier.seed("https://u.edu/feed").accepted

    def test_max_pages_budget(self):
        frontier = _frontier(max_pages=2)
        results = frontier.push_many(["https://u.edu/a", "https://u.edu/b", "https://u.edu/c"])
        assert [result.status for result in results] == [
            EnqueueStatus.ENQUEUED,
            EnqueueStatus.ENQUEUED,
            EnqueueStatus.SKIPPED_BUDGET,
        ]

    def test_closed_frontier_rejects(self):
        frontier = _frontier()
        frontier.close()
        assert frontier.push("https://u.edu/a").status == EnqueueStatus.SKIPPED_CLOSED

    def test_concurrent_pushes_enqueue_once(self):
        frontier = _frontier()
        urls = [f"https://u.edu/p{i % 20}" for i in range(400)]
        barrier = threading.Barrier(8)

        def worker(chunk):
            barrier.wait()
            frontier.push_many(chunk)

        threads = [threading.Thread(target=worker, args=(urls[i::8],)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert frontier.qsize() == 20
        assert frontier.total_enqueued == 20


class TestEntryLifecycle:
    def test_pending_in_flight_done(self):
        frontier = _frontier()
        frontier.seed("https://u.edu")
        assert frontier.status_of("https://u.edu/") == EntryStatus.PENDING

        item = frontier.pop(block=False)
        assert item is not None
        assert frontier.status_of(item.url) == EntryStatus.IN_FLIGHT
        assert frontier.active_count() == 1

        frontier.mark_done(item)
        frontier.task_done()
        assert frontier.status_of(item.url) == EntryStatus.DONE
        assert frontier.active_count() == 0
        assert frontier.pop(block=False) is None

    def test_retry_until_budget_exhausted(self):
        frontier = _frontier(max_retries=2)
        frontier.seed("https://u.edu/x")

        item = frontier.pop(block=False)
        retried = frontier.retry(item)
        frontier.task_done()
        assert retried.attempt == 1
        assert frontier.status_of("https://u.edu/x") == EntryStatus.PENDING

        item = frontier.pop(block=False)
        assert item.attempt == 1
        retried = frontier.retry(item)
        frontier.task_done()
        assert retried.attempt == 2

        item = frontier.pop(block=False)
        assert frontier.retry(item) is None
        frontier.task_done()
        assert frontier.status_of("https://u.edu/x") == EntryStatus.FAILED
        assert frontier.empty()

        snapshot = frontier.snapshot()
        assert snapshot["retried"] == 2
        assert snapshot["failed"] == 1

    def test_failed_url_is_not_requeued_by_discovery(self):
        frontier = _frontier(max_retries=0)
        frontier.seed("https://u.edu/x")
        item = frontier.pop(block=False)
        frontier.mark_failed(item)
        frontier.task_done()
        assert frontier.push("https://u.edu/x").status == EnqueueStatus.SKIPPED_SEEN
        assert "https://u.edu/x" in frontier.seen_urls()
