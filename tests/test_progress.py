"""Tests for the durable progress record and its state machine."""

from __future__ import annotations

import json
import threading

import pytest

from site_crawler.progress import ProgressTracker, progress_path, read_progress
from site_crawler.types import CrawlStatus


SEED = "https://u.edu"


@pytest.fixture
def tracker(tmp_path):
    return ProgressTracker(base_dir=tmp_path, label="U University")


class TestLifecycle:
    def test_init_writes_starting_record(self, tracker, tmp_path):
        record = tracker.init(seed_url=SEED)
        assert record.status == CrawlStatus.STARTING
        assert tracker.path == progress_path(tmp_path, "u-university")

        payload = json.loads(tracker.path.read_text(encoding="utf-8"))
        assert payload["status"] == "starting"
        assert payload["pagesProcessed"] == 0
        assert payload["totalEnqueued"] == 0
        assert payload["currentUrl"] == SEED
        assert payload["seedUrl"] == SEED
        assert payload["universityName"] == "U University"
        assert payload["endTime"] is None
        assert payload["startTime"]

    def test_update_then_complete(self, tracker):
        tracker.init(seed_url=SEED)
        running = tracker.update(pages_processed=1, total_enqueued=4, current_url="https://u.edu/a")
        assert running.status == CrawlStatus.RUNNING
        assert running.current_url == "https://u.edu/a"

        done = tracker.complete(pages_processed=3, total_enqueued=5, output_file="/tmp/x.md")
        assert done.status == CrawlStatus.COMPLETED
        assert done.pages_processed == 3
        assert done.total_enqueued == 5
        assert done.current_url == ""
        assert done.end_time
        assert done.output_file == "/tmp/x.md"
        assert tracker.read() == done

    def test_update_without_record_raises(self, tracker):
        with pytest.raises(RuntimeError):
            tracker.update(pages_processed=1, total_enqueued=1, current_url=SEED)


class TestMonotonicCounts:
    def test_stale_update_does_not_regress(self, tracker):
        tracker.init(seed_url=SEED)
        tracker.update(pages_processed=5, total_enqueued=9, current_url="https://u.edu/5")
        record = tracker.update(pages_processed=3, total_enqueued=7, current_url="https://u.edu/3")
        assert record.pages_processed == 5
        assert record.total_enqueued == 9

    def test_concurrent_updates_keep_maximum(self, tracker):
        tracker.init(seed_url=SEED)

        def worker(offset):
            for count in range(offset, 40, 4):
                tracker.update(pages_processed=count, total_enqueued=count, current_url=SEED)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert tracker.read().pages_processed == 39


class TestTerminalRecords:
    def test_completed_record_is_frozen(self, tracker):
        tracker.init(seed_url=SEED)
        done = tracker.complete(pages_processed=2)

        assert tracker.update(pages_processed=9, total_enqueued=9, current_url=SEED) == done
        assert tracker.fail("late error") == done
        assert tracker.read().status == CrawlStatus.COMPLETED
        assert tracker.read().error is None

    def test_fail_keeps_counters(self, tracker):
        tracker.init(seed_url=SEED)
        tracker.update(pages_processed=4, total_enqueued=6, current_url="https://u.edu/x")
        failed = tracker.fail("RuntimeError: boom")

        assert failed.status == CrawlStatus.FAILED
        assert failed.error == "RuntimeError: boom"
        assert failed.pages_processed == 4
        assert failed.total_enqueued == 6
        assert failed.end_time

        assert tracker.complete(pages_processed=10).status == CrawlStatus.FAILED

    def test_fail_without_record_creates_one(self, tracker):
        failed = tracker.fail("setup failed")
        assert failed.status == CrawlStatus.FAILED
        assert tracker.read().error == "setup failed"


class TestReadProgress:
    def test_missing_job(self, tmp_path):
        assert read_progress(tmp_path, "nobody") is None

    def test_reads_by_job_id(self, tracker, tmp_path):
        tracker.init(seed_url=SEED)
        record = read_progress(tmp_path, "u-university")
        assert record is not None
        assert record.status == CrawlStatus.STARTING
