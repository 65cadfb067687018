"""Durable, pollable crawl status (`{base}/{job_id}/progress.json`).

Every operation is a full read-modify-write of the file under a per-path lock,
so concurrent workers in this process never lose an update and an external
poller only ever reads a complete record.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path

from .constants import PROGRESS_FILENAME
from .formatters.base import atomic_write_json, job_dir
from .types import CrawlProgress, CrawlStatus, utc_now_iso


LOGGER = logging.getLogger(__name__)

_PATH_LOCKS: dict[Path, threading.Lock] = {}
_PATH_LOCKS_GUARD = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = path.resolve()
    with _PATH_LOCKS_GUARD:
        lock = _PATH_LOCKS.get(key)
        if lock is None:
            lock = threading.Lock()
            _PATH_LOCKS[key] = lock
        return lock


def progress_path(base_dir: str | Path, job_id: str) -> Path:
    return job_dir(base_dir, job_id) / PROGRESS_FILENAME


def read_progress(base_dir: str | Path, job_id: str) -> CrawlProgress | None:
    """Load a job's record, or `None` when none exists yet."""

    path = progress_path(base_dir, job_id)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    return CrawlProgress.from_json(payload)


class ProgressTracker:
    """State machine `starting -> running -> {completed, failed}` for one job.

    Terminal records are frozen: later writes are ignored and the stored
    record is returned unchanged.
    """

    def __init__(self, *, base_dir: str | Path, label: str) -> None:
        self.base_dir = Path(base_dir)
        self.label = label
        self.path = job_dir(self.base_dir, label) / PROGRESS_FILENAME
        self._lock = _lock_for(self.path)

    def read(self) -> CrawlProgress | None:
        with self._lock:
            return self._load()

    def init(self, *, seed_url: str) -> CrawlProgress:
        """Create the record in `starting` with zero counts."""

        record = CrawlProgress(
            status=CrawlStatus.STARTING,
            pages_processed=0,
            total_enqueued=0,
            current_url=seed_url,
            start_time=utc_now_iso(),
            seed_url=seed_url,
            university_name=self.label,
        )
        with self._lock:
            atomic_write_json(self.path, record.to_json())
        return record

    def update(self, *, pages_processed: int, total_enqueued: int, current_url: str) -> CrawlProgress:
        with self._lock:
            record = self._load_existing()
            if record.status.terminal:
                LOGGER.debug("Ignoring progress update for finished job %s", self.label)
                return record

            if pages_processed < record.pages_processed:
                LOGGER.debug(
                    "Stale progress update for %s (%d < %d); keeping stored count",
                    self.label,
                    pages_processed,
                    record.pages_processed,
                )
            record.status = CrawlStatus.RUNNING
            record.pages_processed = max(record.pages_processed, pages_processed)
            record.total_enqueued = max(record.total_enqueued, total_enqueued)
            record.current_url = current_url
            atomic_write_json(self.path, record.to_json())
            return record

    def complete(
        self,
        *,
        pages_processed: int,
        output_file: str | None = None,
        total_enqueued: int | None = None,
    ) -> CrawlProgress:
        with self._lock:
            record = self._load_existing()
            if record.status.terminal:
                LOGGER.debug("Ignoring completion for finished job %s", self.label)
                return record

            record.status = CrawlStatus.COMPLETED
            record.pages_processed = max(record.pages_processed, pages_processed)
            if total_enqueued is not None:
                record.total_enqueued = total_enqueued
            record.current_url = ""
            record.end_time = utc_now_iso()
            record.output_file = output_file
            atomic_write_json(self.path, record.to_json())
            return record

    def fail(self, error: str) -> CrawlProgress:
        """Mark the job failed; counters keep their last recorded values."""

        with self._lock:
            record = self._load()
            if record is None:
                LOGGER.warning("No progress record for %s; writing failed record", self.label)
                record = CrawlProgress(
                    status=CrawlStatus.FAILED,
                    pages_processed=0,
                    total_enqueued=0,
                    current_url="",
                    start_time=utc_now_iso(),
                    seed_url="",
                    university_name=self.label,
                )
            elif record.status.terminal:
                LOGGER.debug("Ignoring failure for finished job %s", self.label)
                return record

            record.status = CrawlStatus.FAILED
            record.end_time = utc_now_iso()
            record.error = error
            atomic_write_json(self.path, record.to_json())
            return record

    def _load(self) -> CrawlProgress | None:
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        return CrawlProgress.from_json(payload)

    def _load_existing(self) -> CrawlProgress:
        record = self._load()
        if record is None:
            raise RuntimeError(f"Progress record not initialized: {self.path}")
        return record


__all__ = [
    "ProgressTracker",
    "progress_path",
    "read_progress",
]
