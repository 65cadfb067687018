"""Thread-safe crawl statistics aggregation utilities."""

from __future__ import annotations

import threading
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Mapping

from .frontier import EnqueueResult, EnqueueStatus
from .types import CrawlStage, OutputFormat, utc_now_iso


class StatsCollector:
    """Collect and summarize crawler runtime statistics.

    The collector is thread-safe and intended for use across concurrent
    crawl workers.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.started_at = utc_now_iso()
        self.finished_at: str | None = None

        self._enqueue_counts: dict[str, int] = defaultdict(int)
        self._frontier_snapshot: dict[str, int | bool] = {}

        self._requests_finished = 0
        self._requests_failed = 0
        self._requests_retried = 0
        self._status_code_counts: dict[str, int] = defaultdict(int)
        self._error_type_counts: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))

        self._pages_extracted = 0
        self._duplicate_pages = 0
        self._text_chars_total = 0
        self._links_total = 0

        self._files_saved: dict[str, int] = defaultdict(int)
        self._save_errors: dict[str, int] = defaultdict(int)

    def record_enqueue(self, result_or_status: EnqueueResult | EnqueueStatus) -> None:
        if isinstance(result_or_status, EnqueueResult):
            status = result_or_status.status
        else:
            status = result_or_status
        with self._lock:
            self._enqueue_counts[status.value] += 1

    def record_enqueue_many(self, results: list[EnqueueResult] | tuple[EnqueueResult, ...]) -> None:
        for result in results:
            self.record_enqueue(result)

    def record_frontier_snapshot(self, snapshot: Mapping[str, int | bool]) -> None:
        with self._lock:
            self._frontier_snapshot = dict(snapshot)

    def record_request(self, *, ok: bool, status_code: int | None = None) -> None:
        with self._lock:
            if ok:
                self._requests_finished += 1
            else:
                self._requests_failed += 1
            if status_code is not None:
                self._status_code_counts[str(status_code)] += 1

    def record_retry(self) -> None:
        with self._lock:
            self._requests_retried += 1

    def record_error(self, stage: CrawlStage, error_type: str | None) -> None:
        with self._lock:
            self._error_type_counts[stage.value][error_type or "Unknown"] += 1

    def record_page(self, *, text_chars: int, links: int) -> None:
        with self._lock:
            self._pages_extracted += 1
            self._text_chars_total += text_chars
            self._links_total += links

    def record_duplicate_page(self) -> None:
        with self._lock:
            self._duplicate_pages += 1

    def record_file_saved(self, fmt: OutputFormat | str, count: int = 1) -> None:
        if count <= 0:
            return
        key = fmt.value if isinstance(fmt, OutputFormat) else str(fmt)
        with self._lock:
            self._files_saved[key] += count

    def record_save_error(self, fmt: OutputFormat | str) -> None:
        key = fmt.value if isinstance(fmt, OutputFormat) else str(fmt)
        with self._lock:
            self._save_errors[key] += 1

    @property
    def files_saved(self) -> int:
        with self._lock:
            return sum(self._files_saved.values())

    def finish(self) -> None:
        with self._lock:
            self.finished_at = utc_now_iso()

    def to_json(self) -> dict[str, Any]:
        """Return a JSON-serializable summary payload."""

        with self._lock:
            start = _parse_iso_utc(self.started_at)
            end = _parse_iso_utc(self.finished_at) if self.finished_at else datetime.now(timezone.utc)
            duration_seconds = max(0.0, (end - start).total_seconds())
            requests_total = self._requests_finished + self._requests_failed

            return {
                "started_at": self.started_at,
                "finished_at": self.finished_at,
                "duration_seconds": duration_seconds,
                "requests": {
                    "finished": self._requests_finished,
                    "failed": self._requests_failed,
                    "retried": self._requests_retried,
                    "per_second": requests_total / duration_seconds if duration_seconds > 0 else 0.0,
                    "status_code_counts": dict(self._status_code_counts),
                },
                "pages": {
                    "extracted": self._pages_extracted,
                    "duplicates_skipped": self._duplicate_pages,
                    "text_chars_total": self._text_chars_total,
                    "links_total": self._links_total,
                },
                "files": {
                    "saved": dict(self._files_saved),
                    "save_errors": dict(self._save_errors),
                },
                "errors": {
                    stage: dict(counts) for stage, counts in self._error_type_counts.items()
                },
                "frontier": {
                    "enqueue_counts": dict(self._enqueue_counts),
                    "snapshot": dict(self._frontier_snapshot),
                },
            }


def _parse_iso_utc(value: str | None) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


__all__ = ["StatsCollector"]
