"""Thread-safe frontier queue with same-site filtering, dedup, and retries."""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable

from .types import EntryStatus, FrontierItem
from .url import is_crawlable, is_internal, normalize_url


class EnqueueStatus(str, Enum):
    """Result status for frontier enqueue attempts."""

    ENQUEUED = "enqueued"
    SKIPPED_INVALID_URL = "skipped_invalid_url"
    SKIPPED_EXTERNAL = "skipped_external"
    SKIPPED_NOT_CRAWLABLE = "skipped_not_crawlable"
    SKIPPED_SEEN = "skipped_seen"
    SKIPPED_BUDGET = "skipped_budget"
    SKIPPED_CLOSED = "skipped_closed"


@dataclass(frozen=True, slots=True)
class EnqueueResult:
    """Outcome of one enqueue attempt."""

    status: EnqueueStatus
    normalized_url: str | None = None
    item: FrontierItem | None = None

    @property
    def accepted(self) -> bool:
        return self.status == EnqueueStatus.ENQUEUED


class Frontier:
    """Frontier queue used by producer/consumer crawl workers.

    - Thread-safe `push` and `pop` for multi-worker crawling.
    - The canonical URL is the only dedup key; a URL is marked seen at
      enqueue-time, in the same critical section that queues it.
    - Each entry moves `pending -> in_flight -> done | failed`; a retryable
      failure sends it back to `pending` until the retry budget runs out.
    """

    def __init__(
        self,
        *,
        base_domain: str,
        max_retries: int = 0,
        max_pages: int | None = None,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")

        self.base_domain = base_domain
        self.max_retries = max_retries
        self.max_pages = max_pages

        self._queue: queue.Queue[FrontierItem] = queue.Queue()
        self._lock = threading.Lock()

        self._status: dict[str, EntryStatus] = {}

        self._enqueued_count = 0
        self._dequeued_count = 0
        self._retried_count = 0
        self._skipped_seen_count = 0
        self._skipped_invalid_count = 0
        self._skipped_external_count = 0
        self._skipped_not_crawlable_count = 0
        self._skipped_budget_count = 0

        self._closed = False

    def seed(self, url: str) -> EnqueueResult:
        """Enqueue the seed URL; it is exempt from the crawlability filter."""

        return self.push(url, referrer=None, check_crawlable=False)

    def push(
        self,
        url: str,
        *,
        referrer: str | None = None,
        check_crawlable: bool = True,
    ) -> EnqueueResult:
        """Attempt to enqueue one URL with constraints enforced."""

        normalized = normalize_url(url)
        if not normalized:
            with self._lock:
                self._skipped_invalid_count += 1
            return EnqueueResult(EnqueueStatus.SKIPPED_INVALID_URL)

        if not is_internal(normalized, self.base_domain):
            with self._lock:
                self._skipped_external_count += 1
            return EnqueueResult(EnqueueStatus.SKIPPED_EXTERNAL, normalized_url=normalized)

        if check_crawlable and not is_crawlable(normalized):
            with self._lock:
                self._skipped_not_crawlable_count += 1
            return EnqueueResult(EnqueueStatus.SKIPPED_NOT_CRAWLABLE, normalized_url=normalized)

        with self._lock:
            if self._closed:
                return EnqueueResult(EnqueueStatus.SKIPPED_CLOSED, normalized_url=normalized)

            if normalized in self._status:
                self._skipped_seen_count += 1
                return EnqueueResult(EnqueueStatus.SKIPPED_SEEN, normalized_url=normalized)

            if self.max_pages is not None and len(self._status) >= self.max_pages:
                self._skipped_budget_count += 1
                return EnqueueResult(EnqueueStatus.SKIPPED_BUDGET, normalized_url=normalized)

            item = FrontierItem(url=normalized, referrer=referrer)
            self._status[normalized] = EntryStatus.PENDING
            self._queue.put(item)
            self._enqueued_count += 1

        return EnqueueResult(EnqueueStatus.ENQUEUED, normalized_url=normalized, item=item)

    def push_many(self, urls: Iterable[str], *, referrer: str | None = None) -> list[EnqueueResult]:
        """Attempt to enqueue multiple URLs, preserving input order."""

        return [self.push(url, referrer=referrer) for url in urls]

    def pop(self, *, block: bool = True, timeout: float | None = None) -> FrontierItem | None:
        """Pop one item for a worker thread and mark it in flight.

        Returns `None` when no item is available under the requested blocking mode.
        """

        try:
            if block:
                item = self._queue.get(block=True, timeout=timeout)
            else:
                item = self._queue.get(block=False)
        except queue.Empty:
            return None

        with self._lock:
            self._dequeued_count += 1
            self._status[item.url] = EntryStatus.IN_FLIGHT
        return item

    def mark_done(self, item: FrontierItem) -> None:
        with self._lock:
            self._status[item.url] = EntryStatus.DONE

    def mark_failed(self, item: FrontierItem) -> None:
        with self._lock:
            self._status[item.url] = EntryStatus.FAILED

    def retry(self, item: FrontierItem) -> FrontierItem | None:
        """Send a failed in-flight item back to pending if budget remains.

        Returns the re-queued item, or `None` when retries are exhausted (the
        entry is then terminally failed). The caller still owes `task_done()`
        for the original pop.
        """

        with self._lock:
            if item.attempt >= self.max_retries:
                self._status[item.url] = EntryStatus.FAILED
                return None

            retried = replace(item, attempt=item.attempt + 1)
            self._status[item.url] = EntryStatus.PENDING
            self._queue.put(retried)
            self._retried_count += 1
        return retried

    def task_done(self) -> None:
        """Mark one popped task as finished (delegates to Queue.task_done)."""

        self._queue.task_done()

    def join(self) -> None:
        """Block until all queued tasks are marked done."""

        self._queue.join()

    def close(self) -> None:
        """Close frontier to future enqueue attempts."""

        with self._lock:
            self._closed = True

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def empty(self) -> bool:
        return self._queue.empty()

    def qsize(self) -> int:
        return self._queue.qsize()

    @property
    def total_enqueued(self) -> int:
        """Number of distinct URLs ever accepted."""

        with self._lock:
            return len(self._status)

    def status_of(self, url: str) -> EntryStatus | None:
        normalized = normalize_url(url)
        with self._lock:
            return self._status.get(normalized) if normalized else None

    def seen_urls(self) -> set[str]:
        """Return snapshot of every URL accepted this crawl."""

        with self._lock:
            return set(self._status)

    def active_count(self) -> int:
        """Entries still pending or in flight."""

        with self._lock:
            return sum(
                1
                for status in self._status.values()
                if status in {EntryStatus.PENDING, EntryStatus.IN_FLIGHT}
            )

    def snapshot(self) -> dict[str, int | bool]:
        """Return frontier counters for logs/stats reporting."""

        with self._lock:
            by_status = {status: 0 for status in EntryStatus}
            for status in self._status.values():
                by_status[status] += 1
            return {
                "closed": self._closed,
                "queue_size": self._queue.qsize(),
                "seen_urls": len(self._status),
                "enqueued": self._enqueued_count,
                "dequeued": self._dequeued_count,
                "retried": self._retried_count,
                "done": by_status[EntryStatus.DONE],
                "failed": by_status[EntryStatus.FAILED],
                "pending": by_status[EntryStatus.PENDING],
                "in_flight": by_status[EntryStatus.IN_FLIGHT],
                "skipped_seen": self._skipped_seen_count,
                "skipped_invalid": self._skipped_invalid_count,
                "skipped_external": self._skipped_external_count,
                "skipped_not_crawlable": self._skipped_not_crawlable_count,
                "skipped_budget": self._skipped_budget_count,
            }


__all__ = [
    "EnqueueResult",
    "EnqueueStatus",
    "Frontier",
]
