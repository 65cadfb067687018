"""Core type definitions for the crawler pipeline.

This module is intentionally dependency-light so other crawler modules can import
shared records without introducing cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping


class CrawlStage(str, Enum):
    """Pipeline stage names for error reporting."""

    FRONTIER = "frontier"
    FETCH = "fetch"
    EXTRACT = "extract"
    STORE = "store"


class FetchBackend(str, Enum):
    """Backend used to render page content."""

    REQUESTS = "requests"
    SELENIUM = "selenium"


class OutputFormat(str, Enum):
    """Closed set of per-page output formats a job can select."""

    JSON = "json"
    MARKDOWN = "markdown"
    HTML = "html"
    LINKS = "links"


class EntryStatus(str, Enum):
    """Lifecycle of one frontier entry."""

    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    DONE = "done"
    FAILED = "failed"


class CrawlStatus(str, Enum):
    """Lifecycle of one crawl job as seen by an external poller."""

    STARTING = "starting"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in {CrawlStatus.COMPLETED, CrawlStatus.FAILED}


JSONPrimitive = str | int | float | bool | None
JSONValue = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONDict = dict[str, JSONValue]


def utc_now_iso() -> str:
    """Return an ISO-8601 UTC timestamp string for records and headers."""

    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _clean_texts(values: Iterable[str]) -> tuple[str, ...]:
    return tuple(text for text in (value.strip() for value in values) if text)


@dataclass(frozen=True, slots=True)
class Headings:
    """Heading texts grouped by level (h1-h3), trimmed with empties dropped."""

    h1: tuple[str, ...] = ()
    h2: tuple[str, ...] = ()
    h3: tuple[str, ...] = ()

    @classmethod
    def from_lists(
        cls,
        *,
        h1: Iterable[str] = (),
        h2: Iterable[str] = (),
        h3: Iterable[str] = (),
    ) -> "Headings":
        return cls(h1=_clean_texts(h1), h2=_clean_texts(h2), h3=_clean_texts(h3))

    @property
    def empty(self) -> bool:
        return not (self.h1 or self.h2 or self.h3)

    def by_level(self) -> list[tuple[int, tuple[str, ...]]]:
        return [(1, self.h1), (2, self.h2), (3, self.h3)]

    def to_json(self) -> JSONDict:
        return {"h1": list(self.h1), "h2": list(self.h2), "h3": list(self.h3)}


@dataclass(frozen=True, slots=True)
class PageData:
    """Structured content extracted from one rendered page.

    Instances are immutable; every formatter receives the same record and none
    of them can alter what another one sees.
    """

    url: str
    title: str
    headings: Headings
    main_text: str
    internal_links: tuple[str, ...] = ()
    crawled_at: str = field(default_factory=utc_now_iso)

    def __post_init__(self) -> None:
        # Frozen dataclass: normalize through object.__setattr__.
        object.__setattr__(self, "internal_links", tuple(sorted(set(self.internal_links))))

    def to_json(self) -> JSONDict:
        return {
            "url": self.url,
            "title": self.title,
            "headings": self.headings.to_json(),
            "mainText": self.main_text,
            "internalLinks": list(self.internal_links),
            "crawledAt": self.crawled_at,
        }

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "PageData":
        headings = payload.get("headings") or {}
        return cls(
            url=str(payload["url"]),
            title=str(payload.get("title") or ""),
            headings=Headings.from_lists(
                h1=headings.get("h1", ()),
                h2=headings.get("h2", ()),
                h3=headings.get("h3", ()),
            ),
            main_text=str(payload.get("mainText") or ""),
            internal_links=tuple(payload.get("internalLinks") or ()),
            crawled_at=str(payload.get("crawledAt") or utc_now_iso()),
        )


@dataclass(frozen=True, slots=True)
class FrontierItem:
    """A crawl candidate tracked by the frontier."""

    url: str
    attempt: int = 0
    referrer: str | None = None
    discovered_at: str = field(default_factory=utc_now_iso)


@dataclass(slots=True)
class CrawlProgress:
    """Durable, pollable status record for one crawl job."""

    status: CrawlStatus
    pages_processed: int
    total_enqueued: int
    current_url: str
    start_time: str
    seed_url: str
    university_name: str
    end_time: str | None = None
    error: str | None = None
    output_file: str | None = None

    def to_json(self) -> JSONDict:
        return {
            "status": self.status.value,
            "pagesProcessed": self.pages_processed,
            "totalEnqueued": self.total_enqueued,
            "currentUrl": self.current_url,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "seedUrl": self.seed_url,
            "universityName": self.university_name,
            "error": self.error,
            "outputFile": self.output_file,
        }

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "CrawlProgress":
        return cls(
            status=CrawlStatus(str(payload["status"])),
            pages_processed=int(payload.get("pagesProcessed", 0)),
            total_enqueued=int(payload.get("totalEnqueued", 0)),
            current_url=str(payload.get("currentUrl") or ""),
            start_time=str(payload.get("startTime") or ""),
            end_time=payload.get("endTime"),
            seed_url=str(payload.get("seedUrl") or ""),
            university_name=str(payload.get("universityName") or ""),
            error=payload.get("error"),
            output_file=payload.get("outputFile"),
        )


@dataclass(frozen=True, slots=True)
class ErrorRecord:
    """One error row written to `errors.jsonl` for a crawl job."""

    stage: CrawlStage
    url: str
    message: str
    error_type: str | None = None
    attempt: int | None = None
    created_at: str = field(default_factory=utc_now_iso)
    metadata: dict[str, JSONValue] = field(default_factory=dict)

    @classmethod
    def from_exception(
        cls,
        *,
        stage: CrawlStage,
        url: str,
        exc: BaseException,
        **kwargs: Any,
    ) -> "ErrorRecord":
        return cls(
            stage=stage,
            url=url,
            message=str(exc) or exc.__class__.__name__,
            error_type=exc.__class__.__name__,
            **kwargs,
        )

    def to_json(self) -> JSONDict:
        return {
            "stage": self.stage.value,
            "url": self.url,
            "message": self.message,
            "error_type": self.error_type,
            "attempt": self.attempt,
            "created_at": self.created_at,
            "metadata": self.metadata,
        }


__all__ = [
    "CrawlProgress",
    "CrawlStage",
    "CrawlStatus",
    "EntryStatus",
    "ErrorRecord",
    "FetchBackend",
    "FrontierItem",
    "Headings",
    "JSONDict",
    "JSONPrimitive",
    "JSONValue",
    "OutputFormat",
    "PageData",
    "utc_now_iso",
]
