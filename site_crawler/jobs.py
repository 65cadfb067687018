"""Start/status contract for shells that launch crawls and poll them.

`start` validates the request, writes the `starting` progress record before it
returns, and runs the crawl on a background thread. `status` only ever reads
the durable progress record, so it works from any process sharing the output
directory.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Iterable

from .config import CrawlConfig, default_output_dir, validate_formats
from .constants import DEFAULT_OUTPUT_FORMATS
from .pipeline import CrawlPipeline
from .progress import ProgressTracker, read_progress
from .sanitize import is_job_id, job_id_for
from .types import JSONDict, OutputFormat
from .url import is_http_url


LOGGER = logging.getLogger(__name__)

NOT_FOUND_STATUS = "not_found"


class InvalidCrawlRequest(ValueError):
    """A start or status request failed validation; no crawl state was created."""


class JobAlreadyActive(RuntimeError):
    """A crawl with the same job id is already running in this process."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Crawl already active for job id {job_id!r}")
        self.job_id = job_id


def not_found_record() -> JSONDict:
    return {
        "status": NOT_FOUND_STATUS,
        "pagesProcessed": 0,
        "totalEnqueued": 0,
        "currentUrl": "",
        "startTime": "",
        "endTime": None,
        "error": "Crawl not found or not started",
    }


PipelineFactory = Callable[[CrawlConfig], CrawlPipeline]


def _default_pipeline_factory(config: CrawlConfig) -> CrawlPipeline:
    return CrawlPipeline(config, init_progress=False)


class CrawlJobManager:
    """Runs crawl jobs on background threads, at most one per job id."""

    def __init__(
        self,
        *,
        output_dir: str | Path | None = None,
        pipeline_factory: PipelineFactory | None = None,
        config_overrides: dict[str, Any] | None = None,
    ) -> None:
        self.output_dir = Path(output_dir) if output_dir is not None else default_output_dir()
        self.pipeline_factory = pipeline_factory or _default_pipeline_factory
        self.config_overrides = dict(config_overrides or {})

        self._lock = threading.Lock()
        self._active: dict[str, threading.Thread] = {}
        self._summaries: dict[str, dict[str, Any]] = {}

    def start(
        self,
        seed_url: str,
        label: str,
        output_formats: Iterable[str | OutputFormat] | None = None,
    ) -> str:
        """Validate and launch a crawl; returns its job id without waiting."""

        seed_url = (seed_url or "").strip()
        label = (label or "").strip()
        if not seed_url:
            raise InvalidCrawlRequest("seedUrl is required")
        if not label:
            raise InvalidCrawlRequest("label is required")
        if not is_http_url(seed_url):
            raise InvalidCrawlRequest("Invalid URL format. Must be http or https.")

        job_id = job_id_for(label)
        if not job_id:
            raise InvalidCrawlRequest(f"Label {label!r} has no usable characters for a job id")

        formats, unknown = validate_formats(output_formats or DEFAULT_OUTPUT_FORMATS)
        if unknown:
            LOGGER.warning("Ignoring unknown output formats: %s", ", ".join(unknown))
        if not formats:
            formats, _ = validate_formats(DEFAULT_OUTPUT_FORMATS)

        try:
            config = CrawlConfig(
                seed_url=seed_url,
                label=label,
                output_formats=formats,
                output_dir=self.output_dir,
                write_single_file=True,
                **self.config_overrides,
            )
        except ValueError as exc:
            raise InvalidCrawlRequest(str(exc)) from exc

        with self._lock:
            running = self._active.get(job_id)
            if running is not None and running.is_alive():
                raise JobAlreadyActive(job_id)

            progress = ProgressTracker(base_dir=self.output_dir, label=label)
            progress.init(seed_url=seed_url)
            try:
                pipeline = self.pipeline_factory(config)
            except Exception as exc:
                progress.fail(f"{exc.__class__.__name__}: {exc}")
                raise

            thread = threading.Thread(
                target=self._run_job,
                args=(job_id, pipeline),
                name=f"crawl-{job_id}",
                daemon=True,
            )
            self._active[job_id] = thread
            self._summaries.pop(job_id, None)
            thread.start()

        LOGGER.info("Started crawl %s for %s", job_id, seed_url)
        return job_id

    def status(self, job_id: str) -> JSONDict:
        """Current progress record for `job_id`, or the `not_found` record."""

        if not job_id or not is_job_id(job_id):
            raise InvalidCrawlRequest("Invalid crawlId format")

        record = read_progress(self.output_dir, job_id)
        if record is None:
            return not_found_record()
        return record.to_json()

    def is_active(self, job_id: str) -> bool:
        with self._lock:
            thread = self._active.get(job_id)
        return thread is not None and thread.is_alive()

    def active_jobs(self) -> list[str]:
        with self._lock:
            return sorted(job_id for job_id, thread in self._active.items() if thread.is_alive())

    def wait(self, job_id: str, timeout: float | None = None) -> bool:
        """Block until the job thread exits; returns False on timeout."""

        with self._lock:
            thread = self._active.get(job_id)
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def summary(self, job_id: str) -> dict[str, Any] | None:
        """Run summary of a finished job started by this manager."""

        with self._lock:
            return self._summaries.get(job_id)

    def _run_job(self, job_id: str, pipeline: CrawlPipeline) -> None:
        summary: dict[str, Any] | None = None
        try:
            summary = pipeline.run()
        except Exception:
            # The pipeline already logged the traceback and marked progress failed.
            LOGGER.error("Crawl %s ended with an error; see progress record", job_id)

        with self._lock:
            if summary is not None:
                self._summaries[job_id] = summary
            if self._active.get(job_id) is threading.current_thread():
                del self._active[job_id]


__all__ = [
    "CrawlJobManager",
    "InvalidCrawlRequest",
    "JobAlreadyActive",
    "NOT_FOUND_STATUS",
    "not_found_record",
]
