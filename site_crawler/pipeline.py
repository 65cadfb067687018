"""End-to-end crawl pipeline orchestration."""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable

from .config import CrawlConfig
from .constants import PROGRESS_LOG_EVERY
from .extractor import ContentExtractor, ExtractorConfig
from .formatters import (
    FilenameRegistry,
    LinksAggregator,
    PageFormatter,
    SingleFileAggregator,
    build_formatters,
)
from .frontier import Frontier
from .progress import ProgressTracker
from .renderer import RateLimiter, RenderedDocument, RenderError, Renderer, build_renderer
from .stats import StatsCollector
from .storage import JobStorage
from .types import CrawlStage, EntryStatus, ErrorRecord, FrontierItem, OutputFormat, PageData
from .url import normalize_url


LOGGER = logging.getLogger(__name__)


class CrawlPipeline:
    """Orchestrates frontier, renderer, extractor, formatters, and progress.

    `max_concurrency` worker threads drain one shared frontier. Each popped
    URL goes through rate limit -> render -> extract -> enqueue links ->
    write outputs -> progress update. The crawl ends once every accepted URL
    is done or terminally failed.
    """

    def __init__(
        self,
        config: CrawlConfig,
        *,
        renderer: Renderer | None = None,
        extractor: ContentExtractor | None = None,
        progress: ProgressTracker | None = None,
        stats: StatsCollector | None = None,
        rate_limiter: RateLimiter | None = None,
        init_progress: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config

        self.renderer = renderer or build_renderer(config)
        self._owns_renderer = renderer is None
        self.extractor = extractor or ContentExtractor(
            ExtractorConfig(
                main_content_selectors=config.main_content_selectors,
                exclude_selectors=config.exclude_selectors,
                min_content_chars=config.min_content_chars,
            )
        )
        self.progress = progress or ProgressTracker(base_dir=config.output_dir, label=config.label)
        self.stats = stats or StatsCollector()
        self.rate_limiter = rate_limiter or RateLimiter(config.max_requests_per_minute)
        self.storage = JobStorage(config.output_dir, config.label)

        self.links = LinksAggregator(seed_url=config.seed_url, label=config.label)
        self.filenames = FilenameRegistry()
        self.formatters: dict[OutputFormat, PageFormatter | LinksAggregator] = build_formatters(
            config.output_formats, links=self.links, filenames=self.filenames
        )
        self.single_file: SingleFileAggregator | None = None
        if config.write_single_file:
            self.single_file = SingleFileAggregator(
                base_dir=config.output_dir,
                label=config.label,
                seed_url=config.seed_url,
            )

        self._init_progress = init_progress
        self._sleep = sleep

        self._state_lock = threading.Lock()
        self._pages_processed = 0
        self._completed_urls: set[str] = set()

    @property
    def job_id(self) -> str:
        return self.storage.job_id

    @property
    def pages_processed(self) -> int:
        with self._state_lock:
            return self._pages_processed

    def run(self) -> dict[str, Any]:
        """Crawl from the seed until the frontier drains; return a summary.

        Any exception escaping the orchestration itself marks the progress
        record failed and is re-raised.
        """

        config = self.config
        if self._init_progress:
            self.progress.init(seed_url=config.seed_url)

        LOGGER.info(
            "Starting crawl %s from %s (formats=%s, concurrency=%d, %d req/min)",
            self.job_id,
            config.seed_url,
            ",".join(fmt.value for fmt in config.output_formats),
            config.max_concurrency,
            config.max_requests_per_minute,
        )

        try:
            self.storage.save_crawl_config(config)
            frontier = self._crawl()
            outputs = self._finalize(frontier)
        except Exception as exc:
            LOGGER.exception("Crawl %s failed", self.job_id)
            self.progress.fail(f"{exc.__class__.__name__}: {exc}")
            raise
        finally:
            if self._owns_renderer:
                self.renderer.close()

        self.stats.finish()
        stats_payload = self.stats.to_json()
        self.storage.save_crawl_stats(stats_payload)

        summary = {
            "job_id": self.job_id,
            "label": config.label,
            "seed_url": config.seed_url,
            "pages_processed": self.pages_processed,
            "total_enqueued": frontier.total_enqueued,
            "files_saved": self.stats.files_saved,
            "requests_finished": stats_payload["requests"]["finished"],
            "requests_failed": stats_payload["requests"]["failed"],
            "requests_retried": stats_payload["requests"]["retried"],
            "paths": {**self.storage.paths, **outputs},
            "stats": stats_payload,
        }
        LOGGER.info(
            "Crawl %s completed: %d pages, %d files, %d failed requests",
            self.job_id,
            summary["pages_processed"],
            summary["files_saved"],
            summary["requests_failed"],
        )
        return summary

    def _crawl(self) -> Frontier:
        config = self.config
        frontier = Frontier(
            base_domain=config.base_domain,
            max_retries=config.max_request_retries,
            max_pages=config.max_pages,
        )

        self.links.reset(seed_url=config.seed_url, label=config.label)
        if self.single_file is not None:
            self.single_file.init()

        seed_result = frontier.seed(config.seed_url)
        self.stats.record_enqueue(seed_result)
        if not seed_result.accepted:
            raise ValueError(f"Seed URL rejected ({seed_result.status.value}): {config.seed_url}")
        self.links.add_url(seed_result.normalized_url or config.seed_url)

        workers = [
            threading.Thread(
                target=self._frontier_worker,
                args=(frontier,),
                name=f"crawler-worker-{idx}",
                daemon=True,
            )
            for idx in range(config.max_concurrency)
        ]
        for worker in workers:
            worker.start()

        frontier.join()
        frontier.close()

        for worker in workers:
            worker.join(timeout=5.0)

        self.stats.record_frontier_snapshot(frontier.snapshot())
        return frontier

    def _finalize(self, frontier: Frontier) -> dict[str, str]:
        config = self.config
        pages = self.pages_processed
        outputs: dict[str, str] = {}

        if OutputFormat.LINKS in self.formatters:
            link_paths = self.links.finalize(base_dir=config.output_dir, job_label=config.label)
            outputs["links_json"] = str(link_paths.json_path)
            outputs["links_txt"] = str(link_paths.txt_path)
            LOGGER.info("Saved %d aggregated links to %s", len(self.links), link_paths.json_path)

        output_file: Path = self.storage.job_dir
        if self.single_file is not None:
            output_file = self.single_file.finalize(pages_processed=pages, seed_url=config.seed_url)
            outputs["single_file"] = str(output_file)

        self.progress.complete(
            pages_processed=pages,
            output_file=str(output_file),
            total_enqueued=frontier.total_enqueued,
        )
        return outputs

    def _frontier_worker(self, frontier: Frontier) -> None:
        while True:
            item = frontier.pop(block=True, timeout=0.5)
            if item is None:
                if frontier.closed and frontier.empty():
                    return
                continue

            try:
                self._process(frontier, item)
            except Exception as exc:
                LOGGER.exception("Unexpected error while processing %s", item.url)
                if frontier.status_of(item.url) != EntryStatus.DONE:
                    frontier.mark_failed(item)
                self._record_error(CrawlStage.FRONTIER, item.url, exc, attempt=item.attempt)
            finally:
                frontier.task_done()

    def _process(self, frontier: Frontier, item: FrontierItem) -> None:
        self.rate_limiter.wait()
        LOGGER.info("Processing %s (attempt %d)", item.url, item.attempt + 1)

        try:
            document = self.renderer.render(item.url)
        except RenderError as exc:
            self._handle_render_failure(frontier, item, exc)
            return
        except Exception as exc:
            self._handle_render_failure(
                frontier,
                item,
                RenderError(f"{exc.__class__.__name__}: {exc}", retryable=True),
            )
            return

        self.stats.record_request(ok=True, status_code=document.status_code)

        page_url = self._claim_page_url(item, document)
        if page_url is None:
            LOGGER.debug("Skipping %s: final URL already processed", item.url)
            self.stats.record_duplicate_page()
            frontier.mark_done(item)
            return

        try:
            page = self.extractor.extract(document, url=page_url, base_domain=self.config.base_domain)
        except Exception as exc:
            LOGGER.exception("Extraction failed for %s", page_url)
            frontier.mark_failed(item)
            self._record_error(CrawlStage.EXTRACT, page_url, exc, attempt=item.attempt)
            return

        LOGGER.debug(
            "Extracted %s: %d/%d/%d headings, %d chars, %d internal links",
            page_url,
            len(page.headings.h1),
            len(page.headings.h2),
            len(page.headings.h3),
            len(page.main_text),
            len(page.internal_links),
        )
        self.stats.record_page(text_chars=len(page.main_text), links=len(page.internal_links))

        if page.internal_links:
            results = frontier.push_many(page.internal_links, referrer=page_url)
            self.stats.record_enqueue_many(results)

        self._save_outputs(page)
        frontier.mark_done(item)
        self._advance_progress(frontier, page_url)

    def _claim_page_url(self, item: FrontierItem, document: RenderedDocument) -> str | None:
        """Canonical URL of the rendered page, or `None` if already completed."""

        page_url = normalize_url(document.final_url) or item.url
        with self._state_lock:
            if page_url in self._completed_urls:
                return None
            self._completed_urls.add(page_url)
        return page_url

    def _handle_render_failure(self, frontier: Frontier, item: FrontierItem, exc: RenderError) -> None:
        self.stats.record_request(ok=False, status_code=exc.status_code)

        if exc.retryable and item.attempt < frontier.max_retries:
            delay = self.config.retry_backoff_seconds * (item.attempt + 1)
            LOGGER.warning(
                "Fetch failed for %s (attempt %d/%d), retrying in %.1fs: %s",
                item.url,
                item.attempt + 1,
                frontier.max_retries + 1,
                delay,
                exc,
            )
            if delay > 0:
                self._sleep(delay)
            frontier.retry(item)
            self.stats.record_retry()
            return

        frontier.mark_failed(item)
        LOGGER.error("Giving up on %s after %d attempt(s): %s", item.url, item.attempt + 1, exc)
        self._record_error(
            CrawlStage.FETCH,
            item.url,
            exc,
            attempt=item.attempt,
            metadata={"status_code": exc.status_code, "retryable": exc.retryable},
        )

    def _save_outputs(self, page: PageData) -> None:
        config = self.config
        for fmt, formatter in self.formatters.items():
            try:
                path = formatter.save(page, base_dir=config.output_dir, job_label=config.label)
            except (OSError, ValueError) as exc:
                LOGGER.warning("Failed to write %s output for %s: %s", fmt.value, page.url, exc)
                self.stats.record_save_error(fmt)
                self._record_error(CrawlStage.STORE, page.url, exc, metadata={"format": fmt.value})
                continue
            if path is not None:
                self.stats.record_file_saved(fmt)

        if self.single_file is None:
            return
        try:
            self.single_file.append(page)
        except OSError as exc:
            LOGGER.warning("Failed to append %s to %s: %s", page.url, self.single_file.path, exc)
            self.stats.record_save_error("single_file")
            self._record_error(CrawlStage.STORE, page.url, exc, metadata={"format": "single_file"})

    def _advance_progress(self, frontier: Frontier, current_url: str) -> None:
        with self._state_lock:
            self._pages_processed += 1
            pages = self._pages_processed
            self.progress.update(
                pages_processed=pages,
                total_enqueued=frontier.total_enqueued,
                current_url=current_url,
            )

        if pages % PROGRESS_LOG_EVERY == 0:
            LOGGER.info(
                "Progress %s: %d pages processed, %d enqueued, %d queued",
                self.job_id,
                pages,
                frontier.total_enqueued,
                frontier.qsize(),
            )

    def _record_error(
        self,
        stage: CrawlStage,
        url: str,
        exc: BaseException,
        *,
        attempt: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        record = ErrorRecord.from_exception(
            stage=stage,
            url=url,
            exc=exc,
            attempt=attempt,
            metadata=metadata or {},
        )
        self.stats.record_error(stage, record.error_type)
        try:
            self.storage.save_error(record)
        except OSError:
            LOGGER.exception("Could not append to %s", self.storage.errors_path)


__all__ = ["CrawlPipeline"]
