"""Tests for the start/status contract used by outer shells."""

from __future__ import annotations

import pytest

from conftest import FAST_SETTINGS, BlockingRenderer, FakeRenderer, site_pages
from site_crawler.jobs import (
    NOT_FOUND_STATUS,
    CrawlJobManager,
    InvalidCrawlRequest,
    JobAlreadyActive,
    not_found_record,
)
from site_crawler.pipeline import CrawlPipeline
from site_crawler.types import OutputFormat


def _manager(output_dir, renderer_factory=lambda: FakeRenderer(site_pages()), configs=None):
    def factory(config):
        if configs is not None:
            configs.append(config)
        return CrawlPipeline(config, renderer=renderer_factory(), init_progress=False)

    return CrawlJobManager(
        output_dir=output_dir,
        pipeline_factory=factory,
        config_overrides=FAST_SETTINGS,
    )


class TestStart:
    @pytest.mark.parametrize(
        ("seed", "label", "message"),
        [
            ("", "U", "seedUrl is required"),
            ("https://u.edu", "  ", "label is required"),
            ("u.edu", "U", "Invalid URL format"),
            ("ftp://u.edu", "U", "Invalid URL format"),
        ],
    )
    def test_invalid_requests_create_no_state(self, output_dir, seed, label, message):
        manager = _manager(output_dir)
        with pytest.raises(InvalidCrawlRequest, match=message):
            manager.start(seed, label)
        assert not output_dir.exists() or not any(output_dir.iterdir())
        assert manager.active_jobs() == []

    def test_label_without_usable_characters(self, output_dir):
        with pytest.raises(InvalidCrawlRequest):
            _manager(output_dir).start("https://u.edu", "!!!")

    def test_start_returns_job_id_and_runs_to_completion(self, output_dir):
        manager = _manager(output_dir)
        job_id = manager.start("https://u.edu", "U University", ["json", "links"])

        assert job_id == "u-university"
        assert manager.wait(job_id, timeout=10.0)
        assert not manager.is_active(job_id)

        record = manager.status(job_id)
        assert record["status"] == "completed"
        assert record["pagesProcessed"] == 3
        assert record["totalEnqueued"] == 3
        assert record["outputFile"].endswith("u-university.md")

        summary = manager.summary(job_id)
        assert summary["pages_processed"] == 3
        assert (output_dir / "u-university" / "links" / "all-links.txt").exists()

    def test_starting_record_exists_before_start_returns(self, output_dir):
        renderer = BlockingRenderer(site_pages())
        manager = _manager(output_dir, renderer_factory=lambda: renderer)
        job_id = manager.start("https://u.edu", "U University")
        try:
            record = manager.status(job_id)
            assert record["status"] in {"starting", "running"}
            assert record["seedUrl"] == "https://u.edu"
        finally:
            renderer.release.set()
            manager.wait(job_id, timeout=10.0)

    def test_unknown_formats_fall_back_to_defaults(self, output_dir):
        configs = []
        manager = _manager(output_dir, configs=configs)
        job_id = manager.start("https://u.edu", "U University", ["pdf"])
        manager.wait(job_id, timeout=10.0)
        assert configs[0].output_formats == [OutputFormat.JSON, OutputFormat.MARKDOWN]

    def test_same_job_id_rejected_while_active(self, output_dir):
        renderer = BlockingRenderer(site_pages())
        manager = _manager(output_dir, renderer_factory=lambda: renderer)
        job_id = manager.start("https://u.edu", "U University")
        try:
            with pytest.raises(JobAlreadyActive) as excinfo:
                manager.start("https://u.edu", "u university")
            assert excinfo.value.job_id == job_id
            assert manager.active_jobs() == [job_id]
        finally:
            renderer.release.set()
            assert manager.wait(job_id, timeout=10.0)

        # Finished jobs can be started again.
        second = manager.start("https://u.edu", "U University")
        assert manager.wait(second, timeout=10.0)
        assert manager.status(second)["status"] == "completed"

    def test_factory_failure_marks_job_failed(self, output_dir):
        def broken_factory(config):
            raise RuntimeError("no browser")

        manager = CrawlJobManager(output_dir=output_dir, pipeline_factory=broken_factory)
        with pytest.raises(RuntimeError):
            manager.start("https://u.edu", "U University")

        record = manager.status("u-university")
        assert record["status"] == "failed"
        assert record["error"] == "RuntimeError: no browser"
        assert manager.active_jobs() == []


class TestStatus:
    def test_unknown_job_is_not_found(self, output_dir):
        record = _manager(output_dir).status("nobody")
        assert record == not_found_record()
        assert record["status"] == NOT_FOUND_STATUS
        assert record["error"] == "Crawl not found or not started"

    @pytest.mark.parametrize("job_id", ["../etc", "U University", "", "a/b"])
    def test_malformed_job_id_rejected(self, output_dir, job_id):
        with pytest.raises(InvalidCrawlRequest, match="Invalid crawlId format"):
            _manager(output_dir).status(job_id)

    def test_status_readable_by_another_manager(self, output_dir):
        manager = _manager(output_dir)
        job_id = manager.start("https://u.edu", "U University")
        manager.wait(job_id, timeout=10.0)

        other = CrawlJobManager(output_dir=output_dir)
        assert other.status(job_id)["status"] == "completed"
