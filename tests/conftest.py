"""Shared fixtures: an in-memory renderer and fast crawl configs.

No test touches the network or a browser. `FakeRenderer` serves canned HTML
keyed by canonical URL and can be told to fail a URL a number of times.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

import pytest

from site_crawler.config import CrawlConfig
from site_crawler.renderer import RenderedDocument, RenderError


SEED_URL = "https://u.edu"

HOME_HTML = """
<html>
  <head><title>U University</title></head>
  <body>
    <nav><a href="/about">About</a> <a href="/contact">Contact</a></nav>
    <main>
      <h1>Welcome to U</h1>
      <h2>Programs</h2>
      <p>U is a small university with a long history of teaching and research across many
      departments, schools, and interdisciplinary centers located on one campus.</p>
      <a href="/about/">About us</a>
      <a href="https://other.org/x">Elsewhere</a>
      <a href="mailto:info@u.edu">Mail</a>
    </main>
  </body>
</html>
"""

ABOUT_HTML = """
<html>
  <head><title>About U</title></head>
  <body>
    <main>
      <h1>About</h1>
      <p>Founded long ago, U has grown into a research university known for its students,
      faculty, and staff who work together on problems that matter to the wider world.</p>
      <a href="/">Home</a>
      <a href="/contact?utm_source=nav">Contact</a>
    </main>
  </body>
</html>
"""

CONTACT_HTML = """
<html>
  <head><title>Contact U</title></head>
  <body>
    <h1>Contact</h1>
    <p>Write to us.</p>
    <a href="/about#team">Team</a>
  </body>
</html>
"""


def site_pages() -> dict[str, str]:
    return {
        "https://u.edu/": HOME_HTML,
        "https://u.edu/about": ABOUT_HTML,
        "https://u.edu/contact": CONTACT_HTML,
    }


class FakeRenderer:
    """Thread-safe renderer serving `pages`; unknown URLs are a 404."""

    def __init__(
        self,
        pages: dict[str, str],
        *,
        failures: dict[str, list[Exception]] | None = None,
        redirects: dict[str, str] | None = None,
    ) -> None:
        self.pages = dict(pages)
        self.failures = {url: list(errors) for url, errors in (failures or {}).items()}
        self.redirects = dict(redirects or {})
        self.calls: list[str] = []
        self.closed = False
        self._lock = threading.Lock()

    def render(self, url: str) -> RenderedDocument:
        with self._lock:
            self.calls.append(url)
            pending = self.failures.get(url)
            error = pending.pop(0) if pending else None
        if error is not None:
            raise error

        final_url = self.redirects.get(url, url)
        html = self.pages.get(final_url)
        if html is None:
            raise RenderError(f"HTTP status 404 for {url}", retryable=False, status_code=404)
        return RenderedDocument(url=url, final_url=final_url, html=html, status_code=200)

    def close(self) -> None:
        self.closed = True

    def call_count(self, url: str) -> int:
        with self._lock:
            return self.calls.count(url)


class BlockingRenderer(FakeRenderer):
    """Holds every render until `release` is set."""

    def __init__(self, pages: dict[str, str], **kwargs: Any) -> None:
        super().__init__(pages, **kwargs)
        self.release = threading.Event()

    def render(self, url: str) -> RenderedDocument:
        self.release.wait(timeout=10.0)
        return super().render(url)


FAST_SETTINGS: dict[str, Any] = {
    "max_concurrency": 3,
    "max_requests_per_minute": 60000,
    "retry_backoff_seconds": 0.0,
    "request_timeout_seconds": 5.0,
}


def make_config(output_dir: Path, **overrides: Any) -> CrawlConfig:
    settings: dict[str, Any] = {
        "seed_url": SEED_URL,
        "label": "U University",
        "output_formats": ["json", "markdown", "html", "links"],
        "output_dir": output_dir,
        **FAST_SETTINGS,
    }
    settings.update(overrides)
    return CrawlConfig(**settings)


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    return tmp_path / "output"


@pytest.fixture
def fake_renderer() -> FakeRenderer:
    return FakeRenderer(site_pages())
