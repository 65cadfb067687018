"""Consolidated per-job Markdown document, streamed then finalized.

The document is opened with a sentinel header line, one section is appended
per completed page (completion order, not discovery order), and `finalize`
swaps the sentinel for the real header once the page count is known.
"""

from __future__ import annotations

import logging
import threading
import uuid
from pathlib import Path

from ..constants import (
    CONTENT_CHAR_BUDGET,
    SINGLE_FILE_HEADING_CAP,
    SINGLE_FILE_LINK_CAP,
    SINGLE_FILE_TRUNCATION_MARKER,
)
from ..sanitize import job_id_for
from ..types import PageData, utc_now_iso
from .base import atomic_write_text, job_dir
from .markdown_formatter import UNTITLED_PAGE


LOGGER = logging.getLogger(__name__)

SENTINEL_PREFIX = "<!-- SITE_CRAWLER_HEADER "


def single_file_path(base_dir: str | Path, job_label: str) -> Path:
    return job_dir(base_dir, job_label) / f"{job_id_for(job_label)}.md"


def format_header(*, label: str, seed_url: str, pages_processed: int, generated_at: str) -> str:
    lines = [
        f"# {label}",
        "",
        f"**Seed URL:** {seed_url}",
        f"**Pages Crawled:** {pages_processed}",
        f"**Generated:** {generated_at}",
        "",
        "---",
        "",
    ]
    return "\n".join(lines)


def format_page_section(
    page: PageData,
    *,
    heading_cap: int = SINGLE_FILE_HEADING_CAP,
    content_budget: int = CONTENT_CHAR_BUDGET,
    link_cap: int = SINGLE_FILE_LINK_CAP,
) -> str:
    lines = [
        "---",
        "",
        f"## {page.title or UNTITLED_PAGE}",
        "",
        f"**URL:** {page.url}",
        f"**Crawled:** {page.crawled_at}",
        "",
    ]

    outline = [(level, text) for level, texts in page.headings.by_level() for text in texts]
    if outline:
        lines.extend(["### Headings", ""])
        for level, text in outline[:heading_cap]:
            lines.append(f"{'  ' * (level - 1)}- {text}")
        if len(outline) > heading_cap:
            lines.append(f"  - ... and {len(outline) - heading_cap} more")
        lines.append("")

    if page.main_text:
        lines.extend(["### Content", "", page.main_text[:content_budget]])
        if len(page.main_text) > content_budget:
            lines.extend(["", SINGLE_FILE_TRUNCATION_MARKER])
        lines.append("")

    if page.internal_links:
        lines.extend(["### Links Found", ""])
        lines.extend(f"- [{link}]({link})" for link in page.internal_links[:link_cap])
        if len(page.internal_links) > link_cap:
            lines.append("- ... and more internal links")
        lines.append("")

    lines.append("")
    return "\n".join(lines)


class SingleFileAggregator:
    """Two-phase writer for `{base}/{job_id}/{job_id}.md`.

    `init` -> `append`* -> `finalize`. Appends and the final rewrite share one
    lock, so sections are never interleaved and no append lands between the
    read and the rewrite.
    """

    def __init__(self, *, base_dir: str | Path, label: str, seed_url: str) -> None:
        self.base_dir = Path(base_dir)
        self.label = label
        self.seed_url = seed_url
        self.path = single_file_path(self.base_dir, label)
        self.sentinel = f"{SENTINEL_PREFIX}{uuid.uuid4().hex} -->\n"

        self._lock = threading.Lock()
        self._initialized = False
        self._finalized = False
        self.sections_written = 0

    def init(self) -> Path:
        """Create (or truncate) the document with only the sentinel line."""

        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(self.sentinel + "\n", encoding="utf-8")
            self._initialized = True
            self._finalized = False
            self.sections_written = 0
        return self.path

    def append(self, page: PageData) -> None:
        section = format_page_section(page)
        with self._lock:
            if not self._initialized:
                raise RuntimeError("SingleFileAggregator.append() called before init()")
            if self._finalized:
                raise RuntimeError("SingleFileAggregator.append() called after finalize()")
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(section)
            self.sections_written += 1

    def finalize(self, *, pages_processed: int, seed_url: str | None = None) -> Path:
        """Replace the sentinel with the final header (read, substitute, rewrite)."""

        header = format_header(
            label=self.label,
            seed_url=seed_url or self.seed_url,
            pages_processed=pages_processed,
            generated_at=utc_now_iso(),
        )

        with self._lock:
            if not self._initialized:
                raise RuntimeError("SingleFileAggregator.finalize() called before init()")
            content = self.path.read_text(encoding="utf-8")
            marker = self.sentinel + "\n"
            if marker in content:
                content = content.replace(marker, header, 1)
            else:
                LOGGER.warning("Header sentinel missing from %s; prepending header", self.path)
                content = header + content
            atomic_write_text(self.path, content)
            self._finalized = True
        return self.path


__all__ = [
    "SingleFileAggregator",
    "format_header",
    "format_page_section",
    "single_file_path",
]
