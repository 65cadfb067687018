"""Crawl-wide internal link aggregate.

Unlike the per-page formatters, this one only accumulates while the crawl
runs; both listings are written once by `finalize`.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path

from ..constants import LINKS_JSON_FILENAME, LINKS_SUBDIR, LINKS_TXT_FILENAME
from ..types import JSONDict, OutputFormat, PageData, utc_now_iso
from .base import atomic_write_json, atomic_write_text, job_dir


@dataclass(frozen=True, slots=True)
class LinksPaths:
    json_path: Path
    txt_path: Path


class LinksAggregator:
    """Set of every URL seen in one crawl: seed, page URLs, internal links.

    One instance per crawl job, owned by the pipeline. All mutation happens
    under the instance lock.
    """

    output_format = OutputFormat.LINKS

    def __init__(self, *, seed_url: str = "", label: str = "") -> None:
        self._lock = threading.Lock()
        self._links: set[str] = set()
        self.seed_url = seed_url
        self.label = label

    def reset(self, *, seed_url: str, label: str) -> None:
        with self._lock:
            self._links = set()
            self.seed_url = seed_url
            self.label = label

    def add_url(self, url: str) -> int:
        with self._lock:
            self._links.add(url)
            return len(self._links)

    def add_links(self, page: PageData) -> int:
        """Merge a page's own URL and its internal links; returns the set size."""

        with self._lock:
            self._links.add(page.url)
            self._links.update(page.internal_links)
            return len(self._links)

    def __len__(self) -> int:
        with self._lock:
            return len(self._links)

    def links(self) -> list[str]:
        with self._lock:
            return sorted(self._links)

    def format(self, page: PageData) -> str:
        """URLs this page contributes, one per line."""

        return "\n".join(sorted({page.url, *page.internal_links}))

    def save(self, page: PageData, *, base_dir: str | Path, job_label: str) -> Path | None:
        """Accumulate only; nothing is written per page."""

        self.add_links(page)
        return None

    def format_links(self) -> JSONDict:
        links = self.links()
        return {
            "universityName": self.label,
            "seedUrl": self.seed_url,
            "totalLinks": len(links),
            "generatedAt": utc_now_iso(),
            "links": links,
        }

    def format_links_as_text(self, payload: JSONDict | None = None) -> str:
        data = payload if payload is not None else self.format_links()
        lines = [
            f"# Internal Links for {data['universityName']}",
            f"# Seed URL: {data['seedUrl']}",
            f"# Total Links: {data['totalLinks']}",
            f"# Generated: {data['generatedAt']}",
            "",
            *data["links"],
        ]
        return "\n".join(lines) + "\n"

    def finalize(self, *, base_dir: str | Path, job_label: str) -> LinksPaths:
        """Write the sorted aggregate as JSON and plain text."""

        out_dir = job_dir(base_dir, job_label) / LINKS_SUBDIR
        payload = self.format_links()
        paths = LinksPaths(
            json_path=out_dir / LINKS_JSON_FILENAME,
            txt_path=out_dir / LINKS_TXT_FILENAME,
        )
        atomic_write_json(paths.json_path, payload)
        atomic_write_text(paths.txt_path, self.format_links_as_text(payload))
        return paths


__all__ = ["LinksAggregator", "LinksPaths"]
