"""Shared formatter contract, output layout, and atomic file helpers.

Formatters own the on-disk layout under `{base_dir}/{job_id}/`. Other modules
should use these helpers instead of building paths manually.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Mapping

from ..constants import JSON_INDENT
from ..sanitize import job_id_for, sanitize_filename, short_hash
from ..types import OutputFormat, PageData


LOGGER = logging.getLogger(__name__)


def job_dir(base_dir: str | Path, job_label: str) -> Path:
    """Root directory for every artifact of one job."""

    return Path(base_dir) / job_id_for(job_label)


def format_dir(base_dir: str | Path, job_label: str, fmt: OutputFormat | str) -> Path:
    name = fmt.value if isinstance(fmt, OutputFormat) else str(fmt)
    return job_dir(base_dir, job_label) / name


def atomic_write_text(path: Path, content: str) -> None:
    """Write text via temp file + rename so readers never see partial content."""

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent),
        prefix=path.name + ".",
        suffix=".tmp",
    )
    try:
        with os.fdopen(tmp_fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise


def dump_json(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=JSON_INDENT) + "\n"


def atomic_write_json(path: Path, payload: Mapping[str, Any]) -> None:
    atomic_write_text(path, dump_json(payload))


class FilenameRegistry:
    """Assigns every page URL of one job a single file stem.

    One registry is shared by all per-page formatters of a job, so a page has
    the same stem in every format directory. Two different URLs can sanitize
    to the same name (`/a/b` and `/a-b`); the first one keeps the plain name,
    later ones get a URL-hash suffix and a warning is logged.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._names: dict[str, str] = {}
        self._owners: dict[str, str] = {}
        self.collisions = 0

    def claim(self, url: str) -> str:
        base_name = sanitize_filename(url)
        with self._lock:
            name = self._names.get(url)
            if name is not None:
                return name

            owner = self._owners.get(base_name)
            name = base_name if owner is None else f"{base_name}-{short_hash(url)}"
            self._owners[name] = url
            self._names[url] = name
            if owner is not None:
                self.collisions += 1

        if owner is not None:
            LOGGER.warning(
                "File name collision: %s and %s both map to %r; writing %r",
                owner,
                url,
                base_name,
                name,
            )
        return name


class PageFormatter(ABC):
    """Per-page formatter: `format(page) -> body`, `save(page, ...) -> path`."""

    output_format: OutputFormat
    extension: str

    def __init__(self, *, filenames: FilenameRegistry | None = None) -> None:
        self.filenames = filenames if filenames is not None else FilenameRegistry()

    @abstractmethod
    def format(self, page: PageData) -> str:
        """Render one page into this format's artifact body."""

    def path_for(self, page: PageData, *, base_dir: str | Path, job_label: str) -> Path:
        directory = format_dir(base_dir, job_label, self.output_format)
        return directory / f"{self.filenames.claim(page.url)}{self.extension}"

    def save(self, page: PageData, *, base_dir: str | Path, job_label: str) -> Path | None:
        """Persist one page and return the written path."""

        path = self.path_for(page, base_dir=base_dir, job_label=job_label)
        atomic_write_text(path, self.format(page))
        return path


def truncate_text(text: str, budget: int, marker: str) -> tuple[str, bool]:
    """Cut `text` to `budget` characters and append `marker` when cut.

    Text of exactly `budget` characters is returned unchanged.
    """

    if len(text) <= budget:
        return text, False
    return text[:budget] + marker, True


__all__ = [
    "FilenameRegistry",
    "PageFormatter",
    "atomic_write_json",
    "atomic_write_text",
    "dump_json",
    "format_dir",
    "job_dir",
    "truncate_text",
]
