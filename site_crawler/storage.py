"""Per-job manifests: error log, config snapshot, and run statistics."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Mapping

from .config import CrawlConfig
from .constants import CONFIG_FILENAME, ERRORS_FILENAME, STATS_FILENAME
from .formatters.base import atomic_write_json, job_dir
from .sanitize import job_id_for
from .types import ErrorRecord, JSONDict


class JobStorage:
    """Persist crawl bookkeeping under `{output_dir}/{job_id}/`."""

    def __init__(self, output_dir: str | Path, label: str) -> None:
        self.output_dir = Path(output_dir)
        self.job_id = job_id_for(label)
        self.job_dir = job_dir(self.output_dir, label)

        self.errors_path = self.job_dir / ERRORS_FILENAME
        self.crawl_config_path = self.job_dir / CONFIG_FILENAME
        self.crawl_stats_path = self.job_dir / STATS_FILENAME

        self._jsonl_lock = threading.Lock()
        self.job_dir.mkdir(parents=True, exist_ok=True)

    @property
    def paths(self) -> JSONDict:
        """Return important output paths for logging/CLI status messages."""

        return {
            "output_dir": str(self.output_dir),
            "job_dir": str(self.job_dir),
            "errors": str(self.errors_path),
            "crawl_config": str(self.crawl_config_path),
            "crawl_stats": str(self.crawl_stats_path),
        }

    def save_error(self, record: ErrorRecord) -> None:
        """Append error record to `errors.jsonl`."""

        self._append_jsonl(self.errors_path, record.to_json())

    def save_crawl_config(self, config: CrawlConfig | Mapping[str, Any]) -> None:
        """Write crawl config manifest atomically as JSON."""

        payload = config.to_dict() if isinstance(config, CrawlConfig) else dict(config)
        atomic_write_json(self.crawl_config_path, payload)

    def save_crawl_stats(self, stats: Mapping[str, Any]) -> None:
        """Write crawl stats manifest atomically as JSON."""

        atomic_write_json(self.crawl_stats_path, dict(stats))

    def _append_jsonl(self, path: Path, payload: Mapping[str, Any]) -> None:
        line = json.dumps(payload, ensure_ascii=False, sort_keys=True)
        with self._jsonl_lock:
            with path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")


__all__ = ["JobStorage"]
