"""Typed crawler configuration with JSON/YAML load/save helpers."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml  # type: ignore

from .constants import (
    DEFAULT_FETCH_BACKEND,
    DEFAULT_HEADLESS,
    DEFAULT_HTTP_HEADERS,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_PAGES,
    DEFAULT_MAX_REQUEST_RETRIES,
    DEFAULT_MAX_REQUESTS_PER_MINUTE,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_OUTPUT_FORMATS,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_RETRY_BACKOFF_SECONDS,
    DEFAULT_USER_AGENT,
    EXCLUDE_SELECTORS,
    JSON_INDENT,
    MAIN_CONTENT_SELECTORS,
    MIN_CONTENT_CHARS,
    OUTPUT_DIR_ENV_VAR,
    SUPPORTED_CONFIG_SUFFIXES,
)
from .types import FetchBackend, JSONDict, JSONValue, OutputFormat
from .url import host_from_url, is_http_url


def default_output_dir() -> Path:
    """Output root, honoring the `OUTPUT_DIR` environment variable."""

    return Path(os.environ.get(OUTPUT_DIR_ENV_VAR) or DEFAULT_OUTPUT_DIR)


def validate_formats(requested: Iterable[str | OutputFormat]) -> tuple[list[OutputFormat], list[str]]:
    """Split requested format names into known formats and unknown names.

    Known formats keep their first-seen order and are deduplicated.
    """

    valid: list[OutputFormat] = []
    invalid: list[str] = []
    for item in requested:
        if isinstance(item, OutputFormat):
            fmt = item
        else:
            try:
                fmt = OutputFormat(str(item).strip().lower())
            except ValueError:
                invalid.append(str(item))
                continue
        if fmt not in valid:
            valid.append(fmt)
    return valid, invalid


def _to_backend(value: Any) -> FetchBackend:
    if isinstance(value, FetchBackend):
        return value
    if isinstance(value, str):
        return FetchBackend(value.strip().lower())
    raise ValueError(f"Invalid backend value: {value!r}")


def _as_int(value: Any, key: str) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid int for '{key}': {value!r}") from exc


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError(f"Invalid bool for '{key}': {value!r}")


@dataclass(slots=True)
class CrawlConfig:
    """Settings for one crawl job: what to crawl, how politely, and what to write."""

    seed_url: str
    label: str
    output_formats: list[OutputFormat] = field(
        default_factory=lambda: [OutputFormat(name) for name in DEFAULT_OUTPUT_FORMATS]
    )
    output_dir: Path = field(default_factory=default_output_dir)

    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    max_requests_per_minute: int = DEFAULT_MAX_REQUESTS_PER_MINUTE
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    max_request_retries: int = DEFAULT_MAX_REQUEST_RETRIES
    retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS
    max_pages: int | None = DEFAULT_MAX_PAGES

    backend: FetchBackend = FetchBackend(DEFAULT_FETCH_BACKEND)
    headless: bool = DEFAULT_HEADLESS
    user_agent: str = DEFAULT_USER_AGENT
    default_headers: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HTTP_HEADERS))

    main_content_selectors: list[str] = field(default_factory=lambda: list(MAIN_CONTENT_SELECTORS))
    exclude_selectors: list[str] = field(default_factory=lambda: list(EXCLUDE_SELECTORS))
    min_content_chars: int = MIN_CONTENT_CHARS

    write_single_file: bool = True
    metadata: dict[str, JSONValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.seed_url = (self.seed_url or "").strip()
        self.label = (self.label or "").strip()
        if not is_http_url(self.seed_url):
            raise ValueError(f"seed_url must be an http(s) URL: {self.seed_url!r}")
        if not self.label:
            raise ValueError("label must not be empty")

        valid, invalid = validate_formats(self.output_formats)
        if invalid:
            raise ValueError(f"Unknown output formats: {', '.join(invalid)}")
        self.output_formats = valid

        self.output_dir = Path(self.output_dir)
        self.backend = _to_backend(self.backend)

        if self.max_concurrency <= 0:
            raise ValueError("max_concurrency must be > 0")
        if self.max_requests_per_minute <= 0:
            raise ValueError("max_requests_per_minute must be > 0")
        if self.request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be > 0")
        if self.max_request_retries < 0:
            raise ValueError("max_request_retries must be >= 0")
        if self.retry_backoff_seconds < 0:
            raise ValueError("retry_backoff_seconds must be >= 0")
        if self.max_pages is not None and self.max_pages <= 0:
            raise ValueError("max_pages must be > 0 when set")
        if self.min_content_chars < 0:
            raise ValueError("min_content_chars must be >= 0")

    @property
    def base_domain(self) -> str:
        """Domain that defines "same site" for this crawl."""

        return host_from_url(self.seed_url)

    @property
    def request_interval_seconds(self) -> float:
        """Minimum spacing between two requests implied by the per-minute cap."""

        return 60.0 / self.max_requests_per_minute

    def headers(self) -> dict[str, str]:
        merged = dict(self.default_headers)
        merged.setdefault("User-Agent", self.user_agent)
        return merged

    def to_dict(self) -> JSONDict:
        """Serialize config for manifests and reproducibility."""

        return {
            "seed_url": self.seed_url,
            "label": self.label,
            "output_formats": [fmt.value for fmt in self.output_formats],
            "output_dir": str(self.output_dir),
            "max_concurrency": self.max_concurrency,
            "max_requests_per_minute": self.max_requests_per_minute,
            "request_timeout_seconds": self.request_timeout_seconds,
            "max_request_retries": self.max_request_retries,
            "retry_backoff_seconds": self.retry_backoff_seconds,
            "max_pages": self.max_pages,
            "backend": self.backend.value,
            "headless": self.headless,
            "user_agent": self.user_agent,
            "default_headers": dict(self.default_headers),
            "main_content_selectors": list(self.main_content_selectors),
            "exclude_selectors": list(self.exclude_selectors),
            "min_content_chars": self.min_content_chars,
            "write_single_file": self.write_single_file,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CrawlConfig":
        """Build config from a parsed dictionary."""

        for key in ("seed_url", "label"):
            if key not in payload:
                raise ValueError(f"Config missing required key: '{key}'")

        formats = payload.get("output_formats") or list(DEFAULT_OUTPUT_FORMATS)
        if isinstance(formats, str):
            formats = [item for item in formats.split(",") if item.strip()]

        return cls(
            seed_url=str(payload["seed_url"]),
            label=str(payload["label"]),
            output_formats=list(formats),
            output_dir=Path(payload.get("output_dir") or default_output_dir()),
            max_concurrency=int(payload.get("max_concurrency", DEFAULT_MAX_CONCURRENCY)),
            max_requests_per_minute=int(
                payload.get("max_requests_per_minute", DEFAULT_MAX_REQUESTS_PER_MINUTE)
            ),
            request_timeout_seconds=float(
                payload.get("request_timeout_seconds", DEFAULT_REQUEST_TIMEOUT_SECONDS)
            ),
            max_request_retries=int(payload.get("max_request_retries", DEFAULT_MAX_REQUEST_RETRIES)),
            retry_backoff_seconds=float(
                payload.get("retry_backoff_seconds", DEFAULT_RETRY_BACKOFF_SECONDS)
            ),
            max_pages=_as_int(payload.get("max_pages", DEFAULT_MAX_PAGES), "max_pages"),
            backend=_to_backend(payload.get("backend", DEFAULT_FETCH_BACKEND)),
            headless=_as_bool(payload.get("headless", DEFAULT_HEADLESS), "headless"),
            user_agent=str(payload.get("user_agent", DEFAULT_USER_AGENT)),
            default_headers={
                str(k): str(v)
                for k, v in dict(payload.get("default_headers", DEFAULT_HTTP_HEADERS)).items()
            },
            main_content_selectors=[
                str(item) for item in payload.get("main_content_selectors", MAIN_CONTENT_SELECTORS)
            ],
            exclude_selectors=[str(item) for item in payload.get("exclude_selectors", EXCLUDE_SELECTORS)],
            min_content_chars=int(payload.get("min_content_chars", MIN_CONTENT_CHARS)),
            write_single_file=_as_bool(payload.get("write_single_file", True), "write_single_file"),
            metadata=dict(payload.get("metadata", {})),
        )


def _load_yaml(path: Path) -> dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML config at {path} must be a mapping at top level")
    return data


def load_config(path: str | Path, **overrides: Any) -> CrawlConfig:
    """Load CrawlConfig from a JSON/YAML path; keyword overrides win."""

    config_path = Path(path)
    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ValueError(
            f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
        )

    if suffix == ".json":
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    else:
        payload = _load_yaml(config_path)

    if not isinstance(payload, dict):
        raise ValueError(f"Config at {config_path} must be a mapping")

    payload.update({key: value for key, value in overrides.items() if value is not None})
    return CrawlConfig.from_dict(payload)


def save_config(config: CrawlConfig, path: str | Path) -> None:
    """Save CrawlConfig as JSON or YAML based on file extension."""

    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    suffix = out_path.suffix.lower()
    payload = config.to_dict()

    if suffix == ".json":
        out_path.write_text(
            json.dumps(payload, indent=JSON_INDENT, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return

    if suffix in {".yaml", ".yml"}:
        out_path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
        return

    raise ValueError(
        f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
    )


__all__ = [
    "CrawlConfig",
    "default_output_dir",
    "load_config",
    "save_config",
    "validate_formats",
]
