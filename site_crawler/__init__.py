"""Site crawler package: config, shared types, and pipeline components."""

from .config import CrawlConfig, default_output_dir, load_config, save_config, validate_formats
from .extractor import ContentExtractor, ExtractorConfig
from .formatters import (
    HtmlFormatter,
    JsonFormatter,
    LinksAggregator,
    MarkdownFormatter,
    SingleFileAggregator,
    build_formatters,
)
from .frontier import EnqueueResult, EnqueueStatus, Frontier
from .jobs import CrawlJobManager, InvalidCrawlRequest, JobAlreadyActive
from .pipeline import CrawlPipeline
from .progress import ProgressTracker, read_progress
from .renderer import (
    RateLimiter,
    RenderError,
    RenderedDocument,
    Renderer,
    RequestsRenderer,
    SeleniumRenderer,
    build_renderer,
)
from .sanitize import job_id_for, sanitize_filename, sanitize_folder_name
from .stats import StatsCollector
from .storage import JobStorage
from .types import (
    CrawlProgress,
    CrawlStage,
    CrawlStatus,
    EntryStatus,
    ErrorRecord,
    FetchBackend,
    FrontierItem,
    Headings,
    OutputFormat,
    PageData,
    utc_now_iso,
)
from .url import filter_internal_links, host_from_url, is_crawlable, is_internal, normalize_url, resolve_url

__all__ = [
    "ContentExtractor",
    "CrawlConfig",
    "CrawlJobManager",
    "CrawlPipeline",
    "CrawlProgress",
    "CrawlStage",
    "CrawlStatus",
    "EnqueueResult",
    "EnqueueStatus",
    "EntryStatus",
    "ErrorRecord",
    "ExtractorConfig",
    "FetchBackend",
    "Frontier",
    "FrontierItem",
    "Headings",
    "HtmlFormatter",
    "InvalidCrawlRequest",
    "JobAlreadyActive",
    "JobStorage",
    "JsonFormatter",
    "LinksAggregator",
    "MarkdownFormatter",
    "OutputFormat",
    "PageData",
    "ProgressTracker",
    "RateLimiter",
    "RenderError",
    "RenderedDocument",
    "Renderer",
    "RequestsRenderer",
    "SeleniumRenderer",
    "SingleFileAggregator",
    "StatsCollector",
    "build_formatters",
    "build_renderer",
    "default_output_dir",
    "filter_internal_links",
    "host_from_url",
    "is_crawlable",
    "is_internal",
    "job_id_for",
    "load_config",
    "normalize_url",
    "read_progress",
    "resolve_url",
    "sanitize_filename",
    "sanitize_folder_name",
    "save_config",
    "utc_now_iso",
    "validate_formats",
]
