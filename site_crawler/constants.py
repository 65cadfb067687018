"""Default crawler settings shared by config, extractor, and formatters."""

from __future__ import annotations

DEFAULT_OUTPUT_DIR = "./output"
OUTPUT_DIR_ENV_VAR = "OUTPUT_DIR"

DEFAULT_MAX_CONCURRENCY = 5
DEFAULT_MAX_REQUESTS_PER_MINUTE = 60
DEFAULT_REQUEST_TIMEOUT_SECONDS = 60.0
DEFAULT_MAX_REQUEST_RETRIES = 3
DEFAULT_RETRY_BACKOFF_SECONDS = 1.0
DEFAULT_MAX_PAGES: int | None = None
DEFAULT_HEADLESS = True
DEFAULT_FETCH_BACKEND = "requests"

DEFAULT_USER_AGENT = "site-crawler/0.1 (+https://github.com/)"
DEFAULT_HTTP_HEADERS = {
    "Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.8",
}

DEFAULT_OUTPUT_FORMATS = ("json", "markdown")

# Main content landmarks, tried in order.
MAIN_CONTENT_SELECTORS = (
    "main",
    "article",
    '[role="main"]',
    ".content",
    "#content",
    ".main-content",
    "#main-content",
)

EXCLUDE_SELECTORS = (
    "nav",
    "header",
    "footer",
    "aside",
    ".sidebar",
    ".navigation",
    ".menu",
    ".ads",
    ".advertisement",
    ".cookie-banner",
    "#cookie-consent",
    ".social-share",
    "script",
    "style",
    "noscript",
)

# A landmark must yield more than this many characters to be accepted.
MIN_CONTENT_CHARS = 100

CONTENT_CHAR_BUDGET = 5000
PAGE_LINK_CAP = 50
SINGLE_FILE_HEADING_CAP = 10
SINGLE_FILE_LINK_CAP = 10
TRUNCATION_MARKER = "..."
SINGLE_FILE_TRUNCATION_MARKER = "*[Content truncated...]*"

PROGRESS_LOG_EVERY = 10

FILENAME_MAX_CHARS = 100
FOLDER_NAME_MAX_CHARS = 50
ROOT_PAGE_NAME = "index"
EMPTY_PAGE_NAME = "page"

PROGRESS_FILENAME = "progress.json"
ERRORS_FILENAME = "errors.jsonl"
STATS_FILENAME = "crawl_stats.json"
CONFIG_FILENAME = "crawl_config.json"
LINKS_SUBDIR = "links"
LINKS_JSON_FILENAME = "all-links.json"
LINKS_TXT_FILENAME = "all-links.txt"

JSON_INDENT = 2
SUPPORTED_CONFIG_SUFFIXES = (".json", ".yaml", ".yml")

__all__ = [
    "CONFIG_FILENAME",
    "CONTENT_CHAR_BUDGET",
    "DEFAULT_FETCH_BACKEND",
    "DEFAULT_HEADLESS",
    "DEFAULT_HTTP_HEADERS",
    "DEFAULT_MAX_CONCURRENCY",
    "DEFAULT_MAX_PAGES",
    "DEFAULT_MAX_REQUEST_RETRIES",
    "DEFAULT_MAX_REQUESTS_PER_MINUTE",
    "DEFAULT_OUTPUT_DIR",
    "DEFAULT_OUTPUT_FORMATS",
    "DEFAULT_REQUEST_TIMEOUT_SECONDS",
    "DEFAULT_RETRY_BACKOFF_SECONDS",
    "DEFAULT_USER_AGENT",
    "EMPTY_PAGE_NAME",
    "ERRORS_FILENAME",
    "EXCLUDE_SELECTORS",
    "FILENAME_MAX_CHARS",
    "FOLDER_NAME_MAX_CHARS",
    "JSON_INDENT",
    "LINKS_JSON_FILENAME",
    "LINKS_SUBDIR",
    "LINKS_TXT_FILENAME",
    "MAIN_CONTENT_SELECTORS",
    "MIN_CONTENT_CHARS",
    "OUTPUT_DIR_ENV_VAR",
    "PAGE_LINK_CAP",
    "PROGRESS_FILENAME",
    "PROGRESS_LOG_EVERY",
    "ROOT_PAGE_NAME",
    "SINGLE_FILE_HEADING_CAP",
    "SINGLE_FILE_LINK_CAP",
    "SINGLE_FILE_TRUNCATION_MARKER",
    "STATS_FILENAME",
    "SUPPORTED_CONFIG_SUFFIXES",
    "TRUNCATION_MARKER",
]
