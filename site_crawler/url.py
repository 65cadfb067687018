"""URL normalization, same-site filtering, and crawl-worthiness helpers."""

from __future__ import annotations

import posixpath
import re
from typing import Iterable, Sequence
from urllib.parse import (
    parse_qsl,
    quote,
    urlencode,
    urljoin,
    urlsplit,
    urlunsplit,
)


DEFAULT_ALLOWED_SCHEMES = ("http", "https")
SKIP_HREF_PREFIXES = ("javascript:", "mailto:", "tel:", "data:")
TRACKING_QUERY_PARAM_PREFIXES = ("utm_", "hsa_")
TRACKING_QUERY_PARAMS = {
    "fbclid",
    "gclid",
    "gclsrc",
    "dclid",
    "msclkid",
    "mc_cid",
    "mc_eid",
    "mkt_tok",
    "igshid",
    "ref",
    "ref_src",
    "source",
    "campaign",
    "_ga",
    "_gl",
    "hsctatracking",
}

SKIP_EXTENSIONS = frozenset(
    {
        # documents and archives
        ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
        ".zip", ".rar", ".tar", ".gz", ".7z",
        # images
        ".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp", ".ico", ".bmp",
        # audio/video
        ".mp3", ".mp4", ".avi", ".mov", ".wmv", ".flv", ".webm", ".wav",
        # assets and data feeds
        ".css", ".js", ".map", ".json", ".xml",
        ".woff", ".woff2", ".ttf", ".eot",
    }
)
SKIP_PATH_PATTERNS = (
    re.compile(r"/feed/?$", re.IGNORECASE),
    re.compile(r"/rss/?$", re.IGNORECASE),
)
PRINT_QUERY_PATTERN = re.compile(r"print", re.IGNORECASE)

INDEX_FILE_PATTERN = re.compile(r"/(index|default)\.(html?|php|aspx?)$", re.IGNORECASE)


def host_from_url(url: str) -> str:
    """Extract normalized host from URL (lowercased, `www.` stripped)."""

    parsed = urlsplit(url)
    host = (parsed.hostname or "").strip().lower()
    if host.startswith("www."):
        host = host[4:]
    return host.strip(".")


def extract_domain(url: str) -> str | None:
    """Return the URL hostname as-is, or None when the URL has none."""

    try:
        return urlsplit(url).hostname or None
    except ValueError:
        return None


def is_http_url(url: str, allowed_schemes: Sequence[str] = DEFAULT_ALLOWED_SCHEMES) -> bool:
    """Return True if URL is absolute and has an allowed HTTP-like scheme."""

    try:
        parsed = urlsplit(url)
    except ValueError:
        return False
    if not parsed.scheme or not parsed.netloc:
        return False
    return parsed.scheme.lower() in {scheme.lower() for scheme in allowed_schemes}


is_valid_url = is_http_url


def get_base_url(url: str) -> str | None:
    """Return `scheme://host` for URL, or None when it cannot be parsed."""

    if not is_http_url(url):
        return None
    parsed = urlsplit(url)
    return f"{parsed.scheme.lower()}://{(parsed.hostname or '').lower()}"


def get_path_segments(url: str) -> list[str]:
    """Return non-empty path segments of URL."""

    try:
        path = urlsplit(url).path
    except ValueError:
        return []
    return [segment for segment in path.split("/") if segment]


def _has_default_port(scheme: str, port: int | None) -> bool:
    if port is None:
        return False
    return (scheme == "http" and port == 80) or (scheme == "https" and port == 443)


def _normalize_netloc(parsed_url) -> str:  # urllib.parse.SplitResult
    host = (parsed_url.hostname or "").lower()
    if not host:
        return ""
    if ":" in host:
        host = f"[{host}]"

    userinfo = ""
    if parsed_url.username:
        userinfo = quote(parsed_url.username, safe="")
        if parsed_url.password:
            userinfo += ":" + quote(parsed_url.password, safe="")
        userinfo += "@"

    port: int | None
    try:
        port = parsed_url.port
    except ValueError:
        port = None

    if port is not None and not _has_default_port(parsed_url.scheme.lower(), port):
        return f"{userinfo}{host}:{port}"
    return f"{userinfo}{host}"


def _normalize_path(path: str) -> str:
    if not path:
        return "/"

    collapsed = re.sub(r"/{2,}", "/", path)
    normalized = posixpath.normpath(collapsed)
    if not normalized.startswith("/"):
        normalized = "/" + normalized

    # Stripping one index file can expose another (`/a/index.html/index.php`).
    while True:
        stripped = INDEX_FILE_PATTERN.sub("", normalized)
        if stripped != "/":
            stripped = stripped.rstrip("/")
        stripped = stripped or "/"
        if stripped == normalized:
            return normalized
        normalized = stripped


def _is_tracking_query_key(key: str) -> bool:
    normalized = key.strip().lower()
    if not normalized:
        return False

    if normalized in TRACKING_QUERY_PARAMS:
        return True

    return any(normalized.startswith(prefix) for prefix in TRACKING_QUERY_PARAM_PREFIXES)


def _normalize_query(query: str) -> str:
    if not query:
        return ""

    pairs = parse_qsl(query, keep_blank_values=True)
    pairs = [(key, value) for key, value in pairs if not _is_tracking_query_key(key)]
    if not pairs:
        return ""

    return urlencode(sorted(pairs, key=lambda item: (item[0], item[1])))


def normalize_url(
    url: str | None,
    *,
    allowed_schemes: Sequence[str] = DEFAULT_ALLOWED_SCHEMES,
) -> str | None:
    """Canonicalize absolute URL; the result is the crawl's dedup key.

    Returns `None` for URLs that are invalid or outside allowed schemes. The
    function is idempotent: `normalize_url(normalize_url(u)) == normalize_url(u)`.
    """

    if not url:
        return None

    raw = url.strip()
    if not raw:
        return None

    try:
        parsed = urlsplit(raw)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None

    scheme = parsed.scheme.lower()
    if scheme not in {item.lower() for item in allowed_schemes}:
        return None

    netloc = _normalize_netloc(parsed)
    if not netloc:
        return None

    path = _normalize_path(parsed.path)
    query = _normalize_query(parsed.query)

    return urlunsplit((scheme, netloc, path, query, ""))


def resolve_url(base_url: str, href: str | None) -> str | None:
    """Resolve a possibly relative href against base URL and canonicalize it."""

    if href is None:
        return None

    candidate = href.strip()
    if not candidate or candidate.startswith("#"):
        return None

    lowered = candidate.lower()
    if any(lowered.startswith(prefix) for prefix in SKIP_HREF_PREFIXES):
        return None

    try:
        absolute = urljoin(base_url, candidate)
    except ValueError:
        return None
    return normalize_url(absolute)


def is_internal(url: str, base_domain: str) -> bool:
    """Return True when URL's host equals `base_domain` or is a subdomain of it."""

    domain = (base_domain or "").strip().lower().strip(".")
    if not domain:
        return False

    try:
        host = (urlsplit(url).hostname or "").lower()
    except ValueError:
        return False
    if not host:
        return False

    return host == domain or host.endswith("." + domain)


def is_crawlable(url: str) -> bool:
    """Return True when URL looks like an HTML page worth rendering.

    Rejects non-HTTP(S) schemes, document/media/asset extensions, feed
    endpoints, and print views.
    """

    if not is_http_url(url):
        return False

    parsed = urlsplit(url)
    path = parsed.path or "/"

    extension = posixpath.splitext(path)[1].lower()
    if extension in SKIP_EXTENSIONS:
        return False

    if any(pattern.search(path) for pattern in SKIP_PATH_PATTERNS):
        return False

    if parsed.query and PRINT_QUERY_PATTERN.search(parsed.query):
        return False

    return True


def filter_internal_links(hrefs: Iterable[str | None], *, base_url: str, base_domain: str) -> list[str]:
    """Resolve, canonicalize, and keep same-site links; sorted and deduplicated."""

    out: set[str] = set()
    for href in hrefs:
        resolved = resolve_url(base_url, href)
        if resolved is None:
            continue
        if not is_internal(resolved, base_domain):
            continue
        out.add(resolved)
    return sorted(out)


__all__ = [
    "DEFAULT_ALLOWED_SCHEMES",
    "SKIP_EXTENSIONS",
    "SKIP_HREF_PREFIXES",
    "TRACKING_QUERY_PARAM_PREFIXES",
    "TRACKING_QUERY_PARAMS",
    "extract_domain",
    "filter_internal_links",
    "get_base_url",
    "get_path_segments",
    "host_from_url",
    "is_crawlable",
    "is_http_url",
    "is_internal",
    "is_valid_url",
    "normalize_url",
    "resolve_url",
]
