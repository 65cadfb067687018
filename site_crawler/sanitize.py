"""Map labels and URLs to safe file-system identifiers."""

from __future__ import annotations

import hashlib
import re
from urllib.parse import urlsplit

from .constants import EMPTY_PAGE_NAME, FILENAME_MAX_CHARS, FOLDER_NAME_MAX_CHARS, ROOT_PAGE_NAME


_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_FOLDER_STOP_WORDS = re.compile(r"\b(?:university|college|institute|of|the|and)\b|&", re.IGNORECASE)


def short_hash(value: str, length: int = 8) -> str:
    """Return a short, stable hex digest of `value`."""

    return hashlib.sha1(value.encode("utf-8", errors="ignore")).hexdigest()[:length]


def job_id_for(label: str) -> str:
    """Derive the job identifier from a human label.

    Lowercase, whitespace runs become hyphens, anything outside `[a-z0-9-]`
    is dropped. Distinct labels can map to the same identifier.
    """

    lowered = (label or "").lower()
    hyphenated = re.sub(r"\s+", "-", lowered)
    return re.sub(r"[^a-z0-9-]", "", hyphenated)


def is_job_id(value: str) -> bool:
    """Return True when `value` is already in sanitized job-id form."""

    return bool(value) and job_id_for(value) == value


def _trim_hyphens(value: str) -> str:
    value = re.sub(r"-+", "-", value)
    return value.strip("-")


def _truncate(value: str, limit: int) -> str:
    if len(value) <= limit:
        return value
    return value[:limit].rstrip("-")


def sanitize_filename(url: str) -> str:
    """Convert a page URL into a file name (without extension).

    The root path maps to `index`; URLs that cannot be parsed fall back to
    `page-<hash>` so every page still gets a distinct name.
    """

    try:
        parsed = urlsplit(url)
    except ValueError:
        return f"{EMPTY_PAGE_NAME}-{short_hash(url)}"
    if not parsed.scheme or not parsed.netloc:
        return f"{EMPTY_PAGE_NAME}-{short_hash(url)}"

    pathname = parsed.path.strip("/")
    if not pathname:
        return ROOT_PAGE_NAME

    filename = pathname.replace("/", "-")
    filename = re.sub(r"\.[^.\-]+$", "", filename)
    filename = _INVALID_FILENAME_CHARS.sub("-", filename)
    filename = _trim_hyphens(filename).lower()
    filename = _truncate(filename, FILENAME_MAX_CHARS)

    return filename or EMPTY_PAGE_NAME


def sanitize_folder_name(name: str | None) -> str:
    """Shorten an institution name into a folder name.

    Common words (`university`, `college`, `of`, ...) are removed before
    slugging, e.g. "University of Example" -> "example".
    """

    if not name or not isinstance(name, str):
        return "unknown-university"

    sanitized = _FOLDER_STOP_WORDS.sub(" ", name.lower())
    sanitized = re.sub(r"[^a-z0-9]+", "-", sanitized)
    sanitized = _truncate(_trim_hyphens(sanitized), FOLDER_NAME_MAX_CHARS)

    return sanitized or "university"


__all__ = [
    "is_job_id",
    "job_id_for",
    "sanitize_filename",
    "sanitize_folder_name",
    "short_hash",
]
