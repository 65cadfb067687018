"""Output formatters, one per `OutputFormat` variant."""

from __future__ import annotations

from typing import Iterable

from ..types import OutputFormat
from .base import FilenameRegistry, PageFormatter, atomic_write_json, atomic_write_text, job_dir
from .html_formatter import HtmlFormatter
from .json_formatter import JsonFormatter
from .links import LinksAggregator, LinksPaths
from .markdown_formatter import MarkdownFormatter
from .single_file import SingleFileAggregator, single_file_path


PAGE_FORMATTERS: dict[OutputFormat, type[PageFormatter]] = {
    OutputFormat.JSON: JsonFormatter,
    OutputFormat.MARKDOWN: MarkdownFormatter,
    OutputFormat.HTML: HtmlFormatter,
}


def build_formatters(
    formats: Iterable[OutputFormat],
    *,
    links: LinksAggregator,
    filenames: FilenameRegistry | None = None,
) -> dict[OutputFormat, PageFormatter | LinksAggregator]:
    """Fresh formatter instances for one job, in the requested order.

    `links` is the job's aggregator; it is returned under `OutputFormat.LINKS`
    when that format is requested. Every per-page formatter shares `filenames`
    (a new registry when omitted), so a page gets one file stem in all formats.
    """

    registry = filenames if filenames is not None else FilenameRegistry()
    out: dict[OutputFormat, PageFormatter | LinksAggregator] = {}
    for fmt in formats:
        if fmt == OutputFormat.LINKS:
            out[fmt] = links
        else:
            out[fmt] = PAGE_FORMATTERS[fmt](filenames=registry)
    return out


def available_formats() -> list[str]:
    return [fmt.value for fmt in OutputFormat]


__all__ = [
    "FilenameRegistry",
    "HtmlFormatter",
    "JsonFormatter",
    "LinksAggregator",
    "LinksPaths",
    "MarkdownFormatter",
    "PAGE_FORMATTERS",
    "PageFormatter",
    "SingleFileAggregator",
    "atomic_write_json",
    "atomic_write_text",
    "available_formats",
    "build_formatters",
    "job_dir",
    "single_file_path",
]
