"""Lossless JSON mirror of one page record."""

from __future__ import annotations

from ..types import OutputFormat, PageData
from .base import PageFormatter, dump_json


class JsonFormatter(PageFormatter):
    output_format = OutputFormat.JSON
    extension = ".json"

    def format(self, page: PageData) -> str:
        return dump_json(page.to_json())


__all__ = ["JsonFormatter"]
