"""Structured content extraction from rendered pages."""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from typing import Sequence

from bs4.element import Tag

from .constants import EXCLUDE_SELECTORS, MAIN_CONTENT_SELECTORS, MIN_CONTENT_CHARS
from .renderer import RenderedDocument
from .types import Headings, PageData, utc_now_iso
from .url import filter_internal_links


_WHITESPACE = re.compile(r"\s+")


@dataclass(slots=True)
class ExtractorConfig:
    """Selectors and thresholds for main-content detection."""

    main_content_selectors: Sequence[str] = field(default_factory=lambda: list(MAIN_CONTENT_SELECTORS))
    exclude_selectors: Sequence[str] = field(default_factory=lambda: list(EXCLUDE_SELECTORS))
    min_content_chars: int = MIN_CONTENT_CHARS


class ContentExtractor:
    """Turn a `RenderedDocument` into a `PageData` record.

    Main text comes from the first landmark selector whose cleaned text is
    longer than `min_content_chars`; otherwise the whole body is used. Noise
    elements (navigation, ads, scripts, ...) are removed from a copy of the
    subtree, never from the document itself.
    """

    def __init__(self, config: ExtractorConfig | None = None) -> None:
        self.config = config or ExtractorConfig()

    def extract(self, document: RenderedDocument, *, url: str, base_domain: str) -> PageData:
        return PageData(
            url=url,
            title=document.title(),
            headings=self.extract_headings(document),
            main_text=self.extract_main_text(document),
            internal_links=tuple(
                filter_internal_links(
                    document.hrefs(),
                    base_url=document.final_url,
                    base_domain=base_domain,
                )
            ),
            crawled_at=utc_now_iso(),
        )

    def extract_headings(self, document: RenderedDocument) -> Headings:
        return Headings.from_lists(
            h1=[self._collapse(text) for text in document.texts("h1")],
            h2=[self._collapse(text) for text in document.texts("h2")],
            h3=[self._collapse(text) for text in document.texts("h3")],
        )

    def extract_main_text(self, document: RenderedDocument) -> str:
        for selector in self.config.main_content_selectors:
            element = document.select_one(selector)
            if element is None:
                continue
            text = self.clean_text(element)
            if len(text) > self.config.min_content_chars:
                return text

        body = document.body()
        if body is None:
            return ""
        return self.clean_text(body)

    def clean_text(self, element: Tag) -> str:
        """Whitespace-collapsed text of `element` minus excluded descendants."""

        clone = copy.copy(element)
        for selector in self.config.exclude_selectors:
            for excluded in clone.select(selector):
                excluded.extract()
        return self._collapse(clone.get_text(" "))

    @staticmethod
    def _collapse(text: str) -> str:
        return _WHITESPACE.sub(" ", text).strip()


__all__ = [
    "ContentExtractor",
    "ExtractorConfig",
]
