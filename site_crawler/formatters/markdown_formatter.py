"""Readable Markdown report for one page."""

from __future__ import annotations

from ..constants import CONTENT_CHAR_BUDGET, PAGE_LINK_CAP, TRUNCATION_MARKER
from ..types import OutputFormat, PageData
from .base import FilenameRegistry, PageFormatter, truncate_text


UNTITLED_PAGE = "Untitled Page"


class MarkdownFormatter(PageFormatter):
    """Title, metadata, heading outline, truncated content, capped link list."""

    output_format = OutputFormat.MARKDOWN
    extension = ".md"

    def __init__(
        self,
        *,
        content_budget: int = CONTENT_CHAR_BUDGET,
        link_cap: int = PAGE_LINK_CAP,
        filenames: FilenameRegistry | None = None,
    ) -> None:
        super().__init__(filenames=filenames)
        self.content_budget = content_budget
        self.link_cap = link_cap

    def format(self, page: PageData) -> str:
        lines: list[str] = [
            f"# {page.title or UNTITLED_PAGE}",
            "",
            f"**URL:** [{page.url}]({page.url})",
            f"**Crawled:** {page.crawled_at}",
            "",
        ]

        if not page.headings.empty:
            lines.extend(["---", "", "## Page Structure", ""])
            for level, texts in page.headings.by_level():
                if not texts:
                    continue
                lines.append(f"### H{level} Headings")
                lines.extend(f"- {text}" for text in texts)
                lines.append("")

        if page.main_text:
            content, _ = truncate_text(page.main_text, self.content_budget, TRUNCATION_MARKER)
            lines.extend(["---", "", "## Content", "", content, ""])

        links = page.internal_links
        if links:
            lines.extend(
                [
                    "---",
                    "",
                    "## Internal Links",
                    "",
                    f"Found {len(links)} internal links:",
                    "",
                ]
            )
            lines.extend(f"- [{link}]({link})" for link in links[: self.link_cap])
            overflow = len(links) - self.link_cap
            if overflow > 0:
                lines.extend(["", f"_...and {overflow} more links_"])
            lines.append("")

        return "\n".join(lines)


__all__ = ["MarkdownFormatter", "UNTITLED_PAGE"]
