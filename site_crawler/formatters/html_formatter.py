"""Standalone styled HTML report for one page."""

from __future__ import annotations

from html import escape

from ..constants import CONTENT_CHAR_BUDGET, PAGE_LINK_CAP, TRUNCATION_MARKER
from ..types import Headings, OutputFormat, PageData
from .base import FilenameRegistry, PageFormatter, truncate_text
from .markdown_formatter import UNTITLED_PAGE


_STYLE = """
        * { box-sizing: border-box; }
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            line-height: 1.6;
            max-width: 900px;
            margin: 0 auto;
            padding: 20px;
            background: #f5f5f5;
            color: #333;
        }
        .container { background: white; padding: 30px; border-radius: 8px; box-shadow: 0 2px 4px rgba(0,0,0,0.1); }
        h1 { color: #2c3e50; border-bottom: 2px solid #3498db; padding-bottom: 10px; }
        h2 { color: #34495e; margin-top: 30px; }
        .metadata { background: #ecf0f1; padding: 15px; border-radius: 5px; margin-bottom: 20px; }
        .metadata a { color: #3498db; word-break: break-all; }
        .headings-section { display: grid; grid-template-columns: repeat(auto-fit, minmax(250px, 1fr)); gap: 20px; }
        .heading-group { background: #f8f9fa; padding: 15px; border-radius: 5px; }
        .heading-group h3 { margin-top: 0; color: #2980b9; }
        .heading-group ul { margin: 0; padding-left: 20px; }
        .content-section {
            background: #fafafa;
            padding: 20px;
            border-radius: 5px;
            border-left: 4px solid #3498db;
            max-height: 400px;
            overflow-y: auto;
            white-space: pre-wrap;
        }
        .links-section ul { max-height: 300px; overflow-y: auto; padding-left: 20px; }
        .links-section a { color: #3498db; text-decoration: none; }
        .links-section a:hover { text-decoration: underline; }
        .timestamp { color: #7f8c8d; font-size: 0.9em; }
"""


class HtmlFormatter(PageFormatter):
    """Same sections as the Markdown report, escaped and styled."""

    output_format = OutputFormat.HTML
    extension = ".html"

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
        title = escape(page.title or UNTITLED_PAGE)
        url = escape(page.url)
        sections = [
            self._headings_section(page.headings),
            self._content_section(page.main_text),
            self._links_section(page.internal_links),
        ]
        body = "\n".join(section for section in sections if section)

        return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title} - Crawl Report</title>
    <style>{_STYLE}    </style>
</head>
<body>
    <div class="container">
        <h1>{title}</h1>

        <div class="metadata">
            <p><strong>Source URL:</strong> <a href="{url}" target="_blank">{url}</a></p>
            <p class="timestamp"><strong>Crawled:</strong> {escape(page.crawled_at)}</p>
        </div>

{body}
    </div>
</body>
</html>
"""

    @staticmethod
    def _headings_section(headings: Headings) -> str:
        if headings.empty:
            return ""

        groups: list[str] = []
        for level, texts in headings.by_level():
            if not texts:
                continue
            items = "".join(f"<li>{escape(text)}</li>" for text in texts)
            groups.append(
                '        <div class="heading-group">\n'
                f"            <h3>H{level} Headings ({len(texts)})</h3>\n"
                f"            <ul>{items}</ul>\n"
                "        </div>"
            )
        return (
            "        <h2>Page Structure</h2>\n"
            '        <div class="headings-section">\n'
            + "\n".join(groups)
            + "\n        </div>"
        )

    def _content_section(self, main_text: str) -> str:
        if not main_text:
            return ""
        content, _ = truncate_text(main_text, self.content_budget, TRUNCATION_MARKER)
        return (
            "        <h2>Content</h2>\n"
            f'        <div class="content-section">{escape(content)}</div>'
        )

    def _links_section(self, links: tuple[str, ...]) -> str:
        if not links:
            return ""
        items = "".join(
            f'<li><a href="{escape(link)}">{escape(link)}</a></li>'
            for link in links[: self.link_cap]
        )
        overflow = len(links) - self.link_cap
        more = f"\n            <p><em>...and {overflow} more links</em></p>" if overflow > 0 else ""
        return (
            '        <div class="links-section">\n'
            f"            <h2>Internal Links ({len(links)})</h2>\n"
            f"            <ul>{items}</ul>{more}\n"
            "        </div>"
        )


__all__ = ["HtmlFormatter"]
