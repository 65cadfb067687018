"""Tests for turning rendered documents into PageData records."""

from __future__ import annotations

from site_crawler.extractor import ContentExtractor, ExtractorConfig
from site_crawler.renderer import RenderedDocument


LONG = "Research and teaching happen here every day across many departments. " * 3


def _doc(html: str, url: str = "https://u.edu/page") -> RenderedDocument:
    return RenderedDocument(url=url, html=html)


class TestHeadings:
    def test_levels_trimmed_and_empties_dropped(self):
        doc = _doc(
            "<html><body><h1>  Title </h1><h1> </h1><h2>A</h2><h2>B\n  part</h2>"
            "<h3></h3><h4>ignored</h4></body></html>"
        )
        headings = ContentExtractor().extract_headings(doc)
        assert headings.h1 == ("Title",)
        assert headings.h2 == ("A", "B part")
        assert headings.h3 == ()


class TestMainText:
    def test_prefers_first_landmark_over_threshold(self):
        doc = _doc(
            f"<html><body><div id='content'>Other text</div>"
            f"<main><nav>Menu Items</nav><p>{LONG}</p><script>var x = 1;</script></main>"
            f"<footer>Footer</footer></body></html>"
        )
        text = ContentExtractor().extract_main_text(doc)
        assert text.startswith("Research and teaching")
        assert "Menu Items" not in text
        assert "var x" not in text
        assert "Other text" not in text

    def test_short_landmark_falls_back_to_body(self):
        doc = _doc(
            "<html><body><main>Tiny</main><p>Body paragraph</p>"
            "<footer>Footer links</footer><div class='cookie-banner'>Accept</div></body></html>"
        )
        text = ContentExtractor().extract_main_text(doc)
        assert text == "Tiny Body paragraph"

    def test_threshold_is_strictly_greater(self):
        body = "x" * 100
        doc = _doc(f"<html><body><main>{body}</main><p>outside</p></body></html>")
        extractor = ContentExtractor(ExtractorConfig(min_content_chars=100))
        assert extractor.extract_main_text(doc) == f"{body} outside"

    def test_exclusion_does_not_mutate_document(self):
        doc = _doc(f"<html><body><main><nav>Menu</nav><p>{LONG}</p></main></body></html>")
        ContentExtractor().extract_main_text(doc)
        assert doc.select_one("main nav") is not None
        assert doc.texts("nav") == ["Menu"]

    def test_nested_excluded_elements(self):
        doc = _doc(
            f"<html><body><main><aside><nav>Inner</nav><div class='ads'>Ad</div></aside>"
            f"<p>{LONG}</p></main></body></html>"
        )
        text = ContentExtractor().extract_main_text(doc)
        assert "Inner" not in text
        assert "Ad" not in text.split()

    def test_empty_document(self):
        doc = _doc("")
        assert ContentExtractor().extract_main_text(doc) == ""


class TestExtract:
    def test_page_data(self):
        html = f"""
        <html><head><title>  Page Title </title></head>
        <body>
          <h1>Heading</h1>
          <main><p>{LONG}</p>
            <a href="/b">B</a><a href="/a/">A</a><a href="a#frag">A again</a>
            <a href="https://sub.u.edu/x">Sub</a><a href="https://other.org/">Out</a>
            <a href="javascript:void(0)">JS</a><a href="#top">Top</a>
          </main>
        </body></html>
        """
        page = ContentExtractor().extract(
            RenderedDocument(url="https://u.edu/", html=html),
            url="https://u.edu/",
            base_domain="u.edu",
        )
        assert page.url == "https://u.edu/"
        assert page.title == "Page Title"
        assert page.headings.h1 == ("Heading",)
        assert page.internal_links == (
            "https://sub.u.edu/x",
            "https://u.edu/a",
            "https://u.edu/b",
        )
        assert page.crawled_at

    def test_links_resolve_against_final_url(self):
        doc = RenderedDocument(
            url="https://u.edu/old",
            final_url="https://u.edu/dept/new",
            html="<html><body><a href='peer'>Peer</a></body></html>",
        )
        page = ContentExtractor().extract(doc, url="https://u.edu/dept/new", base_domain="u.edu")
        assert page.internal_links == ("https://u.edu/dept/peer",)
