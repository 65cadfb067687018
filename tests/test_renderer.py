"""Tests for the requests and selenium renderers, rendered documents and rate limiting."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests
from selenium.common.exceptions import TimeoutException, WebDriverException

from site_crawler.config import CrawlConfig
from site_crawler.renderer import (
    RateLimiter,
    RenderedDocument,
    RenderError,
    RequestsRenderer,
    SeleniumRenderer,
    build_renderer,
)


PAGE = "<html><head><title>Hi</title></head><body><a href='/x'>X</a><a href='#top'>Top</a></body></html>"


def _config(tmp_path, **kwargs) -> CrawlConfig:
    return CrawlConfig(seed_url="https://u.edu", label="U", output_dir=tmp_path, **kwargs)


def _response(status_code=200, content_type="text/html; charset=utf-8", url="https://u.edu/", body=PAGE):
    response = MagicMock()
    response.status_code = status_code
    response.headers = {"Content-Type": content_type}
    response.url = url
    response.content = body.encode("utf-8")
    return response


# ---------------------------------------------------------------------------
# RequestsRenderer
# ---------------------------------------------------------------------------

class TestRequestsRenderer:
    @patch("site_crawler.renderer.requests.Session")
    def test_ok_response(self, mock_session_cls, tmp_path):
        session = mock_session_cls.return_value
        session.get.return_value = _response(url="https://u.edu/final")

        renderer = RequestsRenderer(_config(tmp_path, user_agent="agent/1"))
        document = renderer.render("https://u.edu/start")

        assert document.final_url == "https://u.edu/final"
        assert document.status_code == 200
        assert document.title() == "Hi"
        _, kwargs = session.get.call_args
        assert kwargs["headers"]["User-Agent"] == "agent/1"
        assert kwargs["timeout"] == 60.0

    @patch("site_crawler.renderer.requests.Session")
    def test_session_reused_and_closed(self, mock_session_cls, tmp_path):
        mock_session_cls.return_value.get.return_value = _response()
        renderer = RequestsRenderer(_config(tmp_path))
        renderer.render("https://u.edu/a")
        renderer.render("https://u.edu/b")

        assert mock_session_cls.call_count == 1
        renderer.close()
        mock_session_cls.return_value.close.assert_called_once()

    @pytest.mark.parametrize(
        ("status", "retryable"),
        [(503, True), (500, True), (429, True), (408, True), (404, False), (403, False)],
    )
    @patch("site_crawler.renderer.requests.Session")
    def test_error_status(self, mock_session_cls, tmp_path, status, retryable):
        mock_session_cls.return_value.get.return_value = _response(status_code=status)

        with pytest.raises(RenderError) as excinfo:
            RequestsRenderer(_config(tmp_path)).render("https://u.edu/x")
        assert excinfo.value.retryable is retryable
        assert excinfo.value.status_code == status

    @patch("site_crawler.renderer.requests.Session")
    def test_network_error_is_retryable(self, mock_session_cls, tmp_path):
        mock_session_cls.return_value.get.side_effect = requests.ConnectionError("refused")

        with pytest.raises(RenderError) as excinfo:
            RequestsRenderer(_config(tmp_path)).render("https://u.edu/x")
        assert excinfo.value.retryable is True
        assert excinfo.value.status_code is None

    @patch("site_crawler.renderer.requests.Session")
    def test_configured_timeout_passed_to_session(self, mock_session_cls, tmp_path):
        mock_session_cls.return_value.get.return_value = _response()
        RequestsRenderer(_config(tmp_path, request_timeout_seconds=7.5)).render("https://u.edu/x")
        _, kwargs = mock_session_cls.return_value.get.call_args
        assert kwargs["timeout"] == 7.5

    @patch("site_crawler.renderer.requests.Session")
    def test_timeout_is_retryable(self, mock_session_cls, tmp_path):
        mock_session_cls.return_value.get.side_effect = requests.Timeout("read timed out")

        with pytest.raises(RenderError) as excinfo:
            RequestsRenderer(_config(tmp_path)).render("https://u.edu/x")
        assert excinfo.value.retryable is True
        assert excinfo.value.status_code is None
        assert isinstance(excinfo.value.__cause__, requests.Timeout)

    @patch("site_crawler.renderer.requests.Session")
    def test_non_html_content_rejected(self, mock_session_cls, tmp_path):
        mock_session_cls.return_value.get.return_value = _response(content_type="application/pdf")

        with pytest.raises(RenderError) as excinfo:
            RequestsRenderer(_config(tmp_path)).render("https://u.edu/x")
        assert excinfo.value.retryable is False


class TestBuildRenderer:
    def test_backend_selection(self, tmp_path):
        assert isinstance(build_renderer(_config(tmp_path)), RequestsRenderer)
        assert isinstance(build_renderer(_config(tmp_path, backend="selenium")), SeleniumRenderer)


# ---------------------------------------------------------------------------
# SeleniumRenderer
# ---------------------------------------------------------------------------

def _driver(current_url="https://u.edu/final", page_source=PAGE):
    driver = MagicMock()
    driver.current_url = current_url
    driver.page_source = page_source
    return driver


class TestSeleniumRenderer:
    @patch("site_crawler.renderer.webdriver")
    def test_renders_page_source(self, mock_webdriver, tmp_path):
        driver = _driver()
        driver.execute_script.return_value = 3
        mock_webdriver.Chrome.return_value = driver

        renderer = SeleniumRenderer(_config(tmp_path, backend="selenium", request_timeout_seconds=7.5))
        document = renderer.render("https://u.edu/start")

        driver.set_page_load_timeout.assert_called_once_with(7)
        driver.get.assert_called_once_with("https://u.edu/start")
        assert document.final_url == "https://u.edu/final"
        assert document.title() == "Hi"
        assert document.evaluate("return 3") == 3
        mock_webdriver.Firefox.assert_not_called()

    @patch("site_crawler.renderer.webdriver")
    def test_driver_reused_and_quit_on_close(self, mock_webdriver, tmp_path):
        driver = _driver()
        mock_webdriver.Chrome.return_value = driver
        renderer = SeleniumRenderer(_config(tmp_path, backend="selenium"))
        renderer.render("https://u.edu/a")
        renderer.render("https://u.edu/b")

        assert mock_webdriver.Chrome.call_count == 1
        renderer.close()
        driver.quit.assert_called_once()

    @patch("site_crawler.renderer.webdriver")
    def test_page_load_timeout_is_retryable(self, mock_webdriver, tmp_path):
        driver = _driver()
        driver.get.side_effect = TimeoutException("page load timed out")
        mock_webdriver.Chrome.return_value = driver

        with pytest.raises(RenderError, match="Timed out rendering") as excinfo:
            SeleniumRenderer(_config(tmp_path, backend="selenium")).render("https://u.edu/slow")
        assert excinfo.value.retryable is True

    @patch("site_crawler.renderer.webdriver")
    def test_browser_error_is_retryable(self, mock_webdriver, tmp_path):
        driver = _driver()
        driver.get.side_effect = WebDriverException("tab crashed")
        mock_webdriver.Chrome.return_value = driver

        with pytest.raises(RenderError, match="tab crashed") as excinfo:
            SeleniumRenderer(_config(tmp_path, backend="selenium")).render("https://u.edu/x")
        assert excinfo.value.retryable is True

    @patch("site_crawler.renderer.webdriver")
    def test_falls_back_to_firefox(self, mock_webdriver, tmp_path):
        driver = _driver()
        mock_webdriver.Chrome.side_effect = WebDriverException("chromedriver missing")
        mock_webdriver.Firefox.return_value = driver

        document = SeleniumRenderer(_config(tmp_path, backend="selenium")).render("https://u.edu/")

        mock_webdriver.Firefox.assert_called_once()
        assert document.final_url == "https://u.edu/final"

    @patch("site_crawler.renderer.webdriver")
    def test_no_browser_is_not_retryable(self, mock_webdriver, tmp_path):
        mock_webdriver.Chrome.side_effect = WebDriverException("chromedriver missing")
        mock_webdriver.Firefox.side_effect = WebDriverException("geckodriver missing")

        with pytest.raises(RenderError, match="No selenium browser available") as excinfo:
            SeleniumRenderer(_config(tmp_path, backend="selenium")).render("https://u.edu/")
        assert excinfo.value.retryable is False
        assert "geckodriver missing" in str(excinfo.value)


# ---------------------------------------------------------------------------
# RenderedDocument
# ---------------------------------------------------------------------------

class TestRenderedDocument:
    def test_queries(self):
        document = RenderedDocument(url="https://u.edu/a/", html=PAGE.encode("utf-8"))
        assert document.final_url == "https://u.edu/a/"
        assert document.hrefs() == ["/x", "#top"]
        assert document.hrefs(absolute=True) == ["https://u.edu/x", "https://u.edu/a/#top"]
        assert document.texts("a") == ["X", "Top"]
        assert document.select_one("title").get_text() == "Hi"

    def test_evaluate_requires_browser(self):
        document = RenderedDocument(url="https://u.edu/", html=PAGE)
        with pytest.raises(RenderError) as excinfo:
            document.evaluate("return 1")
        assert excinfo.value.retryable is False

    def test_evaluate_delegates_to_browser(self):
        evaluator = MagicMock(return_value=42)
        document = RenderedDocument(url="https://u.edu/", html=PAGE, evaluator=evaluator)
        assert document.evaluate("return arguments[0]", 42) == 42
        evaluator.assert_called_once_with("return arguments[0]", 42)


# ---------------------------------------------------------------------------
# RateLimiter
# ---------------------------------------------------------------------------

class TestRateLimiter:
    def test_rejects_non_positive_rate(self):
        with pytest.raises(ValueError):
            RateLimiter(0)

    @patch("site_crawler.renderer.time.sleep")
    def test_spaces_requests(self, mock_sleep):
        limiter = RateLimiter(60)
        assert limiter.interval == 1.0
        assert limiter.wait() == 0.0
        slept = limiter.wait()
        assert 0.0 < slept <= 1.0
        mock_sleep.assert_called_once()
