"""Page rendering backends (requests / selenium) behind one small interface.

The pipeline only consumes `RenderedDocument` snapshots: title, CSS-selector
queries over the DOM, and anchor hrefs. Network access and browser lifecycle
stay inside the renderer classes.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Protocol
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup
from bs4.element import Tag
from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options as ChromeOptions
from selenium.webdriver.common.by import By
from selenium.webdriver.firefox.options import Options as FirefoxOptions
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from .config import CrawlConfig
from .types import FetchBackend


RETRYABLE_STATUS_CODES = frozenset({408, 425, 429})


class RenderError(Exception):
    """A page could not be rendered.

    `retryable` tells the frontier whether another attempt may succeed.
    """

    def __init__(self, message: str, *, retryable: bool = True, status_code: int | None = None) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code


class RenderedDocument:
    """Read-only DOM snapshot of one rendered page."""

    def __init__(
        self,
        *,
        url: str,
        html: str | bytes,
        final_url: str | None = None,
        status_code: int | None = None,
        evaluator: Callable[..., Any] | None = None,
    ) -> None:
        self.url = url
        self._evaluator = evaluator
        self.final_url = final_url or url
        self.status_code = status_code
        if isinstance(html, bytes):
            html = html.decode("utf-8", errors="replace")
        self.html = html
        self._soup = BeautifulSoup(html, "lxml")

    def title(self) -> str:
        if self._soup.title is None:
            return ""
        return self._soup.title.get_text(" ", strip=True)

    def select(self, selector: str) -> list[Tag]:
        return list(self._soup.select(selector))

    def select_one(self, selector: str) -> Tag | None:
        return self._soup.select_one(selector)

    def texts(self, selector: str) -> list[str]:
        """Text content of every element matching `selector`, in document order."""

        return [element.get_text(" ", strip=True) for element in self._soup.select(selector)]

    def body(self) -> Tag | None:
        return self._soup.body

    def evaluate(self, script: str, *args: Any) -> Any:
        """Run `script` in the live page; only browser-backed documents support it."""

        if self._evaluator is None:
            raise RenderError("Script evaluation needs a browser-backed renderer", retryable=False)
        return self._evaluator(script, *args)

    def hrefs(self, *, absolute: bool = False) -> list[str]:
        """Href values of all anchors in document order.

        With `absolute=True` each value is resolved against the final URL.
        """

        out: list[str] = []
        for anchor in self._soup.select("a[href]"):
            href = (anchor.get("href") or "").strip()
            if not href:
                continue
            out.append(urljoin(self.final_url, href) if absolute else href)
        return out


class Renderer(Protocol):
    """Anything that turns a URL into a `RenderedDocument`."""

    def render(self, url: str) -> RenderedDocument: ...

    def close(self) -> None: ...


def _status_error(url: str, status_code: int) -> RenderError:
    retryable = status_code in RETRYABLE_STATUS_CODES or status_code >= 500
    return RenderError(f"HTTP status {status_code} for {url}", retryable=retryable, status_code=status_code)


class RequestsRenderer:
    """Static HTML via `requests`; one session per worker thread."""

    def __init__(self, config: CrawlConfig) -> None:
        self.config = config
        self._thread_local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()

    def render(self, url: str) -> RenderedDocument:
        session = self._thread_local_session()
        try:
            response = session.get(
                url,
                headers=self.config.headers(),
                timeout=self.config.request_timeout_seconds,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            raise RenderError(f"{exc.__class__.__name__}: {exc}", retryable=True) from exc

        if response.status_code >= 400:
            raise _status_error(url, response.status_code)

        content_type = (response.headers.get("Content-Type") or "").lower()
        if content_type and "html" not in content_type:
            raise RenderError(f"Unsupported content type {content_type!r}", retryable=False)

        return RenderedDocument(
            url=url,
            final_url=response.url or url,
            html=response.content or b"",
            status_code=response.status_code,
        )

    def close(self) -> None:
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()

    def _thread_local_session(self) -> requests.Session:
        session = getattr(self._thread_local, "session", None)
        if session is None:
            session = requests.Session()
            self._thread_local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session


class SeleniumRenderer:
    """JavaScript-rendered pages via a headless browser.

    Each worker thread drives its own browser; drivers are not shared across
    threads.
    """

    def __init__(self, config: CrawlConfig, *, wait_selector: str | None = None) -> None:
        self.config = config
        self.wait_selector = wait_selector
        self._thread_local = threading.local()
        self._drivers: list = []
        self._drivers_lock = threading.Lock()

    def render(self, url: str) -> RenderedDocument:
        driver = self._thread_local_driver()
        try:
            driver.set_page_load_timeout(max(1, int(self.config.request_timeout_seconds)))
            driver.get(url)
            if self.wait_selector:
                WebDriverWait(driver, self.config.request_timeout_seconds).until(
                    EC.presence_of_element_located((By.CSS_SELECTOR, self.wait_selector))
                )
            return RenderedDocument(
                url=url,
                final_url=driver.current_url or url,
                html=driver.page_source or "",
                status_code=200,
                evaluator=driver.execute_script,
            )
        except TimeoutException as exc:
            raise RenderError(f"Timed out rendering {url}", retryable=True) from exc
        except WebDriverException as exc:
            raise RenderError(f"{exc.__class__.__name__}: {exc.msg or exc}", retryable=True) from exc

    def close(self) -> None:
        with self._drivers_lock:
            drivers, self._drivers = self._drivers, []
        for driver in drivers:
            try:
                driver.quit()
            except WebDriverException:
                pass

    def _thread_local_driver(self):
        driver = getattr(self._thread_local, "driver", None)
        if driver is None:
            driver = self._create_driver()
            self._thread_local.driver = driver
            with self._drivers_lock:
                self._drivers.append(driver)
        return driver

    def _create_driver(self):
        errors: list[str] = []

        # Try Chrome first.
        try:
            chrome_options = ChromeOptions()
            if self.config.headless:
                chrome_options.add_argument("--headless=new")
            chrome_options.add_argument("--disable-gpu")
            chrome_options.add_argument("--no-sandbox")
            chrome_options.add_argument("--disable-dev-shm-usage")
            chrome_options.add_argument(f"--user-agent={self.config.user_agent}")
            return webdriver.Chrome(options=chrome_options)
        except WebDriverException as exc:
            errors.append(f"Chrome: {exc}")

        # Fallback to Firefox.
        try:
            firefox_options = FirefoxOptions()
            if self.config.headless:
                firefox_options.add_argument("-headless")
            firefox_options.set_preference("general.useragent.override", self.config.user_agent)
            return webdriver.Firefox(options=firefox_options)
        except WebDriverException as exc:
            errors.append(f"Firefox: {exc}")

        raise RenderError("No selenium browser available (" + "; ".join(errors) + ")", retryable=False)


def build_renderer(config: CrawlConfig) -> Renderer:
    """Return the renderer for the configured backend."""

    if config.backend == FetchBackend.SELENIUM:
        return SeleniumRenderer(config)
    return RequestsRenderer(config)


class RateLimiter:
    """Space requests so no more than `per_minute` start in any minute."""

    def __init__(self, per_minute: int) -> None:
        if per_minute <= 0:
            raise ValueError("per_minute must be > 0")
        self.interval = 60.0 / per_minute
        self._lock = threading.Lock()
        self._next_allowed = 0.0

    def wait(self) -> float:
        """Block until the next request slot; returns seconds slept."""

        with self._lock:
            now = time.monotonic()
            slot = max(now, self._next_allowed)
            self._next_allowed = slot + self.interval
        sleep_for = slot - now
        if sleep_for > 0:
            time.sleep(sleep_for)
        return max(0.0, sleep_for)


__all__ = [
    "RETRYABLE_STATUS_CODES",
    "RateLimiter",
    "RenderError",
    "RenderedDocument",
    "Renderer",
    "RequestsRenderer",
    "SeleniumRenderer",
    "build_renderer",
]
