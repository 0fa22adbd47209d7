"""Owns the Playwright browser that hosts the widget's page."""

from typing import Optional

from playwright.sync_api import sync_playwright

from invocursor.execution.dom import PlaywrightPageDriver
from invocursor.observability.logging import get_logger


logger = get_logger(__name__)


class BrowserHost:
    """Launches Chromium on first use and keeps one page open on ``url``.

    Playwright's sync API is bound to the thread that started it, so every
    method must be called from the same worker thread.
    """

    def __init__(self, url: str, headless: bool = False, state_limit: int = 50):
        """Initializes the host.

        Args:
            url: Address of the host application.
            headless: Whether to hide the browser window.
            state_limit: Maximum controls captured per state snapshot.
        """
        self.url = url
        self.headless = headless
        self.state_limit = state_limit
        self._playwright = None
        self._browser = None
        self._driver: Optional[PlaywrightPageDriver] = None

    def _ensure_browser(self):
        if not self._playwright:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=self.headless
            )

    def driver(self) -> PlaywrightPageDriver:
        """Returns the page driver, opening the page on first call."""
        if self._driver is None:
            self._ensure_browser()
            page = self._browser.new_page()
            page.goto(self.url)
            logger.info("Page opened", extra={"url": self.url})
            self._driver = PlaywrightPageDriver(page, state_limit=self.state_limit)
        return self._driver

    def stop(self):
        """Closes the browser and stops Playwright."""
        if self._playwright:
            if self._browser:
                self._browser.close()
            self._playwright.stop()
            self._playwright = None
            self._browser = None
            self._driver = None
