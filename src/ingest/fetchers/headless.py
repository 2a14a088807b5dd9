"""Headless browser fetcher for JavaScript-rendered vendor pages."""

import asyncio
import logging
from typing import List, Optional

from playwright.async_api import (
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from src.config import settings
from src.ingest.base import BaseFetcher, FetchError, RenderedPage
from src.ingest.stealth_browser import StealthBrowser, stealth_browser

logger = logging.getLogger(__name__)


class HeadlessPageFetcher(BaseFetcher):
    """
    Render vendor pages in headless Chromium.

    Every ``fetch`` call launches its own browser and closes it before
    returning, on success, error and cancellation alike. Long polling runs
    therefore never accumulate browser processes, at the cost of a cold
    start per page.
    """

    def __init__(
        self,
        timeout_ms: Optional[int] = None,
        launch_timeout_ms: Optional[int] = None,
        headless: Optional[bool] = None,
        stealth: Optional[StealthBrowser] = None,
        not_found_markers: Optional[List[str]] = None,
    ):
        """
        Initialize headless page fetcher.

        Args:
            timeout_ms: Navigation timeout in milliseconds
            launch_timeout_ms: Browser launch timeout in milliseconds
            headless: Run Chromium without a window
            stealth: Anti-detection options (shared default instance if omitted)
            not_found_markers: Page title fragments that mark an error page
        """
        self.timeout_ms = timeout_ms or settings.page_load_timeout_ms
        self.launch_timeout_ms = launch_timeout_ms or settings.browser_launch_timeout_ms
        self.headless = settings.browser_headless if headless is None else headless
        self.stealth = stealth or stealth_browser
        self.not_found_markers = [
            m.lower() for m in (not_found_markers or settings.not_found_title_markers)
        ]

    async def fetch(self, url: str, timeout_ms: Optional[int] = None) -> RenderedPage:
        """
        Render a page and return a detached snapshot of it.

        Args:
            url: Product page URL
            timeout_ms: Navigation timeout override

        Returns:
            RenderedPage with final HTML, title and HTTP status

        Raises:
            FetchError: On launch failure, navigation timeout, network error,
                HTTP status >= 400 or a "not found" page
        """
        timeout_ms = timeout_ms or self.timeout_ms
        # Outer ceiling so a hung driver can never block the caller
        ceiling = (timeout_ms + self.launch_timeout_ms) / 1000

        try:
            return await asyncio.wait_for(self._render(url, timeout_ms), timeout=ceiling)
        except asyncio.TimeoutError:
            raise FetchError(url, f"No result within {ceiling:.0f}s")

    async def _render(self, url: str, timeout_ms: int) -> RenderedPage:
        async with async_playwright() as playwright:
            try:
                browser = await playwright.chromium.launch(
                    headless=self.headless,
                    args=self.stealth.launch_args(),
                    timeout=self.launch_timeout_ms,
                )
            except PlaywrightError as e:
                raise FetchError(url, f"Browser launch failed: {e}")

            try:
                context = await browser.new_context(**self.stealth.get_stealth_context_options())
                page = await context.new_page()
                await self.stealth.setup_stealth_page(page)

                logger.debug(f"Navigating to {url}")
                response = await page.goto(
                    url,
                    wait_until="domcontentloaded",
                    timeout=timeout_ms,
                )

                status = response.status if response is not None else None
                title = await page.title()

                if status is not None and status >= 400:
                    raise FetchError(url, f"HTTP {status}")
                if self._is_not_found(title):
                    raise FetchError(url, f"Not found page (title: {title!r})")

                html = await page.content()
                return RenderedPage(url=url, html=html, title=title, status=status)

            except PlaywrightTimeoutError:
                raise FetchError(url, "Navigation timeout")
            except PlaywrightError as e:
                raise FetchError(url, str(e))
            finally:
                await self._close_browser(browser)

    def _is_not_found(self, title: str) -> bool:
        """Check page title against the not-found markers."""
        lowered = (title or "").lower()
        return any(marker in lowered for marker in self.not_found_markers)

    @staticmethod
    async def _close_browser(browser) -> None:
        try:
            await browser.close()
        except Exception as e:
            logger.error(f"Error closing browser: {e}")
