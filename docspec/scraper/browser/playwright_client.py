"""
Docspec Scraper - Playwright Fetcher

Headless Chromium retrieval for documentation sites that render their
content client-side (Stoplight, Redoc, Swagger UI).
"""
import asyncio
from typing import Optional

from playwright.async_api import Browser, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from docspec.core.config import Settings, get_settings
from docspec.core.errors import FetchError

from . import PageFetcher


class PlaywrightPageFetcher(PageFetcher):
    """
    Playwright-based page fetcher.

    Best for:
    - JavaScript-heavy documentation portals
    - Single Page Applications (SPAs)
    """

    def __init__(self, settings: Optional[Settings] = None, headless: bool = True):
        self.settings = settings or get_settings()
        self.headless = headless
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def _get_browser(self) -> Browser:
        """Get or create browser instance."""
        if self._browser is None:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=self.headless)
        return self._browser

    async def fetch(
        self,
        location: str,
        wait_until: str = "networkidle",
    ) -> str:
        """
        Render a page and return its HTML after a short settle period.

        Args:
            location: URL to fetch
            wait_until: domcontentloaded, load, networkidle
        """
        timeout_ms = int(self.settings.browser_load_timeout_seconds * 1000)
        try:
            browser = await self._get_browser()
            page = await browser.new_page()
        except PlaywrightError as e:
            raise FetchError("DSPC-3001", location=location, reason=f"browser unavailable: {e}") from e

        try:
            response = await page.goto(location, wait_until=wait_until, timeout=timeout_ms)
            if response is not None and not response.ok:
                raise FetchError("DSPC-3001", location=location, reason=f"HTTP {response.status}")
            # Client-side renderers keep filling the DOM after network idle
            await asyncio.sleep(self.settings.browser_settle_ms / 1000)
            return await page.content()
        except PlaywrightError as e:
            raise FetchError("DSPC-3001", location=location, reason=str(e)) from e
        finally:
            await page.close()

    async def close(self):
        """Close browser instance."""
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
