"""
Docspec Scraper - Page Fetchers

Fetchers retrieve one documentation page per call. Plain HTTP is the
default; headless Chromium is used for documentation frameworks that
render client-side.
"""
from abc import ABC, abstractmethod
from typing import Optional

RENDER_HINT_BROWSER = "browser"
RENDER_HINT_HTTP = "http"

# Documentation frameworks that render their content with JavaScript
_JS_RENDERED_MARKERS = ("stoplight", "redoc", "swagger")


class PageFetcher(ABC):
    """Fetch a page and return its markup or text."""

    @abstractmethod
    async def fetch(self, location: str) -> str:
        """Raises FetchError when the page cannot be retrieved."""

    async def close(self) -> None:
        pass

    async def __aenter__(self) -> "PageFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


def needs_browser(location: str, rendering_hint: Optional[str] = None) -> bool:
    if rendering_hint == RENDER_HINT_BROWSER:
        return True
    if rendering_hint == RENDER_HINT_HTTP:
        return False
    lowered = location.lower()
    return any(marker in lowered for marker in _JS_RENDERED_MARKERS)


def create_fetcher(location: str, rendering_hint: Optional[str] = None) -> PageFetcher:
    """
    Pick a fetcher for a location.

    Args:
        location: Page URL
        rendering_hint: "browser" forces Playwright, "http" forces plain HTTP,
            None lets the URL decide
    """
    if needs_browser(location, rendering_hint):
        # Imported lazily; playwright is an optional extra
        from .playwright_client import PlaywrightPageFetcher
        return PlaywrightPageFetcher()

    from .http_client import HttpPageFetcher
    return HttpPageFetcher()


__all__ = [
    "PageFetcher",
    "create_fetcher",
    "needs_browser",
    "RENDER_HINT_BROWSER",
    "RENDER_HINT_HTTP",
]
