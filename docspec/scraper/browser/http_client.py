"""
Docspec Scraper - HTTP Fetcher

Plain HTTP page retrieval with httpx for static documentation pages.
"""
from typing import Dict, Optional

import httpx

from docspec.core.config import Settings, get_settings
from docspec.core.errors import FetchError

from . import PageFetcher


class HttpPageFetcher(PageFetcher):
    """
    httpx-based page fetcher.

    Best for:
    - Static HTML pages
    - Markdown and README files
    - Server-rendered documentation sites
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._client = httpx.AsyncClient(
            transport=transport,
            timeout=self.settings.fetch_timeout_seconds,
            follow_redirects=True,
            headers=self._get_headers(),
        )

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Accept": "text/html,application/xhtml+xml,text/markdown,text/plain;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
            "User-Agent": self.settings.fetch_user_agent,
        }

    async def fetch(self, location: str) -> str:
        """
        Fetch a page.

        Args:
            location: URL to fetch

        Returns:
            Response body as text

        Raises:
            FetchError: Transport failure or non-2xx status
        """
        try:
            response = await self._client.get(location)
        except httpx.HTTPError as e:
            raise FetchError("DSPC-3001", location=location, reason=str(e) or type(e).__name__) from e

        if not response.is_success:
            raise FetchError("DSPC-3001", location=location, reason=f"HTTP {response.status_code}")
        return response.text

    async def close(self) -> None:
        await self._client.aclose()
