"""
Docspec Scraper - Document Text Reduction

Turns fetched pages into the plain text sent to the oracle.
"""
import re
from typing import Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup

_HTML_MARKER = re.compile(r"<\s*(html|body|div|p|section|article|table|h[1-6]|pre|code)\b", re.IGNORECASE)


def looks_like_html(content: str) -> bool:
    return bool(_HTML_MARKER.search(content[:5000]))


def document_text(content: str, parser: str = "lxml") -> str:
    """
    Reduce a document to readable text.

    HTML is parsed with BeautifulSoup; script and style content is dropped
    and the body text kept. Markdown and plain text pass through unchanged.
    """
    if not looks_like_html(content):
        return content.strip()

    soup = BeautifulSoup(content, parser)
    for tag in soup(["script", "style", "noscript", "svg"]):
        tag.decompose()
    root = soup.body or soup
    return root.get_text(" ", strip=True)


def truncate(text: str, limit: int, suffix: str = "... (truncated)") -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + suffix


def describe_source(location: Optional[str]) -> str:
    """Short context hint about where the documentation is hosted."""
    if not location:
        return ""
    lowered = location.lower()
    hints = []
    if "github.com" in lowered:
        hints.append("This documentation is hosted on GitHub (likely a README or wiki page).")
    elif "gitlab" in lowered:
        hints.append("This documentation is hosted on GitLab.")
    elif "bitbucket" in lowered:
        hints.append("This documentation is hosted on Bitbucket.")

    if "stoplight" in lowered:
        hints.append("The page is rendered by Stoplight.")
    elif "redoc" in lowered:
        hints.append("The page is rendered by Redoc.")
    elif "swagger" in lowered:
        hints.append("The page is rendered by Swagger UI.")
    elif "docs." in lowered or "/docs" in lowered:
        hints.append("This is a dedicated documentation site.")

    parsed = urlparse(location)
    if parsed.scheme and parsed.netloc:
        hints.append(f"Base URL: {parsed.scheme}://{parsed.netloc}")
    return "CONTEXT: " + " ".join(hints) if hints else ""
