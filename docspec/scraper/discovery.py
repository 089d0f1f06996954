"""
Docspec Scraper - Endpoint Discovery

Finds the endpoints a documentation page describes with one oracle call.
Discovery never raises: a failed call or unusable answer means no
endpoints were found.
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional

from docspec.core.errors import OracleError, ParseError
from docspec.llm.prompts import DISCOVERY_SYSTEM_PROMPT, DISCOVERY_USER_PROMPT

from .documents import describe_source, document_text, truncate
from .models import EndpointDescriptor
from .repair import parse_json_response

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 10000


class EndpointDiscovery:
    """
    Oracle-backed endpoint discovery.

    Args:
        oracle: Anything with an async complete(system_prompt, user_prompt) method
        max_chars: Document text sent to the oracle is capped at this length
    """

    def __init__(self, oracle, max_chars: int = DEFAULT_MAX_CHARS):
        self.oracle = oracle
        self.max_chars = max_chars

    async def discover(self, document: str, source_location: Optional[str] = None) -> List[EndpointDescriptor]:
        """
        Discover endpoint descriptors in a document.

        Args:
            document: HTML, markdown or plain text
            source_location: Where the document came from (used as prompt context)

        Returns:
            Descriptors in the order the oracle listed them; empty on failure
        """
        content = truncate(document_text(document), self.max_chars)
        prompt = DISCOVERY_USER_PROMPT.format(
            location=source_location or "unknown",
            context=describe_source(source_location),
            content=content,
        )

        try:
            response = await self.oracle.complete(DISCOVERY_SYSTEM_PROMPT, prompt)
        except OracleError as e:
            logger.error("Endpoint discovery failed for %s: %s", source_location, e)
            return []

        try:
            payload = parse_json_response(response)
        except ParseError as e:
            logger.warning("Discovery response for %s was not usable JSON: %s", source_location, e)
            return []

        descriptors = parse_descriptors(payload)
        logger.info("Discovered %d endpoints in %s", len(descriptors), source_location)
        return descriptors


def parse_descriptors(payload: Any) -> List[EndpointDescriptor]:
    """Build descriptors from a discovery payload, dropping incomplete entries."""
    if isinstance(payload, dict):
        payload = payload.get("endpoints", [])
    if not isinstance(payload, list):
        return []

    descriptors = []
    for entry in payload:
        if not isinstance(entry, dict):
            continue
        method = entry.get("method")
        path = entry.get("path")
        if not isinstance(method, str) or not isinstance(path, str) or not method.strip() or not path.strip():
            logger.debug("Skipping discovery entry without method/path: %s", entry)
            continue
        url = entry.get("url")
        name = entry.get("name")
        descriptors.append(EndpointDescriptor(
            method=method,
            path=path,
            display_name=name.strip() if isinstance(name, str) and name.strip() else None,
            detail_location=url.strip() if isinstance(url, str) and url.strip().startswith("http") else None,
        ))
    return descriptors
