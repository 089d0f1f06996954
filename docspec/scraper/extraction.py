"""
Docspec Scraper - Parallel Detail Extraction

Turns endpoint descriptors into full endpoint records. Descriptors with a
dedicated documentation page get one fetch and one oracle call each; the
rest become basic endpoints built from the descriptor alone.

At most five extractions run at once. Each extraction is isolated: a
failure is logged and counted, never propagated.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Sequence

from docspec.core.errors import ParseError
from docspec.core.metrics import record_extraction
from docspec.llm.prompts import EXTRACTION_SYSTEM_PROMPT, EXTRACTION_USER_PROMPT
from docspec.scraper.browser import PageFetcher, create_fetcher

from .documents import document_text, truncate
from .models import Endpoint, EndpointDescriptor, ExtractionResult
from .repair import parse_json_response

logger = logging.getLogger(__name__)

MAX_WORKERS = 5
DEFAULT_MAX_CHARS = 8000

FetcherFactory = Callable[[str, Optional[str]], PageFetcher]


class DetailExtractor:
    """
    Bounded-parallel endpoint detail extractor.

    Descriptors without a detail page always become basic endpoints. A
    descriptor whose page fetch or extraction fails is skipped and counted
    by default; with fallback_to_basic (DOCSPEC_EXTRACTION_FALLBACK_TO_BASIC)
    it is kept as a basic endpoint instead.

    Args:
        oracle: Anything with an async complete(system_prompt, user_prompt) method
        fetcher_factory: (location, rendering_hint) -> PageFetcher
        rendering_hint: Passed to the fetcher factory for every detail page
        max_workers: Requested parallelism, capped at 5
        max_chars: Page text sent to the oracle is capped at this length
        fallback_to_basic: Degrade a failed page extraction to a basic endpoint
            instead of skipping the descriptor
    """

    def __init__(
        self,
        oracle,
        fetcher_factory: Optional[FetcherFactory] = None,
        rendering_hint: Optional[str] = None,
        max_workers: int = MAX_WORKERS,
        max_chars: int = DEFAULT_MAX_CHARS,
        fallback_to_basic: bool = False,
    ):
        self.oracle = oracle
        self.fetcher_factory = fetcher_factory or create_fetcher
        self.rendering_hint = rendering_hint
        self.max_workers = max(1, min(MAX_WORKERS, max_workers))
        self.max_chars = max_chars
        self.fallback_to_basic = fallback_to_basic

    async def extract_all(self, descriptors: Sequence[EndpointDescriptor]) -> ExtractionResult:
        """
        Extract every descriptor and wait for all of them.

        Returns:
            ExtractionResult with endpoints in completion order
        """
        result = ExtractionResult()
        if not descriptors:
            return result

        semaphore = asyncio.Semaphore(min(self.max_workers, len(descriptors)))
        lock = asyncio.Lock()

        async def run(descriptor: EndpointDescriptor):
            async with semaphore:
                try:
                    endpoint = await self.extract_one(descriptor)
                except Exception as e:
                    logger.warning(
                        "Extraction failed for %s %s: %s", descriptor.method, descriptor.path, e
                    )
                    if not self.fallback_to_basic:
                        record_extraction("failure")
                        async with lock:
                            result.failure_count += 1
                        return
                    endpoint = Endpoint.from_descriptor(descriptor)
                    record_extraction("fallback")
                else:
                    record_extraction("success")

                async with lock:
                    result.endpoints.append(endpoint)
                    result.success_count += 1

        await asyncio.gather(*(run(d) for d in descriptors))

        logger.info(
            "Extracted %d of %d endpoints (%d failed)",
            result.success_count, len(descriptors), result.failure_count,
        )
        return result

    async def extract_one(self, descriptor: EndpointDescriptor) -> Endpoint:
        """
        Extract a single endpoint.

        Raises:
            FetchError, OracleError, ParseError: Propagated to extract_all
        """
        if not descriptor.detail_location:
            return Endpoint.from_descriptor(descriptor)

        async with self.fetcher_factory(descriptor.detail_location, self.rendering_hint) as fetcher:
            page = await fetcher.fetch(descriptor.detail_location)

        prompt = EXTRACTION_USER_PROMPT.format(
            method=descriptor.method,
            path=descriptor.path,
            name=descriptor.display_name or "",
            location=descriptor.detail_location,
            content=truncate(document_text(page), self.max_chars),
        )
        response = await self.oracle.complete(EXTRACTION_SYSTEM_PROMPT, prompt)
        payload = parse_json_response(response)
        if isinstance(payload, list) and payload and isinstance(payload[0], dict):
            payload = payload[0]
        if not isinstance(payload, dict):
            raise ParseError("DSPC-4001", reason="expected a JSON object")
        return Endpoint.from_payload(payload, descriptor)


def dedupe_endpoints(endpoints: List[Endpoint]) -> List[Endpoint]:
    """Collapse duplicate method+path entries; the last record wins, first position kept."""
    merged = {}
    for endpoint in endpoints:
        merged[endpoint.key] = endpoint
    return list(merged.values())
