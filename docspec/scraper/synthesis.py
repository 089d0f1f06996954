"""
Docspec Scraper - Chunked Specification Synthesis

Builds an OpenAPI 3.0 document from extracted endpoints.

Up to CHUNK_SIZE endpoints are sent in one request for a complete document.
Larger sets are split into contiguous groups of CHUNK_SIZE; each group asks
only for path items, and the fragments are merged under one envelope. The
oracle's output budget cannot hold a whole large specification, and a
truncated group only loses its own paths.

Merge rule: fragments are applied in group order and the first group to
define a path+method keeps it. Later duplicates are logged and reported as
collisions.
"""
from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from docspec.core.errors import OracleError, ParseError, SynthesisError
from docspec.core.metrics import record_synthesis_chunk
from docspec.llm.prompts import (
    SPEC_CHUNK_PROMPT,
    SPEC_COMPLETE_PROMPT,
    SPEC_SYSTEM_PROMPT,
    format_endpoints,
    format_retry_note,
)

from .extraction import dedupe_endpoints
from .models import HTTP_METHODS, Endpoint, Specification, SynthesisResult
from .repair import parse_json_response

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8
OPENAPI_VERSION = "3.0.0"
DEFAULT_TITLE = "API Documentation"
DEFAULT_VERSION = "1.0.0"
FALLBACK_BASE_URL = "https://api.example.com"
_OPERATION_KEYS = {m.lower() for m in HTTP_METHODS}


def determine_base_url(source_location: Optional[str], base_url: Optional[str] = None) -> str:
    """Caller-supplied base URL, else scheme://host of the source, else a placeholder."""
    if base_url:
        return base_url.rstrip("/")
    if source_location:
        parsed = urlparse(source_location)
        if parsed.scheme and parsed.netloc:
            return f"{parsed.scheme}://{parsed.netloc}"
    return FALLBACK_BASE_URL


def build_envelope(source_location: Optional[str], base_url: str) -> Specification:
    return {
        "openapi": OPENAPI_VERSION,
        "info": {
            "title": DEFAULT_TITLE,
            "version": DEFAULT_VERSION,
            "description": f"Generated from {source_location or 'API documentation'}",
        },
        "servers": [{"url": base_url}],
        "paths": {},
        "components": {"schemas": {}},
    }


def chunk_endpoints(endpoints: Sequence[Endpoint], size: int = CHUNK_SIZE) -> List[List[Endpoint]]:
    """Contiguous groups [size*i, size*i + size)."""
    return [list(endpoints[i:i + size]) for i in range(0, len(endpoints), size)]


def extract_paths(payload: Any) -> Dict[str, Any]:
    """
    Pull the paths mapping out of a chunk response.

    Accepts {"paths": {...}}, a full document, or a bare mapping of
    "/path" keys.
    """
    if not isinstance(payload, dict):
        return {}
    paths = payload.get("paths")
    if isinstance(paths, dict):
        return paths
    if payload and all(isinstance(key, str) and key.startswith("/") for key in payload):
        return payload
    return {}


def merge_path_fragments(
    fragments: Iterable[Dict[str, Any]],
) -> Tuple[Dict[str, Any], List[Tuple[str, str]]]:
    """
    Merge path fragments in order; the first fragment to define a path+method wins.

    Returns:
        (merged paths, list of (path, method) collisions that were dropped)
    """
    merged: Dict[str, Any] = {}
    collisions: List[Tuple[str, str]] = []

    for fragment in fragments:
        for path, item in fragment.items():
            if not isinstance(item, dict):
                continue
            if path not in merged:
                merged[path] = copy.deepcopy(item)
                continue
            existing = merged[path]
            for method, operation in item.items():
                if method in existing:
                    if str(method).lower() not in _OPERATION_KEYS:
                        continue
                    collisions.append((path, method))
                    logger.warning(
                        "Duplicate operation %s %s in a later chunk; keeping the first definition",
                        method.upper(), path,
                    )
                    continue
                existing[method] = copy.deepcopy(operation)

    return merged, collisions


def _merge_schemas(target: Dict[str, Any], payload: Any):
    if not isinstance(payload, dict):
        return
    components = payload.get("components")
    schemas = components.get("schemas") if isinstance(components, dict) else None
    if not isinstance(schemas, dict):
        return
    for name, schema in schemas.items():
        target.setdefault(name, copy.deepcopy(schema))


class SpecificationSynthesizer:
    """
    Oracle-backed OpenAPI synthesizer.

    Args:
        oracle: Anything with an async complete(system_prompt, user_prompt) method
        chunk_size: Endpoints per request
    """

    def __init__(self, oracle, chunk_size: int = CHUNK_SIZE):
        self.oracle = oracle
        self.chunk_size = chunk_size

    async def synthesize(
        self,
        endpoints: Sequence[Endpoint],
        source_location: Optional[str],
        base_url: Optional[str] = None,
        retry_count: int = 0,
        previous_issues: Sequence[str] = (),
    ) -> SynthesisResult:
        """
        Synthesize a specification.

        Args:
            endpoints: Extracted endpoints
            source_location: Documentation URL (envelope description, base URL)
            base_url: Server URL override
            retry_count: Retry ordinal; above zero the prompts carry previous_issues
            previous_issues: Judge issues from the previous attempt

        Raises:
            SynthesisError: No endpoints, or no group produced usable output
        """
        if not endpoints:
            raise SynthesisError("DSPC-5001", reason="no endpoints to synthesize")

        unique = dedupe_endpoints(list(endpoints))
        server = determine_base_url(source_location, base_url)
        retry_note = format_retry_note(retry_count, previous_issues)

        if len(unique) <= self.chunk_size:
            specification = await self._synthesize_complete(unique, source_location, server, retry_note)
            return SynthesisResult(specification=specification, chunk_count=1)

        return await self._synthesize_chunked(unique, source_location, server, retry_note)

    async def _synthesize_complete(
        self,
        endpoints: List[Endpoint],
        source_location: Optional[str],
        base_url: str,
        retry_note: str,
    ) -> Specification:
        prompt = SPEC_COMPLETE_PROMPT.format(
            location=source_location or "unknown",
            base_url=base_url,
            retry_note=retry_note,
            count=len(endpoints),
            endpoints=format_endpoints(endpoints),
        )
        try:
            response = await self.oracle.complete(SPEC_SYSTEM_PROMPT, prompt)
            document = parse_json_response(response)
        except (OracleError, ParseError) as e:
            record_synthesis_chunk("failed")
            raise SynthesisError("DSPC-5001", reason=str(e)) from e

        if not isinstance(document, dict):
            record_synthesis_chunk("failed")
            raise SynthesisError("DSPC-5001", reason="response is not a JSON object")

        record_synthesis_chunk("ok")
        if "paths" not in document and extract_paths(document):
            document = {"paths": document}

        envelope = build_envelope(source_location, base_url)
        for key, value in envelope.items():
            document.setdefault(key, value)
        logger.info("Synthesized specification for %d endpoints in one request", len(endpoints))
        return document

    async def _synthesize_chunked(
        self,
        endpoints: List[Endpoint],
        source_location: Optional[str],
        base_url: str,
        retry_note: str,
    ) -> SynthesisResult:
        chunks = chunk_endpoints(endpoints, self.chunk_size)
        fragments: List[Dict[str, Any]] = []
        schemas: Dict[str, Any] = {}
        failed: List[int] = []

        for index, chunk in enumerate(chunks, start=1):
            prompt = SPEC_CHUNK_PROMPT.format(
                index=index,
                total=len(chunks),
                retry_note=retry_note,
                count=len(chunk),
                endpoints=format_endpoints(chunk),
            )
            try:
                response = await self.oracle.complete(SPEC_SYSTEM_PROMPT, prompt)
                payload = parse_json_response(response)
            except (OracleError, ParseError) as e:
                logger.warning("Synthesis chunk %d/%d failed: %s", index, len(chunks), e)
                record_synthesis_chunk("failed")
                failed.append(index)
                continue

            paths = extract_paths(payload)
            if not paths:
                logger.warning("Synthesis chunk %d/%d returned no paths", index, len(chunks))
                record_synthesis_chunk("empty")
                failed.append(index)
                continue

            record_synthesis_chunk("ok")
            fragments.append(paths)
            _merge_schemas(schemas, payload)
            logger.debug("Synthesis chunk %d/%d returned %d paths", index, len(chunks), len(paths))

        if not fragments:
            raise SynthesisError("DSPC-5001", reason=f"all {len(chunks)} chunks failed")

        merged, collisions = merge_path_fragments(fragments)
        specification = build_envelope(source_location, base_url)
        specification["paths"] = merged
        specification["components"]["schemas"] = schemas

        logger.info(
            "Synthesized specification from %d chunks (%d failed, %d collisions, %d paths)",
            len(chunks), len(failed), len(collisions), len(merged),
        )
        return SynthesisResult(
            specification=specification,
            chunk_count=len(chunks),
            failed_chunks=failed,
            collisions=collisions,
        )
