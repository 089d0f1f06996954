"""
Docspec - Oracle Output Cleaning and Truncation Repair

Oracle completions are capped by max_tokens, so long JSON answers can stop
mid-document. repair_truncated_json closes such documents at the last point
where the prefix was well formed, keeping everything that was complete.

Usage:
    from docspec.scraper.repair import parse_json_response

    data = parse_json_response(oracle_text)  # raises ParseError
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Tuple

from docspec.core.errors import ParseError

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*\n?")
_FENCE_CLOSE = re.compile(r"\n?\s*```\s*$")
_CLOSERS = {"{": "}", "[": "]"}


def clean_json_response(text: str) -> str:
    """Strip markdown code fences and a leading YAML document marker."""
    cleaned = text.strip()
    cleaned = _FENCE_OPEN.sub("", cleaned, count=1)
    cleaned = _FENCE_CLOSE.sub("", cleaned, count=1)
    cleaned = cleaned.strip()
    if cleaned.startswith("---"):
        cleaned = cleaned[3:].lstrip()
    return cleaned


@dataclass
class _ScanState:
    stack: List[str] = field(default_factory=list)
    in_string: bool = False
    # (prefix length, open delimiters at that point), in text order
    cut_points: List[Tuple[int, Tuple[str, ...]]] = field(default_factory=list)
    last_comma: int = -1


def _scan(text: str) -> _ScanState:
    state = _ScanState()
    escaped = False
    for index, char in enumerate(text):
        if state.in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                state.in_string = False
            continue

        if char == '"':
            state.in_string = True
        elif char in _CLOSERS:
            state.stack.append(char)
            state.cut_points.append((index + 1, tuple(state.stack)))
        elif char in ("}", "]"):
            if state.stack:
                state.stack.pop()
            state.cut_points.append((index + 1, tuple(state.stack)))
        elif char == "," and state.stack:
            state.last_comma = len(state.cut_points)
            state.cut_points.append((index, tuple(state.stack)))
    return state


def _close(prefix: str, stack: Tuple[str, ...]) -> str:
    body = prefix.rstrip()
    while body.endswith(","):
        body = body[:-1].rstrip()
    return body + "".join(_CLOSERS[opener] for opener in reversed(stack))


def _parses(candidate: str) -> bool:
    try:
        json.loads(candidate)
    except ValueError:
        return False
    return True


def repair_truncated_json(text: str) -> str:
    """
    Close a JSON document that was cut off mid-stream.

    The text is scanned once, tracking open braces/brackets outside string
    literals. If the scan ends inside a string the text is cut back to the
    last structural comma. Trailing commas are dropped and the open
    delimiters closed in nesting order. If that candidate does not parse,
    earlier cut points are tried from the latest backwards.

    Returns:
        Repaired JSON text that json.loads accepts

    Raises:
        ParseError: No parseable prefix could be produced
    """
    if _parses(text):
        return text

    state = _scan(text)

    if state.in_string:
        if state.last_comma >= 0:
            end, stack = state.cut_points[state.last_comma]
            primary = _close(text[:end], stack)
        else:
            primary = None
    else:
        primary = _close(text, tuple(state.stack))

    if primary is not None and _parses(primary):
        return primary

    for end, stack in reversed(state.cut_points):
        candidate = _close(text[:end], stack)
        if _parses(candidate):
            logger.debug("Repaired truncated JSON by cutting back to offset %d of %d", end, len(text))
            return candidate

    raise ParseError("DSPC-4002", details={"length": len(text)})


def parse_json_response(text: str) -> Any:
    """
    Parse oracle output as JSON: clean, parse, then one repair attempt.

    Raises:
        ParseError: Output is neither valid nor repairable JSON
    """
    cleaned = clean_json_response(text)
    if not cleaned:
        raise ParseError("DSPC-4001", reason="empty response")
    try:
        return json.loads(cleaned)
    except ValueError as e:
        logger.info("LLM output is not valid JSON (%s), attempting truncation repair", e)
    return json.loads(repair_truncated_json(cleaned))
