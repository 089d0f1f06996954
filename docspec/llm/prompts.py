"""
Docspec - Oracle Prompt Templates

Prompt templates for each pipeline stage. Templates are filled with
str.format, so literal JSON braces are doubled.
"""
from __future__ import annotations

from typing import Iterable, Sequence

DISCOVERY_SYSTEM_PROMPT = """You are an expert at reading API documentation. List every HTTP endpoint the documentation describes.

OUTPUT FORMAT (JSON only, no markdown):
[
    {
        "method": "GET" | "POST" | "PUT" | "PATCH" | "DELETE" | "HEAD" | "OPTIONS",
        "path": "/resource/{id}",
        "name": "<short human-readable name>",
        "url": "<absolute link to the endpoint's own documentation page, or null>"
    }
]

Rules:
1. Include an endpoint only if both its method and path are stated or clearly implied
2. Use path templates with braces for path parameters
3. Return [] if the page documents no endpoints
"""

DISCOVERY_USER_PROMPT = """SOURCE: {location}
{context}

DOCUMENTATION CONTENT:
{content}
"""

EXTRACTION_SYSTEM_PROMPT = """You are an expert at reading API reference pages. Extract the complete definition of one endpoint.

OUTPUT FORMAT (JSON only, no markdown):
{
    "method": "<HTTP method>",
    "path": "<path template>",
    "summary": "<one line>",
    "description": "<full description>",
    "parameters": [
        {
            "name": "<name>",
            "in": "path" | "query" | "header" | "body",
            "type": "string" | "integer" | "number" | "boolean" | "array" | "object",
            "required": true | false,
            "description": "<description>"
        }
    ],
    "requestExample": {"language": "<language>", "code": "<example>"} | null,
    "responseExample": {"language": "<language>", "code": "<example>"} | null,
    "tags": ["<tag>"]
}
"""

EXTRACTION_USER_PROMPT = """ENDPOINT: {method} {path}
NAME: {name}
PAGE: {location}

PAGE CONTENT:
{content}
"""

SPEC_SYSTEM_PROMPT = """You are an expert API designer. Produce OpenAPI 3.0 documents in JSON.
Output only JSON, with no markdown fences and no commentary."""

SPEC_COMPLETE_PROMPT = """Generate a complete OpenAPI 3.0.0 specification for the endpoints below.

SOURCE: {location}
SERVER URL: {base_url}

Requirements:
1. Top-level keys: "openapi", "info", "servers", "paths", "components"
2. Every endpoint below must appear under "paths" exactly once
3. Describe parameters, request bodies and responses from the details given
4. Put reusable schemas under "components.schemas"
{retry_note}
ENDPOINTS ({count}):
{endpoints}
"""

SPEC_CHUNK_PROMPT = """Generate the OpenAPI 3.0.0 path items for the endpoints below.
This is chunk {index} of {total}; other chunks are generated separately and merged.

Return ONLY a JSON object of the form {{"paths": {{...}}}}.
Every endpoint below must appear under "paths" exactly once. Do not include endpoints that are not listed.
{retry_note}
ENDPOINTS ({count}):
{endpoints}
"""

RETRY_NOTE = """
This is retry attempt {attempt}. A reviewer rejected the previous attempt for these reasons:
{issues}
Correct them in this attempt.
"""

JUDGE_SYSTEM_PROMPT = """You are a strict reviewer of OpenAPI specifications. Score the specification from 0 to 100.

Rubric:
- Structural validity as an OpenAPI 3.0 document (30 points)
- Coverage of the expected number of endpoints (30 points)
- Quality of parameter, request and response descriptions (25 points)
- Consistency of naming and schemas (15 points)

OUTPUT FORMAT (JSON only, no markdown):
{
    "score": 0-100,
    "isValid": true | false,
    "issues": ["<issue>"],
    "recommendation": "accept" | "retry"
}
"""

JUDGE_USER_PROMPT = """SOURCE: {location}
EXPECTED ENDPOINTS: {expected_count}

SPECIFICATION:
{specification}
"""


def format_endpoints(endpoints: Sequence) -> str:
    """Render endpoints as the numbered block used by synthesis prompts."""
    lines = []
    for number, endpoint in enumerate(endpoints, start=1):
        lines.append(f"{number}. {endpoint.method} {endpoint.path}")
        if endpoint.summary:
            lines.append(f"   Summary: {endpoint.summary}")
        if endpoint.description:
            lines.append(f"   Description: {endpoint.description}")
        if endpoint.parameters:
            lines.append("   Parameters:")
            for param in endpoint.parameters:
                flag = "required" if param.required else "optional"
                where = f", in {param.location}" if param.location else ""
                lines.append(
                    f"   - {param.name} ({param.type}, {flag}{where}): {param.description or ''}".rstrip()
                )
        if endpoint.tags:
            lines.append(f"   Tags: {', '.join(sorted(endpoint.tags))}")
    return "\n".join(lines)


def format_retry_note(retry_count: int, issues: Iterable[str]) -> str:
    if retry_count <= 0:
        return ""
    listed = [f"- {issue}" for issue in issues] or ["- (no specific issues reported)"]
    return RETRY_NOTE.format(attempt=retry_count, issues="\n".join(listed))
