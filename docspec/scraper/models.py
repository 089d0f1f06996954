"""
Docspec Scraper Models

Value objects passed between pipeline stages. Descriptors and endpoints are
frozen: once assembled they are never mutated, only replaced.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS", "TRACE")

# A synthesized OpenAPI document: JSON-compatible dict with
# openapi, info, servers, paths and components.
Specification = Dict[str, Any]


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class EndpointDescriptor:
    """Method + path found by discovery, optionally with its own detail page."""
    method: str
    path: str
    display_name: Optional[str] = None
    detail_location: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "method", self.method.strip().upper())
        object.__setattr__(self, "path", self.path.strip())

    @property
    def key(self) -> Tuple[str, str]:
        return (self.method, self.path)


@dataclass(frozen=True)
class Parameter:
    name: str
    type: str = "string"
    required: bool = False
    description: Optional[str] = None
    location: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> Optional["Parameter"]:
        name = _text(data.get("name"))
        if not name:
            return None
        return cls(
            name=name,
            type=_text(data.get("type")) or "string",
            required=bool(data.get("required", False)),
            description=_text(data.get("description")),
            location=_text(data.get("in") or data.get("location")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "required": self.required,
            "description": self.description,
            "location": self.location,
        }


@dataclass(frozen=True)
class Example:
    language: str
    code: str
    description: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Any) -> Optional["Example"]:
        if isinstance(data, str):
            return cls(language="text", code=data) if data.strip() else None
        if not isinstance(data, dict):
            return None
        code = data.get("code")
        if code is None:
            return None
        if not isinstance(code, str):
            # Oracles sometimes inline the example body as JSON
            code = json.dumps(code, indent=2)
        return cls(
            language=_text(data.get("language")) or "text",
            code=code,
            description=_text(data.get("description")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"language": self.language, "code": self.code, "description": self.description}


@dataclass(frozen=True)
class Endpoint:
    """Fully assembled endpoint record."""
    method: str
    path: str
    summary: Optional[str] = None
    description: Optional[str] = None
    parameters: Tuple[Parameter, ...] = ()
    request_example: Optional[Example] = None
    response_example: Optional[Example] = None
    tags: FrozenSet[str] = frozenset()

    def __post_init__(self):
        object.__setattr__(self, "method", self.method.strip().upper())

    @property
    def key(self) -> Tuple[str, str]:
        return (self.method, self.path)

    @classmethod
    def from_descriptor(cls, descriptor: EndpointDescriptor) -> "Endpoint":
        """Basic endpoint built from the descriptor fields alone."""
        return cls(
            method=descriptor.method,
            path=descriptor.path,
            summary=descriptor.display_name,
        )

    @classmethod
    def from_payload(cls, data: Dict[str, Any], descriptor: EndpointDescriptor) -> "Endpoint":
        """Endpoint from an oracle extraction payload; gaps come from the descriptor."""
        parameters = []
        for raw in data.get("parameters") or []:
            if isinstance(raw, dict):
                param = Parameter.from_payload(raw)
                if param:
                    parameters.append(param)

        tags = data.get("tags") or []
        if isinstance(tags, str):
            tags = [tags]

        return cls(
            method=_text(data.get("method")) or descriptor.method,
            path=_text(data.get("path")) or descriptor.path,
            summary=_text(data.get("summary")) or descriptor.display_name,
            description=_text(data.get("description")),
            parameters=tuple(parameters),
            request_example=Example.from_payload(data.get("requestExample")),
            response_example=Example.from_payload(data.get("responseExample")),
            tags=frozenset(str(tag) for tag in tags if str(tag).strip()),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "path": self.path,
            "summary": self.summary,
            "description": self.description,
            "parameters": [p.to_dict() for p in self.parameters],
            "request_example": self.request_example.to_dict() if self.request_example else None,
            "response_example": self.response_example.to_dict() if self.response_example else None,
            "tags": sorted(self.tags),
        }


@dataclass
class ExtractionResult:
    endpoints: List[Endpoint] = field(default_factory=list)
    success_count: int = 0
    failure_count: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"success_count": self.success_count, "failure_count": self.failure_count}


@dataclass
class SynthesisResult:
    specification: Specification
    chunk_count: int = 1
    failed_chunks: List[int] = field(default_factory=list)
    collisions: List[Tuple[str, str]] = field(default_factory=list)


class Recommendation(str, Enum):
    ACCEPT = "accept"
    RETRY = "retry"


@dataclass
class JudgeResult:
    score: int
    is_structurally_valid: bool
    issues: List[str] = field(default_factory=list)
    recommendation: Recommendation = Recommendation.ACCEPT

    @property
    def should_retry(self) -> bool:
        return self.recommendation == Recommendation.RETRY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "is_structurally_valid": self.is_structurally_valid,
            "issues": list(self.issues),
            "recommendation": self.recommendation.value,
        }
