"""
Error Catalog Module

Structured failure catalog with error codes and metadata.

Features:
- Canonical error codes (DSPC-XXXX format)
- Error categories (validation, resource, external, data, system)
- Machine-readable error responses
- HTTP status code mapping

Usage:
    from docspec.core.errors import OracleError, JobNotFoundError

    # Raise typed error
    raise OracleError("DSPC-3002", status=502)

    # Render for the API
    body = JobNotFoundError("DSPC-2001", job_id=job_id).to_response()
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ErrorCategory(str, Enum):
    """Error categories for classification."""
    VALIDATION = "validation"            # Input validation failures
    RESOURCE = "resource"                # Resource not found/unavailable
    CONFLICT = "conflict"                # Illegal state transition
    SYSTEM = "system"                    # Internal system errors
    EXTERNAL = "external"                # External service failures
    DATA = "data"                        # Data quality/format issues


class ErrorSeverity(str, Enum):
    """Error severity levels."""
    INFO = "info"
    WARNING = "warning"     # Degraded but functional
    ERROR = "error"         # Operation failed
    CRITICAL = "critical"


@dataclass(frozen=True)
class ErrorDefinition:
    """Definition of an error in the catalog."""
    code: str                    # e.g., "DSPC-1001"
    message: str                 # Human-readable message template
    category: ErrorCategory
    severity: ErrorSeverity
    http_status: int
    description: str = ""
    resolution: str = ""
    retry_allowed: bool = False


# =============================================================================
# Error Catalog (Canonical Error Definitions)
# =============================================================================

ERROR_CATALOG: Dict[str, ErrorDefinition] = {
    # =========================================================================
    # 1000-1999: Validation Errors
    # =========================================================================
    "DSPC-1001": ErrorDefinition(
        code="DSPC-1001",
        message="Invalid request body",
        category=ErrorCategory.VALIDATION,
        severity=ErrorSeverity.ERROR,
        http_status=400,
        resolution="Check the request fields against the API documentation",
    ),
    "DSPC-1002": ErrorDefinition(
        code="DSPC-1002",
        message="Invalid source location: {location}",
        category=ErrorCategory.VALIDATION,
        severity=ErrorSeverity.ERROR,
        http_status=400,
        resolution="Provide an absolute http(s) URL",
    ),

    # =========================================================================
    # 2000-2999: Job Errors
    # =========================================================================
    "DSPC-2001": ErrorDefinition(
        code="DSPC-2001",
        message="Job not found: {job_id}",
        category=ErrorCategory.RESOURCE,
        severity=ErrorSeverity.ERROR,
        http_status=404,
        description="The job does not exist or was removed after its retention window",
        resolution="Submit a new job",
    ),
    "DSPC-2002": ErrorDefinition(
        code="DSPC-2002",
        message="Job {job_id} cannot be retried while {status}",
        category=ErrorCategory.CONFLICT,
        severity=ErrorSeverity.WARNING,
        http_status=409,
        description="Synthesis retries are only allowed for completed jobs",
        resolution="Wait for the job to complete",
        retry_allowed=True,
    ),
    "DSPC-2003": ErrorDefinition(
        code="DSPC-2003",
        message="Job {job_id} has no endpoints to synthesize",
        category=ErrorCategory.CONFLICT,
        severity=ErrorSeverity.WARNING,
        http_status=409,
        resolution="Submit a new job against a documentation page with endpoints",
    ),

    # =========================================================================
    # 3000-3999: External Service Errors
    # =========================================================================
    "DSPC-3001": ErrorDefinition(
        code="DSPC-3001",
        message="Failed to fetch {location}: {reason}",
        category=ErrorCategory.EXTERNAL,
        severity=ErrorSeverity.ERROR,
        http_status=502,
        resolution="Check that the documentation page is reachable",
        retry_allowed=True,
    ),
    "DSPC-3002": ErrorDefinition(
        code="DSPC-3002",
        message="LLM request failed with status {status}",
        category=ErrorCategory.EXTERNAL,
        severity=ErrorSeverity.ERROR,
        http_status=502,
        retry_allowed=True,
    ),
    "DSPC-3003": ErrorDefinition(
        code="DSPC-3003",
        message="LLM request failed: {reason}",
        category=ErrorCategory.EXTERNAL,
        severity=ErrorSeverity.ERROR,
        http_status=502,
        retry_allowed=True,
    ),
    "DSPC-3004": ErrorDefinition(
        code="DSPC-3004",
        message="LLM API token is not configured",
        category=ErrorCategory.VALIDATION,
        severity=ErrorSeverity.ERROR,
        http_status=400,
        resolution="Set LLM_API_TOKEN or pass llm_token with the job",
    ),
    "DSPC-3005": ErrorDefinition(
        code="DSPC-3005",
        message="LLM returned an empty completion",
        category=ErrorCategory.EXTERNAL,
        severity=ErrorSeverity.WARNING,
        http_status=502,
        retry_allowed=True,
    ),

    # =========================================================================
    # 4000-4999: Data Errors
    # =========================================================================
    "DSPC-4001": ErrorDefinition(
        code="DSPC-4001",
        message="Could not parse LLM output: {reason}",
        category=ErrorCategory.DATA,
        severity=ErrorSeverity.WARNING,
        http_status=422,
    ),
    "DSPC-4002": ErrorDefinition(
        code="DSPC-4002",
        message="Could not repair truncated JSON",
        category=ErrorCategory.DATA,
        severity=ErrorSeverity.WARNING,
        http_status=422,
    ),

    # =========================================================================
    # 5000-5999: Pipeline Errors
    # =========================================================================
    "DSPC-5001": ErrorDefinition(
        code="DSPC-5001",
        message="Specification synthesis failed: {reason}",
        category=ErrorCategory.SYSTEM,
        severity=ErrorSeverity.ERROR,
        http_status=500,
        retry_allowed=True,
    ),
    "DSPC-5002": ErrorDefinition(
        code="DSPC-5002",
        message="Specification judge unavailable: {reason}",
        category=ErrorCategory.EXTERNAL,
        severity=ErrorSeverity.WARNING,
        http_status=502,
    ),
}


# =============================================================================
# Exception Classes
# =============================================================================

class DocspecError(Exception):
    """
    Base exception with error code support.

    Usage:
        raise DocspecError("DSPC-2001", job_id="abc123")
    """

    def __init__(
        self,
        code: str,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        **format_args,
    ):
        self.code = code
        self.details = details or {}

        self.definition = ERROR_CATALOG.get(code)

        if self.definition:
            if message:
                self.message = message
            else:
                try:
                    self.message = self.definition.message.format(**format_args)
                except KeyError:
                    self.message = self.definition.message
            self.http_status = self.definition.http_status
            self.category = self.definition.category
        else:
            self.message = message or f"Unknown error: {code}"
            self.http_status = 500
            self.category = ErrorCategory.SYSTEM

        super().__init__(self.message)

    def to_response(self, request_id: Optional[str] = None) -> Dict[str, Any]:
        """Convert to API error response."""
        response = {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
            },
            "timestamp": datetime.utcnow().isoformat() + "Z",
        }

        if self.details:
            safe_details = {k: v for k, v in self.details.items()
                            if k not in ("password", "token", "secret", "key", "credential")}
            response["error"]["details"] = safe_details

        if request_id:
            response["request_id"] = request_id

        if self.definition:
            response["error"]["retry_allowed"] = self.definition.retry_allowed
            if self.definition.resolution:
                response["error"]["resolution"] = self.definition.resolution

        return response


class FetchError(DocspecError):
    """A documentation page could not be retrieved (3000 series)."""
    pass


class OracleError(DocspecError):
    """The LLM oracle failed after exhausting its retries (3000 series)."""
    pass


class ParseError(DocspecError):
    """Oracle output could not be parsed or repaired (4000 series)."""
    pass


class SynthesisError(DocspecError):
    """No usable specification could be synthesized (5000 series)."""
    pass


class JudgeError(DocspecError):
    """The oracle half of the judge failed; callers fall back to deterministic scoring."""
    pass


class JobStateError(DocspecError):
    """Illegal job operation for the job's current state (2000 series)."""
    pass


class JobNotFoundError(JobStateError):
    """The job id is unknown or was swept."""
    pass
