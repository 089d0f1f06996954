"""
Structured Logging with Correlation IDs

Context-aware structured logging for jobs and pipeline stages.
Every log line emitted while a job is processed carries the job id and
the current stage, so concurrent jobs can be told apart in one stream.

Usage:
    from docspec.core.structured_logging import (
        get_logger,
        with_job_context,
        log_stage_start,
        log_stage_end,
    )

    logger = get_logger(__name__)

    with with_job_context(job_id):
        log_stage_start("discovery", {"location": url})
        try:
            descriptors = await discovery.discover(document, url)
            log_stage_end("discovery", success=True, endpoints=len(descriptors))
        except Exception as e:
            log_stage_end("discovery", success=False, error=str(e))
"""
from __future__ import annotations

import contextvars
import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Optional

correlation_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'correlation_id',
    default=None
)

job_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'job_id',
    default=None
)

stage_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'stage',
    default=None
)


# =============================================================================
# Correlation ID Management
# =============================================================================

def generate_correlation_id() -> str:
    """Generate a new UUID-based correlation ID."""
    return str(uuid.uuid4())


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()


def get_job_id() -> Optional[str]:
    return job_id_var.get()


def get_stage() -> Optional[str]:
    return stage_var.get()


@contextmanager
def with_correlation_id(correlation_id: Optional[str] = None):
    """
    Context manager to set correlation ID for a block of code.

    Args:
        correlation_id: Correlation ID to use, or None to generate new one
    """
    if correlation_id is None:
        correlation_id = generate_correlation_id()

    token = correlation_id_var.set(correlation_id)
    try:
        yield correlation_id
    finally:
        correlation_id_var.reset(token)


@contextmanager
def with_job_context(job_id: str):
    """
    Context manager to set job context.

    The job id doubles as the correlation id. Context variables are copied
    into tasks spawned inside the block, so extraction subtasks inherit it.
    """
    correlation_token = correlation_id_var.set(job_id)
    job_token = job_id_var.set(job_id)

    try:
        yield job_id
    finally:
        correlation_id_var.reset(correlation_token)
        job_id_var.reset(job_token)


@contextmanager
def with_stage_context(stage: str):
    """Context manager to set the pipeline stage name."""
    token = stage_var.set(stage)
    try:
        yield stage
    finally:
        stage_var.reset(token)


# =============================================================================
# Structured Logging Formatter
# =============================================================================

class StructuredFormatter(logging.Formatter):
    """Log formatter that adds correlation, job and stage fields."""

    def format(self, record: logging.LogRecord) -> str:
        record.correlation_id = get_correlation_id() or "-"
        record.job_id = get_job_id() or "-"
        record.stage = get_stage() or "-"
        record.timestamp = datetime.utcnow().isoformat() + "Z"

        return super().format(record)


# Format: [timestamp] [level] [correlation_id] [job_id] [stage] [logger] message
STRUCTURED_FORMAT = (
    "[%(timestamp)s] [%(levelname)s] "
    "[corr:%(correlation_id)s] [job:%(job_id)s] [stage:%(stage)s] "
    "[%(name)s] %(message)s"
)


def get_logger(name: str) -> logging.Logger:
    """
    Get a structured logger with correlation ID support.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredFormatter(STRUCTURED_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)

    return logger


def configure_logging(level: str = "INFO") -> None:
    """Install the structured formatter on the docspec logger tree."""
    root = logging.getLogger("docspec")
    if not any(isinstance(h.formatter, StructuredFormatter) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredFormatter(STRUCTURED_FORMAT))
        root.addHandler(handler)
    root.setLevel(level.upper())


# =============================================================================
# Stage Logging Helpers
# =============================================================================

def log_stage_start(stage: str, params: Optional[Dict[str, Any]] = None):
    """
    Log pipeline stage start with structured fields.

    Args:
        stage: Name of the stage
        params: Stage parameters (sensitive data will be filtered)
    """
    logger = get_logger("docspec.pipeline")

    safe_params = _filter_sensitive_fields(params or {})

    with with_stage_context(stage):
        logger.info(
            f"Stage started: {stage}",
            extra={
                "event": "stage_start",
                "stage_name": stage,
                "params": safe_params
            }
        )


def log_stage_end(
    stage: str,
    success: bool = True,
    error: Optional[str] = None,
    **result_fields
):
    """
    Log pipeline stage end with structured fields.

    Args:
        stage: Name of the stage
        success: Whether the stage succeeded
        error: Error message if failed
        **result_fields: Additional result fields to log
    """
    logger = get_logger("docspec.pipeline")

    safe_results = _filter_sensitive_fields(result_fields)

    with with_stage_context(stage):
        if success:
            logger.info(
                f"Stage completed: {stage}",
                extra={
                    "event": "stage_end",
                    "stage_name": stage,
                    "success": True,
                    **safe_results
                }
            )
        else:
            logger.error(
                f"Stage failed: {stage}",
                extra={
                    "event": "stage_error",
                    "stage_name": stage,
                    "success": False,
                    "error": error,
                    **safe_results
                }
            )


# =============================================================================
# Security Helpers
# =============================================================================

SENSITIVE_FIELD_NAMES = {
    "password", "secret", "token", "api_key", "apikey", "auth",
    "credential", "private_key", "access_token", "cookie",
}


def _filter_sensitive_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Filter sensitive fields from data before logging.

    Args:
        data: Dictionary to filter

    Returns:
        Filtered dictionary with sensitive values redacted
    """
    filtered = {}
    for key, value in data.items():
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in SENSITIVE_FIELD_NAMES):
            filtered[key] = "***REDACTED***"
        elif isinstance(value, dict):
            filtered[key] = _filter_sensitive_fields(value)
        else:
            filtered[key] = value
    return filtered
