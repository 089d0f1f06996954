"""
Docspec Metrics with Mode Gating

Implements the DOCSPEC_METRICS_MODE setting.

Modes:
- off: No metrics registered (minimal footprint)
- basic: Core job metrics only (jobs_total, job_duration, oracle calls)
- full: All metrics including extraction, chunk and judge outcomes

Metrics live in a module-owned CollectorRegistry so that re-initialisation
(tests, app reloads) never collides with the process-wide default registry.

Usage:
    from docspec.core.metrics import record_job, record_duration

    record_job("scrape", "completed")
    record_duration("scrape", 12.5)
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

logger = logging.getLogger(__name__)

# =============================================================================
# Metric Definitions
# =============================================================================

# Basic metrics (registered in basic and full modes)
BASIC_METRICS: Dict[str, Any] = {}

# Full metrics (registered only in full mode)
FULL_METRICS: Dict[str, Any] = {}

_registry = CollectorRegistry()

_initialized = False


def _create_basic_metrics():
    """Create core metrics that are always needed (unless off)."""
    BASIC_METRICS["jobs_total"] = Counter(
        "docspec_jobs_total",
        "Job lifecycle counts",
        ["type", "state"],
        registry=_registry,
    )

    BASIC_METRICS["job_duration_seconds"] = Histogram(
        "docspec_job_duration_seconds",
        "Job duration in seconds",
        ["type"],
        buckets=[1, 5, 10, 30, 60, 120, 300, 600],
        registry=_registry,
    )

    BASIC_METRICS["oracle_calls_total"] = Counter(
        "docspec_oracle_calls_total",
        "LLM oracle calls by outcome",
        ["outcome"],
        registry=_registry,
    )


def _create_full_metrics():
    """Create extended metrics for full observability mode."""
    FULL_METRICS["extractions_total"] = Counter(
        "docspec_extractions_total",
        "Endpoint detail extractions by outcome",
        ["outcome"],
        registry=_registry,
    )

    FULL_METRICS["synthesis_chunks_total"] = Counter(
        "docspec_synthesis_chunks_total",
        "Specification synthesis chunks by status",
        ["status"],
        registry=_registry,
    )

    FULL_METRICS["judge_score"] = Histogram(
        "docspec_judge_score",
        "Specification judge score distribution",
        buckets=[10, 20, 30, 40, 50, 60, 70, 80, 90, 100],
        registry=_registry,
    )

    FULL_METRICS["jobs_swept_total"] = Counter(
        "docspec_jobs_swept_total",
        "Terminal jobs removed after their retention window",
        registry=_registry,
    )

    FULL_METRICS["jobs_in_table"] = Gauge(
        "docspec_jobs_in_table",
        "Jobs currently held by the orchestrator",
        registry=_registry,
    )


def init_metrics(mode: Optional[str] = None):
    """
    Initialize metrics based on mode.

    Args:
        mode: Metrics mode (off, basic, full). If None, reads from settings.
    """
    global _initialized

    if _initialized:
        logger.debug("Metrics already initialized, skipping")
        return

    if mode is None:
        from docspec.core.config import get_settings
        mode = get_settings().metrics_mode

    mode = mode.lower()

    if mode == "off":
        logger.info("Metrics mode: OFF - no metrics registered")
        _initialized = True
        return

    if mode in ("basic", "full"):
        _create_basic_metrics()
        logger.info(f"Metrics mode: {mode.upper()} - basic metrics registered")

    if mode == "full":
        _create_full_metrics()
        logger.info("Metrics mode: FULL - extended metrics registered")

    _initialized = True


def reset_metrics():
    """Drop all registered metrics (tests and app reloads)."""
    global _initialized, _registry
    BASIC_METRICS.clear()
    FULL_METRICS.clear()
    _registry = CollectorRegistry()
    _initialized = False


def get_mode() -> str:
    """Get current metrics mode from settings."""
    from docspec.core.config import get_settings
    return get_settings().metrics_mode


def is_enabled() -> bool:
    """Check if metrics are enabled (not 'off')."""
    return get_mode().lower() != "off"


def render_latest() -> bytes:
    """Prometheus text exposition of the registered metrics."""
    return generate_latest(_registry)


# =============================================================================
# Metric Recording Helpers
# =============================================================================

def record_job(job_type: str, state: str):
    """Record a job lifecycle event."""
    if "jobs_total" in BASIC_METRICS:
        BASIC_METRICS["jobs_total"].labels(type=job_type, state=state).inc()


def record_duration(job_type: str, duration_seconds: float):
    """Record job duration."""
    if "job_duration_seconds" in BASIC_METRICS:
        BASIC_METRICS["job_duration_seconds"].labels(type=job_type).observe(duration_seconds)


def record_oracle_call(outcome: str):
    """Record an oracle call outcome (success, retry, failure)."""
    if "oracle_calls_total" in BASIC_METRICS:
        BASIC_METRICS["oracle_calls_total"].labels(outcome=outcome).inc()


def record_extraction(outcome: str):
    """Record an extraction outcome (full mode only)."""
    if "extractions_total" in FULL_METRICS:
        FULL_METRICS["extractions_total"].labels(outcome=outcome).inc()


def record_synthesis_chunk(status: str):
    """Record a synthesis chunk status (full mode only)."""
    if "synthesis_chunks_total" in FULL_METRICS:
        FULL_METRICS["synthesis_chunks_total"].labels(status=status).inc()


def record_judge_score(score: float):
    """Record a judge score (full mode only)."""
    if "judge_score" in FULL_METRICS:
        FULL_METRICS["judge_score"].observe(score)


def record_jobs_swept(count: int = 1):
    """Record swept jobs (full mode only)."""
    if "jobs_swept_total" in FULL_METRICS:
        FULL_METRICS["jobs_swept_total"].inc(count)


def set_jobs_in_table(count: int):
    """Set the job table size (full mode only)."""
    if "jobs_in_table" in FULL_METRICS:
        FULL_METRICS["jobs_in_table"].set(count)
