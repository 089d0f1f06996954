"""
Health check endpoints.

Liveness, configuration summary and Prometheus metrics.
"""
from datetime import datetime
import logging

from fastapi import APIRouter, Request, Response

from docspec import __version__
from docspec.core.config import get_settings
from docspec.core.metrics import render_latest

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health(request: Request):
    """
    Liveness probe - Is the service running?

    Returns 200 if the service is alive, regardless of the LLM endpoint.
    """
    orchestrator = request.app.state.orchestrator
    return {
        "status": "healthy",
        "version": __version__,
        "workers_running": orchestrator.running,
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.get("/config")
async def config():
    """Non-secret configuration summary."""
    settings = get_settings()
    return {
        "llm_configured": settings.llm_configured,
        "llm_api_url": settings.llm_api_url,
        "llm_model": settings.llm_model,
        "judge_enabled": settings.judge_enabled,
        "job_workers": settings.job_workers,
        "metrics_mode": settings.metrics_mode,
    }


@router.get("/metrics")
async def metrics():
    """Prometheus text exposition."""
    return Response(content=render_latest(), media_type="text/plain; version=0.0.4")
