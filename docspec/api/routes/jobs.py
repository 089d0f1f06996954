"""
Jobs API Routes

Submit documentation sources, poll job snapshots and request synthesis retries.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from fastapi import APIRouter, Request, status
from pydantic import BaseModel, Field

from docspec.core.errors import DocspecError, JobNotFoundError
from docspec.jobs.models import Job, JobOptions
from docspec.jobs.orchestrator import JobOrchestrator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/jobs")

_PENDING_MESSAGES = {
    "queued": "Your job is waiting for a free worker.",
    "processing": "Reading the documentation so you don't have to...",
}


# =============================================================================
# Models
# =============================================================================

class ScrapeRequest(BaseModel):
    url: str = Field(..., description="Documentation page to scrape")
    rendering_hint: Optional[str] = Field(
        default=None, description="browser forces headless rendering, http forces plain HTTP"
    )
    additional_urls: List[str] = Field(default_factory=list)
    llm_token: Optional[str] = Field(default=None, description="Per-job LLM API token")
    base_url: Optional[str] = Field(default=None, description="Server URL for the generated spec")
    judge: Optional[bool] = None


class SubmitResponse(BaseModel):
    job_id: str
    status: str
    message: str


class JobResponse(BaseModel):
    job_id: str
    status: str
    source_location: str
    progress_message: str
    pending_message: Optional[str] = None
    created_at: str
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    error_message: Optional[str] = None
    retry_count: int = 0
    endpoint_count: Optional[int] = None
    endpoints: Optional[List[Dict[str, Any]]] = None
    extraction_stats: Optional[Dict[str, int]] = None
    specification: Optional[Dict[str, Any]] = None
    judge_score: Optional[int] = None
    judge_issues: Optional[List[str]] = None
    judge_recommendation: Optional[str] = None

    @classmethod
    def from_job(cls, job: Job) -> "JobResponse":
        data = job.to_dict()
        verdict = data.pop("judge_result")
        data.pop("options")
        return cls(
            **data,
            pending_message=_PENDING_MESSAGES.get(job.status.value),
            judge_score=verdict["score"] if verdict else None,
            judge_issues=verdict["issues"] if verdict else None,
            judge_recommendation=verdict["recommendation"] if verdict else None,
        )


def _orchestrator(request: Request) -> JobOrchestrator:
    return request.app.state.orchestrator


def _validate_location(location: str):
    parsed = urlparse(location)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise DocspecError("DSPC-1002", location=location)


# =============================================================================
# Routes
# =============================================================================

@router.post("", response_model=SubmitResponse, status_code=status.HTTP_202_ACCEPTED)
async def submit_job(body: ScrapeRequest, request: Request):
    """Queue a documentation source for processing."""
    for location in [body.url, *body.additional_urls]:
        _validate_location(location)

    options = JobOptions(
        rendering_hint=body.rendering_hint,
        additional_locations=list(body.additional_urls),
        oracle_credential=body.llm_token,
        base_url=body.base_url,
        judge=body.judge,
    )
    job_id = await _orchestrator(request).submit(body.url, options)
    return SubmitResponse(job_id=job_id, status="queued", message="Job queued for processing")


@router.get("/stats")
async def job_stats(request: Request) -> Dict[str, int]:
    """Job counts per status."""
    return await _orchestrator(request).stats()


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, request: Request):
    job = await _orchestrator(request).get_job(job_id)
    if job is None:
        raise JobNotFoundError("DSPC-2001", job_id=job_id)
    return JobResponse.from_job(job)


@router.post("/{job_id}/retry", response_model=JobResponse)
async def retry_job(job_id: str, request: Request):
    """Re-run specification synthesis for a completed job."""
    job = await _orchestrator(request).retry_synthesis(job_id)
    return JobResponse.from_job(job)
