"""
Job Models

A job tracks one documentation source through discovery, extraction,
synthesis and judging.

    Queued -> Processing -> Completed | Failed
    Completed -> Processing (synthesis retry) -> Completed | Failed
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from docspec.scraper.models import Endpoint, JudgeResult, Specification


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass
class JobOptions:
    """Per-job inputs beyond the primary source location."""
    rendering_hint: Optional[str] = None
    additional_locations: List[str] = field(default_factory=list)
    oracle_credential: Optional[str] = None
    base_url: Optional[str] = None
    judge: Optional[bool] = None  # None = use settings

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rendering_hint": self.rendering_hint,
            "additional_locations": list(self.additional_locations),
            "base_url": self.base_url,
            "judge": self.judge,
            "oracle_credential_supplied": bool(self.oracle_credential),
        }


@dataclass
class Job:
    """A job in the orchestrator's table."""
    id: str
    source_location: str
    options: JobOptions = field(default_factory=JobOptions)
    status: JobStatus = JobStatus.QUEUED
    created_at: datetime = field(default_factory=datetime.utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    endpoints: Optional[List[Endpoint]] = None
    specification: Optional[Specification] = None
    judge_result: Optional[JudgeResult] = None
    extraction_stats: Optional[Dict[str, int]] = None
    retry_count: int = 0
    progress_message: str = "Queued"
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.id,
            "status": self.status.value,
            "source_location": self.source_location,
            "options": self.options.to_dict(),
            "created_at": self.created_at.isoformat() + "Z",
            "started_at": self.started_at.isoformat() + "Z" if self.started_at else None,
            "completed_at": self.completed_at.isoformat() + "Z" if self.completed_at else None,
            "progress_message": self.progress_message,
            "error_message": self.error_message,
            "retry_count": self.retry_count,
            "endpoint_count": len(self.endpoints) if self.endpoints is not None else None,
            "endpoints": [e.to_dict() for e in self.endpoints] if self.endpoints is not None else None,
            "extraction_stats": self.extraction_stats,
            "specification": self.specification,
            "judge_result": self.judge_result.to_dict() if self.judge_result else None,
        }
