# Docspec Jobs Module
# Job state machine and orchestration

from .models import Job, JobOptions, JobStatus
from .orchestrator import JobOrchestrator

__all__ = [
    'Job',
    'JobOptions',
    'JobStatus',
    'JobOrchestrator',
]
