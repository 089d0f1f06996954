"""
Job Orchestrator

Asynchronous job table, worker pool and retention sweeper.

Features:
- Non-blocking submission (jobs are queued, never processed inline)
- Fixed pool of worker tasks draining one asyncio.Queue
- Snapshot reads: callers get deep copies, never the live job
- Synthesis retries for completed jobs, reusing stored endpoints
- Periodic removal of terminal jobs after the retention window

Usage:
    from docspec.jobs.orchestrator import JobOrchestrator

    async with JobOrchestrator() as orchestrator:
        job_id = await orchestrator.submit("https://docs.example.com/api")
        job = await orchestrator.wait_for(job_id, timeout=600)

        if job.judge_result and job.judge_result.should_retry:
            await orchestrator.retry_synthesis(job_id)
"""
from __future__ import annotations

import asyncio
import copy
import logging
import time
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

from docspec.core.config import Settings, get_settings
from docspec.core.errors import FetchError, JobNotFoundError, JobStateError, OracleError
from docspec.core.metrics import (
    record_duration,
    record_job,
    record_jobs_swept,
    set_jobs_in_table,
)
from docspec.core.structured_logging import (
    log_stage_end,
    log_stage_start,
    with_job_context,
    with_stage_context,
)
from docspec.llm.client import OracleClient
from docspec.scraper.browser import create_fetcher
from docspec.scraper.discovery import EndpointDiscovery
from docspec.scraper.extraction import DetailExtractor, FetcherFactory, dedupe_endpoints
from docspec.scraper.judge import SpecificationJudge
from docspec.scraper.models import Endpoint, EndpointDescriptor
from docspec.scraper.synthesis import SpecificationSynthesizer

from .models import Job, JobOptions, JobStatus

logger = logging.getLogger(__name__)

OracleFactory = Callable[[Optional[str]], Any]

_PIPELINE = "pipeline"
_RETRY = "retry"


async def _close(resource: Any):
    closer = getattr(resource, "aclose", None)
    if closer is not None:
        await closer()


class JobOrchestrator:
    """
    Owns the job table and drives every job through the pipeline.

    Args:
        settings: Settings override
        oracle_factory: credential -> oracle; one oracle per job run
        fetcher_factory: (location, rendering_hint) -> PageFetcher
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        oracle_factory: Optional[OracleFactory] = None,
        fetcher_factory: Optional[FetcherFactory] = None,
    ):
        self.settings = settings or get_settings()
        self.worker_count = self.settings.job_workers
        self.retention = timedelta(seconds=self.settings.job_retention_seconds)
        self.sweep_interval = self.settings.job_sweep_interval_seconds

        self._oracle_factory = oracle_factory or self._default_oracle
        self._fetcher_factory = fetcher_factory or create_fetcher

        self._jobs: Dict[str, Job] = {}
        self._lock = asyncio.Lock()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._workers: List[asyncio.Task] = []
        self._sweeper: Optional[asyncio.Task] = None

    def _default_oracle(self, credential: Optional[str]) -> OracleClient:
        if not (credential or self.settings.llm_api_token):
            raise OracleError("DSPC-3004")
        return OracleClient(api_token=credential, settings=self.settings)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def running(self) -> bool:
        return bool(self._workers)

    async def start(self):
        """Start the worker pool and the retention sweeper."""
        if self.running:
            return
        self._workers = [
            asyncio.create_task(self._worker(n), name=f"docspec-worker-{n}")
            for n in range(self.worker_count)
        ]
        self._sweeper = asyncio.create_task(self._sweep_loop(), name="docspec-sweeper")
        logger.info("Job orchestrator started with %d workers", self.worker_count)

    async def stop(self):
        """Cancel workers and the sweeper. In-flight jobs are abandoned."""
        tasks = list(self._workers)
        if self._sweeper:
            tasks.append(self._sweeper)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._workers = []
        self._sweeper = None
        logger.info("Job orchestrator stopped")

    async def __aenter__(self) -> "JobOrchestrator":
        await self.start()
        return self

    async def __aexit__(self, *exc_info):
        await self.stop()

    # =========================================================================
    # Public operations
    # =========================================================================

    async def submit(self, source_location: str, options: Optional[JobOptions] = None) -> str:
        """
        Queue a new job.

        Returns:
            The job id; processing happens later on a worker
        """
        job = Job(
            id=uuid.uuid4().hex,
            source_location=source_location,
            options=options or JobOptions(),
        )
        async with self._lock:
            self._jobs[job.id] = job
            set_jobs_in_table(len(self._jobs))
        self._queue.put_nowait((job.id, _PIPELINE, []))

        record_job("scrape", "queued")
        logger.info("Queued job %s for %s (options=%s)", job.id, source_location, job.options.to_dict())
        return job.id

    async def get_job(self, job_id: str) -> Optional[Job]:
        """Snapshot of a job, or None if unknown or swept."""
        async with self._lock:
            job = self._jobs.get(job_id)
            return copy.deepcopy(job) if job else None

    async def list_jobs(self) -> List[Job]:
        async with self._lock:
            return [copy.deepcopy(job) for job in self._jobs.values()]

    async def stats(self) -> Dict[str, int]:
        """Job counts per status, plus the total."""
        async with self._lock:
            counts = {status.value: 0 for status in JobStatus}
            for job in self._jobs.values():
                counts[job.status.value] += 1
            counts["total"] = len(self._jobs)
            return counts

    async def retry_synthesis(self, job_id: str) -> Job:
        """
        Re-run synthesis and judging for a completed job.

        Stored endpoints are reused; discovery and extraction are not repeated.

        Raises:
            JobNotFoundError: Unknown job id
            JobStateError: Job is not Completed or has no endpoints
        """
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFoundError("DSPC-2001", job_id=job_id)
            if job.status != JobStatus.COMPLETED:
                raise JobStateError("DSPC-2002", job_id=job_id, status=job.status.value)
            if not job.endpoints:
                raise JobStateError("DSPC-2003", job_id=job_id)

            job.status = JobStatus.PROCESSING
            job.retry_count += 1
            job.completed_at = None
            job.error_message = None
            previous_issues = list(job.judge_result.issues) if job.judge_result else []
            job.judge_result = None
            job.progress_message = f"Retrying specification generation (attempt {job.retry_count})..."
            snapshot = copy.deepcopy(job)

        self._queue.put_nowait((job_id, _RETRY, previous_issues))
        record_job("retry", "queued")
        logger.info("Queued synthesis retry %d for job %s", snapshot.retry_count, job_id)
        return snapshot

    async def wait_for(self, job_id: str, timeout: float = 600.0, poll_interval: float = 0.05) -> Job:
        """
        Wait until a job reaches Completed or Failed.

        Raises:
            JobNotFoundError: Job unknown or swept while waiting
            asyncio.TimeoutError: Still running after timeout seconds
        """
        async def poll() -> Job:
            while True:
                job = await self.get_job(job_id)
                if job is None:
                    raise JobNotFoundError("DSPC-2001", job_id=job_id)
                if job.status.is_terminal:
                    return job
                await asyncio.sleep(poll_interval)

        return await asyncio.wait_for(poll(), timeout)

    async def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """
        Remove terminal jobs older than the retention window.

        Returns:
            Number of jobs removed
        """
        now = now or datetime.utcnow()
        async with self._lock:
            expired = [
                job_id for job_id, job in self._jobs.items()
                if job.status.is_terminal
                and job.completed_at is not None
                and now - job.completed_at > self.retention
            ]
            for job_id in expired:
                del self._jobs[job_id]
            set_jobs_in_table(len(self._jobs))

        if expired:
            record_jobs_swept(len(expired))
            logger.info("Removed %d expired jobs", len(expired))
        return len(expired)

    # =========================================================================
    # Workers
    # =========================================================================

    async def _sweep_loop(self):
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                await self.sweep_expired()
            except Exception:
                logger.exception("Job sweep failed")

    async def _worker(self, number: int):
        while True:
            job_id, kind, previous_issues = await self._queue.get()
            try:
                await self._process(job_id, kind, previous_issues)
            finally:
                self._queue.task_done()

    async def _update(self, job_id: str, **fields):
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            for name, value in fields.items():
                setattr(job, name, value)

    async def _process(self, job_id: str, kind: str, previous_issues: Sequence[str]):
        job = await self.get_job(job_id)
        if job is None:
            logger.warning("Dequeued unknown job %s", job_id)
            return

        job_type = "retry" if kind == _RETRY else "scrape"
        started = time.monotonic()

        with with_job_context(job_id):
            record_job(job_type, "started")
            try:
                oracle = self._oracle_factory(job.options.oracle_credential)
                try:
                    if kind == _RETRY:
                        await self._synthesize_and_judge(job, job.endpoints or [], oracle, previous_issues)
                    else:
                        await self._run_pipeline(job, oracle)
                finally:
                    await _close(oracle)
            except Exception as e:
                message = str(e) or type(e).__name__
                logger.error("Job %s failed: %s", job_id, message)
                await self._update(
                    job_id,
                    status=JobStatus.FAILED,
                    error_message=message,
                    progress_message=f"Scraping failed: {message}",
                    completed_at=datetime.utcnow(),
                )
                record_job(job_type, "failed")
            else:
                record_job(job_type, "completed")
            finally:
                record_duration(job_type, time.monotonic() - started)

    async def _fetch(self, location: str, rendering_hint: Optional[str]) -> str:
        async with self._fetcher_factory(location, rendering_hint) as fetcher:
            return await fetcher.fetch(location)

    async def _run_pipeline(self, job: Job, oracle):
        options = job.options
        await self._update(
            job.id,
            status=JobStatus.PROCESSING,
            started_at=datetime.utcnow(),
            progress_message="Starting to scrape API documentation...",
        )

        # Discovery
        discovery = EndpointDiscovery(oracle, max_chars=self.settings.discovery_max_chars)
        descriptors: List[EndpointDescriptor] = []
        locations = [job.source_location] + list(options.additional_locations)

        with with_stage_context("discovery"):
            log_stage_start("discovery", {"locations": locations})
            for index, location in enumerate(locations):
                try:
                    document = await self._fetch(location, options.rendering_hint)
                except FetchError as e:
                    if index == 0:
                        log_stage_end("discovery", success=False, error=str(e))
                        raise
                    logger.warning("Skipping additional location %s: %s", location, e)
                    continue
                descriptors.extend(await discovery.discover(document, location))
            log_stage_end("discovery", success=True, endpoints=len(descriptors))

        await self._update(
            job.id,
            progress_message=f"Discovered {len(descriptors)} endpoints, extracting details...",
        )

        # Extraction
        extractor = DetailExtractor(
            oracle,
            fetcher_factory=self._fetcher_factory,
            rendering_hint=options.rendering_hint,
            max_chars=self.settings.extraction_max_chars,
            fallback_to_basic=self.settings.extraction_fallback_to_basic,
        )
        with with_stage_context("extraction"):
            log_stage_start("extraction", {"descriptors": len(descriptors)})
            extraction = await extractor.extract_all(descriptors)
            log_stage_end("extraction", success=True, **extraction.to_dict())

        endpoints = dedupe_endpoints(extraction.endpoints)
        await self._update(job.id, endpoints=endpoints, extraction_stats=extraction.to_dict())

        if not endpoints:
            await self._complete(job.id, "Completed! No endpoints found in the documentation")
            return

        await self._synthesize_and_judge(job, endpoints, oracle, previous_issues=[])

    async def _synthesize_and_judge(
        self,
        job: Job,
        endpoints: List[Endpoint],
        oracle,
        previous_issues: Sequence[str],
    ):
        options = job.options
        judge_enabled = options.judge if options.judge is not None else self.settings.judge_enabled
        synthesizer = SpecificationSynthesizer(oracle)
        judge = SpecificationJudge(oracle, timeout=self.settings.judge_timeout_seconds)

        attempt = job.retry_count
        issues = list(previous_issues)
        auto_retries = 0

        while True:
            await self._update(
                job.id,
                progress_message=f"Found {len(endpoints)} endpoints, generating OpenAPI spec...",
            )
            with with_stage_context("synthesis"):
                log_stage_start("synthesis", {"endpoints": len(endpoints), "retry_count": attempt})
                synthesis = await synthesizer.synthesize(
                    endpoints,
                    job.source_location,
                    base_url=options.base_url,
                    retry_count=attempt,
                    previous_issues=issues,
                )
                log_stage_end(
                    "synthesis", success=True,
                    chunks=synthesis.chunk_count, failed_chunks=len(synthesis.failed_chunks),
                )
            await self._update(job.id, specification=synthesis.specification, retry_count=attempt)

            if not judge_enabled:
                break

            await self._update(job.id, progress_message="Evaluating specification quality...")
            with with_stage_context("judge"):
                verdict = await judge.evaluate(synthesis.specification, len(endpoints), job.source_location)
            await self._update(job.id, judge_result=verdict)

            if not verdict.should_retry or auto_retries >= self.settings.max_auto_retries:
                break
            auto_retries += 1
            attempt += 1
            issues = list(verdict.issues)
            logger.info("Judge recommended retry (score %d); automatic retry %d", verdict.score, auto_retries)

        await self._complete(job.id, f"Completed! Extracted {len(endpoints)} endpoints")

    async def _complete(self, job_id: str, message: str):
        await self._update(
            job_id,
            status=JobStatus.COMPLETED,
            progress_message=message,
            error_message=None,
            completed_at=datetime.utcnow(),
        )
