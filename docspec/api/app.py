"""
Docspec API - FastAPI Application

REST surface over the job orchestrator.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from docspec import __version__
from docspec.api.routes import health, jobs
from docspec.core.config import get_settings
from docspec.core.errors import DocspecError
from docspec.core.metrics import init_metrics
from docspec.core.structured_logging import configure_logging
from docspec.jobs.orchestrator import JobOrchestrator

logger = logging.getLogger(__name__)


def create_app(orchestrator: Optional[JobOrchestrator] = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        orchestrator: Pre-built orchestrator (tests inject fakes through it)
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info("Docspec API starting up...")
        await app.state.orchestrator.start()
        yield
        await app.state.orchestrator.stop()
        logger.info("Docspec API shutting down...")

    app = FastAPI(
        title="Docspec API",
        description="API documentation to OpenAPI synthesis",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator or JobOrchestrator(settings)

    @app.exception_handler(DocspecError)
    async def docspec_error_handler(request: Request, exc: DocspecError):
        return JSONResponse(status_code=exc.http_status, content=exc.to_response())

    app.include_router(health.router, tags=["health"])
    app.include_router(jobs.router, prefix="/v1", tags=["jobs"])

    return app


def main():
    """Run the API with uvicorn."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    init_metrics(settings.metrics_mode)
    uvicorn.run(create_app(), host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
