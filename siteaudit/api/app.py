"""FastAPI application factory.

Lifespan
--------
On startup the app builds a single :class:`AuditJobManager` backed by the
SQLite job store (shared across all requests via
``request.app.state.manager``).  On shutdown it stops the manager's worker
pools.

Routers
-------
    /health   liveness check
    /audits   submit audits, poll status, fetch results
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from siteaudit.config import configure_logging
from siteaudit.jobs import AuditJobManager, SqliteJobStore

from siteaudit.api.routers import audits as audits_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the job manager on startup and stop it on shutdown."""
    configure_logging()
    manager = AuditJobManager(store=SqliteJobStore())
    app.state.manager = manager
    try:
        yield
    finally:
        manager.shutdown(wait=False)


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="SiteAudit API",
        description=(
            "REST interface for the SiteAudit orchestration engine. "
            "Submit a URL for a crawl, performance and SEO audit, poll the "
            "job's stage-by-stage progress, and fetch the scored report."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Allow browser frontends on any origin (tighten for production).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["health"])
    def health() -> dict[str, Any]:
        return {
            "status": "healthy",
            "service": "siteaudit",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    app.include_router(audits_router.router, prefix="/audits", tags=["audits"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn siteaudit.api.app:app --reload
app = create_app()
