"""Audit job REST endpoints.

Routes
------
POST /audits                  Submit a URL; returns the new job id (202)
GET  /audits/{id}             Job state, per-stage status, last update
GET  /audits/{id}/results     Scored report (409 until the job has one)
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from siteaudit.errors import InvalidInput, NotFound, NotReady
from siteaudit.jobs import AuditJobManager

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class AuditOptionsBody(BaseModel):
    max_pages: Optional[int] = Field(default=None, alias="maxPages")
    include_images: Optional[bool] = Field(default=None, alias="includeImages")
    check_mobile: Optional[bool] = Field(default=None, alias="checkMobile")
    concurrency: Optional[int] = None

    model_config = {"populate_by_name": True}


class AuditCreate(BaseModel):
    url: str
    options: Optional[AuditOptionsBody] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _manager(request: Request) -> AuditJobManager:
    return request.app.state.manager


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("", status_code=202, response_model=dict[str, Any])
def submit_audit_endpoint(body: AuditCreate, request: Request) -> dict[str, Any]:
    """Create an audit job and start it in the background."""
    manager = _manager(request)
    options = body.options.model_dump() if body.options else None
    try:
        job_id = manager.submit_audit(body.url, options)
    except InvalidInput as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    status = manager.get_job_status(job_id)
    return {"job_id": job_id, "state": status.state.value}


@router.get("/{job_id}", response_model=dict[str, Any])
def get_audit_status_endpoint(job_id: str, request: Request) -> dict[str, Any]:
    """Return the job's state and per-stage progress."""
    try:
        status = _manager(request).get_job_status(job_id)
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return status.to_dict()


@router.get("/{job_id}/results", response_model=dict[str, Any])
def get_audit_results_endpoint(job_id: str, request: Request) -> dict[str, Any]:
    """Return the scored report of a finished job."""
    try:
        report = _manager(request).get_job_results(job_id)
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except NotReady as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return {"job_id": job_id, **report.to_dict()}
