"""Audit job model and its state machine.

Job states::

    pending -> running -> completed | partially_failed | failed

Stage states::

    pending -> running -> succeeded | failed

Terminal states are final.  Any other move raises
:class:`~siteaudit.errors.InvalidTransition`.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, Optional, TypeVar, Union

from siteaudit.errors import InvalidTransition, StageFailure
from siteaudit.options import AuditOptions
from siteaudit.seo.models import AuditReport


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    PARTIALLY_FAILED = "partially_failed"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_JOB_STATES


_TERMINAL_JOB_STATES = {JobState.COMPLETED, JobState.PARTIALLY_FAILED, JobState.FAILED}

_JOB_TRANSITIONS = {
    JobState.PENDING: {JobState.RUNNING},
    JobState.RUNNING: _TERMINAL_JOB_STATES,
}


class StageName(str, Enum):
    CRAWL = "crawl"
    PERFORMANCE = "performance"
    SEO = "seo"


class StageState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_settled(self) -> bool:
        return self in (StageState.SUCCEEDED, StageState.FAILED)


_STAGE_TRANSITIONS = {
    StageState.PENDING: {StageState.RUNNING},
    StageState.RUNNING: {StageState.SUCCEEDED, StageState.FAILED},
}


# ---------------------------------------------------------------------------
# Stage results (tagged variants)
# ---------------------------------------------------------------------------

T = TypeVar("T")


@dataclass(frozen=True)
class StageSucceeded(Generic[T]):
    stage: StageName
    value: T


@dataclass(frozen=True)
class StageFailed:
    stage: StageName
    failure: StageFailure


StageResult = Union[StageSucceeded[Any], StageFailed]


# ---------------------------------------------------------------------------
# Stage status
# ---------------------------------------------------------------------------

@dataclass
class StageStatus:
    state: StageState = StageState.PENDING
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def advance(self, new_state: StageState, error: Optional[str] = None) -> None:
        if new_state not in _STAGE_TRANSITIONS.get(self.state, set()):
            raise InvalidTransition(f"Stage cannot move from {self.state.value} to {new_state.value}")
        now = utcnow()
        self.state = new_state
        if new_state is StageState.RUNNING:
            self.started_at = now
        else:
            self.finished_at = now
            self.error = error

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "error": self.error,
            "started_at": _iso(self.started_at),
            "finished_at": _iso(self.finished_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StageStatus":
        return cls(
            state=StageState(data["state"]),
            error=data.get("error"),
            started_at=_parse(data.get("started_at")),
            finished_at=_parse(data.get("finished_at")),
        )


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


# ---------------------------------------------------------------------------
# Job
# ---------------------------------------------------------------------------

@dataclass
class AuditJob:
    url: str
    options: AuditOptions = field(default_factory=AuditOptions)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: JobState = JobState.PENDING
    stage_status: dict[StageName, StageStatus] = field(
        default_factory=lambda: {name: StageStatus() for name in StageName}
    )
    results: Optional[AuditReport] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def transition(self, new_state: JobState) -> None:
        if new_state not in _JOB_TRANSITIONS.get(self.state, set()):
            raise InvalidTransition(f"Job {self.id} cannot move from {self.state.value} to {new_state.value}")
        self.state = new_state
        self.touch()

    def advance_stage(self, stage: StageName, new_state: StageState, error: Optional[str] = None) -> None:
        if self.state.is_terminal:
            raise InvalidTransition(f"Job {self.id} is {self.state.value}; stages are frozen")
        self.stage_status[stage].advance(new_state, error)
        self.touch()

    def touch(self) -> None:
        self.updated_at = utcnow()

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------
    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "options": self.options.to_dict(),
            "state": self.state.value,
            "stage_status": {name.value: s.to_dict() for name, s in self.stage_status.items()},
            "results": self.results.to_dict() if self.results else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuditJob":
        results = data.get("results")
        return cls(
            id=data["id"],
            url=data["url"],
            options=AuditOptions.from_dict(data.get("options")),
            state=JobState(data["state"]),
            stage_status={
                StageName(name): StageStatus.from_dict(s)
                for name, s in data["stage_status"].items()
            },
            results=AuditReport.from_dict(results) if results else None,
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )


@dataclass(frozen=True)
class JobStatus:
    """Read-only view returned by ``get_job_status``."""

    job_id: str
    url: str
    state: JobState
    stage_status: dict[StageName, StageStatus]
    updated_at: datetime

    @classmethod
    def of(cls, job: AuditJob) -> "JobStatus":
        return cls(
            job_id=job.id,
            url=job.url,
            state=job.state,
            stage_status=job.stage_status,
            updated_at=job.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "url": self.url,
            "state": self.state.value,
            "stage_status": {name.value: s.to_dict() for name, s in self.stage_status.items()},
            "updated_at": self.updated_at.isoformat(),
        }
