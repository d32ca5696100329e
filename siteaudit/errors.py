"""Exception hierarchy shared by every SiteAudit layer.

Only :class:`InvalidInput`, :class:`NotFound` and :class:`NotReady` ever
escape the job manager's public API.  Everything else is raised by a stage
collaborator and recorded against that stage.
"""

from __future__ import annotations


class SiteAuditError(Exception):
    """Base class for all SiteAudit errors."""


# ---------------------------------------------------------------------------
# Client-facing
# ---------------------------------------------------------------------------

class InvalidInput(SiteAuditError):
    """The submitted URL or options were rejected before a job was created."""


class NotFound(SiteAuditError):
    """No job exists with the requested id."""


class NotReady(SiteAuditError):
    """The job has not produced a report (yet)."""


# ---------------------------------------------------------------------------
# Stage-level
# ---------------------------------------------------------------------------

class StageFailure(SiteAuditError):
    """A named stage could not complete."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(f"{stage}: {message}")
        self.stage = stage
        self.message = message


class InsufficientData(SiteAuditError):
    """An analysis step received an empty page set."""


class CrawlError(SiteAuditError):
    """The crawler could not produce a page set for the root URL."""


class PerformanceError(SiteAuditError):
    """The performance collaborator returned no usable measurement."""


# ---------------------------------------------------------------------------
# Internal
# ---------------------------------------------------------------------------

class InvalidTransition(SiteAuditError):
    """A job or stage was asked to move to a state it cannot reach."""
