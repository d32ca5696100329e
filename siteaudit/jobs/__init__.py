"""Audit job orchestration package.

Public API::

    from siteaudit.jobs import AuditJobManager
    manager = AuditJobManager()
    job_id = manager.submit_audit("https://example.com")
"""

from siteaudit.jobs.manager import AuditJobManager, validate_url
from siteaudit.jobs.models import AuditJob, JobState, JobStatus, StageName, StageState
from siteaudit.jobs.store import InMemoryJobStore, JobStore, SqliteJobStore

__all__ = [
    "AuditJob",
    "AuditJobManager",
    "InMemoryJobStore",
    "JobState",
    "JobStatus",
    "JobStore",
    "SqliteJobStore",
    "StageName",
    "StageState",
    "validate_url",
]
