"""Job persistence behind an injectable interface.

The job manager is the only writer.  Every ``save`` stores a full snapshot,
and every ``load`` returns a fresh copy, so a reader never observes a job
that is halfway through a transition.

``InMemoryJobStore`` backs tests; ``SqliteJobStore`` backs the CLI and API.
"""

from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from siteaudit.db.connection import connection_scope
from siteaudit.db.migrations import init_db
from siteaudit.jobs.models import AuditJob


class JobStore(ABC):
    """Abstract job store."""

    @abstractmethod
    def save(self, job: AuditJob) -> None:
        """Insert or replace the snapshot for ``job.id``."""

    @abstractmethod
    def load(self, job_id: str) -> Optional[AuditJob]:
        """Return a copy of the stored job, or ``None`` if unknown."""

    @abstractmethod
    def delete_older_than(self, cutoff: datetime) -> int:
        """Delete jobs created before *cutoff*; return how many were removed."""


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------

class InMemoryJobStore(JobStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, str] = {}

    def save(self, job: AuditJob) -> None:
        snapshot = json.dumps(job.to_dict())
        with self._lock:
            self._records[job.id] = snapshot

    def load(self, job_id: str) -> Optional[AuditJob]:
        with self._lock:
            snapshot = self._records.get(job_id)
        return AuditJob.from_dict(json.loads(snapshot)) if snapshot else None

    def delete_older_than(self, cutoff: datetime) -> int:
        with self._lock:
            expired = [
                job_id
                for job_id, snapshot in self._records.items()
                if datetime.fromisoformat(json.loads(snapshot)["created_at"]) < cutoff
            ]
            for job_id in expired:
                del self._records[job_id]
        return len(expired)

    def __len__(self) -> int:
        return len(self._records)


# ---------------------------------------------------------------------------
# SQLite
# ---------------------------------------------------------------------------

class SqliteJobStore(JobStore):
    """One ``audits`` row per job; ``payload`` holds the JSON snapshot."""

    def __init__(self, db_path: Optional[Union[Path, str]] = None) -> None:
        self.db_path = db_path
        with connection_scope(self.db_path) as conn:
            init_db(conn)

    def save(self, job: AuditJob) -> None:
        with connection_scope(self.db_path) as conn:
            with conn:
                conn.execute(
                    """
                    INSERT INTO audits (id, url, state, payload, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        state = excluded.state,
                        payload = excluded.payload,
                        updated_at = excluded.updated_at
                    """,
                    (
                        job.id,
                        job.url,
                        job.state.value,
                        json.dumps(job.to_dict()),
                        job.created_at.isoformat(),
                        job.updated_at.isoformat(),
                    ),
                )

    def load(self, job_id: str) -> Optional[AuditJob]:
        with connection_scope(self.db_path) as conn:
            row = conn.execute(
                "SELECT payload FROM audits WHERE id = ?", (job_id,)
            ).fetchone()
        return AuditJob.from_dict(json.loads(row["payload"])) if row else None

    def delete_older_than(self, cutoff: datetime) -> int:
        with connection_scope(self.db_path) as conn:
            with conn:
                cursor = conn.execute(
                    "DELETE FROM audits WHERE created_at < ?", (cutoff.isoformat(),)
                )
        return cursor.rowcount
