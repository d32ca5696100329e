"""SiteAudit runtime settings.

Every knob (workspace, crawler, PageSpeed, job manager, logging) reads its
default from an environment variable.  A `.env` file at the project root is
loaded on import without overriding variables already set.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("SITEAUDIT_WORKSPACE", Path.home() / ".siteaudit")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "audits.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    db_checkout_warn_seconds: float = field(
        default_factory=lambda: float(os.environ.get("DB_CHECKOUT_WARN_SECONDS", "5.0"))
    )
    audit_retention_days: int = field(
        default_factory=lambda: int(os.environ.get("AUDIT_RETENTION_DAYS", "7"))
    )

    # ------------------------------------------------------------------
    # Crawler
    # ------------------------------------------------------------------
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "15.0"))
    )
    user_agent: str = field(
        default_factory=lambda: os.environ.get(
            "CRAWLER_USER_AGENT",
            "Mozilla/5.0 (compatible; SiteAudit-Bot/1.0; +https://github.com/siteaudit)",
        )
    )
    default_max_pages: int = field(
        default_factory=lambda: int(os.environ.get("DEFAULT_MAX_PAGES", "10"))
    )
    default_concurrency: int = field(
        default_factory=lambda: int(os.environ.get("DEFAULT_CONCURRENCY", "3"))
    )

    # ------------------------------------------------------------------
    # Performance (PageSpeed Insights)
    # ------------------------------------------------------------------
    psi_endpoint: str = field(
        default_factory=lambda: os.environ.get(
            "PSI_ENDPOINT",
            "https://www.googleapis.com/pagespeedonline/v5/runPagespeed",
        )
    )
    psi_api_key: str = field(
        default_factory=lambda: os.environ.get("PSI_API_KEY", "")
    )
    psi_timeout: float = field(
        default_factory=lambda: float(os.environ.get("PSI_TIMEOUT", "60.0"))
    )

    # ------------------------------------------------------------------
    # Job manager
    # ------------------------------------------------------------------
    job_deadline_seconds: float = field(
        default_factory=lambda: float(os.environ.get("JOB_DEADLINE_SECONDS", "300"))
    )
    max_concurrent_jobs: int = field(
        default_factory=lambda: int(os.environ.get("MAX_CONCURRENT_JOBS", "4"))
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO")
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton, import this everywhere:
#   from siteaudit.config import settings
settings = Settings()


def configure_logging() -> None:
    """Apply the root logging configuration for CLI and API entry points."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
