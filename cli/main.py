"""SiteAudit CLI: entry-point for audits, database housekeeping and the API server.

Usage:
    python cli/main.py --help

Sub-command groups:
    db      → database setup and housekeeping
    audit   → run and inspect site audits
    serve   → run the HTTP API
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from siteaudit.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from typing import Optional

import typer

from siteaudit.config import configure_logging, settings
from siteaudit.db import connection_scope, init_db
from siteaudit.jobs import AuditJobManager, SqliteJobStore
from cli.commands.audit import audit_app

app = typer.Typer(
    name="siteaudit",
    help="SiteAudit backend CLI.",
    no_args_is_help=True,
)


@app.callback()
def main() -> None:
    configure_logging()


app.add_typer(audit_app, name="audit")

# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    with connection_scope() as conn:
        init_db(conn)
    typer.echo(f"[db init] Database ready at {settings.db_path}")


@db_app.command("prune")
def db_prune(
    days: Optional[int] = typer.Option(
        None, "--days", help="Retention window in days (defaults to AUDIT_RETENTION_DAYS)."
    ),
) -> None:
    """Delete audits older than the retention window."""
    window = settings.audit_retention_days if days is None else days
    with AuditJobManager(store=SqliteJobStore()) as manager:
        removed = manager.purge_expired(retention_days=window)
    typer.echo(f"[db prune] Removed {removed} audit(s) older than {window} day(s).")


# ---------------------------------------------------------------------------
# HTTP API
# ---------------------------------------------------------------------------
@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address."),
    port: int = typer.Option(8000, help="Bind port."),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    typer.echo(f"[serve] Listening on http://{host}:{port}")
    uvicorn.run("siteaudit.api.app:app", host=host, port=port)


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
