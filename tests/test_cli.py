"""Tests for the 'db' and 'audit' CLI command groups."""

from datetime import timedelta

import pytest
from typer.testing import CliRunner

import cli.commands.audit as audit_commands
from cli.main import app
from siteaudit.crawler.models import Heading, Page, PageSet
from siteaudit.errors import PerformanceError
from siteaudit.jobs import AuditJob, AuditJobManager, InMemoryJobStore, SqliteJobStore
from siteaudit.jobs.models import utcnow

runner = CliRunner()


def _crawler(url, options):
    return PageSet(
        root_url=url,
        pages=(
            Page(url=url, title="Home", description="", headings=(Heading(1, "Home"),)),
            Page(url=url + "about", title="About", description="About us"),
        ),
    )


def _broken_performance(url, options):
    raise PerformanceError("PageSpeed desktop request failed: 429")


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Point the settings workspace at a temporary directory."""
    monkeypatch.setattr("siteaudit.config.settings.workspace_dir", tmp_path)
    return tmp_path


@pytest.fixture
def fake_manager(monkeypatch):
    store = InMemoryJobStore()

    def _make():
        return AuditJobManager(
            store=store,
            crawler=_crawler,
            performance=_broken_performance,
            deadline_seconds=10,
        )

    monkeypatch.setattr(audit_commands, "_manager", _make)
    return store


# ---------------------------------------------------------------------------
# db
# ---------------------------------------------------------------------------

def test_db_init(workspace):
    result = runner.invoke(app, ["db", "init"])
    assert result.exit_code == 0, result.output
    assert "Database ready" in result.output
    assert (workspace / "audits.db").exists()


def test_db_prune(workspace):
    store = SqliteJobStore()
    old = AuditJob(url="https://old.example.com/", created_at=utcnow() - timedelta(days=3))
    store.save(old)
    store.save(AuditJob(url="https://new.example.com/"))

    result = runner.invoke(app, ["db", "prune", "--days", "2"])

    assert result.exit_code == 0, result.output
    assert "Removed 1 audit(s)" in result.output
    assert store.load(old.id) is None


# ---------------------------------------------------------------------------
# audit
# ---------------------------------------------------------------------------

def test_audit_run_prints_report(workspace, fake_manager):
    result = runner.invoke(app, ["audit", "run", "--url", "https://example.com/", "--no-mobile"])

    assert result.exit_code == 0, result.output
    assert "partially_failed" in result.output
    assert "performance data missing" in result.output
    assert "Overall score" in result.output
    assert "Action plan:" in result.output
    assert "description_missing" in result.output


def test_audit_run_invalid_url(workspace, fake_manager):
    result = runner.invoke(app, ["audit", "run", "--url", "ftp://example.com"])
    assert result.exit_code == 1
    assert len(fake_manager) == 0


def test_audit_run_invalid_max_pages(workspace, fake_manager):
    result = runner.invoke(app, ["audit", "run", "--url", "https://example.com/", "--max-pages", "0"])
    assert result.exit_code == 1


def test_audit_status_and_results(workspace, fake_manager):
    run = runner.invoke(app, ["audit", "run", "--url", "https://example.com/"])
    assert run.exit_code == 0, run.output
    job_id = next(iter(fake_manager._records))

    status = runner.invoke(app, ["audit", "status", job_id])
    assert status.exit_code == 0, status.output
    assert job_id in status.output
    assert "crawl" in status.output

    results = runner.invoke(app, ["audit", "results", job_id])
    assert results.exit_code == 0, results.output
    assert "Overall score" in results.output


def test_audit_status_unknown(workspace, fake_manager):
    result = runner.invoke(app, ["audit", "status", "missing"])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_audit_results_unknown(workspace, fake_manager):
    result = runner.invoke(app, ["audit", "results", "missing"])
    assert result.exit_code == 1


@pytest.fixture
def recording_manager(monkeypatch):
    """Swap in a manager whose crawler records the options it was given."""
    seen = []

    def crawler(url, options):
        seen.append(options)
        return _crawler(url, options)

    monkeypatch.setattr(
        audit_commands,
        "_manager",
        lambda: AuditJobManager(
            store=InMemoryJobStore(),
            crawler=crawler,
            performance=_broken_performance,
            deadline_seconds=10,
        ),
    )
    return seen


def test_audit_run_uses_configured_defaults(workspace, recording_manager, monkeypatch):
    monkeypatch.setattr("siteaudit.config.settings.default_max_pages", 4)
    monkeypatch.setattr("siteaudit.config.settings.default_concurrency", 2)

    result = runner.invoke(app, ["audit", "run", "--url", "https://example.com/"])

    assert result.exit_code == 0, result.output
    assert (recording_manager[0].max_pages, recording_manager[0].concurrency) == (4, 2)


def test_audit_run_flags_override_defaults(workspace, recording_manager):
    result = runner.invoke(
        app,
        ["audit", "run", "--url", "https://example.com/", "--max-pages", "7", "--concurrency", "5"],
    )

    assert result.exit_code == 0, result.output
    assert (recording_manager[0].max_pages, recording_manager[0].concurrency) == (7, 5)
