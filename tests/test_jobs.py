"""Tests for the audit job manager and its state machine.

Every test injects fake stage collaborators into :class:`AuditJobManager`
and uses an :class:`InMemoryJobStore`, so no network or disk is touched.
Slow stages block on a ``threading.Event`` that the test releases.
"""

from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from siteaudit.crawler.models import Heading, Page, PageSet
from siteaudit.errors import (
    CrawlError,
    InvalidInput,
    InvalidTransition,
    NotFound,
    NotReady,
    PerformanceError,
)
from siteaudit.jobs import (
    AuditJob,
    AuditJobManager,
    InMemoryJobStore,
    JobState,
    StageName,
    StageState,
    validate_url,
)
from siteaudit.jobs.manager import DEADLINE_EXCEEDED
from siteaudit.jobs.models import utcnow
from siteaudit.options import AuditOptions
from siteaudit.performance import PerformanceReport
from siteaudit.performance.models import PerformanceMeasurement
from siteaudit.seo import run_seo_stage


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

def _page(path: str, description: str = "") -> Page:
    url = f"https://example.com{path}"
    return Page(
        url=url,
        title=f"Acme {path}",
        description=description,
        headings=(Heading(1, "Acme"),),
        canonical_url=url,
        schema_markup=({"format": "json-ld", "data": {"@type": "WebPage"}},),
    )


def fake_crawl(url: str, options: AuditOptions) -> PageSet:
    return PageSet(
        root_url=url,
        pages=(_page("/", "Home"), _page("/about", "About"), _page("/blog")),
    )


def fake_performance(url: str, options: AuditOptions) -> PerformanceReport:
    return PerformanceReport(url=url, measurements=(PerformanceMeasurement("desktop", score=90),))


def failing_crawl(url: str, options: AuditOptions) -> PageSet:
    raise CrawlError(f"Could not fetch {url}: HTTP 500")


def failing_performance(url: str, options: AuditOptions) -> PerformanceReport:
    raise PerformanceError("PageSpeed desktop request failed: 429")


def failing_seo(pages: PageSet):
    raise RuntimeError("rule engine exploded")


def _blocking(release: threading.Event, result):
    def stage(*_args):
        release.wait(5)
        return result(*_args)

    return stage


@pytest.fixture()
def make_manager():
    managers: list[AuditJobManager] = []

    def _make(**kwargs) -> AuditJobManager:
        kwargs.setdefault("store", InMemoryJobStore())
        kwargs.setdefault("crawler", fake_crawl)
        kwargs.setdefault("performance", fake_performance)
        kwargs.setdefault("seo", run_seo_stage)
        kwargs.setdefault("max_concurrent_jobs", 2)
        kwargs.setdefault("deadline_seconds", 10)
        manager = AuditJobManager(**kwargs)
        managers.append(manager)
        return manager

    yield _make
    for manager in managers:
        manager.shutdown(wait=True)


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------

class TestValidateUrl:
    @pytest.mark.parametrize("url", ["", "   ", None, "example.com", "ftp://example.com", "https://"])
    def test_rejected(self, url) -> None:
        with pytest.raises(InvalidInput):
            validate_url(url)

    def test_strips_whitespace(self) -> None:
        assert validate_url("  https://example.com  ") == "https://example.com"


class TestSubmit:
    def test_invalid_url_creates_no_job(self, make_manager) -> None:
        store = InMemoryJobStore()
        manager = make_manager(store=store)
        with pytest.raises(InvalidInput):
            manager.submit_audit("not a url")
        assert len(store) == 0

    def test_invalid_options_rejected(self, make_manager) -> None:
        manager = make_manager()
        with pytest.raises(InvalidInput):
            manager.submit_audit("https://example.com", {"max_pages": 0})
        with pytest.raises(InvalidInput):
            manager.submit_audit("https://example.com", {"concurrency": 99})

    def test_unknown_job(self, make_manager) -> None:
        manager = make_manager()
        with pytest.raises(NotFound):
            manager.get_job_status("nope")
        with pytest.raises(NotFound):
            manager.get_job_results("nope")

    def test_options_passed_to_stages(self, make_manager) -> None:
        seen = {}

        def crawler(url, options):
            seen["options"] = options
            return fake_crawl(url, options)

        manager = make_manager(crawler=crawler)
        job_id = manager.submit_audit("https://example.com", {"max_pages": 3, "checkMobile": True})
        manager.wait(job_id, timeout=5)
        assert seen["options"].max_pages == 3


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

class TestLifecycle:
    def test_completed_end_to_end(self, make_manager) -> None:
        manager = make_manager()
        job_id = manager.submit_audit("https://example.com/")
        status = manager.wait(job_id, timeout=5)

        assert status.state is JobState.COMPLETED
        assert all(s.state is StageState.SUCCEEDED for s in status.stage_status.values())

        report = manager.get_job_results(job_id)
        assert report.overall_score == 93
        assert report.performance.for_strategy("desktop").score == 90
        assert report.warnings == ()

    def test_running_job_not_ready(self, make_manager) -> None:
        release = threading.Event()
        manager = make_manager(crawler=_blocking(release, fake_crawl))
        job_id = manager.submit_audit("https://example.com/")
        try:
            status = manager.get_job_status(job_id)
            assert status.state is JobState.RUNNING
            assert status.stage_status[StageName.CRAWL].state is StageState.RUNNING
            assert status.stage_status[StageName.SEO].state is StageState.PENDING
            with pytest.raises(NotReady):
                manager.get_job_results(job_id)
        finally:
            release.set()
        assert manager.wait(job_id, timeout=5).state is JobState.COMPLETED

    def test_status_reads_are_snapshots(self, make_manager) -> None:
        manager = make_manager()
        job_id = manager.submit_audit("https://example.com/")
        manager.wait(job_id, timeout=5)
        first = manager.get_job_status(job_id)
        first.stage_status[StageName.SEO].error = "tampered"
        assert manager.get_job_status(job_id).stage_status[StageName.SEO].error is None

    def test_crawl_failure_fails_job(self, make_manager) -> None:
        calls = []
        manager = make_manager(
            crawler=failing_crawl,
            performance=lambda *a: calls.append("perf"),
            seo=lambda *a: calls.append("seo"),
        )
        job_id = manager.submit_audit("https://example.com/")
        status = manager.wait(job_id, timeout=5)

        assert status.state is JobState.FAILED
        assert status.stage_status[StageName.CRAWL].state is StageState.FAILED
        assert "HTTP 500" in status.stage_status[StageName.CRAWL].error
        assert status.stage_status[StageName.PERFORMANCE].state is StageState.PENDING
        assert status.stage_status[StageName.SEO].state is StageState.PENDING
        assert calls == []
        with pytest.raises(NotReady):
            manager.get_job_results(job_id)

    def test_performance_failure_is_partial(self, make_manager) -> None:
        manager = make_manager(performance=failing_performance)
        job_id = manager.submit_audit("https://example.com/")
        status = manager.wait(job_id, timeout=5)

        assert status.state is JobState.PARTIALLY_FAILED
        perf = status.stage_status[StageName.PERFORMANCE]
        assert perf.state is StageState.FAILED
        assert "429" in perf.error

        report = manager.get_job_results(job_id)
        assert report.overall_score == 93
        assert report.performance is None
        assert report.missing_stages == ["performance"]

    def test_seo_failure_is_partial_without_score(self, make_manager) -> None:
        manager = make_manager(seo=failing_seo)
        job_id = manager.submit_audit("https://example.com/")
        status = manager.wait(job_id, timeout=5)

        assert status.state is JobState.PARTIALLY_FAILED
        assert status.stage_status[StageName.SEO].error == "rule engine exploded"
        report = manager.get_job_results(job_id)
        assert report.overall_score is None
        assert report.pages_analyzed == 3
        assert report.performance is not None
        assert report.missing_stages == ["seo"]

    def test_both_dependents_fail(self, make_manager) -> None:
        manager = make_manager(performance=failing_performance, seo=failing_seo)
        job_id = manager.submit_audit("https://example.com/")
        status = manager.wait(job_id, timeout=5)

        assert status.state is JobState.FAILED
        perf = status.stage_status[StageName.PERFORMANCE]
        seo = status.stage_status[StageName.SEO]
        assert perf.state is StageState.FAILED
        assert seo.state is StageState.FAILED
        assert "429" in perf.error
        assert seo.error == "rule engine exploded"
        with pytest.raises(NotReady, match="rule engine exploded"):
            manager.get_job_results(job_id)

    def test_empty_crawl_fails_seo(self, make_manager) -> None:
        manager = make_manager(crawler=lambda url, opts: PageSet(root_url=url))
        job_id = manager.submit_audit("https://example.com/")
        status = manager.wait(job_id, timeout=5)

        assert status.state is JobState.PARTIALLY_FAILED
        assert status.stage_status[StageName.SEO].state is StageState.FAILED


# ---------------------------------------------------------------------------
# Deadline
# ---------------------------------------------------------------------------

class TestDeadline:
    def test_slow_crawl_fails_job(self, make_manager) -> None:
        release = threading.Event()
        manager = make_manager(crawler=_blocking(release, fake_crawl), deadline_seconds=0.2)
        try:
            job_id = manager.submit_audit("https://example.com/")
            status = manager.wait(job_id, timeout=5)
        finally:
            release.set()

        assert status.state is JobState.FAILED
        assert status.stage_status[StageName.CRAWL].error == DEADLINE_EXCEEDED

    def test_slow_performance_is_partial(self, make_manager) -> None:
        release = threading.Event()
        manager = make_manager(
            performance=_blocking(release, fake_performance), deadline_seconds=0.5
        )
        try:
            job_id = manager.submit_audit("https://example.com/")
            status = manager.wait(job_id, timeout=5)
        finally:
            release.set()

        assert status.state is JobState.PARTIALLY_FAILED
        assert status.stage_status[StageName.PERFORMANCE].error == DEADLINE_EXCEEDED
        assert status.stage_status[StageName.SEO].state is StageState.SUCCEEDED
        assert manager.get_job_results(job_id).performance is None

    def test_queued_stage_cancelled_at_deadline(self, make_manager) -> None:
        calls: list[str] = []

        def crawler(url, options):
            calls.append(url)
            return fake_crawl(url, options)

        release = threading.Event()
        manager = make_manager(crawler=crawler, max_concurrent_jobs=1, deadline_seconds=0.2)
        # Two stage workers, both busy, so the crawl stays queued.
        busy = [manager._stage_pool.submit(release.wait, 5) for _ in range(2)]
        try:
            job_id = manager.submit_audit("https://example.com/")
            status = manager.wait(job_id, timeout=5)
        finally:
            release.set()
        for future in busy:
            future.result(timeout=5)
        manager.shutdown(wait=True)

        assert status.state is JobState.FAILED
        assert status.stage_status[StageName.CRAWL].error == DEADLINE_EXCEEDED
        assert calls == []


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------

class TestConcurrentJobs:
    def test_jobs_are_independent(self, make_manager) -> None:
        manager = make_manager(max_concurrent_jobs=4)
        ids = [manager.submit_audit(f"https://site{i}.example.com/") for i in range(6)]
        assert len(set(ids)) == 6
        for job_id in ids:
            assert manager.wait(job_id, timeout=10).state is JobState.COMPLETED
            assert manager.get_job_status(job_id).url.startswith("https://site")


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

class TestStateMachine:
    def test_terminal_job_cannot_move(self) -> None:
        job = AuditJob(url="https://example.com/")
        job.transition(JobState.RUNNING)
        job.transition(JobState.COMPLETED)
        with pytest.raises(InvalidTransition):
            job.transition(JobState.RUNNING)

    def test_pending_cannot_complete(self) -> None:
        job = AuditJob(url="https://example.com/")
        with pytest.raises(InvalidTransition):
            job.transition(JobState.COMPLETED)

    def test_settled_stage_cannot_move(self) -> None:
        job = AuditJob(url="https://example.com/")
        job.transition(JobState.RUNNING)
        job.advance_stage(StageName.CRAWL, StageState.RUNNING)
        job.advance_stage(StageName.CRAWL, StageState.SUCCEEDED)
        with pytest.raises(InvalidTransition):
            job.advance_stage(StageName.CRAWL, StageState.FAILED, "late")

    def test_stages_frozen_after_terminal(self) -> None:
        job = AuditJob(url="https://example.com/")
        job.transition(JobState.RUNNING)
        job.transition(JobState.FAILED)
        with pytest.raises(InvalidTransition):
            job.advance_stage(StageName.SEO, StageState.RUNNING)

    def test_stage_timestamps(self) -> None:
        job = AuditJob(url="https://example.com/")
        job.transition(JobState.RUNNING)
        job.advance_stage(StageName.CRAWL, StageState.RUNNING)
        job.advance_stage(StageName.CRAWL, StageState.FAILED, "boom")
        crawl = job.stage_status[StageName.CRAWL]
        assert crawl.started_at <= crawl.finished_at
        assert crawl.error == "boom"


# ---------------------------------------------------------------------------
# Retention
# ---------------------------------------------------------------------------

class TestPurgeExpired:
    def test_old_jobs_removed(self, make_manager) -> None:
        store = InMemoryJobStore()
        old = AuditJob(url="https://old.example.com/", created_at=utcnow() - timedelta(days=8))
        fresh = AuditJob(url="https://new.example.com/")
        store.save(old)
        store.save(fresh)

        manager = make_manager(store=store)
        assert manager.purge_expired(retention_days=7) == 1
        assert store.load(old.id) is None
        assert store.load(fresh.id) is not None
