"""Audit job manager: job lifecycle, fan-out/fan-in and status polling.

``AuditJobManager`` is the only component that mutates an :class:`AuditJob`.
It keeps the live job in memory behind a lock and writes a full snapshot to
its :class:`JobStore` after every transition; readers only ever go through
the store.

Per job the stages run as::

    crawl ──┬── performance ──┐
            └── seo ──────────┴── terminal state

Jobs run on a job pool; their stages run on a separate stage pool so a job
thread can block on its stages without starving other jobs.  Every stage
callable is wrapped so that whatever it raises becomes a
:class:`StageFailed` result recorded against that stage.  Nothing a stage
raises ever reaches a caller of the public API.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed, wait
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Union
from urllib.parse import urlsplit

from siteaudit.config import settings
from siteaudit.crawler import crawl
from siteaudit.crawler.models import PageSet
from siteaudit.errors import InvalidInput, NotFound, NotReady, StageFailure
from siteaudit.jobs.models import (
    AuditJob,
    JobState,
    JobStatus,
    StageFailed,
    StageName,
    StageResult,
    StageState,
    StageSucceeded,
    utcnow,
)
from siteaudit.jobs.store import InMemoryJobStore, JobStore
from siteaudit.options import AuditOptions
from siteaudit.performance import PerformanceReport, measure_performance
from siteaudit.seo import AuditReport, run_seo_stage
from siteaudit.seo.models import StageWarning

logger = logging.getLogger(__name__)

Crawler = Callable[[str, AuditOptions], PageSet]
PerformanceMeter = Callable[[str, AuditOptions], PerformanceReport]
SeoEvaluator = Callable[[PageSet], AuditReport]

DEADLINE_EXCEEDED = "deadline exceeded"


def validate_url(url: Optional[str]) -> str:
    """Return the stripped URL or raise :class:`InvalidInput`."""
    candidate = (url or "").strip()
    if not candidate:
        raise InvalidInput("URL is required")
    try:
        parts = urlsplit(candidate)
    except ValueError as exc:
        raise InvalidInput(f"Malformed URL: {candidate!r}") from exc
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise InvalidInput(f"URL must be an absolute http(s) URL: {candidate!r}")
    return candidate


class AuditJobManager:
    """Owns every audit job from submission to terminal state.

    Args:
        store: Where job snapshots are persisted.  Defaults to an
            :class:`InMemoryJobStore`.
        crawler: ``(url, options) -> PageSet``.
        performance: ``(url, options) -> PerformanceReport``.
        seo: ``(PageSet) -> AuditReport``.
        max_concurrent_jobs: Size of the job pool.
        deadline_seconds: Wall-clock budget for one job, crawl included.
    """

    def __init__(
        self,
        store: Optional[JobStore] = None,
        crawler: Crawler = crawl,
        performance: PerformanceMeter = measure_performance,
        seo: SeoEvaluator = run_seo_stage,
        max_concurrent_jobs: Optional[int] = None,
        deadline_seconds: Optional[float] = None,
    ) -> None:
        self._store = store or InMemoryJobStore()
        self._crawler = crawler
        self._performance = performance
        self._seo = seo
        self._deadline_seconds = (
            settings.job_deadline_seconds if deadline_seconds is None else deadline_seconds
        )

        workers = max_concurrent_jobs or settings.max_concurrent_jobs
        self._job_pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="audit-job")
        self._stage_pool = ThreadPoolExecutor(
            max_workers=workers * 2, thread_name_prefix="audit-stage"
        )

        self._lock = threading.RLock()
        self._live: dict[str, AuditJob] = {}
        self._runs: dict[str, Future] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def submit_audit(
        self,
        url: str,
        options: Union[AuditOptions, dict[str, Any], None] = None,
    ) -> str:
        """Create a job for *url* and start it in the background.

        Returns immediately with the job id.

        Raises:
            InvalidInput: The URL or options are invalid.  No job is created.
        """
        target = validate_url(url)
        opts = options if isinstance(options, AuditOptions) else AuditOptions.from_dict(options)

        job = AuditJob(url=target, options=opts)
        with self._lock:
            self._live[job.id] = job
            self._store.save(job)
            job.transition(JobState.RUNNING)
            job.advance_stage(StageName.CRAWL, StageState.RUNNING)
            self._store.save(job)
            run = self._job_pool.submit(self._run, job.id)
            self._runs[job.id] = run

        run.add_done_callback(lambda _f, job_id=job.id: self._forget_run(job_id))
        logger.info("Submitted audit %s for %s", job.id, target)
        return job.id

    def get_job_status(self, job_id: str) -> JobStatus:
        """Return the latest persisted status snapshot.

        Raises:
            NotFound: Unknown job id.
        """
        return JobStatus.of(self._load(job_id))

    def get_job_results(self, job_id: str) -> AuditReport:
        """Return the report of a finished job.

        Raises:
            NotFound: Unknown job id.
            NotReady: The job is still pending/running, or it failed and has
                no report.
        """
        job = self._load(job_id)
        if not job.state.is_terminal:
            raise NotReady(f"Audit {job_id} is still {job.state.value}")
        if job.results is None:
            errors = "; ".join(
                f"{name.value}: {status.error}"
                for name, status in job.stage_status.items()
                if status.error
            )
            raise NotReady(f"Audit {job_id} failed and has no report ({errors})")
        return job.results

    def wait(self, job_id: str, timeout: Optional[float] = None) -> JobStatus:
        """Block until the job's background run has finished.

        Raises:
            NotFound: Unknown job id.
            concurrent.futures.TimeoutError: *timeout* elapsed first.
        """
        with self._lock:
            run = self._runs.get(job_id)
        if run is not None:
            run.result(timeout=timeout)
        return self.get_job_status(job_id)

    def purge_expired(
        self,
        now: Optional[datetime] = None,
        retention_days: Optional[int] = None,
    ) -> int:
        """Delete jobs older than the retention window."""
        days = settings.audit_retention_days if retention_days is None else retention_days
        cutoff = (now or utcnow()) - timedelta(days=days)
        removed = self._store.delete_older_than(cutoff)
        logger.info("Purged %d audit(s) created before %s", removed, cutoff.isoformat())
        return removed

    def shutdown(self, wait: bool = True) -> None:
        self._job_pool.shutdown(wait=wait)
        self._stage_pool.shutdown(wait=wait)

    def __enter__(self) -> "AuditJobManager":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Background run
    # ------------------------------------------------------------------
    def _run(self, job_id: str) -> None:
        try:
            self._execute(job_id)
        except Exception:  # noqa: BLE001
            logger.exception("Audit %s aborted by an internal error", job_id)
            self._abort(job_id)

    def _execute(self, job_id: str) -> None:
        with self._lock:
            job = self._live[job_id]
            url, options = job.url, job.options
        deadline = time.monotonic() + self._deadline_seconds

        # -- crawl --------------------------------------------------------
        crawl_future = self._stage_pool.submit(self._crawler, url, options)
        crawl_result = self._settle(job_id, StageName.CRAWL, crawl_future, deadline)
        self._record(job_id, crawl_result)
        if isinstance(crawl_result, StageFailed):
            self._finish(job_id, JobState.FAILED, None)
            return
        page_set: PageSet = crawl_result.value

        # -- fan out ------------------------------------------------------
        with self._lock:
            for stage in (StageName.PERFORMANCE, StageName.SEO):
                job.advance_stage(stage, StageState.RUNNING)
            self._store.save(job)
        futures = {
            self._stage_pool.submit(self._performance, url, options): StageName.PERFORMANCE,
            self._stage_pool.submit(self._seo, page_set): StageName.SEO,
        }

        # -- fan in -------------------------------------------------------
        results: dict[StageName, StageResult] = {}
        try:
            for future in as_completed(futures, timeout=self._remaining(deadline)):
                stage = futures[future]
                results[stage] = self._settle(job_id, stage, future, deadline)
                self._record(job_id, results[stage])
        except FuturesTimeout:
            for future, stage in futures.items():
                if stage in results:
                    continue
                logger.warning("Audit %s: %s stage missed the job deadline", job_id, stage.value)
                results[stage] = StageFailed(stage, StageFailure(stage.value, DEADLINE_EXCEEDED))
                self._record(job_id, results[stage])
                # A stage still queued never starts; a running one is left to finish.
                if not future.cancel():
                    future.add_done_callback(
                        lambda _f, s=stage: logger.warning(
                            "Audit %s: discarded late %s result", job_id, s.value
                        )
                    )

        self._complete(job_id, results[StageName.PERFORMANCE], results[StageName.SEO], page_set)

    def _settle(
        self,
        job_id: str,
        stage: StageName,
        future: Future,
        deadline: float,
    ) -> StageResult:
        """Wait for *future* and wrap its outcome in a tagged result."""
        done, _ = wait([future], timeout=self._remaining(deadline))
        if not done:
            future.cancel()
            logger.warning("Audit %s: %s stage missed the job deadline", job_id, stage.value)
            return StageFailed(stage, StageFailure(stage.value, DEADLINE_EXCEEDED))

        exc = future.exception()
        if exc is not None:
            logger.error(
                "Audit %s: %s stage failed",
                job_id,
                stage.value,
                exc_info=(type(exc), exc, exc.__traceback__),
            )
            return StageFailed(stage, StageFailure(stage.value, str(exc) or type(exc).__name__))
        return StageSucceeded(stage, future.result())

    def _complete(
        self,
        job_id: str,
        performance: StageResult,
        seo: StageResult,
        page_set: PageSet,
    ) -> None:
        """Compute the terminal state from both dependent stage results."""
        perf_report = _unwrap(performance)
        seo_report = _unwrap(seo)
        warnings = tuple(
            StageWarning(stage=r.stage.value, message=r.failure.message)
            for r in (performance, seo)
            if isinstance(r, StageFailed)
        )

        if seo_report is not None:
            report: Optional[AuditReport] = replace(
                seo_report, performance=perf_report, warnings=warnings
            )
        elif perf_report is not None:
            report = AuditReport(
                overall_score=None,
                pages_analyzed=len(page_set),
                performance=perf_report,
                warnings=warnings,
            )
        else:
            report = None

        if not warnings:
            state = JobState.COMPLETED
        elif report is not None:
            state = JobState.PARTIALLY_FAILED
        else:
            state = JobState.FAILED
        self._finish(job_id, state, report)

    # ------------------------------------------------------------------
    # Single-writer mutations
    # ------------------------------------------------------------------
    def _record(self, job_id: str, result: StageResult) -> None:
        with self._lock:
            job = self._live[job_id]
            status = job.stage_status[result.stage]
            if status.state.is_settled:
                logger.warning(
                    "Audit %s: ignoring second outcome for settled %s stage",
                    job_id,
                    result.stage.value,
                )
                return
            if isinstance(result, StageSucceeded):
                job.advance_stage(result.stage, StageState.SUCCEEDED)
            else:
                job.advance_stage(result.stage, StageState.FAILED, result.failure.message)
            self._store.save(job)
        logger.info(
            "Audit %s: %s stage %s",
            job_id,
            result.stage.value,
            "succeeded" if isinstance(result, StageSucceeded) else "failed",
        )

    def _finish(self, job_id: str, state: JobState, report: Optional[AuditReport]) -> None:
        with self._lock:
            job = self._live.pop(job_id)
            job.results = report
            job.transition(state)
            self._store.save(job)
        logger.info("Audit %s finished: %s", job_id, state.value)

    def _abort(self, job_id: str) -> None:
        """Force a job whose run crashed into ``failed``."""
        with self._lock:
            job = self._live.pop(job_id, None)
            if job is None or job.state.is_terminal:
                return
            for stage, status in job.stage_status.items():
                if status.state is StageState.RUNNING:
                    status.advance(StageState.FAILED, "internal error")
            job.results = None
            job.transition(JobState.FAILED)
            self._store.save(job)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _load(self, job_id: str) -> AuditJob:
        job = self._store.load(job_id)
        if job is None:
            raise NotFound(f"Audit {job_id} not found")
        return job

    def _forget_run(self, job_id: str) -> None:
        with self._lock:
            self._runs.pop(job_id, None)

    @staticmethod
    def _remaining(deadline: float) -> float:
        return max(0.0, deadline - time.monotonic())


def _unwrap(result: StageResult) -> Any:
    """Return the value of a succeeded result, ``None`` for a failed one."""
    if isinstance(result, StageSucceeded):
        return result.value
    if isinstance(result, StageFailed):
        return None
    raise TypeError(f"Unknown stage result variant: {type(result).__name__}")
