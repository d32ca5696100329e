"""Severity-weighted scoring and action-plan synthesis.

Per-page score::

    max(0, 100 - sum(PAGE_DEDUCTIONS[issue.severity] for the page's issues))

Overall score::

    max(0, round_half_up(100 - sum(SITE_WEIGHTS[sev] * count[sev]) / max(1, page_count)))

Both are pure functions of their inputs.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from siteaudit.errors import InsufficientData
from siteaudit.seo.models import ActionItem, AuditReport, Issue, Severity

PAGE_DEDUCTIONS = {
    Severity.CRITICAL: 25,
    Severity.HIGH: 15,
    Severity.MEDIUM: 8,
    Severity.LOW: 3,
}

SITE_WEIGHTS = {
    Severity.CRITICAL: 20,
    Severity.HIGH: 12,
    Severity.MEDIUM: 6,
    Severity.LOW: 2,
}

# severity -> (estimated effort, impact)
ACTION_LABELS = {
    Severity.CRITICAL: ("1-2 hours", "High"),
    Severity.HIGH: ("2-4 hours", "Medium-High"),
    Severity.MEDIUM: ("3-6 hours", "Medium"),
    Severity.LOW: ("1-3 hours", "Low"),
}

ACTION_SAMPLE_SIZE = 5


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def partition(issues: Iterable[Issue]) -> dict[Severity, tuple[Issue, ...]]:
    """Split *issues* into all four severity buckets, keeping encounter order."""
    buckets: dict[Severity, list[Issue]] = {s: [] for s in Severity.ordered()}
    for issue in issues:
        buckets[issue.severity].append(issue)
    return {s: tuple(items) for s, items in buckets.items()}


def page_scores(issues: Iterable[Issue], page_urls: Sequence[str] = ()) -> dict[str, int]:
    """Score every page in *page_urls* plus any page that has an issue."""
    deductions: dict[str, int] = {url: 0 for url in page_urls}
    for issue in issues:
        if issue.page_url is None:
            continue
        deductions[issue.page_url] = deductions.get(issue.page_url, 0) + PAGE_DEDUCTIONS[issue.severity]
    return {url: max(0, 100 - total) for url, total in deductions.items()}


def overall_score(buckets: dict[Severity, tuple[Issue, ...]], page_count: int) -> int:
    weighted = sum(SITE_WEIGHTS[sev] * len(items) for sev, items in buckets.items())
    raw = Decimal(100) - Decimal(weighted) / Decimal(max(1, page_count))
    return max(0, round_half_up(raw))


def build_action_plan(buckets: dict[Severity, tuple[Issue, ...]]) -> tuple[ActionItem, ...]:
    """One item per non-empty bucket, most severe first."""
    plan: list[ActionItem] = []
    for severity in Severity.ordered():
        items = buckets.get(severity, ())
        if not items:
            continue
        effort, impact = ACTION_LABELS[severity]
        rules = sorted({i.rule for i in items})
        plan.append(
            ActionItem(
                priority=len(plan) + 1,
                severity=severity,
                title=f"Fix {len(items)} {severity.value} issue(s)",
                description=f"Address {severity.value}-severity findings: {', '.join(rules)}.",
                estimated_effort=effort,
                impact=impact,
                issue_count=len(items),
                sample_issues=items[:ACTION_SAMPLE_SIZE],
            )
        )
    return tuple(plan)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def score(
    issues: Iterable[Issue],
    page_count: int,
    page_urls: Sequence[str] = (),
) -> AuditReport:
    """Turn *issues* into an :class:`AuditReport`.

    Args:
        issues: Ordered issues (per-page and site-wide).
        page_count: Number of pages the issues were found on.
        page_urls: Pages to include in ``page_scores`` even if clean.

    Raises:
        InsufficientData: If *page_count* is less than 1.
    """
    if page_count < 1:
        raise InsufficientData("Cannot score an audit with no pages")

    issue_list = list(issues)
    buckets = partition(issue_list)
    return AuditReport(
        overall_score=overall_score(buckets, page_count),
        page_scores=page_scores(issue_list, page_urls),
        issues_by_severity=buckets,
        action_plan=build_action_plan(buckets),
        pages_analyzed=page_count,
    )
