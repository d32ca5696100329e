"""SEO engine package.

Public API::

    from siteaudit.seo import evaluate_seo, score
    issues = evaluate_seo(page_set)
    report = score(issues, len(page_set), page_set.urls)
"""

from siteaudit.crawler.models import PageSet
from siteaudit.seo.models import AuditReport, Issue, IssueSet, Severity
from siteaudit.seo.rules import evaluate
from siteaudit.seo.scoring import score
from siteaudit.seo.sitewide import analyze


def evaluate_seo(pages: PageSet) -> IssueSet:
    """Run per-page rules over every page in order, then site-wide checks.

    Raises:
        InsufficientData: If *pages* is empty.
    """
    site_issues = analyze(pages)
    issues = IssueSet()
    for page in pages:
        issues = issues + evaluate(page)
    return issues + site_issues


def run_seo_stage(pages: PageSet) -> AuditReport:
    """SEO stage body: evaluate *pages* and score the resulting issues."""
    issues = evaluate_seo(pages)
    return score(issues, len(pages), pages.urls)


__all__ = [
    "AuditReport",
    "Issue",
    "IssueSet",
    "Severity",
    "analyze",
    "evaluate",
    "evaluate_seo",
    "run_seo_stage",
    "score",
]
