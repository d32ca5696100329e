"""Cross-page checks that need the whole :class:`PageSet`."""

from __future__ import annotations

from collections import OrderedDict
from typing import Callable

from siteaudit.crawler.crawl import normalise_url
from siteaudit.crawler.models import Page, PageSet
from siteaudit.errors import InsufficientData
from siteaudit.seo.models import Issue, IssueSet, Severity

MAX_LISTED_URLS = 5


def _group_by(pages: PageSet, key: Callable[[Page], str]) -> "OrderedDict[str, list[str]]":
    """Group page URLs by exact *key* value, skipping blank values."""
    groups: "OrderedDict[str, list[str]]" = OrderedDict()
    for page in pages:
        value = key(page)
        if not value.strip():
            continue
        groups.setdefault(value, []).append(page.url)
    return groups


def _duplicate_issues(
    pages: PageSet,
    key: Callable[[Page], str],
    rule: str,
    label: str,
    recommendation: str,
) -> list[Issue]:
    issues: list[Issue] = []
    for value, urls in _group_by(pages, key).items():
        if len(urls) < 2:
            continue
        issues.append(
            Issue(
                severity=Severity.HIGH,
                rule=rule,
                message=f"{len(urls)} pages share the {label} {value!r}",
                recommendation=recommendation,
                affected_urls=tuple(urls[:MAX_LISTED_URLS]),
            )
        )
    return issues


def _broken_link_issue(pages: PageSet) -> list[Issue]:
    broken = {f.url: f for f in pages.failed}
    if not broken:
        return []

    targets: list[str] = []
    for page in pages:
        for link in page.links:
            try:
                target = normalise_url(link.href)
            except ValueError:
                continue
            if target in broken and target not in targets:
                targets.append(target)
    if not targets:
        return []

    return [
        Issue(
            severity=Severity.HIGH,
            rule="broken_internal_links",
            message=f"{len(targets)} internal link target(s) could not be fetched",
            recommendation="Fix or remove internal links that return errors.",
            affected_urls=tuple(targets[:MAX_LISTED_URLS]),
        )
    ]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def analyze(pages: PageSet) -> IssueSet:
    """Return site-wide issues for *pages*.

    One issue is emitted per duplicate group (not per page).

    Raises:
        InsufficientData: If *pages* is empty.
    """
    if not pages.pages:
        raise InsufficientData("Cannot run site-wide analysis on an empty page set")

    issues: list[Issue] = []
    issues += _duplicate_issues(
        pages,
        key=lambda p: p.title,
        rule="duplicate_title",
        label="title",
        recommendation="Give every page a unique title.",
    )
    issues += _duplicate_issues(
        pages,
        key=lambda p: p.description,
        rule="duplicate_description",
        label="meta description",
        recommendation="Write a unique meta description for every page.",
    )
    issues += _broken_link_issue(pages)
    return IssueSet(issues)
