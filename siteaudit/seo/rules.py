"""Per-page rule evaluator.

The rule table is a fixed, ordered tuple of :class:`Rule`.  Each rule owns a
stable id, a default severity and a check function over a :class:`Page`.  A
check returns ``None`` when the page passes, or a ``(message,
recommendation)`` pair when it does not.

``evaluate`` is pure: the same page and the same ``RULE_TABLE_VERSION`` always
yield the same :class:`IssueSet`.  Bump the version whenever a rule is added,
removed or changes severity.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import parse_qsl, urlsplit

from siteaudit.crawler.models import Page
from siteaudit.seo.models import Issue, IssueSet, Severity

RULE_TABLE_VERSION = "1.0"

TITLE_MAX_LENGTH = 60
DESCRIPTION_MAX_LENGTH = 160
PATH_SEGMENT_MAX_LENGTH = 50

# Query parameters that identify content rather than filter/track it.
CONTENT_QUERY_PARAMS = frozenset(
    {"id", "p", "page_id", "pid", "cat", "category", "product", "item", "article", "post"}
)

Finding = Optional[tuple[str, str]]


@dataclass(frozen=True)
class Rule:
    id: str
    severity: Severity
    check: Callable[[Page], Finding]


# ---------------------------------------------------------------------------
# Content checks
# ---------------------------------------------------------------------------

def _title_missing(page: Page) -> Finding:
    if page.title.strip():
        return None
    return (
        "Page has no title tag",
        "Add a unique, descriptive <title> of 50-60 characters.",
    )


def _title_too_long(page: Page) -> Finding:
    title = page.title.strip()
    if not title or len(title) <= TITLE_MAX_LENGTH:
        return None
    return (
        f"Title is {len(title)} characters (max {TITLE_MAX_LENGTH})",
        "Shorten the title so it is not truncated in search results.",
    )


def _description_missing(page: Page) -> Finding:
    if page.description.strip():
        return None
    return (
        "Page has no meta description",
        "Add a meta description of 120-160 characters summarising the page.",
    )


def _description_too_long(page: Page) -> Finding:
    description = page.description.strip()
    if not description or len(description) <= DESCRIPTION_MAX_LENGTH:
        return None
    return (
        f"Meta description is {len(description)} characters (max {DESCRIPTION_MAX_LENGTH})",
        "Trim the meta description to 160 characters or fewer.",
    )


def _h1_missing(page: Page) -> Finding:
    if page.h1s:
        return None
    return (
        "Page has no H1 heading",
        "Add a single H1 that states the page topic.",
    )


def _h1_multiple(page: Page) -> Finding:
    count = len(page.h1s)
    if count <= 1:
        return None
    return (
        f"Page has {count} H1 headings",
        "Keep one H1 per page and demote the others to H2.",
    )


def _image_alt_missing(page: Page) -> Finding:
    offending = [img for img in page.images if not (img.alt or "").strip()]
    if not offending:
        return None
    return (
        f"{len(offending)} of {len(page.images)} image(s) have no alt text",
        "Describe each meaningful image in its alt attribute.",
    )


def _canonical_missing(page: Page) -> Finding:
    if page.canonical_url:
        return None
    return (
        "Page has no canonical URL",
        'Add <link rel="canonical"> pointing at the preferred URL.',
    )


def _structured_data_missing(page: Page) -> Finding:
    if page.schema_markup:
        return None
    return (
        "Page has no structured data markup",
        "Add JSON-LD structured data (e.g. Organization, Article, Product).",
    )


# ---------------------------------------------------------------------------
# URL-structure checks
#
# A URL that cannot be parsed yields no finding.
# ---------------------------------------------------------------------------

def _split(url: str):
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return parts


def _url_underscore(page: Page) -> Finding:
    parts = _split(page.url)
    if parts is None or "_" not in parts.path:
        return None
    return (
        "URL path contains underscores",
        "Use hyphens instead of underscores to separate words in URLs.",
    )


def _url_encoded_space(page: Page) -> Finding:
    parts = _split(page.url)
    if parts is None:
        return None
    if "%20" not in parts.path.lower() and "+" not in parts.path:
        return None
    return (
        "URL path contains encoded spaces",
        "Replace spaces in URLs with hyphens.",
    )


def _url_content_query(page: Page) -> Finding:
    parts = _split(page.url)
    if parts is None or not parts.query:
        return None
    try:
        params = {k.lower() for k, _ in parse_qsl(parts.query, keep_blank_values=True)}
    except ValueError:
        return None
    found = sorted(params & CONTENT_QUERY_PARAMS)
    if not found:
        return None
    return (
        f"URL identifies content via query parameters: {', '.join(found)}",
        "Serve content from descriptive path-based URLs instead of query strings.",
    )


def _url_long_segment(page: Page) -> Finding:
    parts = _split(page.url)
    if parts is None:
        return None
    longest = max((len(s) for s in parts.path.split("/")), default=0)
    if longest <= PATH_SEGMENT_MAX_LENGTH:
        return None
    return (
        f"URL path segment is {longest} characters (max {PATH_SEGMENT_MAX_LENGTH})",
        "Shorten long URL segments to a few descriptive words.",
    )


_UPPER = re.compile(r"[A-Z]")


def _url_uppercase(page: Page) -> Finding:
    parts = _split(page.url)
    if parts is None or not _UPPER.search(parts.path):
        return None
    return (
        "URL path contains uppercase letters",
        "Use lowercase URLs and redirect mixed-case variants.",
    )


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------

RULES: tuple[Rule, ...] = (
    Rule("title_missing", Severity.CRITICAL, _title_missing),
    Rule("title_too_long", Severity.HIGH, _title_too_long),
    Rule("description_missing", Severity.CRITICAL, _description_missing),
    Rule("description_too_long", Severity.MEDIUM, _description_too_long),
    Rule("h1_missing", Severity.HIGH, _h1_missing),
    Rule("h1_multiple", Severity.MEDIUM, _h1_multiple),
    Rule("image_alt_missing", Severity.MEDIUM, _image_alt_missing),
    Rule("canonical_missing", Severity.MEDIUM, _canonical_missing),
    Rule("structured_data_missing", Severity.LOW, _structured_data_missing),
    Rule("url_underscore", Severity.LOW, _url_underscore),
    Rule("url_encoded_space", Severity.LOW, _url_encoded_space),
    Rule("url_content_query", Severity.LOW, _url_content_query),
    Rule("url_long_segment", Severity.LOW, _url_long_segment),
    Rule("url_uppercase", Severity.LOW, _url_uppercase),
)


def _check_unique_ids(rules: tuple[Rule, ...]) -> None:
    ids = [r.id for r in rules]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ValueError(f"Duplicate rule ids in rule table: {duplicates}")


_check_unique_ids(RULES)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def evaluate(page: Page, rules: tuple[Rule, ...] = RULES) -> IssueSet:
    """Run every rule in *rules* against *page*, in table order."""
    issues: list[Issue] = []
    for rule in rules:
        finding = rule.check(page)
        if finding is None:
            continue
        message, recommendation = finding
        issues.append(
            Issue(
                severity=rule.severity,
                rule=rule.id,
                message=message,
                recommendation=recommendation,
                page_url=page.url,
            )
        )
    return IssueSet(issues)
