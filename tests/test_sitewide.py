"""Tests for cross-page checks (siteaudit.seo.sitewide) and evaluate_seo."""

from __future__ import annotations

import pytest

from siteaudit.crawler.models import FailedFetch, Link, Page, PageSet
from siteaudit.errors import InsufficientData
from siteaudit.seo import evaluate_seo
from siteaudit.seo.models import Severity
from siteaudit.seo.sitewide import MAX_LISTED_URLS, analyze


def _page(path: str, title: str = "", description: str = "", links: tuple = ()) -> Page:
    return Page(
        url=f"https://example.com{path}",
        title=title or f"Title for {path}",
        description=description or f"Description for {path}",
        links=links,
    )


# ---------------------------------------------------------------------------
# Duplicates
# ---------------------------------------------------------------------------

class TestDuplicateTitles:
    def test_one_issue_per_group_listing_both_urls(self) -> None:
        pages = PageSet(
            root_url="https://example.com/",
            pages=(_page("/", title="Home"), _page("/about", title="Home"), _page("/blog")),
        )
        issues = analyze(pages).by_rule("duplicate_title")

        assert len(issues) == 1
        assert issues[0].severity is Severity.HIGH
        assert issues[0].page_url is None
        assert issues[0].affected_urls == ("https://example.com/", "https://example.com/about")
        assert "2 pages" in issues[0].message

    def test_case_sensitive_exact_match(self) -> None:
        pages = PageSet(
            root_url="https://example.com/",
            pages=(_page("/", title="Home"), _page("/about", title="home")),
        )
        assert analyze(pages).by_rule("duplicate_title") == []

    def test_blank_titles_not_grouped(self) -> None:
        pages = PageSet(
            root_url="https://example.com/",
            pages=(
                Page(url="https://example.com/", description="a"),
                Page(url="https://example.com/x", description="b"),
            ),
        )
        assert analyze(pages).by_rule("duplicate_title") == []

    def test_affected_urls_capped(self) -> None:
        pages = PageSet(
            root_url="https://example.com/",
            pages=tuple(_page(f"/p{i}", title="Same") for i in range(8)),
        )
        (issue,) = analyze(pages).by_rule("duplicate_title")
        assert len(issue.affected_urls) == MAX_LISTED_URLS
        assert "8 pages" in issue.message


class TestDuplicateDescriptions:
    def test_shared_description_flagged(self) -> None:
        pages = PageSet(
            root_url="https://example.com/",
            pages=(_page("/", description="Same"), _page("/a", description="Same")),
        )
        issues = analyze(pages)
        assert [i.rule for i in issues] == ["duplicate_description"]


# ---------------------------------------------------------------------------
# Broken links
# ---------------------------------------------------------------------------

class TestBrokenLinks:
    def test_links_to_failed_fetches_reported(self) -> None:
        home = _page("/", links=(Link("https://example.com/gone", "Gone"),))
        pages = PageSet(
            root_url="https://example.com/",
            pages=(home,),
            failed=(FailedFetch("https://example.com/gone", 404, "HTTP 404"),),
        )
        (issue,) = analyze(pages).by_rule("broken_internal_links")
        assert issue.severity is Severity.HIGH
        assert issue.affected_urls == ("https://example.com/gone",)

    def test_no_failures_no_issue(self) -> None:
        pages = PageSet(root_url="https://example.com/", pages=(_page("/"),))
        assert analyze(pages) == ()


# ---------------------------------------------------------------------------
# Empty input
# ---------------------------------------------------------------------------

class TestEmpty:
    def test_analyze_rejects_empty(self) -> None:
        with pytest.raises(InsufficientData):
            analyze(PageSet(root_url="https://example.com/"))

    def test_evaluate_seo_rejects_empty(self) -> None:
        with pytest.raises(InsufficientData):
            evaluate_seo(PageSet(root_url="https://example.com/"))


class TestEvaluateSeo:
    def test_page_issues_precede_site_issues(self) -> None:
        pages = PageSet(
            root_url="https://example.com/",
            pages=(_page("/", title="Home"), _page("/about", title="Home")),
        )
        issues = evaluate_seo(pages)
        rules = [i.rule for i in issues]
        assert rules[-1] == "duplicate_title"
        assert all(i.page_url for i in issues[:-1])
