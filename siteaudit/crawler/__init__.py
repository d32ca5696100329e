"""Crawler package: same-host fetch & metadata extraction."""

from siteaudit.crawler.crawl import crawl
from siteaudit.crawler.extractor import extract_page
from siteaudit.crawler.fetcher import fetch_url
from siteaudit.crawler.models import FailedFetch, Page, PageSet, RawPage

__all__ = ["crawl", "extract_page", "fetch_url", "Page", "PageSet", "FailedFetch", "RawPage"]
