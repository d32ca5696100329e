"""HTTP fetcher for the crawler."""

from __future__ import annotations

import time
from typing import Optional

import httpx

from siteaudit.config import settings
from siteaudit.crawler.models import RawPage


def build_client() -> httpx.Client:
    """Return an ``httpx.Client`` configured from ``settings``.

    The crawler shares one client across every fetch of a crawl so that
    connections are pooled per host.
    """
    return httpx.Client(
        headers={"User-Agent": settings.user_agent},
        timeout=settings.request_timeout,
        follow_redirects=True,
    )


def fetch_url(url: str, client: Optional[httpx.Client] = None) -> RawPage:
    """Fetch *url* and return a :class:`RawPage`.

    ``RawPage.url`` is the final URL after redirects.

    Args:
        url: Absolute URL to fetch.
        client: Shared client.  A short-lived one is created when omitted.

    Raises:
        httpx.HTTPStatusError: If the server returns a 4xx/5xx status code.
        httpx.HTTPError: On timeouts and transport failures.
    """
    if client is None:
        with build_client() as own_client:
            return fetch_url(url, own_client)

    started = time.perf_counter()
    response = client.get(url)
    elapsed_ms = (time.perf_counter() - started) * 1000.0
    response.raise_for_status()

    return RawPage(
        url=str(response.url),
        html=response.text,
        status_code=response.status_code,
        elapsed_ms=elapsed_ms,
        content_type=response.headers.get("content-type", ""),
    )
