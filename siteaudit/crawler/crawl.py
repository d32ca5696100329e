"""Same-host breadth-first crawler.

``crawl`` is the crawl-stage collaborator used by the job manager.  It fetches
the root URL first (a failure there is fatal and raises :class:`CrawlError`),
then walks internal links level by level, fetching each batch in parallel on a
``ThreadPoolExecutor`` sized by ``options.concurrency``.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

import httpx

from siteaudit.crawler.extractor import extract_page
from siteaudit.crawler.fetcher import build_client, fetch_url
from siteaudit.crawler.models import FailedFetch, Page, PageSet
from siteaudit.errors import CrawlError
from siteaudit.options import AuditOptions

logger = logging.getLogger(__name__)

_SKIPPED_EXTENSIONS = (
    ".pdf", ".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp", ".zip",
    ".mp4", ".mp3", ".css", ".js", ".xml", ".ico",
)


# ---------------------------------------------------------------------------
# URL helpers
# ---------------------------------------------------------------------------

def normalise_url(url: str) -> str:
    """Drop the fragment and default the empty path to ``/``."""
    parts = urlsplit(url.strip())
    path = parts.path or "/"
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, parts.query, ""))


def is_internal(url: str, host: str) -> bool:
    parts = urlsplit(url)
    return parts.scheme in ("http", "https") and parts.netloc.lower() == host


def _is_crawlable(url: str) -> bool:
    return not urlsplit(url).path.lower().endswith(_SKIPPED_EXTENSIONS)


# ---------------------------------------------------------------------------
# Fetch one
# ---------------------------------------------------------------------------

def _fetch_page(
    client: httpx.Client,
    url: str,
    include_images: bool,
) -> Page | FailedFetch | None:
    """Fetch and extract *url*.

    Returns ``None`` for non-HTML responses, which are silently skipped.
    """
    try:
        raw = fetch_url(url, client)
    except httpx.HTTPStatusError as exc:
        return FailedFetch(
            url=url,
            status_code=exc.response.status_code,
            reason=f"HTTP {exc.response.status_code}",
        )
    except httpx.HTTPError as exc:
        return FailedFetch(url=url, status_code=None, reason=str(exc) or type(exc).__name__)

    if raw.content_type and "html" not in raw.content_type.lower():
        return None
    try:
        return extract_page(raw, include_images=include_images)
    except ValueError as exc:
        logger.warning("Could not extract %s: %s", url, exc)
        return FailedFetch(url=url, status_code=raw.status_code, reason=f"Unparseable page: {exc}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def crawl(
    url: str,
    options: Optional[AuditOptions] = None,
    client: Optional[httpx.Client] = None,
) -> PageSet:
    """Crawl *url* and its same-host links into a :class:`PageSet`.

    Args:
        url: Root URL.
        options: Audit options (``max_pages``, ``include_images``,
            ``concurrency``).  Defaults apply when omitted.
        client: Optional pre-built ``httpx.Client`` (tests inject one).

    The crawl stays on the host the root URL finally redirects to.

    Raises:
        CrawlError: The root URL could not be fetched or is not HTML.  A
            partial result is never returned in that case.
    """
    opts = options or AuditOptions()
    requested = normalise_url(url)

    own_client = client is None
    http = client or build_client()
    try:
        first = _fetch_page(http, requested, opts.include_images)
        if isinstance(first, FailedFetch):
            raise CrawlError(f"Could not fetch {requested}: {first.reason}")
        if first is None:
            raise CrawlError(f"{requested} did not return an HTML document")

        # The crawl scope is the host the root finally resolved to.
        root = normalise_url(first.url)
        host = urlsplit(root).netloc

        pages: list[Page] = [first]
        failed: list[FailedFetch] = []
        seen: set[str] = {requested, root}
        crawled: set[str] = {root}
        frontier = _discover(first, host, seen)

        with ThreadPoolExecutor(
            max_workers=opts.concurrency, thread_name_prefix="crawl"
        ) as pool:
            while frontier and len(pages) < opts.max_pages:
                batch = frontier[: opts.max_pages - len(pages)]
                frontier = frontier[len(batch):]
                results = list(
                    pool.map(lambda u: _fetch_page(http, u, opts.include_images), batch)
                )
                for result in results:
                    if isinstance(result, FailedFetch):
                        failed.append(result)
                    elif result is not None:
                        # Redirects can leave the host or land on a crawled page.
                        final = normalise_url(result.url)
                        if final in crawled or not is_internal(final, host):
                            continue
                        crawled.add(final)
                        pages.append(result)
                        frontier.extend(_discover(result, host, seen))

        logger.info(
            "Crawled %s: %d page(s), %d failed fetch(es)", root, len(pages), len(failed)
        )
        return PageSet(root_url=root, pages=tuple(pages), failed=tuple(failed))

    except httpx.HTTPError as exc:
        raise CrawlError(f"Crawl of {requested} failed: {exc}") from exc

    finally:
        if own_client:
            http.close()


def _discover(page: Page, host: str, seen: set[str]) -> list[str]:
    """Return unseen internal URLs linked from *page*, marking them seen.

    Links that do not parse as URLs are skipped.
    """
    found: list[str] = []
    for link in page.links:
        try:
            target = normalise_url(link.href)
        except ValueError:
            continue
        if target in seen or not is_internal(target, host) or not _is_crawlable(target):
            continue
        seen.add(target)
        found.append(target)
    return found
