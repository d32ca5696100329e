"""Metadata extraction: turns a :class:`RawPage` into a :class:`Page`."""

from __future__ import annotations

import json
from typing import Any, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from siteaudit.crawler.models import Heading, Image, Link, Page, RawPage


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _absolute(base_url: str, href: str) -> Optional[str]:
    """Resolve *href* against *base_url*; ``None`` if it cannot be parsed."""
    try:
        return urljoin(base_url, href)
    except ValueError:
        return None


def _extract_title(soup: BeautifulSoup) -> str:
    """Return the text content of the first ``<title>`` tag, or empty string."""
    tag = soup.find("title")
    if tag is None:
        return ""
    return tag.get_text(strip=True)


def _extract_description(soup: BeautifulSoup) -> str:
    tag = soup.find("meta", attrs={"name": lambda v: v and v.lower() == "description"})
    if tag is None:
        return ""
    return (tag.get("content") or "").strip()


def _extract_headings(soup: BeautifulSoup) -> List[Heading]:
    """Return h1–h6 headings in document order."""
    return [
        Heading(level=int(tag.name[1]), text=tag.get_text(" ", strip=True))
        for tag in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"])
    ]


def _extract_images(soup: BeautifulSoup, base_url: str) -> List[Image]:
    images: List[Image] = []
    for tag in soup.find_all("img"):
        src = (tag.get("src") or "").strip()
        resolved = _absolute(base_url, src) if src else ""
        if resolved is None:
            continue
        images.append(Image(src=resolved, alt=tag.get("alt")))
    return images


def _extract_links(soup: BeautifulSoup, base_url: str) -> List[Link]:
    """Return absolute links from ``<a>`` tags.

    Fragment-only links (``#anchor``), empty hrefs, hrefs that do not parse
    as URLs and non-navigational schemes (``mailto:``, ``javascript:``,
    ``tel:``) are excluded.
    """
    links: List[Link] = []
    for tag in soup.find_all("a", href=True):
        href = tag["href"].strip()
        if not href or href.startswith("#"):
            continue
        if href.lower().startswith(("mailto:", "javascript:", "tel:")):
            continue
        resolved = _absolute(base_url, href)
        if resolved is None:
            continue
        links.append(Link(href=resolved, text=tag.get_text(" ", strip=True)))
    return links


def _extract_canonical(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    for tag in soup.find_all("link", href=True):
        rel = tag.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        if "canonical" in [r.lower() for r in rel]:
            href = tag["href"].strip()
            return _absolute(base_url, href) if href else None
    return None


def _extract_schema(soup: BeautifulSoup) -> List[dict[str, Any]]:
    """Collect JSON-LD blocks and microdata ``itemtype`` declarations.

    JSON-LD that fails to parse is skipped.
    """
    blocks: List[dict[str, Any]] = []
    for tag in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = tag.string or tag.get_text()
        if not raw or not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            continue
        items = data if isinstance(data, list) else [data]
        blocks.extend({"format": "json-ld", "data": item} for item in items)

    for tag in soup.find_all(attrs={"itemtype": True}):
        blocks.append({"format": "microdata", "type": tag["itemtype"]})
    return blocks


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_page(raw: RawPage, include_images: bool = True) -> Page:
    """Extract SEO-relevant metadata from *raw*.

    Args:
        raw: The fetched page.
        include_images: When ``False`` the page is reported with no images,
            so image checks are skipped for it.
    """
    soup = BeautifulSoup(raw.html, "html.parser")

    return Page(
        url=raw.url,
        title=_extract_title(soup),
        description=_extract_description(soup),
        headings=tuple(_extract_headings(soup)),
        images=tuple(_extract_images(soup, raw.url)) if include_images else (),
        links=tuple(_extract_links(soup, raw.url)),
        canonical_url=_extract_canonical(soup, raw.url),
        schema_markup=tuple(_extract_schema(soup)),
        load_time_ms=round(raw.elapsed_ms, 1),
        status_code=raw.status_code,
    )
