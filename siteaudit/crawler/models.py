"""Data models for the crawl pipeline.

Everything downstream of the fetcher is frozen: a :class:`PageSet` is shared
read-only between the rule evaluator, the site-wide analyzer and the scoring
engine without any locking.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class RawPage:
    """The raw HTTP response for a single URL fetch."""

    url: str
    html: str
    status_code: int
    elapsed_ms: float = 0.0
    content_type: str = "text/html"


@dataclass(frozen=True)
class Heading:
    level: int
    text: str


@dataclass(frozen=True)
class Image:
    src: str
    # ``None`` when the attribute is absent, ``""`` when present but empty.
    alt: Optional[str]


@dataclass(frozen=True)
class Link:
    href: str
    text: str


@dataclass(frozen=True)
class Page:
    """Metadata extracted from one crawled page."""

    url: str
    title: str = ""
    description: str = ""
    headings: tuple[Heading, ...] = ()
    images: tuple[Image, ...] = ()
    links: tuple[Link, ...] = ()
    canonical_url: Optional[str] = None
    schema_markup: tuple[dict[str, Any], ...] = ()
    load_time_ms: float = 0.0
    status_code: int = 200

    @property
    def h1s(self) -> list[str]:
        return [h.text for h in self.headings if h.level == 1]


@dataclass(frozen=True)
class FailedFetch:
    """An internal URL the crawler tried and could not fetch."""

    url: str
    status_code: Optional[int]
    reason: str


@dataclass(frozen=True)
class PageSet:
    """Ordered, immutable snapshot of one crawl."""

    root_url: str
    pages: tuple[Page, ...] = ()
    failed: tuple[FailedFetch, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.pages)

    def __iter__(self):
        return iter(self.pages)

    @property
    def urls(self) -> list[str]:
        return [p.url for p in self.pages]
