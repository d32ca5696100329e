"""Per-audit options shared by the job manager and the stage collaborators."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from siteaudit.config import settings
from siteaudit.errors import InvalidInput

MAX_PAGES_LIMIT = 500
CONCURRENCY_LIMIT = 16


@dataclass(frozen=True)
class AuditOptions:
    """Immutable once a job has been created."""

    max_pages: int = field(default_factory=lambda: settings.default_max_pages)
    include_images: bool = True
    check_mobile: bool = True
    concurrency: int = field(default_factory=lambda: settings.default_concurrency)

    def __post_init__(self) -> None:
        if not 1 <= self.max_pages <= MAX_PAGES_LIMIT:
            raise InvalidInput(f"max_pages must be between 1 and {MAX_PAGES_LIMIT}")
        if not 1 <= self.concurrency <= CONCURRENCY_LIMIT:
            raise InvalidInput(f"concurrency must be between 1 and {CONCURRENCY_LIMIT}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "AuditOptions":
        """Build options from a loose mapping, ignoring unknown keys."""
        data = data or {}
        fields = ("max_pages", "include_images", "check_mobile", "concurrency")
        known = {k: data[k] for k in fields if data.get(k) is not None}
        try:
            return cls(**known)
        except TypeError as exc:
            raise InvalidInput(str(exc)) from exc
