"""Data models for the performance stage."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class PerformanceMeasurement:
    """Lab metrics for one PageSpeed strategy.

    Every metric is optional: ``None`` means the tool did not report it.
    """

    strategy: str
    score: Optional[int] = None
    first_contentful_paint_ms: Optional[float] = None
    largest_contentful_paint_ms: Optional[float] = None
    cumulative_layout_shift: Optional[float] = None
    total_blocking_time_ms: Optional[float] = None
    speed_index_ms: Optional[float] = None
    time_to_interactive_ms: Optional[float] = None


@dataclass(frozen=True)
class PerformanceReport:
    url: str
    measurements: tuple[PerformanceMeasurement, ...] = ()

    def for_strategy(self, strategy: str) -> Optional[PerformanceMeasurement]:
        for m in self.measurements:
            if m.strategy == strategy:
                return m
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "measurements": [asdict(m) for m in self.measurements],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PerformanceReport":
        return cls(
            url=data["url"],
            measurements=tuple(
                PerformanceMeasurement(**m) for m in data.get("measurements") or []
            ),
        )
