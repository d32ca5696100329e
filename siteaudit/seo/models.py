"""Issue and report models produced by the SEO engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Sequence

from siteaudit.performance.models import PerformanceReport


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Higher is more severe."""
        return _RANKS[self]

    @classmethod
    def ordered(cls) -> list["Severity"]:
        """All severities, most severe first."""
        return sorted(cls, key=lambda s: s.rank, reverse=True)


_RANKS = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}


@dataclass(frozen=True)
class Issue:
    severity: Severity
    rule: str
    message: str
    recommendation: str
    page_url: Optional[str] = None
    affected_urls: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity.value,
            "rule": self.rule,
            "message": self.message,
            "recommendation": self.recommendation,
            "page_url": self.page_url,
            "affected_urls": list(self.affected_urls),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Issue":
        return cls(
            severity=Severity(data["severity"]),
            rule=data["rule"],
            message=data["message"],
            recommendation=data["recommendation"],
            page_url=data.get("page_url"),
            affected_urls=tuple(data.get("affected_urls") or ()),
        )


class IssueSet(tuple):
    """Ordered, duplicate-free collection of :class:`Issue`.

    Order is first-encountered; action-plan sampling depends on it.
    """

    def __new__(cls, issues: Sequence[Issue] = ()) -> "IssueSet":
        seen: set[Issue] = set()
        unique: list[Issue] = []
        for issue in issues:
            if issue not in seen:
                seen.add(issue)
                unique.append(issue)
        return super().__new__(cls, unique)

    def __add__(self, other: Sequence[Issue]) -> "IssueSet":  # type: ignore[override]
        return IssueSet(list(self) + list(other))

    def by_rule(self, rule: str) -> list[Issue]:
        return [i for i in self if i.rule == rule]


@dataclass(frozen=True)
class ActionItem:
    priority: int
    severity: Severity
    title: str
    description: str
    estimated_effort: str
    impact: str
    issue_count: int
    sample_issues: tuple[Issue, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "priority": self.priority,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "estimated_effort": self.estimated_effort,
            "impact": self.impact,
            "issue_count": self.issue_count,
            "sample_issues": [i.to_dict() for i in self.sample_issues],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActionItem":
        return cls(
            priority=data["priority"],
            severity=Severity(data["severity"]),
            title=data["title"],
            description=data["description"],
            estimated_effort=data["estimated_effort"],
            impact=data["impact"],
            issue_count=data["issue_count"],
            sample_issues=tuple(Issue.from_dict(i) for i in data["sample_issues"]),
        )


@dataclass(frozen=True)
class StageWarning:
    """A stage whose data is missing from the report."""

    stage: str
    message: str


@dataclass(frozen=True)
class AuditReport:
    """Aggregated audit result.

    ``overall_score`` is ``None`` (and the score fields empty) when the SEO
    stage did not succeed; ``performance`` is ``None`` when the performance
    stage did not succeed.  Either way ``warnings`` names the missing stage.
    """

    overall_score: Optional[int]
    page_scores: dict[str, int] = field(default_factory=dict)
    issues_by_severity: dict[Severity, tuple[Issue, ...]] = field(
        default_factory=lambda: {s: () for s in Severity.ordered()}
    )
    action_plan: tuple[ActionItem, ...] = ()
    pages_analyzed: int = 0
    performance: Optional[PerformanceReport] = None
    warnings: tuple[StageWarning, ...] = ()

    @property
    def missing_stages(self) -> list[str]:
        return [w.stage for w in self.warnings]

    @property
    def issue_count(self) -> int:
        return sum(len(bucket) for bucket in self.issues_by_severity.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall_score": self.overall_score,
            "page_scores": dict(self.page_scores),
            "issues_by_severity": {
                sev.value: [i.to_dict() for i in self.issues_by_severity.get(sev, ())]
                for sev in Severity.ordered()
            },
            "action_plan": [a.to_dict() for a in self.action_plan],
            "pages_analyzed": self.pages_analyzed,
            "performance": self.performance.to_dict() if self.performance else None,
            "warnings": [{"stage": w.stage, "message": w.message} for w in self.warnings],
            "missing_stages": self.missing_stages,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuditReport":
        buckets = data.get("issues_by_severity") or {}
        perf = data.get("performance")
        return cls(
            overall_score=data.get("overall_score"),
            page_scores=dict(data.get("page_scores") or {}),
            issues_by_severity={
                sev: tuple(Issue.from_dict(i) for i in buckets.get(sev.value, []))
                for sev in Severity.ordered()
            },
            action_plan=tuple(ActionItem.from_dict(a) for a in data.get("action_plan") or []),
            pages_analyzed=data.get("pages_analyzed", 0),
            performance=PerformanceReport.from_dict(perf) if perf else None,
            warnings=tuple(
                StageWarning(stage=w["stage"], message=w["message"])
                for w in data.get("warnings") or []
            ),
        )
