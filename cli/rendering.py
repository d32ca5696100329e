"""Plain-text rendering of job status and audit reports for the CLI."""

from __future__ import annotations

from typing import List

from siteaudit.jobs import JobStatus
from siteaudit.seo import AuditReport, Severity


def render_status(status: JobStatus) -> str:
    lines: List[str] = [
        f"Audit   : {status.job_id}",
        f"URL     : {status.url}",
        f"State   : {status.state.value}",
        f"Updated : {status.updated_at.strftime('%Y-%m-%d %H:%M:%S')} UTC",
        "Stages  :",
    ]
    for name, stage in status.stage_status.items():
        line = f"  {name.value:<12} {stage.state.value}"
        if stage.error:
            line += f"  ({stage.error})"
        lines.append(line)
    return "\n".join(lines)


def render_report(report: AuditReport) -> str:
    """Render *report* as an indented text block."""
    lines: List[str] = []
    score = "n/a" if report.overall_score is None else f"{report.overall_score}/100"
    lines.append(f"Overall score : {score}")
    lines.append(f"Pages         : {report.pages_analyzed}")

    for warning in report.warnings:
        lines.append(f"⚠️  {warning.stage} data missing: {warning.message}")

    if report.page_scores:
        lines.append("")
        lines.append("Page scores:")
        for url, page_score in sorted(report.page_scores.items(), key=lambda kv: kv[1]):
            lines.append(f"  {page_score:>3}  {url}")

    counts = ", ".join(
        f"{sev.value}={len(report.issues_by_severity.get(sev, ()))}"
        for sev in Severity.ordered()
    )
    lines.append("")
    lines.append(f"Issues: {counts}")

    if report.action_plan:
        lines.append("")
        lines.append("Action plan:")
        for item in report.action_plan:
            lines.append(
                f"  {item.priority}. {item.title}  "
                f"[effort {item.estimated_effort}, impact {item.impact}]"
            )
            for issue in item.sample_issues:
                where = issue.page_url or ", ".join(issue.affected_urls)
                lines.append(f"     - {issue.rule}: {issue.message}  <{where}>")

    if report.performance:
        lines.append("")
        lines.append("Performance:")
        for m in report.performance.measurements:
            lcp = "n/a" if m.largest_contentful_paint_ms is None else f"{m.largest_contentful_paint_ms:.0f}ms"
            perf = "n/a" if m.score is None else str(m.score)
            lines.append(f"  {m.strategy:<8} score={perf}  LCP={lcp}")

    return "\n".join(lines)
