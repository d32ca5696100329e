"""Google PageSpeed Insights client: the performance-stage collaborator."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from siteaudit.config import settings
from siteaudit.errors import PerformanceError
from siteaudit.options import AuditOptions
from siteaudit.performance.models import PerformanceMeasurement, PerformanceReport

logger = logging.getLogger(__name__)

# Lighthouse audit id -> PerformanceMeasurement field
_AUDIT_FIELDS = {
    "first-contentful-paint": "first_contentful_paint_ms",
    "largest-contentful-paint": "largest_contentful_paint_ms",
    "cumulative-layout-shift": "cumulative_layout_shift",
    "total-blocking-time": "total_blocking_time_ms",
    "speed-index": "speed_index_ms",
    "interactive": "time_to_interactive_ms",
}


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _parse_measurement(strategy: str, payload: dict[str, Any]) -> PerformanceMeasurement:
    """Map a PSI v5 response body onto a :class:`PerformanceMeasurement`.

    Raises:
        PerformanceError: If the body carries no ``lighthouseResult``.
    """
    lighthouse = payload.get("lighthouseResult")
    if not isinstance(lighthouse, dict):
        raise PerformanceError(f"PageSpeed response for {strategy!r} has no lighthouseResult")

    audits = lighthouse.get("audits") or {}
    metrics: dict[str, Optional[float]] = {}
    for audit_id, field_name in _AUDIT_FIELDS.items():
        value = (audits.get(audit_id) or {}).get("numericValue")
        metrics[field_name] = float(value) if value is not None else None

    raw_score = ((lighthouse.get("categories") or {}).get("performance") or {}).get("score")
    score = round(float(raw_score) * 100) if raw_score is not None else None

    return PerformanceMeasurement(strategy=strategy, score=score, **metrics)


def _run_pagespeed(client: httpx.Client, url: str, strategy: str) -> PerformanceMeasurement:
    params: dict[str, Any] = {
        "url": url,
        "strategy": strategy,
        "category": "performance",
    }
    if settings.psi_api_key:
        params["key"] = settings.psi_api_key

    try:
        response = client.get(settings.psi_endpoint, params=params)
        response.raise_for_status()
        payload = response.json()
    except httpx.HTTPError as exc:
        raise PerformanceError(f"PageSpeed {strategy} request failed: {exc}") from exc
    except ValueError as exc:
        raise PerformanceError(f"PageSpeed {strategy} returned invalid JSON") from exc

    return _parse_measurement(strategy, payload)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def measure_performance(
    url: str,
    options: Optional[AuditOptions] = None,
    client: Optional[httpx.Client] = None,
) -> PerformanceReport:
    """Measure *url* with PageSpeed Insights.

    The ``desktop`` strategy is always measured; ``mobile`` is added when
    ``options.check_mobile`` is set.

    Raises:
        PerformanceError: Any strategy failed or returned an unusable body.
    """
    opts = options or AuditOptions()
    strategies = ["desktop", "mobile"] if opts.check_mobile else ["desktop"]

    own_client = client is None
    http = client or httpx.Client(timeout=settings.psi_timeout)
    try:
        measurements = tuple(_run_pagespeed(http, url, s) for s in strategies)
    finally:
        if own_client:
            http.close()

    logger.info("Measured performance for %s (%s)", url, ", ".join(strategies))
    return PerformanceReport(url=url, measurements=measurements)
