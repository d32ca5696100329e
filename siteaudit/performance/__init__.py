"""Performance package: PageSpeed Insights measurement."""

from siteaudit.performance.client import measure_performance
from siteaudit.performance.models import PerformanceMeasurement, PerformanceReport

__all__ = ["measure_performance", "PerformanceMeasurement", "PerformanceReport"]
