"""Performance, velocity and time analytics."""

from taskengine.analytics.performance import PerformanceCalculator
from taskengine.analytics.team import TeamAnalyticsCalculator
from taskengine.analytics.time_analytics import TimeAnalytics, linear_trend
from taskengine.analytics.velocity import VelocityCalculator, burndown

__all__ = [
    "PerformanceCalculator",
    "TeamAnalyticsCalculator",
    "TimeAnalytics",
    "linear_trend",
    "VelocityCalculator",
    "burndown",
]
