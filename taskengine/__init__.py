"""Task scheduling and analytics engine."""

from taskengine.engine import (
    analyze_critical_path,
    apply_work_session,
    compute_performance_metrics,
    compute_trend,
    estimate_completion_time,
    transition_task,
    validate_transition,
)

__all__ = [
    "analyze_critical_path",
    "apply_work_session",
    "compute_performance_metrics",
    "compute_trend",
    "estimate_completion_time",
    "transition_task",
    "validate_transition",
]
