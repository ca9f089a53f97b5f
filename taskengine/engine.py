"""Public entry points over in-memory snapshots.

The surrounding application fetches records, calls these functions and
persists any returned patch. Nothing here performs I/O.
"""

import logging
from datetime import datetime
from typing import Optional

from taskengine.analytics import PerformanceCalculator, TimeAnalytics
from taskengine.app.models.analytics import PerformanceMetrics, ReportingPeriod
from taskengine.app.models.common import CompletionTrend, SessionAction, TaskStatus
from taskengine.app.models.results import ErrorKind, MutationResult
from taskengine.app.models.task import Task
from taskengine.orchestrator.critical_path import analyze_critical_path
from taskengine.orchestrator.state_machine import TaskStateMachine
from taskengine.orchestrator.work_sessions import WorkSessionAggregator

logger = logging.getLogger(__name__)

_state_machine = TaskStateMachine()
_sessions = WorkSessionAggregator()


def validate_transition(
    task: Task,
    from_status: TaskStatus,
    to_status: TaskStatus,
    actor_id: str,
    team_leader_id: str,
    *,
    proof_url: Optional[str] = None,
    rejection_reason: Optional[str] = None,
    new_assignee_id: Optional[str] = None,
    team_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> MutationResult:
    """Validate a status transition and build the patch that applies it."""
    return _state_machine.validate_transition(
        task,
        from_status,
        to_status,
        actor_id,
        team_leader_id,
        proof_url=proof_url,
        rejection_reason=rejection_reason,
        new_assignee_id=new_assignee_id,
        team_id=team_id,
        now=now,
    )


def transition_task(
    tasks: list[Task],
    task_id: str,
    from_status: TaskStatus,
    to_status: TaskStatus,
    actor_id: str,
    team_leader_id: str,
    **kwargs,
) -> MutationResult:
    """Like validate_transition, but looks the task up in a snapshot first."""
    task = next((t for t in tasks if t.id == task_id), None)
    if task is None:
        logger.info(f"Transition requested for unknown task {task_id}")
        return MutationResult.fail(ErrorKind.NOT_FOUND, f"Task {task_id} not found")
    return validate_transition(task, from_status, to_status, actor_id, team_leader_id, **kwargs)


def apply_work_session(
    task: Task,
    action: SessionAction,
    user_id: str,
    session_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> MutationResult:
    """Start or end a work session on a task."""
    return _sessions.apply(task, action, user_id, session_id=session_id, now=now)


def compute_performance_metrics(
    user_id: str, tasks: list[Task], period: ReportingPeriod
) -> PerformanceMetrics:
    """Completion metrics for one user."""
    return PerformanceCalculator().calculate(user_id, tasks, period)


def estimate_completion_time(task: Task, historical_tasks: list[Task]) -> float:
    """Predicted duration of ``task`` in seconds."""
    return TimeAnalytics(historical_tasks).estimate_completion_time(task)


def compute_trend(tasks: list[Task]) -> CompletionTrend:
    """Direction of recent completion times."""
    return TimeAnalytics(tasks).get_completion_trend()


__all__ = [
    "validate_transition",
    "transition_task",
    "apply_work_session",
    "analyze_critical_path",
    "compute_performance_metrics",
    "estimate_completion_time",
    "compute_trend",
]
