"""Tests for performance, velocity and time analytics."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from taskengine import compute_performance_metrics, compute_trend, estimate_completion_time
from taskengine.analytics import (
    TeamAnalyticsCalculator,
    TimeAnalytics,
    VelocityCalculator,
    burndown,
    linear_trend,
)
from taskengine.app.config import Settings
from taskengine.app.models.analytics import ReportingPeriod
from taskengine.app.models.common import CompletionTrend, TaskPriority, TaskStatus
from taskengine.app.models.task import Task, Team
from taskengine.orchestrator.state_machine import TaskStateMachine
from taskengine.orchestrator.work_sessions import WorkSessionAggregator

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)

_counter = iter(range(1, 10_000))


def make_task(**overrides) -> Task:
    fields = dict(
        id=f"task-{next(_counter)}",
        team_id="team-1",
        title="Task",
        assigned_to_id="user-1",
    )
    fields.update(overrides)
    return Task(**fields)


def finished(finish_time: float, completed_at: datetime, **overrides) -> Task:
    return make_task(
        status=TaskStatus.COMPLETED,
        is_completed=True,
        finish_time=finish_time,
        completed_at=completed_at,
        started_at=completed_at - timedelta(seconds=finish_time),
        **overrides,
    )


# ---------------------------------------------------------------------------
# Performance metrics
# ---------------------------------------------------------------------------


def test_performance_metrics_for_user():
    period = ReportingPeriod(start=NOW - timedelta(weeks=2), end=NOW)
    tasks = [
        finished(3600, NOW - timedelta(days=3), due_date=NOW - timedelta(days=2)),
        finished(7200, NOW - timedelta(days=1), due_date=NOW - timedelta(days=5)),
        make_task(),
        finished(99999, NOW - timedelta(days=1), assigned_to_id="user-2"),
    ]

    metrics = compute_performance_metrics("user-1", tasks, period)

    assert metrics.user_id == "user-1"
    assert metrics.tasks_completed == 2
    assert metrics.total_time_spent == 10800
    assert metrics.average_task_duration == 5400
    assert metrics.on_time_completion_rate == 0.5
    assert metrics.velocity_score == pytest.approx(1.0)


def test_performance_metrics_without_completions():
    period = ReportingPeriod(start=NOW, end=NOW)

    metrics = compute_performance_metrics("user-1", [make_task()], period)

    assert metrics.tasks_completed == 0
    assert metrics.average_task_duration == 0
    assert metrics.on_time_completion_rate == 0
    assert metrics.velocity_score == 0


# ---------------------------------------------------------------------------
# Estimation
# ---------------------------------------------------------------------------


def test_single_matching_candidate_returns_its_finish_time():
    history = [finished(5400, NOW, description="abcd", priority=TaskPriority.HIGH)]
    task = make_task(description="wxyz", priority=TaskPriority.HIGH)

    assert estimate_completion_time(task, history) == 5400


def test_estimate_weights_by_description_length():
    history = [
        finished(1000, NOW, description="", priority=TaskPriority.LOW),
        finished(4000, NOW, description="x" * 100, priority=TaskPriority.LOW),
        finished(99999, NOW, description="", priority=TaskPriority.HIGH),
    ]
    task = make_task(description="", priority=TaskPriority.LOW)

    # weights 1.5 and 0.75
    assert estimate_completion_time(task, history) == pytest.approx(2000)


def test_estimate_falls_back_to_average():
    history = [
        finished(1000, NOW, priority=TaskPriority.HIGH),
        finished(3000, NOW, priority=TaskPriority.HIGH),
    ]
    task = make_task(priority=TaskPriority.LOW)

    assert estimate_completion_time(task, history) == 2000
    assert estimate_completion_time(task, []) == 0


# ---------------------------------------------------------------------------
# Trend
# ---------------------------------------------------------------------------


def test_linear_trend():
    assert linear_trend([1.0, 2.0, 3.0]) == pytest.approx(1.0)
    assert linear_trend([5.0]) == 0.0


def _series(values: list[float]) -> list[Task]:
    return [
        finished(value, NOW - timedelta(days=len(values) - i))
        for i, value in enumerate(values)
    ]


@pytest.mark.parametrize(
    "values, expected",
    [
        ([5000, 4000, 3000], CompletionTrend.IMPROVING),
        ([3000, 4000, 5000], CompletionTrend.SLOWING),
        ([3000, 3000, 3000], CompletionTrend.STABLE),
        ([3000], CompletionTrend.STABLE),
        # Only the last five completions count
        ([90000, 80000, 100, 100, 100, 100, 100], CompletionTrend.STABLE),
    ],
)
def test_completion_trend(values, expected):
    tasks = _series(values)
    # Shuffle so ordering comes from completed_at, not list position
    tasks = tasks[1::2] + tasks[0::2]

    assert compute_trend(tasks) == expected


def test_trend_thresholds_are_configurable():
    config = Settings(trend_threshold=5000)
    analytics = TimeAnalytics(_series([3000, 4000, 5000]), config=config)

    assert analytics.get_completion_trend(now=NOW) == CompletionTrend.STABLE


# ---------------------------------------------------------------------------
# Time statistics
# ---------------------------------------------------------------------------


def test_priority_statistics_and_efficiency():
    tasks = [
        finished(1000, NOW, priority=TaskPriority.HIGH),
        finished(3000, NOW, priority=TaskPriority.HIGH),
        make_task(priority=TaskPriority.HIGH, started_at=NOW),
        make_task(priority=TaskPriority.LOW, time_spent=50),
    ]
    analytics = TimeAnalytics(tasks)

    stats = analytics.priority_statistics()
    high = stats[TaskPriority.HIGH]
    assert high.task_count == 3
    assert high.completed_count == 2
    assert high.active_count == 1
    assert high.total_time == 4000
    assert high.average_time == 2000
    assert high.completion_rate == pytest.approx(2 / 3)
    assert stats[TaskPriority.MEDIUM].task_count == 0
    assert stats[TaskPriority.LOW].completion_rate == 0

    assert analytics.completion_times_by_priority == {TaskPriority.HIGH: 2000}
    assert analytics.efficiency() == 0.5


# ---------------------------------------------------------------------------
# Velocity and burndown
# ---------------------------------------------------------------------------


def test_current_velocity():
    config = Settings(project_start=NOW - timedelta(days=30), sprint_duration_days=14)
    tasks = [
        finished(100, NOW - timedelta(days=1)),
        finished(100, NOW - timedelta(days=5)),
        finished(100, NOW - timedelta(days=13)),
        make_task(completed_at=NOW - timedelta(days=2)),  # legacy record, never approved
        finished(100, NOW - timedelta(days=20)),
        make_task(),
    ]

    velocity = VelocityCalculator(config).calculate_current_velocity("team-1", tasks, now=NOW)

    assert velocity.completed_points == 3
    assert velocity.planned_points == 4
    assert velocity.completion_rate == 0.75
    assert velocity.sprint == 2
    assert velocity.start_date == NOW - timedelta(days=14)
    assert velocity.end_date == NOW


def test_worked_but_unapproved_task_lowers_velocity():
    machine = TaskStateMachine()
    sessions = WorkSessionAggregator()

    worked = make_task()
    worked = sessions.start(worked, "user-1", now=NOW - timedelta(days=3)).task
    worked = sessions.end(worked, "user-1", now=NOW - timedelta(days=3, hours=-2)).task

    done = make_task(started_at=NOW - timedelta(days=4))
    done = machine.submit_for_completion(done, "user-1", "proof.png", now=NOW - timedelta(days=2)).task
    done = machine.approve(done, "lead", "lead", now=NOW - timedelta(days=1)).task

    velocity = VelocityCalculator().calculate_current_velocity("team-1", [worked, done], now=NOW)

    assert worked.completed_at is None
    assert velocity.planned_points == 2
    assert velocity.completed_points == 1
    assert velocity.completion_rate == 0.5


def test_approval_after_window_is_not_counted_as_completed():
    task = finished(100, NOW + timedelta(days=1), last_worked_at=NOW - timedelta(days=1))

    velocity = VelocityCalculator().calculate_current_velocity("team-1", [task], now=NOW)

    assert velocity.planned_points == 1
    assert velocity.completed_points == 0


def test_naive_timestamps_in_trend_and_velocity():
    payloads = [
        {"id": f"n{i}", "teamId": "team-1", "title": "Task", "assignedToId": "user-1",
         "status": "completed", "isCompleted": True, "finishTime": value,
         "completedAt": f"2026-03-1{i}T12:00:00"}
        for i, value in enumerate([5000, 4000, 3000])
    ]
    tasks = [Task.model_validate(p) for p in payloads]
    tasks.append(make_task())

    analytics = TimeAnalytics(tasks)
    velocity = VelocityCalculator().calculate_current_velocity(
        "team-1", tasks, now=NOW.replace(tzinfo=None)
    )

    assert analytics.get_completion_trend() == CompletionTrend.IMPROVING
    assert velocity.completed_points == 3


def test_velocity_with_empty_window():
    velocity = VelocityCalculator().calculate_current_velocity("team-1", [], now=NOW)

    assert velocity.planned_points == 0
    assert velocity.completion_rate == 0.0


def test_burndown_series():
    start = NOW - timedelta(days=2)
    tasks = [finished(100, start + timedelta(hours=12)), make_task()]

    points = burndown(tasks, start, NOW)

    ideal = [p for p in points if p.is_ideal]
    actual = [p for p in points if not p.is_ideal]
    assert [p.remaining for p in ideal] == [2.0, 1.0, 0.0]
    assert [p.remaining for p in actual] == [2.0, 1.0]
    assert actual[-1].date == start + timedelta(hours=12)


# ---------------------------------------------------------------------------
# Team analytics
# ---------------------------------------------------------------------------


def test_team_analytics():
    team = Team(id="team-1", name="Core", leader_id="lead", member_ids=["user-1", "user-2"])
    tasks = [
        finished(1000, NOW, assigned_to_id="user-1"),
        make_task(assigned_to_id="user-1", status=TaskStatus.PENDING_APPROVAL),
        make_task(assigned_to_id="user-2"),
        finished(5000, NOW, team_id="team-2"),
    ]

    analytics = TeamAnalyticsCalculator().calculate(team, tasks)

    assert analytics.completion_rate == pytest.approx(1 / 3)
    assert analytics.average_task_duration == 1000
    assert analytics.member_performance == {"user-1": 0.5, "user-2": 0.0}
    assert analytics.task_distribution[TaskStatus.IN_PROGRESS] == 1
    assert analytics.task_distribution[TaskStatus.PENDING_APPROVAL] == 1
    assert analytics.task_distribution[TaskStatus.COMPLETED] == 1
    assert analytics.task_distribution[TaskStatus.REJECTED] == 0


def test_analytics_do_not_mutate_inputs():
    tasks = _series([3000, 2000, 1000])
    before = [t.model_dump() for t in tasks]

    compute_trend(tasks)
    estimate_completion_time(make_task(), tasks)
    compute_performance_metrics("user-1", tasks, ReportingPeriod(start=NOW - timedelta(weeks=1), end=NOW))

    assert [t.model_dump() for t in tasks] == before


def main():
    """Run all tests."""
    sys.exit(pytest.main([__file__, "-v"]))


if __name__ == "__main__":
    main()
