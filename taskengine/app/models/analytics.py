"""Derived, read-only analytics snapshots."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, computed_field
from pydantic.alias_generators import to_camel

from .common import TaskPriority, TaskStatus, UtcDatetime

SECONDS_PER_WEEK = 7 * 24 * 3600


class Snapshot(BaseModel):
    """Immutable analytics value."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ReportingPeriod(Snapshot):
    """Closed time interval used for metrics."""
    start: UtcDatetime
    end: UtcDatetime

    @property
    def duration_seconds(self) -> float:
        return max((self.end - self.start).total_seconds(), 0.0)

    @property
    def weeks(self) -> float:
        return self.duration_seconds / SECONDS_PER_WEEK

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


class PerformanceMetrics(Snapshot):
    """Completion metrics for one user over a period."""
    user_id: str
    period: ReportingPeriod
    tasks_completed: int
    total_time_spent: float
    average_task_duration: float
    on_time_completion_rate: float
    velocity_score: float


class TeamVelocity(Snapshot):
    """Completions inside a trailing sprint window."""
    team_id: str
    sprint: int
    completed_points: int
    planned_points: int
    start_date: UtcDatetime
    end_date: UtcDatetime

    @computed_field
    @property
    def completion_rate(self) -> float:
        if self.planned_points == 0:
            return 0.0
        return self.completed_points / self.planned_points


class PriorityStatistics(Snapshot):
    """Time tracking figures for one priority level."""
    priority: TaskPriority
    total_time: float
    average_time: float
    task_count: int
    completed_count: int
    active_count: int
    completion_rate: float


class TeamAnalytics(Snapshot):
    """Team-wide completion summary."""
    team_id: str
    completion_rate: float
    average_task_duration: float
    member_performance: dict[str, float]
    task_distribution: dict[TaskStatus, int]


class BurndownPoint(Snapshot):
    """One point on the burndown chart."""
    date: UtcDatetime
    remaining: float
    is_ideal: bool
    velocity: float
    efficiency: float
