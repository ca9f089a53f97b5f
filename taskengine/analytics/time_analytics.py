"""Completion-time statistics, prediction and trend detection."""

import logging
from datetime import datetime, timezone
from typing import Optional

from taskengine.app.config import Settings, settings as default_settings
from taskengine.app.models.analytics import PriorityStatistics
from taskengine.app.models.common import CompletionTrend, TaskPriority, assume_utc
from taskengine.app.models.task import Task

logger = logging.getLogger(__name__)


def linear_trend(values: list[float]) -> float:
    """
    Least-squares slope of ``values`` against their index.

    Args:
        values: Samples in chronological order

    Returns:
        Slope, or 0.0 for fewer than two samples
    """
    n = len(values)
    if n < 2:
        return 0.0

    indices = [float(i) for i in range(n)]
    sum_x = sum(indices)
    sum_y = sum(values)
    sum_xy = sum(x * y for x, y in zip(indices, values))
    sum_xx = sum(x * x for x in indices)

    return (n * sum_xy - sum_x * sum_y) / (n * sum_xx - sum_x * sum_x)


class TimeAnalytics:
    """Time figures over a task snapshot. Never mutates the tasks."""

    def __init__(self, tasks: list[Task], config: Optional[Settings] = None):
        """
        Initialize analytics.

        Args:
            tasks: Task snapshot (historical and open tasks)
            config: Tuning parameters (defaults to global settings)
        """
        self.tasks = tasks
        self.config = config or default_settings

    @property
    def finished_tasks(self) -> list[Task]:
        """Completed tasks that recorded a finish time."""
        return [t for t in self.tasks if t.is_completed and t.finish_time is not None]

    @property
    def average_completion_time(self) -> float:
        finished = self.finished_tasks
        if not finished:
            return 0.0
        return sum(t.finish_time for t in finished) / len(finished)

    @property
    def completion_times_by_priority(self) -> dict[TaskPriority, float]:
        times: dict[TaskPriority, list[float]] = {}
        for task in self.finished_tasks:
            times.setdefault(task.priority, []).append(task.finish_time)
        return {priority: sum(values) / len(values) for priority, values in times.items()}

    def estimate_completion_time(self, task: Task) -> float:
        """
        Predict how long ``task`` will take from similar finished tasks.

        Candidates share the task's priority and are weighted by description
        length similarity. Without candidates the overall average is used.

        Args:
            task: Task to estimate

        Returns:
            Predicted duration in seconds
        """
        similar = [t for t in self.finished_tasks if t.priority == task.priority]
        if not similar:
            return self.average_completion_time

        total_weight = 0.0
        weighted_time = 0.0
        for candidate in similar:
            weight = self._similarity(task, candidate)
            weighted_time += candidate.finish_time * weight
            total_weight += weight

        return weighted_time / total_weight if total_weight > 0 else self.average_completion_time

    def _similarity(self, task1: Task, task2: Task) -> float:
        similarity = 1.0

        if task1.priority == task2.priority:
            similarity *= self.config.priority_match_weight

        length_diff = abs(len(task1.description) - len(task2.description))
        similarity *= 1.0 / (1.0 + length_diff / self.config.description_length_scale)

        return similarity

    def get_completion_trend(self, now: Optional[datetime] = None) -> CompletionTrend:
        """
        Classify the most recent finish times as improving, stable or slowing.

        Args:
            now: Sort key for completions missing ``completed_at``

        Returns:
            CompletionTrend (stable with fewer than two completions)
        """
        now = assume_utc(now) if now else datetime.now(timezone.utc)
        finished = sorted(self.finished_tasks, key=lambda t: t.completed_at or now)
        if len(finished) < 2:
            return CompletionTrend.STABLE

        recent = finished[-self.config.trend_window:]
        slope = linear_trend([t.finish_time for t in recent])
        logger.debug(f"Completion trend slope over {len(recent)} tasks: {slope:.3f}")

        if slope < -self.config.trend_threshold:
            return CompletionTrend.IMPROVING
        if slope > self.config.trend_threshold:
            return CompletionTrend.SLOWING
        return CompletionTrend.STABLE

    def priority_statistics(self) -> dict[TaskPriority, PriorityStatistics]:
        """Per-priority totals, averages and completion rates."""
        stats = {}
        for priority in TaskPriority:
            priority_tasks = [t for t in self.tasks if t.priority == priority]
            completed = [t for t in priority_tasks if t.is_completed]
            total_time = sum(t.total_time_spent for t in completed)

            stats[priority] = PriorityStatistics(
                priority=priority,
                total_time=total_time,
                average_time=total_time / len(completed) if completed else 0.0,
                task_count=len(priority_tasks),
                completed_count=len(completed),
                active_count=sum(1 for t in priority_tasks if t.is_active),
                completion_rate=len(completed) / len(priority_tasks) if priority_tasks else 0.0,
            )
        return stats

    def efficiency(self) -> float:
        """Share of finished tasks that took no longer than the average."""
        finished = self.finished_tasks
        if not finished:
            return 0.0
        average = self.average_completion_time
        return sum(1 for t in finished if t.finish_time <= average) / len(finished)
