"""Per-user completion metrics."""

import logging

from taskengine.app.models.analytics import PerformanceMetrics, ReportingPeriod
from taskengine.app.models.task import Task

logger = logging.getLogger(__name__)


class PerformanceCalculator:
    """Builds PerformanceMetrics snapshots."""

    def calculate(
        self, user_id: str, tasks: list[Task], period: ReportingPeriod
    ) -> PerformanceMetrics:
        """
        Summarize one user's completed work.

        Args:
            user_id: Assignee to report on
            tasks: Task snapshot
            period: Reporting period; its length scales the velocity score

        Returns:
            PerformanceMetrics for the user
        """
        user_tasks = [t for t in tasks if t.assigned_to_id == user_id]
        completed = [t for t in user_tasks if t.is_completed]

        time_spent = sum(t.finish_time or 0.0 for t in completed)
        average = time_spent / len(completed) if completed else 0.0

        on_time = [
            t for t in completed
            if t.due_date is not None and t.completed_at is not None and t.completed_at <= t.due_date
        ]
        on_time_rate = len(on_time) / len(completed) if completed else 0.0

        return PerformanceMetrics(
            user_id=user_id,
            period=period,
            tasks_completed=len(completed),
            total_time_spent=time_spent,
            average_task_duration=average,
            on_time_completion_rate=on_time_rate,
            velocity_score=self.velocity(len(completed), period),
        )

    @staticmethod
    def velocity(completed_count: int, period: ReportingPeriod) -> float:
        """Completed tasks per week; 0 for an empty period."""
        weeks = period.weeks
        if weeks <= 0:
            logger.debug("Empty reporting period, velocity reported as 0")
            return 0.0
        return completed_count / weeks
