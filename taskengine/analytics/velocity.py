"""Sprint velocity and burndown series."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from taskengine.app.config import Settings, settings as default_settings
from taskengine.app.models.analytics import BurndownPoint, TeamVelocity
from taskengine.app.models.common import assume_utc
from taskengine.app.models.task import Task

logger = logging.getLogger(__name__)


class VelocityCalculator:
    """Team velocity over a trailing sprint window."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings

    @property
    def sprint_duration(self) -> timedelta:
        return timedelta(days=self.config.sprint_duration_days)

    def calculate_current_velocity(
        self,
        team_id: str,
        tasks: list[Task],
        now: Optional[datetime] = None,
        sprint_duration: Optional[timedelta] = None,
    ) -> TeamVelocity:
        """
        Count completions inside the sprint ending at ``now``.

        Planned points are all tasks touched in the window: approved there
        (``completed_at``) or worked on there (``last_worked_at``, stamped when
        a work session ends). Completed points are the approved ones, so the
        completion rate compares approved work with everything touched.

        Args:
            team_id: Team reported on
            tasks: Task snapshot
            now: End of the window (defaults to current UTC time)
            sprint_duration: Window length (defaults to configured sprint)

        Returns:
            TeamVelocity snapshot
        """
        now = assume_utc(now) if now else datetime.now(timezone.utc)
        sprint_start = now - (sprint_duration or self.sprint_duration)

        def in_window(moment: Optional[datetime]) -> bool:
            return moment is not None and sprint_start <= moment <= now

        sprint_tasks = [
            t for t in tasks if in_window(t.completed_at) or in_window(t.last_worked_at)
        ]
        completed = sum(1 for t in sprint_tasks if t.is_completed and in_window(t.completed_at))

        return TeamVelocity(
            team_id=team_id,
            sprint=self.current_sprint(now),
            completed_points=completed,
            planned_points=len(sprint_tasks),
            start_date=sprint_start,
            end_date=now,
        )

    def current_sprint(self, now: datetime) -> int:
        """Sprint number counted from the configured project start."""
        elapsed = (assume_utc(now) - self.config.project_start).total_seconds()
        return max(int(elapsed // self.sprint_duration.total_seconds()), 0)


def _velocity_at(tasks: list[Task], moment: datetime) -> float:
    """Tasks per day completed in the week before ``moment``."""
    week_start = moment - timedelta(days=7)
    in_week = [
        t for t in tasks
        if t.completed_at is not None and week_start < t.completed_at <= moment
    ]
    return len(in_week) / 7.0


def _efficiency(tasks: list[Task]) -> float:
    """Share of tasks completed by their due date; 1.0 with nothing completed."""
    if not tasks:
        return 1.0
    on_time = [
        t for t in tasks
        if t.due_date is not None and t.completed_at is not None and t.completed_at <= t.due_date
    ]
    return len(on_time) / len(tasks)


def burndown(tasks: list[Task], start: datetime, end: datetime) -> list[BurndownPoint]:
    """
    Ideal and actual burndown series for a sprint.

    The ideal line burns the task count linearly, one point per day. The
    actual line starts at the full count and drops by one at each
    ``completed_at``.

    Args:
        tasks: Tasks planned for the sprint
        start: Sprint start
        end: Sprint end

    Returns:
        Ideal points followed by actual points
    """
    start, end = assume_utc(start), assume_utc(end)
    total = float(len(tasks))
    days = (end - start).total_seconds() / 86400
    daily_burn = total / days if days > 0 else total

    points = []
    current = start
    remaining = total
    while current <= end:
        completed_to_date = [
            t for t in tasks if t.completed_at is not None and t.completed_at <= current
        ]
        points.append(BurndownPoint(
            date=current,
            remaining=max(remaining, 0.0),
            is_ideal=True,
            velocity=_velocity_at(completed_to_date, current),
            efficiency=_efficiency(completed_to_date),
        ))
        remaining -= daily_burn
        current += timedelta(days=1)

    actual = total
    points.append(BurndownPoint(date=start, remaining=actual, is_ideal=False, velocity=0.0, efficiency=1.0))
    for moment in sorted(t.completed_at for t in tasks if t.completed_at is not None):
        actual -= 1
        completed_to_date = [
            t for t in tasks if t.completed_at is not None and t.completed_at <= moment
        ]
        points.append(BurndownPoint(
            date=moment,
            remaining=actual,
            is_ideal=False,
            velocity=_velocity_at(completed_to_date, moment),
            efficiency=_efficiency(completed_to_date),
        ))

    logger.debug(f"Burndown: {len(points)} points for {len(tasks)} tasks")
    return points
