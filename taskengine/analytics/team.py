"""Team-wide analytics."""

from taskengine.app.models.analytics import TeamAnalytics
from taskengine.app.models.common import TaskStatus
from taskengine.app.models.task import Task, Team
from taskengine.analytics.time_analytics import TimeAnalytics


class TeamAnalyticsCalculator:
    """Completion rate, member performance and status distribution."""

    def calculate(self, team: Team, tasks: list[Task]) -> TeamAnalytics:
        team_tasks = [t for t in tasks if t.team_id == team.id] if team.id else list(tasks)
        completed = [t for t in team_tasks if t.is_completed]

        member_performance = {}
        for member_id in team.member_ids:
            assigned = [t for t in team_tasks if t.assigned_to_id == member_id]
            done = sum(1 for t in assigned if t.is_completed)
            member_performance[member_id] = done / len(assigned) if assigned else 0.0

        distribution = {status: 0 for status in TaskStatus}
        for task in team_tasks:
            distribution[task.status] += 1

        return TeamAnalytics(
            team_id=team.id or "",
            completion_rate=len(completed) / len(team_tasks) if team_tasks else 0.0,
            average_task_duration=TimeAnalytics(team_tasks).average_completion_time,
            member_performance=member_performance,
            task_distribution=distribution,
        )
