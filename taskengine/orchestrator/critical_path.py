"""Critical path analysis (CPM) over task dependencies.

Durations come from each task's accumulated ``time_spent``. Passes run in
topological order, so the result does not depend on how the snapshot is
ordered. Input order only breaks ties between independent tasks.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel

from taskengine.app.config import settings
from taskengine.app.models.common import assume_utc
from taskengine.app.models.results import EngineError, ErrorKind
from taskengine.app.models.task import Task, TaskDependency
from taskengine.orchestrator.dependency_graph import DependencyGraph

logger = logging.getLogger(__name__)


class CriticalPathNode(BaseModel):
    """Schedule figures for one task. Recomputed on every analysis."""
    task_id: str
    duration: float = 0.0
    earliest_start: float = 0.0
    earliest_finish: float = 0.0
    latest_start: float = 0.0
    latest_finish: float = 0.0
    slack: float = 0.0

    @property
    def is_critical(self) -> bool:
        return self.slack == 0


class CriticalPathResult(BaseModel):
    """Outcome of a critical path analysis."""
    nodes: dict[str, CriticalPathNode] = {}
    critical_path: list[Task] = []
    max_finish: float = 0.0
    total_duration: float = 0.0
    error: Optional[EngineError] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def critical_task_ids(self) -> list[str]:
        return [task.id for task in self.critical_path]


class CriticalPathAnalyzer:
    """Computes earliest/latest start and finish, slack, and the critical path."""

    def __init__(self, slack_tolerance: Optional[float] = None):
        """
        Initialize analyzer.

        Args:
            slack_tolerance: Absolute slack treated as zero (float rounding)
        """
        self.slack_tolerance = (
            settings.slack_tolerance if slack_tolerance is None else slack_tolerance
        )

    def analyze(
        self,
        tasks: list[Task],
        dependencies: list[TaskDependency],
        now: Optional[datetime] = None,
    ) -> CriticalPathResult:
        """
        Run forward and backward passes and extract the zero-slack tasks.

        Args:
            tasks: Task snapshot
            dependencies: Dependency edges (finish-to-start)
            now: Sort key for tasks that have not started

        Returns:
            CriticalPathResult; ``error`` is set when the graph has a cycle
        """
        graph = DependencyGraph.from_snapshot(tasks, dependencies)

        is_valid, cycle = graph.validate_acyclic()
        if not is_valid:
            message = f"Circular dependency: {' -> '.join(cycle)}"
            logger.warning(f"Critical path analysis aborted. {message}")
            return CriticalPathResult(
                error=EngineError(kind=ErrorKind.CYCLIC_DEPENDENCY, message=message)
            )

        order = graph.topological_order()
        nodes = {
            task_id: CriticalPathNode(
                task_id=task_id,
                duration=graph.nodes[task_id].duration,
                earliest_finish=graph.nodes[task_id].duration,
            )
            for task_id in order
        }

        # Forward pass
        for task_id in order:
            node = nodes[task_id]
            for dep_id in graph.nodes[task_id].dependencies:
                new_start = nodes[dep_id].earliest_finish
                if new_start > node.earliest_start:
                    node.earliest_start = new_start
                    node.earliest_finish = new_start + node.duration

        max_finish = max((node.earliest_finish for node in nodes.values()), default=0.0)

        # Backward pass
        for task_id in reversed(order):
            node = nodes[task_id]
            latest_finish = max_finish
            for successor in graph.get_dependent_tasks(task_id):
                latest_finish = min(latest_finish, nodes[successor.task_id].latest_start)

            node.latest_finish = latest_finish
            node.latest_start = latest_finish - node.duration
            slack = latest_finish - node.earliest_finish
            node.slack = 0.0 if abs(slack) <= self.slack_tolerance else slack

        critical_path = self._order_by_start(
            tasks, {task_id for task_id, node in nodes.items() if node.is_critical}, now
        )

        logger.debug(
            f"Critical path: {len(critical_path)} of {len(nodes)} tasks, "
            f"project finish {max_finish:.0f}s"
        )
        return CriticalPathResult(
            nodes=nodes,
            critical_path=critical_path,
            max_finish=max_finish,
            total_duration=graph.get_total_duration(),
        )

    @staticmethod
    def _order_by_start(
        tasks: list[Task], critical_ids: set[str], now: Optional[datetime]
    ) -> list[Task]:
        """Critical tasks sorted by ``started_at``; unstarted tasks sort as ``now``."""
        now = assume_utc(now) if now else datetime.now(timezone.utc)

        # Last occurrence wins for duplicated ids, matching the graph
        by_id = {task.id: task for task in tasks if task.id in critical_ids}
        return sorted(by_id.values(), key=lambda task: task.started_at or now)


def analyze_critical_path(
    tasks: list[Task], dependencies: list[TaskDependency]
) -> list[Task]:
    """
    Return the critical path of a snapshot, ordered by start time.

    A cyclic graph yields an empty list; use CriticalPathAnalyzer.analyze
    to see the error.
    """
    return CriticalPathAnalyzer().analyze(tasks, dependencies).critical_path
