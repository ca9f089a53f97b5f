"""Dependency graph (DAG) over a task snapshot."""

import logging
from typing import Optional

from pydantic import BaseModel

from taskengine.app.models.common import DependencyType
from taskengine.app.models.task import Task, TaskDependency

logger = logging.getLogger(__name__)


class GraphNode(BaseModel):
    """Node in the task dependency graph."""
    task_id: str
    duration: float = 0.0
    dependencies: list[str] = []  # task ids that must finish first


class DependencyGraph:
    """Directed graph of finish-to-start dependencies between tasks.

    Node insertion order is preserved and used to break ties wherever
    several tasks are equally eligible.
    """

    def __init__(self):
        """Initialize empty graph."""
        self.nodes: dict[str, GraphNode] = {}
        self.edges: dict[str, list[str]] = {}  # task_id -> list of dependent task_ids

    @classmethod
    def from_snapshot(
        cls, tasks: list[Task], dependencies: list[TaskDependency]
    ) -> "DependencyGraph":
        """
        Build a graph from tasks and explicit dependency edges.

        Tasks without an id, edges to tasks outside the snapshot, self edges
        and edge types other than finish-to-start are skipped.

        Args:
            tasks: Task snapshot
            dependencies: Dependency edges

        Returns:
            Populated graph
        """
        graph = cls()
        for task in tasks:
            if not task.id:
                logger.debug(f"Skipping task without id: {task.title!r}")
                continue
            graph.add_node(GraphNode(task_id=task.id, duration=task.duration))

        for dep in dependencies:
            if dep.type != DependencyType.FINISH_TO_START:
                logger.debug(
                    f"Skipping {dep.type.value} dependency {dep.task_id} -> "
                    f"{dep.depends_on_task_id}: only finish-to-start is scheduled"
                )
                continue
            graph.add_edge(dep.task_id, dep.depends_on_task_id)

        return graph

    def add_node(self, node: GraphNode) -> None:
        """
        Add task node to graph.

        Args:
            node: Node to add
        """
        if node.task_id in self.nodes:
            logger.warning(f"Task {node.task_id} already exists in graph, replacing")
            node = node.model_copy(update={"dependencies": self.nodes[node.task_id].dependencies})

        self.nodes[node.task_id] = node
        self.edges.setdefault(node.task_id, [])

    def add_edge(self, task_id: str, depends_on_id: str) -> bool:
        """
        Record that ``task_id`` cannot start before ``depends_on_id`` finishes.

        Args:
            task_id: Dependent task
            depends_on_id: Predecessor task

        Returns:
            True if the edge was added
        """
        if task_id == depends_on_id:
            logger.debug(f"Ignoring self dependency on {task_id}")
            return False
        if task_id not in self.nodes or depends_on_id not in self.nodes:
            logger.debug(f"Skipping dependency {task_id} -> {depends_on_id}: task not in snapshot")
            return False

        node = self.nodes[task_id]
        if depends_on_id in node.dependencies:
            return False

        node.dependencies.append(depends_on_id)
        self.edges[depends_on_id].append(task_id)
        return True

    def get_dependent_tasks(self, task_id: str) -> list[GraphNode]:
        """
        Get all tasks that depend on the given task.

        Args:
            task_id: Task ID to check

        Returns:
            List of dependent tasks
        """
        dependent_ids = self.edges.get(task_id, [])
        return [self.nodes[dep_id] for dep_id in dependent_ids if dep_id in self.nodes]

    def validate_acyclic(self) -> tuple[bool, Optional[list[str]]]:
        """
        Validate that graph is acyclic (no circular dependencies).

        Iterative depth-first search, so long chains do not hit the
        interpreter's recursion limit.

        Returns:
            Tuple of (is_valid, cycle_path if invalid)
        """
        unvisited, in_progress, done = 0, 1, 2
        state = {task_id: unvisited for task_id in self.nodes}

        for root in self.nodes:
            if state[root] != unvisited:
                continue

            state[root] = in_progress
            path = [root]
            stack = [iter(self.edges.get(root, []))]

            while stack:
                dependent_id = next(stack[-1], None)
                if dependent_id is None:
                    state[path.pop()] = done
                    stack.pop()
                elif state[dependent_id] == in_progress:
                    # Trim the lead-in so the path starts at the repeated node
                    start = path.index(dependent_id)
                    return False, path[start:] + [dependent_id]
                elif state[dependent_id] == unvisited:
                    state[dependent_id] = in_progress
                    path.append(dependent_id)
                    stack.append(iter(self.edges.get(dependent_id, [])))

        return True, None

    def get_execution_order(self) -> list[list[str]]:
        """
        Get topological sort of tasks (execution order by levels).

        Returns:
            List of levels, each holding task IDs whose predecessors all sit
            in earlier levels, in insertion order

        Raises:
            ValueError: If graph has cycles
        """
        is_valid, cycle = self.validate_acyclic()
        if not is_valid:
            raise ValueError(f"Graph has circular dependency: {' -> '.join(cycle)}")

        position = {task_id: i for i, task_id in enumerate(self.nodes)}
        in_degree = {task_id: len(node.dependencies) for task_id, node in self.nodes.items()}

        levels = []
        current_level = [task_id for task_id in self.nodes if in_degree[task_id] == 0]

        while current_level:
            levels.append(current_level)

            next_level = []
            for task_id in current_level:
                for dependent in self.get_dependent_tasks(task_id):
                    in_degree[dependent.task_id] -= 1
                    if in_degree[dependent.task_id] == 0:
                        next_level.append(dependent.task_id)

            current_level = sorted(next_level, key=position.__getitem__)

        return levels

    def topological_order(self) -> list[str]:
        """
        Flatten the execution levels into one ordering.

        Raises:
            ValueError: If graph has cycles
        """
        return [task_id for level in self.get_execution_order() for task_id in level]

    def get_total_duration(self) -> float:
        """
        Get sum of all task durations.

        Returns:
            Total duration if everything ran sequentially
        """
        return sum(node.duration for node in self.nodes.values())
