"""Mutation patches with compare-and-set guards."""

from typing import Any, Optional

from pydantic import BaseModel
from pydantic_core import to_jsonable_python

from .activity import TaskActivity
from .task import Task


class StaleTaskError(Exception):
    """Raised when a patch's expected values no longer match the task."""

    def __init__(self, task_id: Optional[str], field: str, expected: Any, actual: Any):
        self.task_id = task_id
        self.field = field
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Task {task_id} changed concurrently: {field} is {actual!r}, expected {expected!r}"
        )


class TaskPatch(BaseModel):
    """Field updates for one task plus the prior values they depend on."""
    task_id: Optional[str] = None
    expected: dict[str, Any] = {}
    changes: dict[str, Any] = {}
    activities: list[TaskActivity] = []

    def check(self, task: Task) -> None:
        """
        Verify the guard values against the current task.

        Raises:
            StaleTaskError: If any expected field differs
        """
        for field, expected in self.expected.items():
            actual = getattr(task, field)
            if to_jsonable_python(actual) != to_jsonable_python(expected):
                raise StaleTaskError(task.id, field, expected, actual)

    def apply(self, task: Task) -> Task:
        """
        Return a patched copy of ``task``; the input is left untouched.

        Raises:
            StaleTaskError: If the task no longer matches ``expected``
        """
        self.check(task)
        update = dict(self.changes)
        if self.activities:
            update["activity_log"] = list(task.activity_log) + list(self.activities)
        # Round-trip through validation so nested values are coerced
        data = task.model_dump()
        data.update(update)
        return Task.model_validate(data)
