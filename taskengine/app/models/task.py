"""Task records consumed and produced by the engine."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .activity import TaskActivity
from .common import DependencyType, TaskPriority, TaskStatus, UtcDatetime


class Record(BaseModel):
    """Base for document-store records (camelCase on the wire)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WorkSession(Record):
    """A span of active work by one user on a task."""
    id: str
    start_time: UtcDatetime
    end_time: Optional[UtcDatetime] = None
    duration: float = 0.0
    user_id: str

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    @property
    def calculated_duration(self) -> float:
        if self.end_time is not None:
            return (self.end_time - self.start_time).total_seconds()
        return self.duration


class CompletionRequest(Record):
    """Proof of completion submitted by the assignee."""
    submitted_at: UtcDatetime
    submitted_by: str
    image_url: str
    reviewed_at: Optional[UtcDatetime] = None
    reviewed_by: Optional[str] = None


class Task(Record):
    """Task record."""
    id: Optional[str] = None
    team_id: str
    title: str
    description: str = ""
    assigned_to_id: str
    assigned_to_name: Optional[str] = None
    image_url: Optional[str] = None
    is_completed: bool = False

    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.IN_PROGRESS
    due_date: Optional[UtcDatetime] = None
    depends_on: list[str] = []
    mentions: list[str] = []
    activity_log: list[TaskActivity] = []
    completion_request: Optional[CompletionRequest] = None
    rejection_reason: Optional[str] = None

    # Time tracking
    started_at: Optional[UtcDatetime] = None
    completed_at: Optional[UtcDatetime] = None
    time_spent: float = 0.0  # seconds of active work
    work_sessions: list[WorkSession] = []
    finish_time: Optional[float] = None  # wall-clock seconds from start to approval
    last_worked_at: Optional[UtcDatetime] = None

    last_modified_at: Optional[UtcDatetime] = None
    last_modified_by: Optional[str] = None

    @property
    def total_time_spent(self) -> float:
        return self.finish_time if self.finish_time is not None else self.time_spent

    @property
    def is_active(self) -> bool:
        return self.started_at is not None and self.completed_at is None

    @property
    def duration(self) -> float:
        """Duration used for scheduling; unknown or negative values count as 0."""
        return max(self.time_spent or 0.0, 0.0)

    def open_session(self, user_id: str) -> Optional[WorkSession]:
        """Return the user's currently open work session, if any."""
        for session in self.work_sessions:
            if session.user_id == user_id and session.is_open:
                return session
        return None


class TaskDependency(Record):
    """Directed edge: ``task_id`` depends on ``depends_on_task_id``."""
    task_id: str
    depends_on_task_id: str
    type: DependencyType = DependencyType.FINISH_TO_START


class Team(Record):
    """Team the tasks belong to. Only the leader matters to the engine."""
    id: Optional[str] = None
    name: str = ""
    leader_id: str
    member_ids: list[str] = Field(default_factory=list)


def dependencies_from_tasks(tasks: list[Task]) -> list[TaskDependency]:
    """Build finish-to-start edges from each task's ``depends_on`` list."""
    return [
        TaskDependency(task_id=task.id, depends_on_task_id=dep_id)
        for task in tasks
        if task.id
        for dep_id in task.depends_on
    ]
