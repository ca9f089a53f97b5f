"""Activity log entries.

Each entry is a tagged variant keyed by ``kind`` and carries typed payload
fields. Display text is left to the presentation layer; ``describe`` exists
only as a convenience for logs and simple clients.
"""

import uuid
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .common import TaskStatus, UtcDatetime


class ActivityBase(BaseModel):
    """Fields common to every activity entry."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    actor_id: str
    timestamp: UtcDatetime

    def describe(self) -> str:
        return self.kind  # type: ignore[attr-defined]


class CreatedActivity(ActivityBase):
    kind: Literal["created"] = "created"
    title: str

    def describe(self) -> str:
        return f"Task '{self.title}' was created"


class SubmittedActivity(ActivityBase):
    kind: Literal["submitted"] = "submitted"
    proof_url: str

    def describe(self) -> str:
        return "Task was submitted for approval"


class ApprovedActivity(ActivityBase):
    kind: Literal["approved"] = "approved"
    finish_time: float

    def describe(self) -> str:
        return "Task was approved and completed"


class RejectedActivity(ActivityBase):
    kind: Literal["rejected"] = "rejected"
    reason: str

    def describe(self) -> str:
        return f"Task was rejected: {self.reason}"


class ReassignedActivity(ActivityBase):
    kind: Literal["reassigned"] = "reassigned"
    from_assignee_id: str
    to_assignee_id: str

    def describe(self) -> str:
        return f"Task reassigned from {self.from_assignee_id} to {self.to_assignee_id}"


class StatusChangedActivity(ActivityBase):
    kind: Literal["status_changed"] = "status_changed"
    from_status: TaskStatus
    to_status: TaskStatus
    note: Optional[str] = None

    def describe(self) -> str:
        return f"Status changed from {self.from_status.value} to {self.to_status.value}"


TaskActivity = Annotated[
    Union[
        CreatedActivity,
        SubmittedActivity,
        ApprovedActivity,
        RejectedActivity,
        ReassignedActivity,
        StatusChangedActivity,
    ],
    Field(discriminator="kind"),
]
