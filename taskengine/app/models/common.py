"""Enumerations and the timestamp type shared by records, activities and analytics."""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated

from pydantic import AfterValidator


def assume_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps; aware ones pass through unchanged."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# Naive timestamps from clients are read as UTC
UtcDatetime = Annotated[datetime, AfterValidator(assume_utc)]


class TaskStatus(str, Enum):
    """Task lifecycle status."""
    TODO = "todo"
    IN_PROGRESS = "inProgress"
    PENDING_APPROVAL = "pendingApproval"
    COMPLETED = "completed"
    REJECTED = "rejected"


class TaskPriority(str, Enum):
    """Task priority."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DependencyType(str, Enum):
    """Dependency kind between two tasks."""
    FINISH_TO_START = "FS"  # B can't start until A finishes
    START_TO_START = "SS"  # B can't start until A starts
    FINISH_TO_FINISH = "FF"  # B can't finish until A finishes
    START_TO_FINISH = "SF"  # B can't finish until A starts


class SessionAction(str, Enum):
    """Work session action."""
    START = "start"
    END = "end"


class CompletionTrend(str, Enum):
    """Direction of recent completion times."""
    IMPROVING = "improving"
    STABLE = "stable"
    SLOWING = "slowing"

    @property
    def description(self) -> str:
        return {
            CompletionTrend.IMPROVING: "Getting Faster",
            CompletionTrend.STABLE: "Consistent",
            CompletionTrend.SLOWING: "Taking Longer",
        }[self]
