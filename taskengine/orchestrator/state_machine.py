"""Task lifecycle state machine.

Transitions:
- inProgress/rejected -> pendingApproval: assignee submits proof
- pendingApproval -> completed: team leader approves
- pendingApproval -> rejected: team leader rejects with a reason
- todo/inProgress/rejected -> inProgress: team leader reassigns

Every operation returns a MutationResult. Failures never mutate the task.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from taskengine.app.models.activity import (
    ApprovedActivity,
    CreatedActivity,
    ReassignedActivity,
    RejectedActivity,
    StatusChangedActivity,
    SubmittedActivity,
)
from taskengine.app.models.common import TaskPriority, TaskStatus, assume_utc
from taskengine.app.models.patch import TaskPatch
from taskengine.app.models.results import ErrorKind, MutationResult
from taskengine.app.models.task import CompletionRequest, Task

logger = logging.getLogger(__name__)


class TransitionTrigger(str, Enum):
    """Who drives a transition and why."""
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    REASSIGN = "reassign"


VALID_TRANSITIONS: dict[tuple[TaskStatus, TaskStatus], TransitionTrigger] = {
    (TaskStatus.IN_PROGRESS, TaskStatus.PENDING_APPROVAL): TransitionTrigger.SUBMIT,
    (TaskStatus.REJECTED, TaskStatus.PENDING_APPROVAL): TransitionTrigger.SUBMIT,
    (TaskStatus.PENDING_APPROVAL, TaskStatus.COMPLETED): TransitionTrigger.APPROVE,
    (TaskStatus.PENDING_APPROVAL, TaskStatus.REJECTED): TransitionTrigger.REJECT,
    (TaskStatus.TODO, TaskStatus.IN_PROGRESS): TransitionTrigger.REASSIGN,
    (TaskStatus.IN_PROGRESS, TaskStatus.IN_PROGRESS): TransitionTrigger.REASSIGN,
    (TaskStatus.REJECTED, TaskStatus.IN_PROGRESS): TransitionTrigger.REASSIGN,
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TaskStateMachine:
    """Validates status transitions and builds the resulting patches."""

    def create_task(
        self,
        team_id: str,
        title: str,
        assigned_to_id: str,
        creator_id: str,
        description: str = "",
        priority: TaskPriority = TaskPriority.MEDIUM,
        due_date: Optional[datetime] = None,
        depends_on: Optional[list[str]] = None,
        assigned_to_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Task:
        """
        Build a new task record. The assignee's clock starts immediately.

        The id is left unset; storage assigns it on insert.

        Args:
            team_id: Owning team
            title: Task title
            assigned_to_id: Assignee user id
            creator_id: User creating the task
            description: Free-text description
            priority: Task priority
            due_date: Optional deadline
            depends_on: Ids of tasks this one depends on
            assigned_to_name: Display name of the assignee
            now: Creation time (defaults to current UTC time)

        Returns:
            New Task in the inProgress state
        """
        now = assume_utc(now) if now else _now()
        task = Task(
            team_id=team_id,
            title=title,
            description=description,
            assigned_to_id=assigned_to_id,
            assigned_to_name=assigned_to_name,
            priority=priority,
            status=TaskStatus.IN_PROGRESS,
            due_date=due_date,
            depends_on=depends_on or [],
            started_at=now,
            activity_log=[CreatedActivity(actor_id=creator_id, timestamp=now, title=title)],
        )
        logger.info(f"Created task '{title}' for assignee {assigned_to_id}")
        return task

    def validate_transition(
        self,
        task: Task,
        from_status: TaskStatus,
        to_status: TaskStatus,
        actor_id: str,
        team_leader_id: str,
        proof_url: Optional[str] = None,
        rejection_reason: Optional[str] = None,
        new_assignee_id: Optional[str] = None,
        team_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> MutationResult:
        """
        Validate a transition and build its patch.

        Args:
            task: Current task snapshot
            from_status: Status the caller believes the task is in
            to_status: Requested status
            actor_id: Authenticated user performing the transition
            team_leader_id: Leader of the task's team
            proof_url: Completion proof (submit)
            rejection_reason: Reason (reject)
            new_assignee_id: New assignee (reassign)
            team_id: Id of the team the leader leads (reassign)
            now: Transition time (defaults to current UTC time)

        Returns:
            MutationResult with the patch, or the error that blocked it
        """
        from_status = TaskStatus(from_status)
        to_status = TaskStatus(to_status)

        trigger = VALID_TRANSITIONS.get((from_status, to_status))
        if trigger is None:
            return self._reject(
                task,
                ErrorKind.INVALID_TRANSITION,
                f"Cannot transition from '{from_status.value}' to '{to_status.value}'",
            )

        if task.status != from_status:
            return self._reject(
                task,
                ErrorKind.INVALID_TRANSITION,
                f"Task is '{task.status.value}', not '{from_status.value}'",
            )

        now = assume_utc(now) if now else _now()

        if trigger == TransitionTrigger.SUBMIT:
            return self._submit(task, actor_id, proof_url, now)
        if trigger == TransitionTrigger.APPROVE:
            return self._approve(task, actor_id, team_leader_id, now)
        if trigger == TransitionTrigger.REJECT:
            return self._reject_completion(task, actor_id, team_leader_id, rejection_reason, now)
        return self._reassign(task, actor_id, team_leader_id, new_assignee_id, team_id, now)

    def submit_for_completion(
        self, task: Task, actor_id: str, proof_url: str, now: Optional[datetime] = None
    ) -> MutationResult:
        """Assignee submits proof; the task waits for leader approval."""
        return self.validate_transition(
            task,
            task.status,
            TaskStatus.PENDING_APPROVAL,
            actor_id,
            team_leader_id="",
            proof_url=proof_url,
            now=now,
        )

    def approve(
        self, task: Task, actor_id: str, team_leader_id: str, now: Optional[datetime] = None
    ) -> MutationResult:
        """Leader approves a pending completion."""
        return self.validate_transition(
            task, task.status, TaskStatus.COMPLETED, actor_id, team_leader_id, now=now
        )

    def reject(
        self,
        task: Task,
        actor_id: str,
        team_leader_id: str,
        reason: str,
        now: Optional[datetime] = None,
    ) -> MutationResult:
        """Leader rejects a pending completion."""
        return self.validate_transition(
            task,
            task.status,
            TaskStatus.REJECTED,
            actor_id,
            team_leader_id,
            rejection_reason=reason,
            now=now,
        )

    def reassign(
        self,
        task: Task,
        actor_id: str,
        team_leader_id: str,
        new_assignee_id: str,
        team_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> MutationResult:
        """Leader hands the task to a different member."""
        return self.validate_transition(
            task,
            task.status,
            TaskStatus.IN_PROGRESS,
            actor_id,
            team_leader_id,
            new_assignee_id=new_assignee_id,
            team_id=team_id,
            now=now,
        )

    # ------------------------------------------------------------------
    # Transition handlers
    # ------------------------------------------------------------------

    def _submit(
        self, task: Task, actor_id: str, proof_url: Optional[str], now: datetime
    ) -> MutationResult:
        if actor_id != task.assigned_to_id:
            return self._reject(
                task, ErrorKind.UNAUTHORIZED, "Only the assigned user can complete this task"
            )
        if not proof_url:
            return self._reject(task, ErrorKind.INVALID_TRANSITION, "Completion proof is required")

        request = CompletionRequest(submitted_at=now, submitted_by=actor_id, image_url=proof_url)
        patch = TaskPatch(
            task_id=task.id,
            expected={"status": task.status},
            changes={
                "status": TaskStatus.PENDING_APPROVAL,
                "image_url": proof_url,
                "completion_request": request,
                "rejection_reason": None,
            },
            activities=[SubmittedActivity(actor_id=actor_id, timestamp=now, proof_url=proof_url)],
        )
        logger.info(f"Task {task.id} submitted for approval by {actor_id}")
        return MutationResult.ok(task, patch)

    def _approve(
        self, task: Task, actor_id: str, team_leader_id: str, now: datetime
    ) -> MutationResult:
        if actor_id != team_leader_id:
            return self._reject(task, ErrorKind.UNAUTHORIZED, "Only team leader can review tasks")

        started_at = task.started_at or now
        finish_time = max((now - started_at).total_seconds(), 0.0)

        changes = {
            "status": TaskStatus.COMPLETED,
            "is_completed": True,
            "completed_at": now,
            "finish_time": finish_time,
        }
        if task.completion_request is not None:
            changes["completion_request"] = task.completion_request.model_copy(
                update={"reviewed_at": now, "reviewed_by": actor_id}
            )

        patch = TaskPatch(
            task_id=task.id,
            expected={"status": task.status},
            changes=changes,
            activities=[ApprovedActivity(actor_id=actor_id, timestamp=now, finish_time=finish_time)],
        )
        logger.info(f"Task {task.id} approved by {actor_id} (finish time {finish_time:.0f}s)")
        return MutationResult.ok(task, patch)

    def _reject_completion(
        self,
        task: Task,
        actor_id: str,
        team_leader_id: str,
        reason: Optional[str],
        now: datetime,
    ) -> MutationResult:
        if actor_id != team_leader_id:
            return self._reject(task, ErrorKind.UNAUTHORIZED, "Only team leader can review tasks")
        if not reason or not reason.strip():
            return self._reject(task, ErrorKind.INVALID_TRANSITION, "Rejection reason is required")

        changes = {
            "status": TaskStatus.REJECTED,
            "is_completed": False,
            "rejection_reason": reason,
        }
        if task.completion_request is not None:
            changes["completion_request"] = task.completion_request.model_copy(
                update={"reviewed_at": now, "reviewed_by": actor_id}
            )

        patch = TaskPatch(
            task_id=task.id,
            expected={"status": task.status},
            changes=changes,
            activities=[RejectedActivity(actor_id=actor_id, timestamp=now, reason=reason)],
        )
        logger.info(f"Task {task.id} rejected by {actor_id}")
        return MutationResult.ok(task, patch)

    def _reassign(
        self,
        task: Task,
        actor_id: str,
        team_leader_id: str,
        new_assignee_id: Optional[str],
        team_id: Optional[str],
        now: datetime,
    ) -> MutationResult:
        """
        Hand the task to another member and put it back in progress.

        A ``todo`` or ``rejected`` task moves to ``inProgress`` as well, so the
        new assignee starts from a workable state; a ``status_changed`` entry
        records the move next to the ``reassigned`` one.
        """
        if actor_id != team_leader_id or (team_id is not None and task.team_id != team_id):
            return self._reject(task, ErrorKind.UNAUTHORIZED, "Only team leader can reassign tasks")
        if not new_assignee_id:
            return self._reject(task, ErrorKind.INVALID_TRANSITION, "New assignee is required")
        if new_assignee_id == task.assigned_to_id:
            return self._reject(
                task, ErrorKind.INVALID_TRANSITION, "Task is already assigned to this user"
            )

        activities = [
            ReassignedActivity(
                actor_id=actor_id,
                timestamp=now,
                from_assignee_id=task.assigned_to_id,
                to_assignee_id=new_assignee_id,
            )
        ]
        if task.status != TaskStatus.IN_PROGRESS:
            activities.append(
                StatusChangedActivity(
                    actor_id=actor_id,
                    timestamp=now,
                    from_status=task.status,
                    to_status=TaskStatus.IN_PROGRESS,
                )
            )

        patch = TaskPatch(
            task_id=task.id,
            expected={"status": task.status, "assigned_to_id": task.assigned_to_id},
            changes={
                "status": TaskStatus.IN_PROGRESS,
                "assigned_to_id": new_assignee_id,
                "assigned_to_name": None,
                "last_modified_at": now,
                "last_modified_by": actor_id,
            },
            activities=activities,
        )
        logger.info(
            f"Task {task.id} reassigned from {task.assigned_to_id} to {new_assignee_id}"
        )
        return MutationResult.ok(task, patch)

    @staticmethod
    def _reject(task: Task, kind: ErrorKind, message: str) -> MutationResult:
        logger.info(f"Transition refused for task {task.id}: {message}")
        return MutationResult.fail(kind, message)
