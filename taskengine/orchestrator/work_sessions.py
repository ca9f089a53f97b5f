"""Work session tracking for tasks."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from taskengine.app.models.common import SessionAction, TaskStatus, assume_utc
from taskengine.app.models.patch import TaskPatch
from taskengine.app.models.results import ErrorKind, MutationResult
from taskengine.app.models.task import Task, WorkSession

logger = logging.getLogger(__name__)


class WorkSessionAggregator:
    """
    Opens and closes work sessions and folds them into ``time_spent``.

    ``time_spent`` only grows, by the duration of each session closed here.
    It measures active work, while ``finish_time`` (set on approval) is
    wall-clock time since ``started_at``.
    """

    def apply(
        self,
        task: Task,
        action: SessionAction,
        user_id: str,
        session_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> MutationResult:
        """
        Start or end a work session.

        Args:
            task: Current task snapshot
            action: START or END
            user_id: User doing the work
            session_id: Session to close (END only; defaults to the user's open one)
            now: Event time (defaults to current UTC time)

        Returns:
            MutationResult with the patch, or a session conflict
        """
        if SessionAction(action) == SessionAction.START:
            return self.start(task, user_id, now=now)
        return self.end(task, user_id, session_id=session_id, now=now)

    def start(self, task: Task, user_id: str, now: Optional[datetime] = None) -> MutationResult:
        """Open a new session for the user."""
        if task.status == TaskStatus.COMPLETED:
            return self._conflict(
                task, ErrorKind.INVALID_TRANSITION, "Cannot track time on a completed task"
            )

        existing = task.open_session(user_id)
        if existing is not None:
            return self._conflict(
                task,
                ErrorKind.SESSION_CONFLICT,
                f"User {user_id} already has an open session ({existing.id})",
            )

        now = assume_utc(now) if now else datetime.now(timezone.utc)
        session = WorkSession(id=str(uuid.uuid4()), start_time=now, duration=0.0, user_id=user_id)

        changes = {"work_sessions": list(task.work_sessions) + [session]}
        if task.started_at is None:
            changes["started_at"] = now

        patch = TaskPatch(
            task_id=task.id,
            expected={"status": task.status, "work_sessions": task.work_sessions},
            changes=changes,
        )
        logger.debug(f"Started session {session.id} on task {task.id} for {user_id}")
        return MutationResult.ok(task, patch)

    def end(
        self,
        task: Task,
        user_id: str,
        session_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> MutationResult:
        """Close a session and add its duration to ``time_spent``."""
        if session_id is None:
            session = task.open_session(user_id)
            if session is None:
                return self._conflict(
                    task, ErrorKind.SESSION_CONFLICT, f"User {user_id} has no open session"
                )
        else:
            session = next((s for s in task.work_sessions if s.id == session_id), None)
            if session is None:
                return self._conflict(
                    task, ErrorKind.SESSION_CONFLICT, f"Session {session_id} does not exist"
                )
            if not session.is_open:
                return self._conflict(
                    task, ErrorKind.SESSION_CONFLICT, f"Session {session_id} is already closed"
                )

        now = assume_utc(now) if now else datetime.now(timezone.utc)
        duration = max((now - session.start_time).total_seconds(), 0.0)
        closed = session.model_copy(update={"end_time": now, "duration": duration})

        sessions = [closed if s.id == session.id else s for s in task.work_sessions]
        patch = TaskPatch(
            task_id=task.id,
            expected={
                "status": task.status,
                "time_spent": task.time_spent,
                "work_sessions": task.work_sessions,
            },
            changes={
                "work_sessions": sessions,
                "time_spent": task.time_spent + duration,
                "last_worked_at": now,
            },
        )
        logger.debug(f"Closed session {session.id} on task {task.id} after {duration:.0f}s")
        return MutationResult.ok(task, patch)

    @staticmethod
    def _conflict(task: Task, kind: ErrorKind, message: str) -> MutationResult:
        logger.warning(f"Work session refused for task {task.id}: {message}")
        return MutationResult.fail(kind, message)
