"""Redis-backed task snapshots with compare-and-set commits."""

import logging
import uuid
from typing import Optional

import redis.asyncio as redis
from pydantic import BaseModel

from taskengine.app.config import settings
from taskengine.app.models.patch import StaleTaskError, TaskPatch
from taskengine.app.models.results import EngineError, ErrorKind
from taskengine.app.models.task import Task
from taskengine.locking.redis_lock import LockContext, LockTimeoutError, RedisLock, task_resource

logger = logging.getLogger(__name__)


class CommitResult(BaseModel):
    """Result of committing a patch."""
    success: bool
    task: Optional[Task] = None
    error: Optional[EngineError] = None


class RedisTaskStore:
    """
    Stores each task as a Redis hash and applies patches atomically.

    Layout:
        task:{id}             hash with ``data`` (JSON record) and ``status``
        team:{team_id}:tasks  set of task ids
    """

    def __init__(self, redis_client: redis.Redis, lock_manager: Optional[RedisLock] = None):
        """
        Initialize store.

        Args:
            redis_client: Redis async client
            lock_manager: Lock manager (defaults to one on the same client)
        """
        self.redis = redis_client
        self.locks = lock_manager or RedisLock(redis_client)

    @classmethod
    def from_url(cls, url: Optional[str] = None) -> "RedisTaskStore":
        """Create a store connected to ``url`` (defaults to settings.redis_url)."""
        return cls(redis.from_url(url or settings.redis_url))

    async def insert(self, task: Task) -> Task:
        """
        Persist a new task, assigning its id.

        Args:
            task: Task without an id (an existing id is kept)

        Returns:
            The stored task
        """
        stored = task if task.id else task.model_copy(update={"id": uuid.uuid4().hex})
        await self._write(stored)
        await self.redis.sadd(f"team:{stored.team_id}:tasks", stored.id)
        logger.info(f"Stored task {stored.id} for team {stored.team_id}")
        return stored

    async def get(self, task_id: str) -> Optional[Task]:
        """
        Load one task.

        Args:
            task_id: Task ID

        Returns:
            Task, or None if not stored
        """
        data = await self.redis.hget(f"task:{task_id}", "data")
        if not data:
            return None
        return Task.model_validate_json(data)

    async def list_team(self, team_id: str) -> list[Task]:
        """
        Snapshot of all tasks of a team, ordered by id.

        Args:
            team_id: Team ID

        Returns:
            Tasks currently stored for the team
        """
        members = await self.redis.smembers(f"team:{team_id}:tasks")
        task_ids = sorted(m.decode() if isinstance(m, bytes) else m for m in members)

        tasks = []
        for task_id in task_ids:
            task = await self.get(task_id)
            if task is None:
                logger.warning(f"Team {team_id} index references missing task {task_id}")
                continue
            tasks.append(task)
        return tasks

    async def commit(self, patch: TaskPatch, timeout: float = 5.0) -> CommitResult:
        """
        Apply a patch if the stored task still matches its expected values.

        The read, guard check and write happen under the task's lock, so two
        actors racing on the same task cannot both succeed.

        Args:
            patch: Patch produced by the state machine or session aggregator
            timeout: Seconds to wait for the task lock

        Returns:
            CommitResult with the stored task, or the reason it was refused
        """
        if not patch.task_id:
            return self._fail(ErrorKind.NOT_FOUND, "Patch has no task id")

        try:
            async with LockContext(self.locks, task_resource(patch.task_id), timeout=timeout):
                current = await self.get(patch.task_id)
                if current is None:
                    return self._fail(ErrorKind.NOT_FOUND, f"Task {patch.task_id} not found")

                try:
                    updated = patch.apply(current)
                except StaleTaskError as e:
                    return self._fail(ErrorKind.CONCURRENT_MODIFICATION, str(e))

                await self._write(updated)

        except LockTimeoutError as e:
            return self._fail(ErrorKind.CONCURRENT_MODIFICATION, str(e))

        logger.info(f"Committed patch to task {updated.id} (status {updated.status.value})")
        return CommitResult(success=True, task=updated)

    async def _write(self, task: Task) -> None:
        await self.redis.hset(
            f"task:{task.id}",
            mapping={"data": task.model_dump_json(), "status": task.status.value},
        )

    @staticmethod
    def _fail(kind: ErrorKind, message: str) -> CommitResult:
        logger.warning(f"Commit refused: {message}")
        return CommitResult(success=False, error=EngineError(kind=kind, message=message))
