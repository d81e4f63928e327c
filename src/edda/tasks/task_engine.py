# src/edda/tasks/task_engine.py

from __future__ import annotations

import logging
from typing import Any

from ..core.errors import NotFoundError, ValidationError
from ..core.ports import TaskRepo
from .task_models import Task, is_valid_transition
from .task_store import TaskFilter

logger = logging.getLogger(__name__)


class TaskEngine:
    """
    Validation layer over a TaskRepo.

    All checks run before the repo is touched, so a rejected call never leaves a
    partial change behind. The repo can be a bare TaskStore or a SyncManager.
    """

    def __init__(self, repo: TaskRepo) -> None:
        self._repo = repo

    @property
    def repo(self) -> TaskRepo:
        return self._repo

    async def _require(self, task_id: int) -> Task:
        task = await self.get(task_id)
        if task is None:
            raise NotFoundError(task_id)
        return task

    async def create(self, description: str, **fields: Any) -> Task:
        if not description or not description.strip():
            raise ValidationError("Task description cannot be empty")

        task = Task(description=description.strip(), **fields)
        created = await self._repo.create(task)
        logger.info("Task created id=%s uuid=%s", created.id, created.uuid)
        return created

    async def get(self, task_id: int) -> Task | None:
        if task_id <= 0:
            raise ValidationError("Task ID must be positive")
        return await self._repo.get_by_id(task_id)

    async def get_by_uuid(self, task_uuid: str) -> Task | None:
        return await self._repo.get_by_uuid(task_uuid)

    async def update(self, task: Task) -> Task:
        if not task.description or not task.description.strip():
            raise ValidationError("Task description cannot be empty")
        if task.id is None:
            raise ValidationError("Task must have an ID to update")

        existing = await self._require(task.id)
        if existing.status != task.status and not is_valid_transition(existing.status, task.status):
            raise ValidationError(
                f"Invalid status transition from {existing.status} to {task.status}"
            )

        task.touch()
        return await self._repo.update(task)

    async def complete(self, task_id: int) -> Task:
        task = await self._require(task_id)
        task.complete()
        logger.info("Task %s -> completed", task_id)
        return await self._repo.update(task)

    async def delete(self, task_id: int) -> Task:
        task = await self._require(task_id)
        task.delete()
        logger.info("Task %s -> deleted", task_id)
        return await self._repo.update(task)

    async def start(self, task_id: int) -> Task:
        task = await self._require(task_id)
        task.start_tracking()
        return await self._repo.update(task)

    async def stop(self, task_id: int) -> Task:
        task = await self._require(task_id)
        task.stop_tracking()
        return await self._repo.update(task)

    async def annotate(self, task_id: int, text: str) -> Task:
        if not text or not text.strip():
            raise ValidationError("Annotation description cannot be empty")
        task = await self._require(task_id)
        task.add_annotation(text.strip())
        return await self._repo.update(task)

    async def add_tag(self, task_id: int, tag: str) -> Task:
        if not tag or not tag.strip():
            raise ValidationError("Tag cannot be empty")
        task = await self._require(task_id)
        task.add_tag(tag.strip())
        return await self._repo.update(task)

    async def remove_tag(self, task_id: int, tag: str) -> Task:
        task = await self._require(task_id)
        task.remove_tag(tag)
        return await self._repo.update(task)

    async def list(self, flt: TaskFilter | None = None) -> list[Task]:
        return await self._repo.list(flt)

    async def count(self, flt: TaskFilter | None = None) -> int:
        return await self._repo.count(flt)

    async def children(self, parent_id: int) -> list[Task]:
        """Subtasks of parent_id (full scan; no index needed at this scale)."""
        parent = await self._require(parent_id)
        everything = await self._repo.list(TaskFilter(include_deleted=True))
        return [t for t in everything if t.parent_uuid == parent.uuid]

    async def dependents(self, task_id: int) -> list[Task]:
        """Tasks that list task_id among their dependencies."""
        task = await self._require(task_id)
        everything = await self._repo.list(TaskFilter(include_deleted=True))
        return [t for t in everything if task.uuid in t.depends]
