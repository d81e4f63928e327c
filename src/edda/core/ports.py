# src/edda/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage backends and remote trackers swappable and makes testing easier.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..sync.sync_models import SyncStatus
    from ..tasks.task_models import Task
    from ..tasks.task_store import TaskFilter


class TaskRepo(Protocol):
    """
    Task persistence contract.

    Implemented by TaskStore (SQLite) and by SyncManager, which writes through to a
    TaskStore and adds the offline cache/queue on top.
    """

    async def create(self, task: Task) -> Task: ...
    async def get_by_id(self, task_id: int) -> Task | None: ...
    async def get_by_uuid(self, task_uuid: str) -> Task | None: ...
    async def update(self, task: Task) -> Task: ...
    async def delete(self, task_id: int) -> bool: ...
    async def list(self, flt: TaskFilter | None = None) -> list[Task]: ...
    async def count(self, flt: TaskFilter | None = None) -> int: ...


@dataclass(frozen=True, slots=True)
class ProviderStatus:
    status: SyncStatus
    detail: str | None = None


class SyncProvider(Protocol):
    """
    A remote tracker (GitHub Issues, ...).

    Every failure is raised as a SyncError subclass (NetworkError, AuthenticationError,
    SyncConfigurationError); nothing is dropped silently.

    push() may append annotations to the tasks it receives (e.g. a reference to the
    remote item it created); the sync manager stores them on the local task.

    Optional: link_local_tasks(tasks) is called with every stored task before pull(),
    so a provider can map remote items back to local uuids from those annotations.
    """

    @property
    def name(self) -> str: ...

    async def pull(self) -> list[Task]: ...
    async def push(self, tasks: list[Task]) -> None: ...
    async def status(self) -> ProviderStatus: ...
    async def test_connection(self) -> None: ...
