# src/edda/sync/local_cache.py

from __future__ import annotations

import logging
from datetime import datetime

from ..tasks.task_models import Task, utc_now
from .rwlock import RWLock
from .sync_models import CachedDocument, CachedTask, Document, SyncStatus

logger = logging.getLogger(__name__)


class LocalCache:
    """
    Last-known state of every task/document plus its sync status.

    Entries are only ever overwritten (cache_*) or have their status changed;
    they go away only with clear(). Readers get copies, never the stored objects.
    """

    def __init__(self) -> None:
        self._tasks: dict[int, CachedTask] = {}
        self._documents: dict[int, CachedDocument] = {}
        self._last_sync: datetime | None = None
        self._lock = RWLock()

    # ---- tasks ----

    async def cache_task(self, task: Task) -> CachedTask:
        key = int(task.id or 0)
        async with self._lock.write():
            prev = self._tasks.get(key)
            entry = CachedTask(
                task=task.copy(),
                last_modified=utc_now(),
                version=(prev.version + 1) if prev else 1,
            )
            self._tasks[key] = entry
            return _copy_task_entry(entry)

    async def get_task(self, task_id: int) -> CachedTask | None:
        async with self._lock.read():
            entry = self._tasks.get(int(task_id))
            return _copy_task_entry(entry) if entry else None

    async def find_task_by_uuid(self, task_uuid: str) -> CachedTask | None:
        async with self._lock.read():
            for entry in self._tasks.values():
                if entry.task.uuid == task_uuid:
                    return _copy_task_entry(entry)
            return None

    async def update_task_sync_status(
        self, task_id: int, status: SyncStatus, error: str | None = None
    ) -> bool:
        async with self._lock.write():
            entry = self._tasks.get(int(task_id))
            if entry is None:
                return False
            entry.sync_status = status
            entry.sync_error = error if status == SyncStatus.FAILED else None
            entry.last_modified = utc_now()
            return True

    async def all_tasks(self) -> list[CachedTask]:
        async with self._lock.read():
            return [_copy_task_entry(e) for e in self._tasks.values()]

    # ---- documents ----

    async def cache_document(self, document: Document) -> CachedDocument:
        key = int(document.id or 0)
        async with self._lock.write():
            prev = self._documents.get(key)
            entry = CachedDocument(
                document=document.copy(),
                last_modified=utc_now(),
                version=(prev.version + 1) if prev else 1,
            )
            self._documents[key] = entry
            return _copy_document_entry(entry)

    async def get_document(self, document_id: int) -> CachedDocument | None:
        async with self._lock.read():
            entry = self._documents.get(int(document_id))
            return _copy_document_entry(entry) if entry else None

    async def update_document_sync_status(
        self, document_id: int, status: SyncStatus, error: str | None = None
    ) -> bool:
        async with self._lock.write():
            entry = self._documents.get(int(document_id))
            if entry is None:
                return False
            entry.sync_status = status
            entry.sync_error = error if status == SyncStatus.FAILED else None
            entry.last_modified = utc_now()
            return True

    async def all_documents(self) -> list[CachedDocument]:
        async with self._lock.read():
            return [_copy_document_entry(e) for e in self._documents.values()]

    # ---- sync bookkeeping ----

    async def set_last_sync(self, ts: datetime) -> None:
        async with self._lock.write():
            self._last_sync = ts

    async def last_sync(self) -> datetime | None:
        async with self._lock.read():
            return self._last_sync

    async def clear(self) -> None:
        async with self._lock.write():
            self._tasks.clear()
            self._documents.clear()
            self._last_sync = None
        logger.debug("Local cache cleared")


def _copy_task_entry(entry: CachedTask) -> CachedTask:
    return CachedTask(
        task=entry.task.copy(),
        last_modified=entry.last_modified,
        version=entry.version,
        sync_status=entry.sync_status,
        sync_error=entry.sync_error,
    )


def _copy_document_entry(entry: CachedDocument) -> CachedDocument:
    return CachedDocument(
        document=entry.document.copy(),
        last_modified=entry.last_modified,
        version=entry.version,
        sync_status=entry.sync_status,
        sync_error=entry.sync_error,
    )
