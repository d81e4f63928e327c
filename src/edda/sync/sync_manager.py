# src/edda/sync/sync_manager.py

from __future__ import annotations

"""
Offline-first sync manager.

Local mutations are durable immediately: every create/update/delete is written to
the TaskStore first, then the cache is refreshed and an operation is queued.
Only the remote round-trip is deferred until sync().

sync() pass:
- test the provider connection (fail -> mark pending entries failed, keep the queue)
- push queued operations in enqueue order; a failed entity blocks its later ops
- pull remote tasks; insert unknown ones, resolve known ones that changed remotely
- drop processed operations from the queue, keep failed ones for the next pass
"""

import asyncio
import logging
from datetime import datetime

from ..core.errors import EddaError, NotFoundError, ProviderNotFoundError, SyncError
from ..core.ports import SyncProvider
from ..tasks.task_models import Annotation, Task, TaskStatus, utc_now
from ..tasks.task_store import TaskFilter, TaskStore
from .local_cache import LocalCache
from .offline_queue import OfflineQueue
from .resolver import ConflictResolver
from .retry import CallPolicy, call_provider
from .sync_models import (
    CachedTask,
    ConflictResolution,
    Document,
    OperationKind,
    OverflowPolicy,
    SyncOperation,
    SyncReport,
    SyncStatus,
)

logger = logging.getLogger(__name__)


class SyncManager:
    """
    Composes TaskStore + OfflineQueue + LocalCache + ConflictResolver (+ a provider).

    Implements the TaskRepo contract, so a TaskEngine can sit on top of it and get
    validation and offline queueing in one call path.
    """

    def __init__(
        self,
        store: TaskStore,
        *,
        provider: SyncProvider | None = None,
        queue_capacity: int = 1000,
        overflow: OverflowPolicy = OverflowPolicy.DROP_OLDEST,
        strategy: ConflictResolution = ConflictResolution.MANUAL,
        policy: CallPolicy | None = None,
    ) -> None:
        self._store = store
        self._provider = provider
        self.queue = OfflineQueue(queue_capacity, overflow=overflow)
        self.cache = LocalCache()
        self.resolver = ConflictResolver(strategy)
        self._policy = policy or CallPolicy()
        self._primed = False
        self._sync_lock = asyncio.Lock()

    @property
    def provider(self) -> SyncProvider | None:
        return self._provider

    def set_provider(self, provider: SyncProvider | None) -> None:
        self._provider = provider

    # ---- TaskRepo: writes ----

    async def create(self, task: Task) -> Task:
        created = await self._store.create(task)
        await self.cache.cache_task(created)
        await self.queue.enqueue(SyncOperation.for_task(OperationKind.CREATE_TASK, created))
        return created

    async def update(self, task: Task) -> Task:
        updated = await self._store.update(task)
        await self.cache.cache_task(updated)
        await self.queue.enqueue(SyncOperation.for_task(OperationKind.UPDATE_TASK, updated))
        return updated

    async def delete(self, task_id: int) -> bool:
        """Remove the row. The cache keeps a snapshot marked deleted for the pending push."""
        snapshot = await self.get_by_id(task_id)
        deleted = await self._store.delete(task_id)
        if not deleted:
            return False

        if snapshot is None:
            snapshot = Task(description="(deleted)", id=task_id)
        if snapshot.status != TaskStatus.DELETED:
            snapshot.status = TaskStatus.DELETED
            snapshot.touch()

        await self.cache.cache_task(snapshot)
        await self.queue.enqueue(SyncOperation.for_task(OperationKind.DELETE_TASK, snapshot))
        logger.info("Task row removed id=%s uuid=%s", task_id, snapshot.uuid)
        return True

    # ---- TaskRepo: reads ----

    async def get_by_id(self, task_id: int) -> Task | None:
        entry = await self.cache.get_task(task_id)
        if entry is not None:
            return entry.task

        task = await self._store.get_by_id(task_id)
        if task is not None:
            await self._cache_clean(task)
        return task

    async def get_by_uuid(self, task_uuid: str) -> Task | None:
        entry = await self.cache.find_task_by_uuid(task_uuid)
        if entry is not None:
            return entry.task

        task = await self._store.get_by_uuid(task_uuid)
        if task is not None:
            await self._cache_clean(task)
        return task

    async def list(self, flt: TaskFilter | None = None) -> list[Task]:
        await self._prime()
        entries = await self.cache.all_tasks()
        return (flt or TaskFilter()).apply([e.task for e in entries])

    async def count(self, flt: TaskFilter | None = None) -> int:
        base = flt or TaskFilter()
        unpaged = TaskFilter(
            status=base.status,
            project=base.project,
            tags=base.tags,
            priority=base.priority,
            include_deleted=base.include_deleted,
        )
        return len(await self.list(unpaged))

    async def _prime(self) -> None:
        """Load every stored task into the cache once; later reads are served from the cache."""
        if self._primed:
            return
        tasks = await self._store.list(TaskFilter(include_deleted=True))
        for task in tasks:
            if await self.cache.get_task(int(task.id or 0)) is None:
                await self._cache_clean(task)
        self._primed = True
        logger.debug("Cache primed with %s task(s)", len(tasks))

    async def _cache_clean(self, task: Task) -> None:
        """Cache a task read from the store; it has nothing to push, so it is already in sync."""
        await self.cache.cache_task(task)
        await self.cache.update_task_sync_status(int(task.id or 0), SyncStatus.COMPLETED)

    # ---- documents (cache + queue only; documents have no local store here) ----

    async def create_document(self, document: Document) -> Document:
        await self.cache.cache_document(document)
        await self.queue.enqueue(SyncOperation.for_document(OperationKind.CREATE_DOCUMENT, document))
        return document

    async def update_document(self, document: Document) -> Document:
        document.updated_at = utc_now()
        await self.cache.cache_document(document)
        await self.queue.enqueue(SyncOperation.for_document(OperationKind.UPDATE_DOCUMENT, document))
        return document

    async def delete_document(self, document: Document) -> None:
        await self.cache.cache_document(document)
        await self.queue.enqueue(SyncOperation.for_document(OperationKind.DELETE_DOCUMENT, document))

    async def requeue_all(self) -> int:
        """Queue an update for every stored task (full push, e.g. from a fresh process)."""
        tasks = await self._store.list(TaskFilter(include_deleted=True))
        for task in sorted(tasks, key=lambda t: t.id or 0):
            await self.cache.cache_task(task)
            await self.queue.enqueue(SyncOperation.for_task(OperationKind.UPDATE_TASK, task))
        logger.info("Requeued %s task(s) for push", len(tasks))
        return len(tasks)

    # ---- sync ----

    async def sync(self, provider: SyncProvider | None = None) -> SyncReport:
        provider = provider or self._provider
        if provider is None:
            raise ProviderNotFoundError("no sync provider configured")

        # One pass at a time; a scheduled sync and a manual one must not interleave.
        async with self._sync_lock:
            return await self._sync_once(provider)

    async def _sync_once(self, provider: SyncProvider) -> SyncReport:
        report = SyncReport()
        ops = await self.queue.get_pending()
        logger.info("Sync start provider=%s pending=%s", provider.name, len(ops))

        try:
            await call_provider(f"{provider.name} connection test", provider.test_connection, self._policy)
        except SyncError as e:
            await self._mark_failed(ops, str(e))
            logger.warning("Sync aborted: %s", e)
            raise

        done, pushed_uuids = await self._push_all(provider, ops, report)
        await self.queue.discard(done)
        await self._pull_all(provider, report, skip=pushed_uuids)

        if report.ok:
            await self.cache.set_last_sync(utc_now())

        logger.info("Sync done provider=%s %s", provider.name, report.summary())
        return report

    async def _push_all(
        self, provider: SyncProvider, ops: list[SyncOperation], report: SyncReport
    ) -> tuple[list[SyncOperation], set[str]]:
        done: list[SyncOperation] = []
        pushed_uuids: set[str] = set()
        blocked: set[tuple[str, int]] = set()

        for op in ops:
            if op.entity_key in blocked:
                # An earlier op for this entity failed; pushing this one now would reorder them.
                report.skipped += 1
                continue

            snapshot = op.task
            if snapshot is None:
                # Providers only speak tasks; documents are settled locally.
                await self.cache.update_document_sync_status(op.entity_id, SyncStatus.COMPLETED)
                done.append(op)
                continue

            await self.cache.update_task_sync_status(op.entity_id, SyncStatus.IN_PROGRESS)
            outgoing = snapshot.copy()
            try:
                await call_provider(
                    f"{provider.name} push {op.kind.value} id={op.entity_id}",
                    lambda: provider.push([outgoing]),
                    self._policy,
                )
            except SyncError as e:
                await self.cache.update_task_sync_status(op.entity_id, SyncStatus.FAILED, str(e))
                blocked.add(op.entity_key)
                report.failed += 1
                report.errors.append(str(e))
                continue

            if len(outgoing.annotations) > len(snapshot.annotations):
                await self._record_remote_refs(outgoing, outgoing.annotations[len(snapshot.annotations):])

            # A newer op for this task (queued before or during the push) is still waiting.
            if await self._has_later_op(op):
                await self.cache.update_task_sync_status(op.entity_id, SyncStatus.PENDING)
            else:
                await self.cache.update_task_sync_status(op.entity_id, SyncStatus.COMPLETED)
            done.append(op)
            pushed_uuids.add(snapshot.uuid)
            report.pushed += 1

        return done, pushed_uuids

    async def _has_later_op(self, op: SyncOperation) -> bool:
        pending = await self.queue.get_pending()
        later = False
        for queued in pending:
            if queued.op_id == op.op_id:
                later = True
                continue
            if later and queued.entity_key == op.entity_key:
                return True
        return False

    async def _record_remote_refs(self, pushed: Task, added: list[Annotation]) -> None:
        """Persist annotations the provider attached on push (e.g. the created issue's reference)."""
        local = await self._store.get_by_id(int(pushed.id or 0))
        if local is None:
            return
        local.annotations.extend(added)
        try:
            stored = await self._store.update(local)
        except NotFoundError:
            return
        await self.cache.cache_task(stored)

    async def _pull_all(self, provider: SyncProvider, report: SyncReport, *, skip: set[str]) -> None:
        # Providers that track remote ids per task (GitHub issue numbers) learn them from
        # stored references first, so pulled items come back under the local uuid.
        link = getattr(provider, "link_local_tasks", None)
        if link is not None:
            link(await self._store.list(TaskFilter(include_deleted=True)))

        try:
            remote_tasks = await call_provider(f"{provider.name} pull", provider.pull, self._policy)
        except SyncError as e:
            report.errors.append(str(e))
            return

        last_sync = await self.cache.last_sync()
        report.pulled = len(remote_tasks)

        for remote in remote_tasks:
            if remote.uuid in skip:
                continue  # its remote state is what this pass just pushed
            try:
                await self._reconcile(remote, last_sync, report)
            except EddaError as e:
                logger.warning("Failed to reconcile remote task uuid=%s: %s", remote.uuid, e)
                report.errors.append(str(e))

    async def _reconcile(self, remote: Task, last_sync: datetime | None, report: SyncReport) -> None:
        local = await self._store.get_by_uuid(remote.uuid)

        if local is None:
            cached = await self.cache.find_task_by_uuid(remote.uuid)
            if cached is not None and cached.task.is_deleted():
                return  # removed locally; the delete op owns what happens remotely
            incoming = remote.copy()
            incoming.id = None
            created = await self._store.create(incoming)
            await self._cache_clean(created)
            report.created_locally += 1
            return

        if local.is_deleted():
            return  # terminal state
        if last_sync is not None and remote.modified <= last_sync:
            return  # unchanged remotely since our last good sync; the local side is authoritative
        if remote.modified == local.modified:
            return

        resolved = self.resolver.resolve_task(local, remote)
        resolved.id = local.id
        resolved.uuid = local.uuid
        _keep_local_only_fields(resolved, local)
        try:
            stored = await self._store.update(resolved)
        except NotFoundError:
            return  # removed locally mid-sync; its delete op will reach the remote
        await self._cache_clean(stored)
        report.resolved += 1

    async def _mark_failed(self, ops: list[SyncOperation], reason: str) -> None:
        for op in ops:
            if op.kind.is_task:
                await self.cache.update_task_sync_status(op.entity_id, SyncStatus.FAILED, reason)
            else:
                await self.cache.update_document_sync_status(op.entity_id, SyncStatus.FAILED, reason)

    # ---- introspection ----

    async def has_pending_operations(self) -> bool:
        return not await self.queue.is_empty()

    async def pending_count(self) -> int:
        return await self.queue.size()

    async def last_sync_time(self) -> datetime | None:
        return await self.cache.last_sync()

    async def cached_task(self, task_id: int) -> CachedTask | None:
        return await self.cache.get_task(task_id)


def _keep_local_only_fields(resolved: Task, local: Task) -> None:
    """
    Remote trackers carry a subset of task fields; a remote-side winner must not wipe
    what only exists locally (project, priority, dates, links, effort, tags, notes).
    """
    for name in (
        "priority",
        "project",
        "due",
        "scheduled",
        "start",
        "parent_uuid",
        "recurrence",
        "effort",
        "effort_spent",
    ):
        if getattr(resolved, name) is None:
            setattr(resolved, name, getattr(local, name))
    if not resolved.depends:
        resolved.depends = set(local.depends)

    # Tags and notes only travel outward (push sends neither labels nor comments), so the
    # remote copy never removes them; remote additions are kept, repeats collapse.
    resolved.tags = set(local.tags) | set(resolved.tags)

    annotations = list(local.annotations)
    seen = {a.description for a in annotations}
    for ann in resolved.annotations:
        if ann.description not in seen:
            annotations.append(ann)
            seen.add(ann.description)
    resolved.annotations = annotations
