# tests/test_local_cache.py

from __future__ import annotations

import pytest

from edda.sync.local_cache import LocalCache
from edda.sync.sync_models import Document, SyncStatus
from edda.tasks.task_models import Task, utc_now


@pytest.mark.asyncio
async def test_versions_and_status() -> None:
    cache = LocalCache()
    task = Task(description="t", id=1)

    first = await cache.cache_task(task)
    assert first.version == 1
    assert first.sync_status == SyncStatus.PENDING

    assert await cache.update_task_sync_status(1, SyncStatus.FAILED, "boom") is True
    entry = await cache.get_task(1)
    assert entry is not None
    assert entry.sync_status == SyncStatus.FAILED
    assert entry.sync_error == "boom"

    second = await cache.cache_task(task)
    assert second.version == 2
    assert second.sync_status == SyncStatus.PENDING
    assert second.sync_error is None

    assert await cache.update_task_sync_status(404, SyncStatus.COMPLETED) is False


@pytest.mark.asyncio
async def test_readers_get_copies() -> None:
    cache = LocalCache()
    task = Task(description="t", id=1, tags={"a"})
    await cache.cache_task(task)

    task.tags.add("mutated-after-caching")
    entry = await cache.get_task(1)
    assert entry is not None
    entry.task.tags.add("mutated-by-reader")

    again = await cache.get_task(1)
    assert again is not None
    assert again.task.tags == {"a"}

    found = await cache.find_task_by_uuid(task.uuid)
    assert found is not None and found.task.id == 1


@pytest.mark.asyncio
async def test_documents_last_sync_and_clear() -> None:
    cache = LocalCache()
    doc = Document(title="notes", id=7)
    entry = await cache.cache_document(doc)
    assert entry.version == 1
    assert await cache.update_document_sync_status(7, SyncStatus.COMPLETED) is True
    assert [d.document.title for d in await cache.all_documents()] == ["notes"]

    assert await cache.last_sync() is None
    ts = utc_now()
    await cache.set_last_sync(ts)
    assert await cache.last_sync() == ts

    await cache.clear()
    assert await cache.all_tasks() == []
    assert await cache.get_document(7) is None
    assert await cache.last_sync() is None
