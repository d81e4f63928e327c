# tests/test_sync_scheduler.py

from __future__ import annotations

import asyncio

import pytest

from edda.sync.sync_manager import SyncManager
from edda.sync.sync_scheduler import run_sync_scheduler
from edda.tasks.task_models import Task

from .fakes import FakeSyncProvider


async def _stop(runner: asyncio.Task) -> None:
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner


@pytest.mark.asyncio
async def test_scheduler_pushes_queued_work(manager: SyncManager, provider: FakeSyncProvider) -> None:
    await manager.create(Task(description="first"))

    runner = asyncio.create_task(run_sync_scheduler(manager, interval_seconds=60, poll_seconds=0.01))
    await asyncio.sleep(0.05)

    # Local work created while the scheduler runs goes out on a following poll.
    await manager.create(Task(description="second"))
    await asyncio.sleep(0.05)
    await _stop(runner)

    assert [t.description for t in provider.pushed] == ["first", "second"]
    assert await manager.has_pending_operations() is False
    assert await manager.last_sync_time() is not None


@pytest.mark.asyncio
async def test_scheduler_waits_for_interval_after_failure(
    manager: SyncManager, provider: FakeSyncProvider
) -> None:
    task = await manager.create(Task(description="rejected"))
    provider.fail_uuids.add(task.uuid)

    runner = asyncio.create_task(run_sync_scheduler(manager, interval_seconds=60, poll_seconds=0.01))
    await asyncio.sleep(0.08)
    await _stop(runner)

    assert provider.push_calls == 1
    assert await manager.pending_count() == 1


@pytest.mark.asyncio
async def test_scheduler_survives_connection_errors(
    manager: SyncManager, provider: FakeSyncProvider
) -> None:
    provider.connection_ok = False
    await manager.create(Task(description="offline"))

    runner = asyncio.create_task(run_sync_scheduler(manager, interval_seconds=0.02, poll_seconds=0.01))
    await asyncio.sleep(0.05)

    provider.connection_ok = True
    await asyncio.sleep(0.1)
    await _stop(runner)

    assert [t.description for t in provider.pushed] == ["offline"]
