# tests/test_github_sync.py

from __future__ import annotations

import pytest

from edda.sync.github_provider import GitHubProvider
from edda.sync.retry import CallPolicy
from edda.sync.sync_manager import SyncManager
from edda.tasks.task_engine import TaskEngine
from edda.tasks.task_store import TaskFilter, TaskStore

from .fakes import FakeGitHub

API = "https://api.github.test"


def _session(store: TaskStore, github: FakeGitHub) -> tuple[SyncManager, GitHubProvider]:
    """A fresh manager + provider over the same database, like a new CLI process."""
    provider = GitHubProvider("secret", github.repository, api_url=API, transport=github.transport())
    manager = SyncManager(
        store,
        provider=provider,
        policy=CallPolicy(timeout_seconds=1.0, max_retries=0, backoff_seconds=0.0),
    )
    return manager, provider


@pytest.mark.asyncio
async def test_restart_then_sync_does_not_duplicate_pushed_tasks(store: TaskStore) -> None:
    github = FakeGitHub()

    manager, provider = _session(store, github)
    try:
        task = await TaskEngine(manager).create("Buy milk")
        report = await manager.sync()
        assert report.ok and report.pushed == 1
    finally:
        await provider.aclose()

    manager, provider = _session(store, github)
    try:
        report = await manager.sync()
    finally:
        await provider.aclose()

    assert report.ok
    assert report.created_locally == 0
    rows = await store.list(TaskFilter(include_deleted=True))
    assert [t.uuid for t in rows] == [task.uuid]
    assert len(github.issues) == 1


@pytest.mark.asyncio
async def test_remote_edit_keeps_local_tags_and_annotations(store: TaskStore) -> None:
    github = FakeGitHub()
    manager, provider = _session(store, github)
    engine = TaskEngine(manager)
    try:
        task = await engine.create("Buy milk", tags={"home"})
        await engine.annotate(task.id, "whole milk")
        assert (await manager.sync()).ok

        github.edit(1, title="Buy oat milk")
        report = await manager.sync()
    finally:
        await provider.aclose()

    assert report.resolved == 1
    stored = await store.get_by_id(task.id)
    assert stored is not None
    assert stored.description == "Buy oat milk"
    assert stored.tags == {"home"}
    assert [a.description for a in stored.annotations] == [
        "whole milk",
        "GitHub Issue #1: https://github.com/acme/app/issues/1",
    ]


@pytest.mark.asyncio
async def test_second_session_updates_existing_issue(store: TaskStore) -> None:
    github = FakeGitHub()

    manager, provider = _session(store, github)
    try:
        task = await TaskEngine(manager).create("Write report")
        await manager.sync()
    finally:
        await provider.aclose()

    manager, provider = _session(store, github)
    try:
        await TaskEngine(manager).complete(task.id)
        assert (await manager.sync()).ok
    finally:
        await provider.aclose()

    assert len(github.issues) == 1
    assert github.issues[1]["state"] == "closed"
