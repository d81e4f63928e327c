# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from edda.cli.bootstrap import create_initial_state
from edda.core.state import AppState
from edda.sync.retry import CallPolicy
from edda.sync.sync_manager import SyncManager
from edda.tasks.task_store import TaskStore

from .fakes import FakeSyncProvider


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="edda-test",
        log_level="debug",
        # Paths (tmp per test run)
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        # GitHub is never configured in unit tests; providers are injected.
        github_token=None,
        github_repository=None,
        github_api_url="https://api.github.test",
        # Sync tuning: tiny timeouts and no backoff so failure paths stay fast.
        sync_interval_seconds=300,
        sync_queue_capacity=100,
        sync_overflow_policy="drop_oldest",
        conflict_strategy="manual",
        sync_timeout_seconds=0.5,
        sync_max_retries=0,
        sync_retry_backoff_seconds=0.0,
    )


@pytest.fixture()
def store(tmp_path: Path) -> TaskStore:
    return TaskStore(tmp_path / "tasks.sqlite3")


@pytest.fixture()
def provider() -> FakeSyncProvider:
    return FakeSyncProvider()


@pytest.fixture()
def manager(store: TaskStore, provider: FakeSyncProvider) -> SyncManager:
    return SyncManager(
        store,
        provider=provider,
        policy=CallPolicy(timeout_seconds=0.5, max_retries=0, backoff_seconds=0.0),
    )


@pytest.fixture()
def state(settings: SimpleNamespace, provider: FakeSyncProvider) -> AppState:
    """
    AppState wired with a fake provider.

    NOTE: We keep the real SQLite TaskStore here because its correctness is part of
    what we want to test.
    """
    return create_initial_state(settings=settings, provider=provider)
