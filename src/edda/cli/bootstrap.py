# src/edda/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState:
  TaskStore -> SyncManager (queue/cache/resolver) -> TaskEngine, plus the GitHub provider
  when a token and repository are configured.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.errors import SyncConfigurationError
from ..core.ports import SyncProvider
from ..core.state import AppState
from ..sync.github_provider import GitHubProvider
from ..sync.retry import CallPolicy
from ..sync.sync_manager import SyncManager
from ..sync.sync_models import ConflictResolution, OverflowPolicy
from ..tasks.task_engine import TaskEngine
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def _build_provider(settings) -> SyncProvider | None:
    if not (getattr(settings, "github_token", None) and getattr(settings, "github_repository", None)):
        logger.debug("GitHub not configured; sync provider disabled.")
        return None
    try:
        return GitHubProvider.from_settings(settings)
    except SyncConfigurationError as e:
        logger.warning("GitHub provider disabled: %s", e)
        return None


def create_initial_state(*, settings=None, provider: SyncProvider | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the provider) injectable makes the app easier to test and avoids
    hidden global config reads. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = TaskStore(settings.tasks_db_path)
    if provider is None:
        provider = _build_provider(settings)

    manager = SyncManager(
        store,
        provider=provider,
        queue_capacity=int(settings.sync_queue_capacity),
        overflow=OverflowPolicy.parse(settings.sync_overflow_policy),
        strategy=ConflictResolution.parse(settings.conflict_strategy),
        policy=CallPolicy(
            timeout_seconds=float(settings.sync_timeout_seconds),
            max_retries=int(settings.sync_max_retries),
            backoff_seconds=float(settings.sync_retry_backoff_seconds),
        ),
    )

    return AppState(
        settings=settings,
        store=store,
        sync=manager,
        engine=TaskEngine(manager),
        provider=provider,
    )


async def close_state(state: AppState) -> None:
    """Release the provider's HTTP client and the store."""
    aclose = getattr(state.provider, "aclose", None)
    if aclose is not None:
        try:
            await aclose()
        except Exception:
            logger.debug("Provider close failed.", exc_info=True)

    pending = await state.sync.pending_count()
    if pending and state.sync.provider is not None:
        logger.warning(
            "%s operation(s) were not synced this session; run `edda sync push` to send them.",
            pending,
        )

    state.store.close()
