# src/edda/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..sync.sync_manager import SyncManager
    from ..tasks.task_engine import TaskEngine
    from ..tasks.task_store import TaskStore
    from .ports import SyncProvider


@dataclass
class AppState:
    # Store Settings on the state for easy access in commands/connectors.
    settings: Any

    store: TaskStore
    sync: SyncManager
    engine: TaskEngine
    provider: SyncProvider | None = None
