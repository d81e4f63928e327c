# src/edda/sync/resolver.py

from __future__ import annotations

import logging

from ..tasks.task_models import Task
from .sync_models import ConflictResolution, Document

logger = logging.getLogger(__name__)


class ConflictResolver:
    """
    Reconciles a local and a remote version of the same entity.

    Strategies:
    - LOCAL_WINS / REMOTE_WINS: that side, unchanged
    - MANUAL: whichever side was modified last (ties go to remote)
    - MERGE: field-level union, starting from the local side
    """

    def __init__(self, default_strategy: ConflictResolution = ConflictResolution.MANUAL) -> None:
        self._default = default_strategy

    @property
    def default_strategy(self) -> ConflictResolution:
        return self._default

    def resolve_task(
        self, local: Task, remote: Task, strategy: ConflictResolution | None = None
    ) -> Task:
        strategy = strategy or self._default
        logger.debug("Resolving task uuid=%s strategy=%s", local.uuid, strategy.value)

        if strategy == ConflictResolution.LOCAL_WINS:
            return local.copy()
        if strategy == ConflictResolution.REMOTE_WINS:
            return remote.copy()
        if strategy == ConflictResolution.MANUAL:
            return local.copy() if local.modified > remote.modified else remote.copy()
        return self._merge_tasks(local, remote)

    @staticmethod
    def _merge_tasks(local: Task, remote: Task) -> Task:
        merged = local.copy()

        if remote.modified > local.modified:
            merged.modified = remote.modified

        merged.tags = local.tags | remote.tags
        # No de-duplication: both histories are kept, local first.
        merged.annotations = [*local.annotations, *remote.annotations]

        if local.priority is not None and remote.priority is not None:
            if remote.priority.weight > local.priority.weight:
                merged.priority = remote.priority
        elif local.priority is None:
            merged.priority = remote.priority

        return merged

    def resolve_document(
        self, local: Document, remote: Document, strategy: ConflictResolution | None = None
    ) -> Document:
        strategy = strategy or self._default

        if strategy == ConflictResolution.LOCAL_WINS:
            return local.copy()
        if strategy == ConflictResolution.REMOTE_WINS:
            return remote.copy()
        if strategy == ConflictResolution.MANUAL:
            return local.copy() if local.updated_at > remote.updated_at else remote.copy()

        merged = local.copy()
        if remote.updated_at > local.updated_at:
            # Scalar fields follow the side that was updated last.
            merged.title = remote.title
            merged.content = remote.content
            merged.content_type = remote.content_type
            merged.file_path = remote.file_path
            merged.updated_at = remote.updated_at
        if local.metadata is not None and remote.metadata is not None:
            merged.metadata = {**local.metadata, **remote.metadata}
        return merged
