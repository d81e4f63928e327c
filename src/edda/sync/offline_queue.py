# src/edda/sync/offline_queue.py

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..core.errors import QueueFullError
from .rwlock import RWLock
from .sync_models import OverflowPolicy, SyncOperation

logger = logging.getLogger(__name__)


class OfflineQueue:
    """
    Bounded, insertion-ordered log of operations not yet confirmed by the remote.

    On overflow:
    - DROP_OLDEST: evict the oldest entry (logged at WARNING, the operation is lost)
    - REJECT: raise QueueFullError and keep the queue as it is
    """

    def __init__(self, capacity: int = 1000, *, overflow: OverflowPolicy = OverflowPolicy.DROP_OLDEST) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._ops: list[SyncOperation] = []
        self._capacity = int(capacity)
        self._overflow = overflow
        self._lock = RWLock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def overflow(self) -> OverflowPolicy:
        return self._overflow

    async def enqueue(self, op: SyncOperation) -> None:
        async with self._lock.write():
            if len(self._ops) >= self._capacity:
                if self._overflow == OverflowPolicy.REJECT:
                    raise QueueFullError(f"{len(self._ops)} operations pending (capacity {self._capacity})")
                evicted = self._ops.pop(0)
                logger.warning(
                    "Offline queue full (capacity=%s); dropped oldest op kind=%s entity=%s queued_at=%s",
                    self._capacity,
                    evicted.kind.value,
                    evicted.entity_id,
                    evicted.timestamp.isoformat(),
                )
            self._ops.append(op)
            logger.debug("Queued op kind=%s entity=%s size=%s", op.kind.value, op.entity_id, len(self._ops))

    async def get_pending(self) -> list[SyncOperation]:
        """Snapshot of every queued operation, oldest first. Nothing is removed."""
        async with self._lock.read():
            return list(self._ops)

    async def remove_at(self, indices: Iterable[int]) -> None:
        """Remove entries by position; highest index first so lower ones don't shift."""
        async with self._lock.write():
            for index in sorted(set(indices), reverse=True):
                if 0 <= index < len(self._ops):
                    del self._ops[index]

    async def discard(self, ops: Iterable[SyncOperation]) -> int:
        """Remove the given operations by identity; returns how many were still queued."""
        ids = {op.op_id for op in ops}
        async with self._lock.write():
            before = len(self._ops)
            self._ops = [op for op in self._ops if op.op_id not in ids]
            return before - len(self._ops)

    async def clear(self) -> None:
        async with self._lock.write():
            self._ops.clear()

    async def size(self) -> int:
        async with self._lock.read():
            return len(self._ops)

    async def is_empty(self) -> bool:
        async with self._lock.read():
            return not self._ops
