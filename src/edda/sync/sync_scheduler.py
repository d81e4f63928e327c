# src/edda/sync/sync_scheduler.py

from __future__ import annotations

"""
Periodic sync.

A small polling loop that runs SyncManager.sync() when:
- local operations are waiting in the offline queue, or
- interval_seconds passed since the last sync attempt (picks up remote changes).

Failures are logged and retried on the next tick; the queue keeps whatever was not pushed.
"""

import asyncio
import logging
import time

from ..core.errors import EddaError
from ..core.ports import SyncProvider
from .sync_manager import SyncManager

logger = logging.getLogger(__name__)


async def run_sync_scheduler(
        manager: SyncManager,
        provider: SyncProvider | None = None,
        *,
        interval_seconds: float = 300.0,
        poll_seconds: float = 5.0,
) -> None:
    """
    Simple polling scheduler.

    Every poll_seconds:
    - sync if the queue is not empty (pushes local work soon after it happens)
    - otherwise sync once interval_seconds elapsed since the previous attempt

    To stop the scheduler, cancel the coroutine/task.
    """
    interval_s = max(0.01, float(interval_seconds))
    sleep_s = max(0.01, min(float(poll_seconds), interval_s))
    last_attempt: float | None = None
    last_failed = False

    while True:
        now = time.monotonic()
        due = last_attempt is None or (now - last_attempt) >= interval_s

        try:
            pending = await manager.has_pending_operations()
        except Exception:
            logger.exception("has_pending_operations failed")
            pending = False

        # After a failure, wait for the full interval instead of retrying every poll.
        if due or (pending and not last_failed):
            last_attempt = now
            last_failed = True
            try:
                report = await manager.sync(provider)
                last_failed = not report.ok
                if report.ok:
                    logger.info("Scheduled sync ok: %s", report.summary())
                else:
                    logger.warning("Scheduled sync finished with errors: %s (%s)", report.summary(), "; ".join(report.errors))
            except EddaError as e:
                logger.warning("Scheduled sync failed: %s", e)
            except Exception:
                logger.exception("Scheduled sync crashed")

        await asyncio.sleep(sleep_s)
