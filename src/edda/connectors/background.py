# src/edda/connectors/background.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import Any, TypeVar

from ..cli.bootstrap import close_state
from ..core.state import AppState
from ..sync.sync_scheduler import run_sync_scheduler

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _run_background(state: AppState, stop_event: asyncio.Event) -> None:
    scheduler_task: asyncio.Task[None] | None = None
    if state.sync.provider is not None:
        scheduler_task = asyncio.create_task(
            run_sync_scheduler(
                state.sync,
                interval_seconds=float(state.settings.sync_interval_seconds),
            )
        )
        logger.info(
            "Periodic sync started (provider=%s, interval=%ss).",
            state.sync.provider.name,
            state.settings.sync_interval_seconds,
        )

    try:
        await stop_event.wait()
    finally:
        if scheduler_task is not None:
            scheduler_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await scheduler_task

        try:
            await close_state(state)
        except Exception:
            logger.exception("Shutdown of app state failed.")

        logger.info("Background loop stopped.")


@dataclass
class BackgroundLoop:
    """
    Event loop thread that owns the engine, the sync manager and the periodic sync.

    The console REPL is blocking (input()), so commands are submitted to this loop
    with call(); every async object is only ever touched from this one loop.
    """

    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def call(self, coro: Coroutine[Any, Any, T], timeout: float | None = None) -> T:
        fut = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return fut.result(timeout=timeout)

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Background loop already closed.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_background_loop(state: AppState) -> BackgroundLoop:
    """Start the app's event loop in a daemon thread and wait until it accepts work."""
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(_run_background(state, stop_event))
        finally:
            loop.close()

    t = threading.Thread(target=runner, name="edda-loop", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        raise RuntimeError("Background event loop did not initialize.")

    logger.debug("Background loop thread started.")
    return BackgroundLoop(thread=t, loop=loop, stop_event=stop_event)
