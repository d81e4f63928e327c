# src/edda/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then either:
- runs one command and exits:      edda add "Buy milk" project:home
- or starts the console REPL, with the event loop (engine, sync, periodic sync)
  in a background thread.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

from ..cli.bootstrap import close_state, create_initial_state
from ..cli.commands import registry
from ..config import get_settings
from ..connectors.background import start_background_loop
from ..connectors.console_connector import run_console_loop
from ..core.errors import ConfigError
from ..core.state import AppState
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def run_once(state: AppState, argv: list[str]) -> str:
    """Run a single command (argv without the program name) and release resources."""
    try:
        return await registry.dispatch(state, argv[0], argv[1:], emit=lambda text: print(text, file=sys.stderr))
    finally:
        await close_state(state)


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)

    try:
        settings = get_settings()
        settings.validate()
    except ConfigError as e:
        print(f"edda: {e}", file=sys.stderr)
        return 2

    setup_logging(
        log_dir=settings.data_dir,
        console_level=settings.log_level_int,
        secrets=[settings.github_token],
    )

    # One-shot commands print their result; keep the console quiet unless something is wrong.
    if argv:
        logging.getLogger("edda").setLevel(max(settings.log_level_int, logging.WARNING))

    logger.debug("Starting %s...", settings.app_name)

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    if argv:
        try:
            out = asyncio.run(run_once(state, argv))
        except Exception:
            logger.exception("Command crashed.")
            print("Internal error while handling a command.", file=sys.stderr)
            return 1
        print(out)
        return 1 if out.startswith(("Error:", "Unknown command:")) else 0

    runner = start_background_loop(state)

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        runner.stop()
        raise KeyboardInterrupt

    try:
        signal.signal(signal.SIGTERM, _handle_signal)
    except (ValueError, OSError, AttributeError):
        # Not on the main thread, or the platform has no SIGTERM.
        pass

    try:
        run_console_loop(state, runner)
    finally:
        runner.stop()
        runner.join(timeout=10.0)
        logger.info("Bye.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
