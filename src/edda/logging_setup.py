# src/edda/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from pathlib import Path

LOG_FILE_NAME = "edda.log"
MASK = "***"

# Loggers that run on the background sync loop; at INFO they would interleave with the prompt.
BACKGROUND_LOGGERS = (
    "edda.sync.sync_scheduler",
    "edda.sync.offline_queue",
    "edda.sync.local_cache",
)


class _RedactSecrets(logging.Filter):
    """Replace configured secrets (the GitHub token) in the rendered message with ***."""

    def __init__(self, secrets: Iterable[str | None]) -> None:
        super().__init__()
        # Longest first so a token containing another secret is masked whole.
        self._secrets = sorted({s for s in secrets if s}, key=len, reverse=True)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        message = record.getMessage()
        masked = message
        for secret in self._secrets:
            masked = masked.replace(secret, MASK)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


class _ConsoleFilter(logging.Filter):
    """
    Keep the interactive console readable.

    edda loggers pass, except the background ones below WARNING.
    Everything else (httpx, httpcore, py.warnings) needs ERROR+.
    """

    def __init__(self, quiet: Iterable[str] = BACKGROUND_LOGGERS) -> None:
        super().__init__()
        self._quiet = tuple(quiet)

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name == "edda" or name.startswith("edda."):
            if name.startswith(self._quiet):
                return record.levelno >= logging.WARNING
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/edda",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    secrets: Iterable[str | None] = (),
) -> Path:
    """
    Console on stderr (filtered for the REPL) plus a full debug log at <log_dir>/edda.log.

    Both handlers mask `secrets`. Call once, before the first log line; returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    redact = _RedactSecrets(secrets)

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(redact)
    ch.addFilter(_ConsoleFilter())
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    fh.addFilter(redact)
    root.addHandler(fh)

    logging.captureWarnings(True)

    # httpx logs every request at INFO; the file only needs its warnings.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    return log_file
