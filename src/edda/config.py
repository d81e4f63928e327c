# src/edda/config.py

"""Centralized settings loaded from environment variables, .env and an optional TOML file.

Precedence (highest first):
- EDDA_* environment variables (a local .env is loaded into the environment, never overriding it)
- the TOML config file (EDDA_CONFIG, else ./.edda.toml if present)
- built-in defaults

No secrets are required at import time; get_settings() builds the object on first use.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .core.errors import ConfigFileNotFoundError, InvalidConfigError
from .sync.sync_models import ConflictResolution, OverflowPolicy

logger = logging.getLogger(__name__)

ENV_PREFIX = "EDDA"
DEFAULT_CONFIG_FILE = ".edda.toml"

# Accepted spellings -> stdlib logging levels ("trace" has no stdlib level; it maps to DEBUG).
LOG_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _sqlite_path(url: str) -> Path:
    """`sqlite:edda.db` / `sqlite:///abs/edda.db` / plain path -> Path."""
    raw = url.strip()
    if raw.startswith("sqlite:"):
        raw = raw[len("sqlite:"):]
        if raw.startswith("///"):
            raw = raw[2:]
        elif raw.startswith("//"):
            raw = raw[2:]
    return Path(raw).expanduser()


def load_config_file(path: str | Path) -> dict[str, Any]:
    p = Path(path).expanduser()
    if not p.is_file():
        raise ConfigFileNotFoundError(p)
    try:
        with p.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise InvalidConfigError(f"Failed to parse TOML in {p}: {e}") from e
    except OSError as e:
        raise InvalidConfigError(f"Failed to read config file {p}: {e}") from e


def find_config_file() -> Path | None:
    """EDDA_CONFIG if set (even when missing, so loading reports it), else ./.edda.toml if present."""
    explicit = _first_env(_k("CONFIG"))
    if explicit:
        return Path(explicit).expanduser()
    default = Path(DEFAULT_CONFIG_FILE)
    return default if default.is_file() else None


def _resolve_config_file(config_path: str | Path | None) -> dict[str, Any]:
    path = Path(config_path) if config_path is not None else find_config_file()
    return load_config_file(path) if path is not None else {}


# Written by `edda init`; mirrors the defaults in Settings.from_env().
DEFAULT_CONFIG_TOML = """\
# edda configuration. EDDA_* environment variables override these values.
app_name = "edda"
log_level = "info"
data_dir = ".local/edda"

[database]
url = "sqlite:.local/edda/tasks.sqlite3"

[github]
# Prefer EDDA_GITHUB_TOKEN over storing the token here.
# token = "ghp_..."
# repository = "owner/repo"
api_url = "https://api.github.com"
sync_interval = 300

[sync]
queue_capacity = 1000
overflow_policy = "drop_oldest"
conflict_strategy = "manual"
timeout_seconds = 30.0
max_retries = 2
retry_backoff_seconds = 1.0
"""


def write_default_config(path: str | Path) -> bool:
    """Create the default config file; returns False (and leaves it alone) if it exists."""
    p = Path(path).expanduser()
    if p.exists():
        return False
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(DEFAULT_CONFIG_TOML, encoding="utf-8")
    logger.info("Default config written to %s", p)
    return True


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    sec = data.get(name)
    return sec if isinstance(sec, dict) else {}


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data ----
    data_dir: Path
    tasks_db_path: Path

    # ---- GitHub ----
    github_token: str | None
    github_repository: str | None
    github_api_url: str

    # ---- Sync ----
    sync_interval_seconds: int
    sync_queue_capacity: int
    sync_overflow_policy: str
    conflict_strategy: str
    sync_timeout_seconds: float
    sync_max_retries: int
    sync_retry_backoff_seconds: float

    @property
    def log_level_int(self) -> int:
        return LOG_LEVELS.get(self.log_level.strip().lower(), logging.INFO)

    @property
    def github_enabled(self) -> bool:
        return bool(self.github_token and self.github_repository)

    def validate(self) -> None:
        if self.log_level.strip().lower() not in LOG_LEVELS:
            raise InvalidConfigError(f"Invalid log level: {self.log_level}")
        ConflictResolution.parse(self.conflict_strategy)
        OverflowPolicy.parse(self.sync_overflow_policy)
        if self.sync_queue_capacity <= 0:
            raise InvalidConfigError(f"Queue capacity must be positive: {self.sync_queue_capacity}")
        if self.sync_interval_seconds <= 0:
            raise InvalidConfigError(f"Sync interval must be positive: {self.sync_interval_seconds}")
        if self.sync_timeout_seconds <= 0:
            raise InvalidConfigError(f"Sync timeout must be positive: {self.sync_timeout_seconds}")
        if self.sync_max_retries < 0:
            raise InvalidConfigError(f"Sync retries cannot be negative: {self.sync_max_retries}")

    @staticmethod
    def from_env(config_path: str | Path | None = None) -> "Settings":
        file_data = _resolve_config_file(config_path)
        gh = _section(file_data, "github")
        sync = _section(file_data, "sync")
        db = _section(file_data, "database")

        app_name = _env(_k("APP_NAME"), str(file_data.get("app_name", "edda")))
        log_level = _env(_k("LOG_LEVEL"), str(file_data.get("log_level", "info")))

        data_dir = _env_path(_k("DATA_DIR"), Path(str(file_data.get("data_dir", ".local/edda"))).expanduser())

        db_url = _first_env(_k("DATABASE_URL"), default=None) or db.get("url")
        tasks_db_path = _env_path(
            _k("TASKS_DB_PATH"),
            _sqlite_path(str(db_url)) if db_url else data_dir / "tasks.sqlite3",
        )

        github_token = _first_env(_k("GITHUB_TOKEN"), default=gh.get("token"))
        github_repository = _first_env(_k("GITHUB_REPOSITORY"), default=gh.get("repository"))
        github_api_url = _env(_k("GITHUB_API_URL"), str(gh.get("api_url", "https://api.github.com")))

        sync_interval_seconds = _env_int(_k("SYNC_INTERVAL"), int(gh.get("sync_interval", 300)))
        sync_queue_capacity = _env_int(_k("SYNC_QUEUE_CAPACITY"), int(sync.get("queue_capacity", 1000)))
        sync_overflow_policy = _env(_k("SYNC_OVERFLOW_POLICY"), str(sync.get("overflow_policy", "drop_oldest")))
        conflict_strategy = _env(_k("CONFLICT_STRATEGY"), str(sync.get("conflict_strategy", "manual")))
        sync_timeout_seconds = _env_float(_k("SYNC_TIMEOUT_SECONDS"), float(sync.get("timeout_seconds", 30.0)))
        sync_max_retries = _env_int(_k("SYNC_MAX_RETRIES"), int(sync.get("max_retries", 2)))
        sync_retry_backoff_seconds = _env_float(
            _k("SYNC_RETRY_BACKOFF_SECONDS"),
            float(sync.get("retry_backoff_seconds", 1.0)),
        )

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            github_token=(github_token or "").strip() or None,
            github_repository=(github_repository or "").strip() or None,
            github_api_url=github_api_url,
            sync_interval_seconds=sync_interval_seconds,
            sync_queue_capacity=sync_queue_capacity,
            sync_overflow_policy=sync_overflow_policy,
            conflict_strategy=conflict_strategy,
            sync_timeout_seconds=sync_timeout_seconds,
            sync_max_retries=sync_max_retries,
            sync_retry_backoff_seconds=sync_retry_backoff_seconds,
        )


SETTING_KEYS: tuple[str, ...] = tuple(f.name for f in fields(Settings))
SECRET_KEYS = frozenset({"github_token"})

_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
