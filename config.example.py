# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file)
and an optional TOML file (EDDA_CONFIG, else ./.edda.toml). Environment variables win.
Do NOT commit real tokens. Use .env (local, gitignored).

This file exists to make the repo self-documenting without opening config.py.
"""

ENV_VARS = {
    # App / logging
    "EDDA_APP_NAME": "App display name (default: edda).",
    "EDDA_LOG_LEVEL": "trace | debug | info | warn | error (default: info).",
    "EDDA_CONFIG": "Path to a TOML config file (default: ./.edda.toml if present).",
    # Local data
    "EDDA_DATA_DIR": "Directory for the database and logs (default: .local/edda).",
    "EDDA_DATABASE_URL": "sqlite:path/to/tasks.db (alternative to EDDA_TASKS_DB_PATH).",
    "EDDA_TASKS_DB_PATH": "SQLite file path (default: <data_dir>/tasks.sqlite3).",
    # GitHub
    "EDDA_GITHUB_TOKEN": "Personal access token with the repo scope.",
    "EDDA_GITHUB_REPOSITORY": "owner/repo whose issues are synced.",
    "EDDA_GITHUB_API_URL": "API base URL (default: https://api.github.com).",
    # Sync
    "EDDA_SYNC_INTERVAL": "Seconds between periodic syncs in the console (default: 300).",
    "EDDA_SYNC_QUEUE_CAPACITY": "Offline queue size (default: 1000).",
    "EDDA_SYNC_OVERFLOW_POLICY": "drop_oldest | reject (default: drop_oldest).",
    "EDDA_CONFLICT_STRATEGY": "manual | local_wins | remote_wins | merge (default: manual).",
    "EDDA_SYNC_TIMEOUT_SECONDS": "Timeout for each provider call (default: 30).",
    "EDDA_SYNC_MAX_RETRIES": "Retries for network failures (default: 2).",
    "EDDA_SYNC_RETRY_BACKOFF_SECONDS": "Initial retry backoff, doubled per attempt (default: 1).",
}

EXAMPLE_TOML = """
app_name = "edda"
log_level = "info"

[database]
url = "sqlite:.local/edda/tasks.sqlite3"

[github]
token = "ghp_..."
repository = "owner/repo"
sync_interval = 300

[sync]
queue_capacity = 1000
overflow_policy = "drop_oldest"
conflict_strategy = "manual"
timeout_seconds = 30
max_retries = 2
retry_backoff_seconds = 1.0
"""
