# src/edda/core/errors.py

"""
Error taxonomy.

Everything raised on purpose by edda derives from EddaError, grouped by area:
- TaskError: entity / validation problems (detected before any store mutation)
- StorageError: the SQLite layer itself is unusable
- SyncError: provider, network and queue problems
- ConfigError: settings could not be loaded or validated
"""

from __future__ import annotations


class EddaError(Exception):
    """Base class for all edda errors."""


# ---- task errors ----


class TaskError(EddaError):
    pass


class NotFoundError(TaskError):
    def __init__(self, task_id: object) -> None:
        self.task_id = str(task_id)
        super().__init__(f"Task not found: {self.task_id}")


class InvalidStatusTransitionError(TaskError):
    def __init__(self, from_status: object, to_status: object) -> None:
        self.from_status = str(from_status)
        self.to_status = str(to_status)
        super().__init__(f"Invalid status transition from {self.from_status} to {self.to_status}")


class ValidationError(TaskError):
    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Validation error: {message}")


class AlreadyExistsError(TaskError):
    def __init__(self, task_id: object) -> None:
        self.task_id = str(task_id)
        super().__init__(f"Task already exists: {self.task_id}")


class TaskStorageError(TaskError):
    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Storage error: {message}")


# ---- storage errors ----


class StorageError(EddaError):
    prefix = "Storage error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"{self.prefix}: {message}")


class StorageConnectionError(StorageError):
    prefix = "Database connection failed"


class MigrationError(StorageError):
    prefix = "Database migration failed"


class CorruptionError(StorageError):
    prefix = "Data corruption detected"


class InitializationError(StorageError):
    prefix = "Storage initialization failed"


class BackupError(StorageError):
    prefix = "Backup error"


# ---- sync errors ----


class SyncError(EddaError):
    prefix = "Sync error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"{self.prefix}: {message}")


class ProviderNotFoundError(SyncError):
    prefix = "Sync provider not found"


class AuthenticationError(SyncError):
    prefix = "Authentication failed"


class NetworkError(SyncError):
    prefix = "Network error"


class ConflictError(SyncError):
    prefix = "Conflict resolution failed"


class SyncConfigurationError(SyncError):
    prefix = "Sync configuration error"


class QueueFullError(SyncError):
    prefix = "Offline queue is full"


# ---- config errors ----


class ConfigError(EddaError):
    pass


class ConfigFileNotFoundError(ConfigError):
    def __init__(self, path: object) -> None:
        self.path = str(path)
        super().__init__(f"Configuration file not found: {self.path}")


class InvalidConfigError(ConfigError):
    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Configuration validation failed: {message}")
