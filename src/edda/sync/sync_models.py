# src/edda/sync/sync_models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from ..core.errors import InvalidConfigError
from ..tasks.task_models import Task, utc_now


class SyncStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class ConflictResolution(StrEnum):
    LOCAL_WINS = "local_wins"
    REMOTE_WINS = "remote_wins"
    MANUAL = "manual"  # most recently modified side wins
    MERGE = "merge"

    @classmethod
    def parse(cls, raw: str) -> ConflictResolution:
        key = (raw or "").strip().lower().replace("-", "_")
        try:
            return cls(key)
        except ValueError:
            raise InvalidConfigError(f"Unknown conflict strategy: {raw}") from None


class OverflowPolicy(StrEnum):
    """What the offline queue does when it is at capacity."""

    DROP_OLDEST = "drop_oldest"
    REJECT = "reject"

    @classmethod
    def parse(cls, raw: str) -> OverflowPolicy:
        key = (raw or "").strip().lower().replace("-", "_")
        try:
            return cls(key)
        except ValueError:
            raise InvalidConfigError(f"Unknown queue overflow policy: {raw}") from None


class OperationKind(StrEnum):
    CREATE_TASK = "create_task"
    UPDATE_TASK = "update_task"
    DELETE_TASK = "delete_task"
    CREATE_DOCUMENT = "create_document"
    UPDATE_DOCUMENT = "update_document"
    DELETE_DOCUMENT = "delete_document"

    @property
    def is_task(self) -> bool:
        return self.value.endswith("_task")


@dataclass(slots=True)
class Document:
    title: str
    id: int | None = None
    uuid: str = field(default_factory=lambda: str(uuid.uuid4()))
    content: str | None = None
    content_type: str | None = None
    file_path: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def copy(self) -> Document:
        return Document(
            title=self.title,
            id=self.id,
            uuid=self.uuid,
            content=self.content,
            content_type=self.content_type,
            file_path=self.file_path,
            metadata=dict(self.metadata) if self.metadata is not None else None,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


@dataclass(frozen=True, slots=True)
class SyncOperation:
    """
    One not-yet-synchronized local mutation.

    Carries a snapshot of the entity as it was when the mutation happened
    (delete operations included, so the remote side can be told what went away).
    """

    kind: OperationKind
    entity_id: int
    task: Task | None = None
    document: Document | None = None
    timestamp: datetime = field(default_factory=utc_now)
    op_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def for_task(cls, kind: OperationKind, task: Task) -> SyncOperation:
        return cls(kind=kind, entity_id=int(task.id or 0), task=task.copy())

    @classmethod
    def for_document(cls, kind: OperationKind, document: Document) -> SyncOperation:
        return cls(kind=kind, entity_id=int(document.id or 0), document=document.copy())

    @property
    def entity_key(self) -> tuple[str, int]:
        return ("task" if self.kind.is_task else "document", self.entity_id)


@dataclass(slots=True)
class CachedTask:
    task: Task
    last_modified: datetime
    version: int
    sync_status: SyncStatus = SyncStatus.PENDING
    sync_error: str | None = None


@dataclass(slots=True)
class CachedDocument:
    document: Document
    last_modified: datetime
    version: int
    sync_status: SyncStatus = SyncStatus.PENDING
    sync_error: str | None = None


@dataclass(slots=True)
class SyncReport:
    """Outcome of one SyncManager.sync() pass."""

    pushed: int = 0
    failed: int = 0
    skipped: int = 0
    pulled: int = 0
    created_locally: int = 0
    resolved: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        return (
            f"pushed={self.pushed} failed={self.failed} skipped={self.skipped} "
            f"pulled={self.pulled} new={self.created_locally} resolved={self.resolved}"
        )
