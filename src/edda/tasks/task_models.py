# src/edda/tasks/task_models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from ..core.errors import InvalidStatusTransitionError, ValidationError


def utc_now() -> datetime:
    return datetime.now(UTC)


class TaskStatus(StrEnum):
    """
    Task lifecycle status (Taskwarrior-compatible names).

    Deleted is terminal: nothing leaves it.
    """

    PENDING = "pending"
    COMPLETED = "completed"
    DELETED = "deleted"
    WAITING = "waiting"

    @classmethod
    def parse(cls, raw: str) -> TaskStatus:
        try:
            return cls((raw or "").strip().lower())
        except ValueError:
            raise ValidationError(f"Invalid task status: {raw}") from None


ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.COMPLETED, TaskStatus.WAITING, TaskStatus.DELETED}),
    TaskStatus.WAITING: frozenset({TaskStatus.PENDING, TaskStatus.COMPLETED, TaskStatus.DELETED}),
    TaskStatus.COMPLETED: frozenset({TaskStatus.PENDING, TaskStatus.WAITING, TaskStatus.DELETED}),
    TaskStatus.DELETED: frozenset(),
}


def is_valid_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, frozenset())


_PRIORITY_WORDS = {"H": "H", "HIGH": "H", "M": "M", "MEDIUM": "M", "L": "L", "LOW": "L"}
_PRIORITY_WEIGHTS = {"H": 10, "M": 5, "L": 1}


@dataclass(frozen=True, slots=True)
class Priority:
    """
    Task priority: one of H / M / L or a numeric level 0-9.

    `weight` is the urgency contribution and is also what "higher priority" means
    when two priorities are compared during a merge.
    """

    value: str

    def __post_init__(self) -> None:
        if self.value not in _PRIORITY_WEIGHTS and not (self.value.isdigit() and len(self.value) == 1):
            raise ValidationError(f"Invalid priority: {self.value}")

    @classmethod
    def parse(cls, raw: str | int) -> Priority:
        if isinstance(raw, int):
            s = str(raw)
        else:
            s = (raw or "").strip().upper()
        if s in _PRIORITY_WORDS:
            return cls(_PRIORITY_WORDS[s])
        if s.isdigit():
            n = int(s)
            if n > 9:
                raise ValidationError(f"Priority number must be 0-9, got: {n}")
            return cls(str(n))
        raise ValidationError(f"Invalid priority: {raw}")

    @property
    def weight(self) -> int:
        if self.value in _PRIORITY_WEIGHTS:
            return _PRIORITY_WEIGHTS[self.value]
        return int(self.value)

    @property
    def is_numeric(self) -> bool:
        return self.value.isdigit()

    def __str__(self) -> str:
        return self.value


Priority.HIGH = Priority("H")  # type: ignore[attr-defined]
Priority.MEDIUM = Priority("M")  # type: ignore[attr-defined]
Priority.LOW = Priority("L")  # type: ignore[attr-defined]


@dataclass(frozen=True, slots=True)
class Annotation:
    entry: datetime
    description: str

    def to_dict(self) -> dict[str, str]:
        return {"entry": self.entry.isoformat(), "description": self.description}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Annotation:
        return cls(
            entry=parse_ts(raw.get("entry")) or utc_now(),
            description=str(raw.get("description") or ""),
        )


def parse_ts(raw: Any) -> datetime | None:
    """Parse an ISO timestamp (naive values are taken as UTC)."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        dt = raw
    else:
        dt = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


@dataclass(slots=True)
class Task:
    description: str
    id: int | None = None
    uuid: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: TaskStatus = TaskStatus.PENDING
    priority: Priority | None = None
    project: str | None = None

    due: datetime | None = None
    scheduled: datetime | None = None
    start: datetime | None = None
    end: datetime | None = None
    entry: datetime = field(default_factory=utc_now)
    modified: datetime | None = None

    tags: set[str] = field(default_factory=set)
    annotations: list[Annotation] = field(default_factory=list)
    parent_uuid: str | None = None
    depends: set[str] = field(default_factory=set)
    recurrence: str | None = None

    effort: int | None = None  # minutes
    effort_spent: int | None = None  # minutes

    def __post_init__(self) -> None:
        if self.modified is None or self.modified < self.entry:
            self.modified = self.entry
        self.tags = set(self.tags)
        self.depends = set(self.depends)

    # ---- mutations ----

    def touch(self) -> None:
        now = utc_now()
        # Never let modified fall behind entry (pulled tasks may carry remote clocks).
        self.modified = max(now, self.entry)

    def transition_to(self, new_status: TaskStatus) -> None:
        if not is_valid_transition(self.status, new_status):
            raise InvalidStatusTransitionError(self.status, new_status)
        self.status = new_status
        self.touch()

    def add_tag(self, tag: str) -> None:
        self.tags.add(tag)
        self.touch()

    def remove_tag(self, tag: str) -> bool:
        if tag not in self.tags:
            return False
        self.tags.discard(tag)
        self.touch()
        return True

    def add_annotation(self, description: str) -> None:
        self.annotations.append(Annotation(entry=utc_now(), description=description))
        self.touch()

    def start_tracking(self) -> None:
        if self.status not in (TaskStatus.PENDING, TaskStatus.WAITING):
            raise InvalidStatusTransitionError(self.status, "started")
        self.start = utc_now()
        self.touch()

    def stop_tracking(self) -> None:
        self.start = None
        self.touch()

    def complete(self) -> None:
        self.transition_to(TaskStatus.COMPLETED)
        self.end = self.modified

    def delete(self) -> None:
        self.transition_to(TaskStatus.DELETED)

    # ---- queries ----

    def is_active(self) -> bool:
        return self.status in (TaskStatus.PENDING, TaskStatus.WAITING)

    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    def is_deleted(self) -> bool:
        return self.status == TaskStatus.DELETED

    def is_overdue(self, now: datetime | None = None) -> bool:
        if self.due is None:
            return False
        return self.is_active() and (now or utc_now()) > self.due

    def age_days(self, now: datetime | None = None) -> int:
        return ((now or utc_now()) - self.entry).days

    def urgency(self, now: datetime | None = None) -> float:
        """Client-side sort key; never persisted."""
        now = now or utc_now()
        score = 0.0

        if self.priority is not None:
            score += self.priority.weight

        if self.due is not None:
            if now > self.due:
                score += 15.0
            else:
                days_until_due = (self.due - now).days
                if days_until_due <= 1:
                    score += 10.0
                elif days_until_due <= 7:
                    score += 5.0

        age = self.age_days(now)
        if age > 30:
            score += 2.0
        elif age > 7:
            score += 1.0

        return score

    def copy(self) -> Task:
        return Task(
            description=self.description,
            id=self.id,
            uuid=self.uuid,
            status=self.status,
            priority=self.priority,
            project=self.project,
            due=self.due,
            scheduled=self.scheduled,
            start=self.start,
            end=self.end,
            entry=self.entry,
            modified=self.modified,
            tags=set(self.tags),
            annotations=list(self.annotations),
            parent_uuid=self.parent_uuid,
            depends=set(self.depends),
            recurrence=self.recurrence,
            effort=self.effort,
            effort_spent=self.effort_spent,
        )

    def to_dict(self) -> dict[str, Any]:
        def ts(v: datetime | None) -> str | None:
            return v.isoformat() if v is not None else None

        return {
            "id": self.id,
            "uuid": self.uuid,
            "description": self.description,
            "status": self.status.value,
            "priority": str(self.priority) if self.priority else None,
            "project": self.project,
            "due": ts(self.due),
            "scheduled": ts(self.scheduled),
            "start": ts(self.start),
            "end": ts(self.end),
            "entry": ts(self.entry),
            "modified": ts(self.modified),
            "tags": sorted(self.tags),
            "annotations": [a.to_dict() for a in self.annotations],
            "parent_uuid": self.parent_uuid,
            "depends": sorted(self.depends),
            "recurrence": self.recurrence,
            "effort": self.effort,
            "effort_spent": self.effort_spent,
        }

    def __str__(self) -> str:
        prio = str(self.priority) if self.priority else ""
        project = f" [{self.project}]" if self.project else ""
        tags = " " + " ".join(f"+{t}" for t in sorted(self.tags)) if self.tags else ""
        return f"{self.id or 0}{prio}{project}{tags} {self.description}"
