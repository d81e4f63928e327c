# tests/test_conflict_resolver.py

from __future__ import annotations

from datetime import timedelta

from edda.sync.resolver import ConflictResolver
from edda.sync.sync_models import ConflictResolution, Document
from edda.tasks.task_models import Annotation, Priority, Task, utc_now


def _pair() -> tuple[Task, Task]:
    now = utc_now()
    local = Task(description="local", entry=now - timedelta(hours=2), modified=now - timedelta(hours=1))
    remote = local.copy()
    remote.description = "remote"
    remote.modified = now
    return local, remote


def test_local_and_remote_wins() -> None:
    local, remote = _pair()
    r = ConflictResolver()
    assert r.resolve_task(local, remote, ConflictResolution.LOCAL_WINS).description == "local"
    assert r.resolve_task(local, remote, ConflictResolution.REMOTE_WINS).description == "remote"


def test_manual_takes_latest_and_ties_go_remote() -> None:
    local, remote = _pair()
    r = ConflictResolver(ConflictResolution.MANUAL)
    assert r.resolve_task(local, remote).description == "remote"

    local.modified = remote.modified + timedelta(seconds=1)
    assert r.resolve_task(local, remote).description == "local"

    local.modified = remote.modified
    assert r.resolve_task(local, remote).description == "remote"


def test_merge_unions_tags_and_concatenates_annotations() -> None:
    local, remote = _pair()
    local.tags = {"a", "b"}
    remote.tags = {"b", "c"}
    local.annotations = [Annotation(entry=local.entry, description="x")]
    remote.annotations = [Annotation(entry=remote.entry, description="y")]

    merged = ConflictResolver().resolve_task(local, remote, ConflictResolution.MERGE)

    assert merged.tags == {"a", "b", "c"}
    assert [a.description for a in merged.annotations] == ["x", "y"]
    assert merged.modified == remote.modified
    assert merged.description == "local"


def test_merge_priority_rules() -> None:
    r = ConflictResolver(ConflictResolution.MERGE)

    local, remote = _pair()
    local.priority, remote.priority = Priority.LOW, Priority.HIGH
    assert r.resolve_task(local, remote).priority == Priority.HIGH

    local.priority, remote.priority = Priority.MEDIUM, Priority.parse("5")
    assert r.resolve_task(local, remote).priority == Priority.MEDIUM  # tie keeps local

    local.priority, remote.priority = None, Priority.LOW
    assert r.resolve_task(local, remote).priority == Priority.LOW

    local.priority, remote.priority = Priority.HIGH, None
    assert r.resolve_task(local, remote).priority == Priority.HIGH


def test_document_merge_metadata_and_latest_fields() -> None:
    now = utc_now()
    local = Document(title="local", id=1, metadata={"a": 1, "b": 1}, updated_at=now - timedelta(minutes=5))
    remote = local.copy()
    remote.title = "remote"
    remote.metadata = {"b": 2, "c": 3}
    remote.updated_at = now

    merged = ConflictResolver().resolve_document(local, remote, ConflictResolution.MERGE)
    assert merged.metadata == {"a": 1, "b": 2, "c": 3}
    assert merged.title == "remote"
    assert merged.updated_at == now

    manual = ConflictResolver().resolve_document(local, remote)
    assert manual.title == "remote"
