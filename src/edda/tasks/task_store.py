# src/edda/tasks/task_store.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..core.errors import (
    AlreadyExistsError,
    CorruptionError,
    MigrationError,
    NotFoundError,
    StorageConnectionError,
    TaskStorageError,
    ValidationError,
)
from .task_models import Annotation, Priority, Task, TaskStatus, parse_ts

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TaskFilter:
    """
    Query filter shared by the store (SQL) and the sync cache (in memory).

    Deleted tasks are hidden unless include_deleted is set or status=deleted is asked for.
    `tags` means "has all of these tags".
    """

    status: TaskStatus | None = None
    project: str | None = None
    tags: list[str] | None = None
    priority: Priority | None = None
    include_deleted: bool = False
    limit: int | None = None
    offset: int | None = None

    def _hides_deleted(self) -> bool:
        return not self.include_deleted and self.status != TaskStatus.DELETED

    def matches(self, task: Task) -> bool:
        if self._hides_deleted() and task.status == TaskStatus.DELETED:
            return False
        if self.status is not None and task.status != self.status:
            return False
        if self.project is not None and task.project != self.project:
            return False
        if self.priority is not None and task.priority != self.priority:
            return False
        if self.tags and not set(self.tags) <= task.tags:
            return False
        return True

    def apply(self, tasks: list[Task]) -> list[Task]:
        """Filter, order (modified desc) and page a list of tasks in memory."""
        out = [t for t in tasks if self.matches(t)]
        out.sort(key=lambda t: (t.modified, t.id or 0), reverse=True)
        start = max(0, int(self.offset or 0))
        if self.limit is not None:
            return out[start : start + max(0, int(self.limit))]
        return out[start:]


class TaskStore:
    """
    SQLite task store.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each operation opens its own SQLite connection
    - the async API runs the blocking work in a worker thread (asyncio.to_thread)
    """

    def __init__(self, db_path: str | Path = "edda.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self._count(None)
        except Exception:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        except sqlite3.Error as e:
            raise StorageConnectionError(f"{self._db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    uuid TEXT NOT NULL UNIQUE,
                    description TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending',
                    priority TEXT,
                    project TEXT,
                    due_date TEXT,
                    scheduled_date TEXT,
                    start_date TEXT,
                    end_date TEXT,
                    entry_date TEXT NOT NULL,
                    modified_date TEXT NOT NULL,
                    tags TEXT NOT NULL DEFAULT '[]',
                    annotations TEXT NOT NULL DEFAULT '[]',
                    parent_uuid TEXT,
                    depends TEXT NOT NULL DEFAULT '[]',
                    recurrence TEXT,
                    effort INTEGER,
                    effort_spent INTEGER
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("priority", "TEXT")
            add_col("project", "TEXT")
            add_col("scheduled_date", "TEXT")
            add_col("recurrence", "TEXT")
            add_col("effort", "INTEGER")
            add_col("effort_spent", "INTEGER")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status, modified_date)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_project ON tasks(project)")

            conn.commit()
        except sqlite3.Error as e:
            raise MigrationError(str(e)) from e
        finally:
            conn.close()

    @staticmethod
    def _json_list(raw: str | None, what: str) -> list[Any]:
        if not raw:
            return []
        try:
            val = json.loads(raw)
        except ValueError as e:
            raise CorruptionError(f"{what} is not valid JSON: {e}") from e
        return val if isinstance(val, list) else []

    @staticmethod
    def _ts(value: Any) -> str | None:
        return value.isoformat() if value is not None else None

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        try:
            status = TaskStatus.parse(row["status"])
            priority = Priority.parse(row["priority"]) if row["priority"] else None
        except ValidationError as e:
            raise CorruptionError(f"task id={row['id']}: {e}") from e

        return Task(
            id=int(row["id"]),
            uuid=str(row["uuid"]),
            description=str(row["description"] or ""),
            status=status,
            priority=priority,
            project=row["project"],
            due=parse_ts(row["due_date"]),
            scheduled=parse_ts(row["scheduled_date"]),
            start=parse_ts(row["start_date"]),
            end=parse_ts(row["end_date"]),
            entry=parse_ts(row["entry_date"]),
            modified=parse_ts(row["modified_date"]),
            tags=set(self._json_list(row["tags"], "tags")),
            annotations=[
                Annotation.from_dict(a)
                for a in self._json_list(row["annotations"], "annotations")
                if isinstance(a, dict)
            ],
            parent_uuid=row["parent_uuid"],
            depends=set(self._json_list(row["depends"], "depends")),
            recurrence=row["recurrence"],
            effort=row["effort"],
            effort_spent=row["effort_spent"],
        )

    def _task_params(self, task: Task) -> dict[str, Any]:
        return {
            "uuid": task.uuid,
            "description": task.description,
            "status": task.status.value,
            "priority": str(task.priority) if task.priority else None,
            "project": task.project,
            "due_date": self._ts(task.due),
            "scheduled_date": self._ts(task.scheduled),
            "start_date": self._ts(task.start),
            "end_date": self._ts(task.end),
            "entry_date": self._ts(task.entry),
            "modified_date": self._ts(task.modified),
            "tags": json.dumps(sorted(task.tags), ensure_ascii=False),
            "annotations": json.dumps([a.to_dict() for a in task.annotations], ensure_ascii=False),
            "parent_uuid": task.parent_uuid,
            "depends": json.dumps(sorted(task.depends)),
            "recurrence": task.recurrence,
            "effort": task.effort,
            "effort_spent": task.effort_spent,
        }

    @staticmethod
    def _where(flt: TaskFilter | None) -> tuple[str, list[Any]]:
        flt = flt or TaskFilter()
        clauses = ["1=1"]
        params: list[Any] = []

        if flt._hides_deleted():
            clauses.append("status != 'deleted'")
        if flt.status is not None:
            clauses.append("status = ?")
            params.append(flt.status.value)
        if flt.project is not None:
            clauses.append("project = ?")
            params.append(flt.project)
        if flt.priority is not None:
            clauses.append("priority = ?")
            params.append(str(flt.priority))
        for tag in flt.tags or []:
            clauses.append("EXISTS (SELECT 1 FROM json_each(tasks.tags) WHERE json_each.value = ?)")
            params.append(tag)

        return " AND ".join(clauses), params

    # ---- blocking implementations ----

    def _create(self, task: Task) -> Task:
        params = self._task_params(task)
        cols = ", ".join(params)
        marks = ", ".join("?" for _ in params)

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            try:
                cur.execute(f"INSERT INTO tasks ({cols}) VALUES ({marks})", tuple(params.values()))
            except sqlite3.IntegrityError as e:
                raise AlreadyExistsError(task.uuid) from e
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise TaskStorageError("SQLite did not return lastrowid for tasks insert")
        except sqlite3.Error as e:
            raise TaskStorageError(f"Failed to create task: {e}") from e
        finally:
            conn.close()

        created = task.copy()
        created.id = int(rowid)
        logger.debug("Task created id=%s uuid=%s status=%s", created.id, created.uuid, created.status.value)
        return created

    def _get_one(self, sql: str, arg: Any) -> Task | None:
        conn = self._get_conn()
        try:
            row = conn.execute(sql, (arg,)).fetchone()
            return self._row_to_task(row) if row else None
        except sqlite3.Error as e:
            raise TaskStorageError(f"Failed to get task: {e}") from e
        finally:
            conn.close()

    def _update(self, task: Task) -> Task:
        if task.id is None:
            raise ValidationError("Task must have an ID to update")

        params = self._task_params(task)
        params.pop("uuid")  # immutable after creation
        assignments = ", ".join(f"{k} = ?" for k in params)

        conn = self._get_conn()
        try:
            cur = conn.execute(
                f"UPDATE tasks SET {assignments} WHERE id = ?",
                (*params.values(), int(task.id)),
            )
            conn.commit()
            if cur.rowcount != 1:
                raise NotFoundError(task.id)
        except sqlite3.Error as e:
            raise TaskStorageError(f"Failed to update task: {e}") from e
        finally:
            conn.close()

        logger.debug("Task updated id=%s status=%s", task.id, task.status.value)
        return task.copy()

    def _delete(self, task_id: int) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
            conn.commit()
            return cur.rowcount > 0
        except sqlite3.Error as e:
            raise TaskStorageError(f"Failed to delete task: {e}") from e
        finally:
            conn.close()

    def _list(self, flt: TaskFilter | None) -> list[Task]:
        where, params = self._where(flt)
        sql = f"SELECT * FROM tasks WHERE {where} ORDER BY modified_date DESC, id DESC"
        if flt is not None and (flt.limit is not None or flt.offset is not None):
            sql += " LIMIT ? OFFSET ?"
            params += [-1 if flt.limit is None else int(flt.limit), int(flt.offset or 0)]

        conn = self._get_conn()
        try:
            rows = conn.execute(sql, params).fetchall()
            return [self._row_to_task(r) for r in rows]
        except sqlite3.Error as e:
            raise TaskStorageError(f"Failed to list tasks: {e}") from e
        finally:
            conn.close()

    def _count(self, flt: TaskFilter | None) -> int:
        where, params = self._where(flt)
        conn = self._get_conn()
        try:
            (n,) = conn.execute(f"SELECT COUNT(*) FROM tasks WHERE {where}", params).fetchone()
            return int(n)
        except sqlite3.Error as e:
            raise TaskStorageError(f"Failed to count tasks: {e}") from e
        finally:
            conn.close()

    # ---- public API ----

    async def create(self, task: Task) -> Task:
        return await asyncio.to_thread(self._create, task)

    async def get_by_id(self, task_id: int) -> Task | None:
        return await asyncio.to_thread(self._get_one, "SELECT * FROM tasks WHERE id = ?", int(task_id))

    async def get_by_uuid(self, task_uuid: str) -> Task | None:
        return await asyncio.to_thread(self._get_one, "SELECT * FROM tasks WHERE uuid = ?", str(task_uuid))

    async def update(self, task: Task) -> Task:
        return await asyncio.to_thread(self._update, task)

    async def delete(self, task_id: int) -> bool:
        return await asyncio.to_thread(self._delete, task_id)

    async def list(self, flt: TaskFilter | None = None) -> list[Task]:
        return await asyncio.to_thread(self._list, flt)

    async def count(self, flt: TaskFilter | None = None) -> int:
        return await asyncio.to_thread(self._count, flt)
