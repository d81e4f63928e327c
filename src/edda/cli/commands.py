# src/edda/cli/commands.py

from __future__ import annotations

import inspect
import json
import logging
import shlex
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path
from typing import Any

from ..config import DEFAULT_CONFIG_FILE, SECRET_KEYS, SETTING_KEYS, find_config_file, write_default_config
from ..core.errors import ConfigError, EddaError, ProviderNotFoundError, ValidationError
from ..core.state import AppState
from ..sync.sync_models import SyncStatus
from ..tasks.task_models import Priority, Task, TaskStatus, parse_ts, utc_now
from ..tasks.task_store import TaskFilter

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[
    [AppState, list[str], CommandEmitter | None], str | Awaitable[str]
]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console and the one-shot CLI (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def names(self) -> list[str]:
        return list(self._handlers)

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError:
            parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        return await self.dispatch(state, parts[0], parts[1:], emit)

    async def dispatch(
        self,
        state: AppState,
        name: str,
        args: list[str],
        emit: CommandEmitter | None = None,
    ) -> str:
        name = name.lower().lstrip("/")
        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            result = handler(state, args, emit)
            if inspect.isawaitable(result):
                result = await result
        except EddaError as e:
            logger.debug("/%s failed: %s", name, e)
            return f"Error: {e}"
        return str(result)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _ts_local(ts: datetime | None) -> str:
    if ts is None:
        return "-"
    return ts.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _parse_id(raw: str | None) -> int:
    try:
        return int(str(raw))
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid task ID: {raw}") from None


def _parse_due(raw: str) -> datetime | None:
    if raw.strip().lower() in ("", "none"):
        return None
    try:
        return parse_ts(raw)
    except ValueError:
        raise ValidationError(f"Invalid date: {raw}") from None


def _split_modifiers(args: list[str]) -> tuple[list[str], dict[str, Any], bool]:
    """
    Split taskwarrior-style modifiers off the free text:
      project:X  priority:H (pri:)  due:2026-01-31  status:pending  +tag  limit:N  --json
    """
    words: list[str] = []
    mods: dict[str, Any] = {}
    as_json = False

    for arg in args:
        if arg == "--json":
            as_json = True
            continue
        if arg.startswith("+") and len(arg) > 1:
            mods.setdefault("tags", []).append(arg[1:])
            continue

        key, sep, value = arg.partition(":")
        key = key.lower()
        if sep and key in ("project", "pro"):
            mods["project"] = value or None
        elif sep and key in ("priority", "pri"):
            mods["priority"] = Priority.parse(value) if value else None
        elif sep and key == "due":
            mods["due"] = _parse_due(value)
        elif sep and key == "status":
            mods["status"] = TaskStatus.parse(value)
        elif sep and key == "limit":
            mods["limit"] = _parse_id(value)
        else:
            words.append(arg)

    return words, mods, as_json


def _format_task(task: Task) -> str:
    lines = [
        f"Task {task.id}: {task.description}",
        f"  uuid:     {task.uuid}",
        f"  status:   {task.status.value}" + ("  (started)" if task.start else ""),
    ]
    if task.priority:
        lines.append(f"  priority: {task.priority}")
    if task.project:
        lines.append(f"  project:  {task.project}")
    if task.due:
        lines.append(f"  due:      {_ts_local(task.due)}" + ("  OVERDUE" if task.is_overdue() else ""))
    if task.tags:
        lines.append(f"  tags:     {' '.join(sorted(task.tags))}")
    lines.append(f"  entry:    {_ts_local(task.entry)}")
    lines.append(f"  modified: {_ts_local(task.modified)}")
    if task.end:
        lines.append(f"  end:      {_ts_local(task.end)}")
    lines.append(f"  urgency:  {task.urgency():.1f}")
    for ann in task.annotations:
        lines.append(f"  [{_ts_local(ann.entry)}] {ann.description}")
    return "\n".join(lines)


def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


async def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/add <description...> [project:X] [priority:H] [due:DATE] [+tag ...]"""
    words, mods, _ = _split_modifiers(args)
    mods.pop("status", None)
    mods.pop("limit", None)
    if "tags" in mods:
        mods["tags"] = set(mods["tags"])

    task = await state.engine.create(" ".join(words), **mods)
    return f"Created task {task.id}."


async def cmd_list(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/list [status:X] [project:X] [priority:X] [+tag] [limit:N] [all] [--json]"""
    words, mods, as_json = _split_modifiers(args)
    include_all = "all" in (w.lower() for w in words)

    flt = TaskFilter(
        status=mods.get("status"),
        project=mods.get("project"),
        priority=mods.get("priority"),
        tags=mods.get("tags"),
        include_deleted=include_all,
        limit=mods.get("limit"),
    )
    if flt.status is None and not include_all:
        flt.status = TaskStatus.PENDING

    tasks = await state.engine.list(flt)
    tasks.sort(key=lambda t: (-t.urgency(), t.id or 0))

    if as_json:
        return json.dumps([t.to_dict() for t in tasks], ensure_ascii=False, indent=2)
    if not tasks:
        return "No matching tasks."

    lines = [f"{'ID':>4} {'Urg':>5} {'Status':<9} Description"]
    for t in tasks:
        lines.append(f"{t.id or 0:>4} {t.urgency():>5.1f} {t.status.value:<9} {t}")
    lines.append(f"{len(tasks)} task(s).")
    return "\n".join(lines)


async def cmd_get(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    words, _, as_json = _split_modifiers(args)
    if not words:
        return "Usage: /get <id> [--json]"

    task_id = _parse_id(words[0])
    task = await state.engine.get(task_id)
    if task is None:
        return f"Task not found: {task_id}"
    if as_json:
        return json.dumps(task.to_dict(), ensure_ascii=False, indent=2)
    return _format_task(task)


_MODIFY_FIELDS = ("description", "status", "priority", "project", "due")


async def cmd_modify(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/modify <id> <field> <value...>   (value "none" clears priority/project/due)"""
    if len(args) < 3:
        return f"Usage: /modify <id> <field> <value>  (fields: {', '.join(_MODIFY_FIELDS)})"

    task_id = _parse_id(args[0])
    field_name = args[1].lower()
    value = " ".join(args[2:])
    clear = value.strip().lower() == "none"

    task = await state.engine.get(task_id)
    if task is None:
        return f"Task not found: {task_id}"

    if field_name == "description":
        task.description = value
    elif field_name == "status":
        task.status = TaskStatus.parse(value)
        if task.status == TaskStatus.COMPLETED:
            task.end = utc_now()
    elif field_name == "priority":
        task.priority = None if clear else Priority.parse(value)
    elif field_name == "project":
        task.project = None if clear else value
    elif field_name == "due":
        task.due = _parse_due(value)
    else:
        return f"Unknown field: {field_name} (fields: {', '.join(_MODIFY_FIELDS)})"

    await state.engine.update(task)
    return f"Modified task {task_id}."


def _id_command(action: str, verb: str) -> CommandHandler:
    async def handler(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
        if not args:
            return f"Usage: /{action} <id>"
        task_id = _parse_id(args[0])
        await getattr(state.engine, action)(task_id)
        return f"{verb} task {task_id}."

    handler.__name__ = f"cmd_{action}"
    return handler


async def cmd_annotate(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) < 2:
        return "Usage: /annotate <id> <text>"
    task_id = _parse_id(args[0])
    await state.engine.annotate(task_id, " ".join(args[1:]))
    return f"Annotated task {task_id}."


async def cmd_tag(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) < 2:
        return "Usage: /tag <id> <tag>"
    task_id = _parse_id(args[0])
    tag = args[1].lstrip("+")
    await state.engine.add_tag(task_id, tag)
    return f"Tagged task {task_id} with {tag}."


async def cmd_untag(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) < 2:
        return "Usage: /untag <id> <tag>"
    task_id = _parse_id(args[0])
    tag = args[1].lstrip("+")
    await state.engine.remove_tag(task_id, tag)
    return f"Removed tag {tag} from task {task_id}."


async def cmd_sync(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /sync       -> push queued changes, then pull
    /sync push  -> queue every local task first (full push), then sync
    """
    sub = args[0].lower() if args else ""
    if sub not in ("", "push"):
        return "Usage: /sync [push]"

    if state.sync.provider is None:
        raise ProviderNotFoundError(
            "no sync provider configured (set EDDA_GITHUB_TOKEN and EDDA_GITHUB_REPOSITORY)"
        )

    if sub == "push":
        n = await state.sync.requeue_all()
        if emit:
            emit(f"[SYNC] {n} task(s) queued for push.")

    if emit:
        emit(f"[SYNC] Syncing with {state.sync.provider.name}...")

    report = await state.sync.sync()
    lines = [f"Sync {'completed' if report.ok else 'finished with errors'}: {report.summary()}"]
    lines.extend(f"  ! {err}" for err in report.errors)
    return "\n".join(lines)


async def cmd_sync_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    settings = state.settings
    provider = state.sync.provider

    lines = ["Sync status:"]
    if provider is None:
        lines.append("  Provider: not configured")
    else:
        st = await provider.status()
        detail = f" ({st.detail})" if st.detail else ""
        lines.append(f"  Provider: {provider.name} - {st.status.value}{detail}")

    lines.append(f"  Repository: {getattr(settings, 'github_repository', None) or '-'}")
    lines.append(f"  Token: {'configured' if getattr(settings, 'github_token', None) else 'not configured'}")
    lines.append(f"  Sync interval: {getattr(settings, 'sync_interval_seconds', '-')} seconds")
    lines.append(f"  Pending operations: {await state.sync.pending_count()}")
    lines.append(f"  Last sync: {_ts_local(await state.sync.last_sync_time())}")

    failed = [e for e in await state.sync.cache.all_tasks() if e.sync_status == SyncStatus.FAILED]
    for entry in failed:
        lines.append(f"  ! task {entry.task.id}: {entry.sync_error}")
    return "\n".join(lines)


def _config_value(settings: Any, key: str) -> str:
    value = getattr(settings, key, None)
    if key in SECRET_KEYS:
        return "***" if value else "-"
    return "-" if value is None else str(value)


def cmd_config(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /config show            -> every setting (token masked)
    /config get <key>       -> one setting
    /config validate        -> run the same checks as startup
    """
    sub = args[0].lower() if args else "show"
    settings = state.settings

    if sub == "show":
        lines = ["Current configuration:"]
        lines.append(f"  config_file = {find_config_file() or '-'}")
        for key in SETTING_KEYS:
            lines.append(f"  {key} = {_config_value(settings, key)}")
        return "\n".join(lines)

    if sub == "get":
        if len(args) < 2:
            return "Usage: /config get <key>"
        key = args[1].lower().replace("-", "_").replace(".", "_")
        if key not in SETTING_KEYS:
            return f"Unknown configuration key: {args[1]}"
        return _config_value(settings, key)

    if sub == "validate":
        try:
            settings.validate()
        except ConfigError as e:
            return f"Configuration validation failed: {e}"
        return "Configuration is valid."

    return "Usage: /config [show|get <key>|validate]"


async def cmd_init(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """Write ./.edda.toml if no config file is in use, and make sure the data dir and database exist."""
    lines: list[str] = []

    existing = find_config_file()
    if existing is not None:
        lines.append(f"Config file already present: {existing}")
    else:
        target = Path.cwd() / DEFAULT_CONFIG_FILE
        write_default_config(target)
        lines.append(f"Created default {DEFAULT_CONFIG_FILE} in {target.parent}")

    data_dir = Path(state.settings.data_dir)
    if not data_dir.is_dir():
        data_dir.mkdir(parents=True, exist_ok=True)
        lines.append(f"Created data directory: {data_dir}")
    else:
        lines.append(f"Data directory: {data_dir}")

    # The store creates its schema on open; counting proves it is usable.
    total = await state.store.count(TaskFilter(include_deleted=True))
    lines.append(f"Database ready: {state.store.db_path} ({total} task(s))")
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register(
    "add",
    cmd_add,
    help_text="Add a task: /add <description> [project:X] [priority:H|M|L|0-9] [due:DATE] [+tag].",
)
registry.register(
    "list",
    cmd_list,
    help_text="List tasks: /list [status:X] [project:X] [+tag] [limit:N] [all] [--json].",
    aliases=["ls"],
)
registry.register("get", cmd_get, help_text="Show one task: /get <id> [--json].", aliases=["info"])
registry.register(
    "modify",
    cmd_modify,
    help_text="Change a field: /modify <id> description|status|priority|project|due <value>.",
    aliases=["mod"],
)
registry.register("done", _id_command("complete", "Completed"), help_text="Complete a task: /done <id>.")
registry.register("delete", _id_command("delete", "Deleted"), help_text="Delete a task: /delete <id>.", aliases=["rm"])
registry.register("start", _id_command("start", "Started"), help_text="Start time tracking: /start <id>.")
registry.register("stop", _id_command("stop", "Stopped"), help_text="Stop time tracking: /stop <id>.")
registry.register("annotate", cmd_annotate, help_text="Add a note: /annotate <id> <text>.")
registry.register("tag", cmd_tag, help_text="Add a tag: /tag <id> <tag>.")
registry.register("untag", cmd_untag, help_text="Remove a tag: /untag <id> <tag>.")
registry.register("sync", cmd_sync, help_text="Sync with the remote tracker: /sync [push].")
registry.register("sync-status", cmd_sync_status, help_text="Show sync provider, queue and last sync.")
registry.register(
    "config",
    cmd_config,
    help_text="Inspect settings: /config [show|get <key>|validate].",
)
registry.register("init", cmd_init, help_text="Create a default .edda.toml, the data directory and the database.")
