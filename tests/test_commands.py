# tests/test_commands.py

from __future__ import annotations

import json

import pytest

from edda.cli.commands import CommandRegistry, registry
from edda.core.errors import ValidationError

from .fakes import FakeSyncProvider


@pytest.mark.asyncio
async def test_command_registry_routes_sync_and_async_handlers(state) -> None:
    reg = CommandRegistry()
    called = {"plain": 0, "coro": 0}

    def plain(state, args, emit):
        called["plain"] += 1
        return "plain " + " ".join(args)

    async def coro(state, args, emit):
        called["coro"] += 1
        if emit is not None:
            emit("note")
        return "coro"

    reg.register("a", plain, "a", aliases=["aa"])
    reg.register("b", coro, "b")

    notes: list[str] = []
    assert await reg.handle(state, "/a x 'y z'") == "plain x y z"
    assert await reg.handle(state, "/AA") == "plain "
    assert await reg.handle(state, "/b", emit=notes.append) == "coro"
    assert called == {"plain": 2, "coro": 1}
    assert notes == ["note"]


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, "hello") is None
    assert "Unknown command" in (await reg.handle(state, "/nope") or "")
    assert "Empty command" in (await reg.handle(state, "/") or "")


@pytest.mark.asyncio
async def test_domain_errors_are_rendered(state) -> None:
    reg = CommandRegistry()

    def broken(state, args, emit):
        raise ValidationError("bad input")

    reg.register("broken", broken, "broken")
    assert await reg.handle(state, "/broken") == "Error: Validation error: bad input"


@pytest.mark.asyncio
async def test_add_list_done_flow(state) -> None:
    assert await registry.handle(state, "/add Buy milk project:home pri:H +errand") == "Created task 1."
    assert await registry.handle(state, "/add Call mom") == "Created task 2."

    out = await registry.handle(state, "/list")
    assert out is not None
    assert "Buy milk" in out and "Call mom" in out
    assert out.endswith("2 task(s).")
    # High priority sorts first.
    assert out.index("Buy milk") < out.index("Call mom")

    assert await registry.handle(state, "/list +errand") is not None
    assert "Call mom" not in (await registry.handle(state, "/list +errand") or "")

    assert await registry.handle(state, "/done 1") == "Completed task 1."
    out = await registry.handle(state, "/list")
    assert out is not None and "Buy milk" not in out

    out = await registry.handle(state, "/list status:completed --json")
    data = json.loads(out or "[]")
    assert [t["description"] for t in data] == ["Buy milk"]
    assert data[0]["project"] == "home"
    assert data[0]["tags"] == ["errand"]

    again = await registry.handle(state, "/done 1")
    assert again is not None and again.startswith("Error:")


@pytest.mark.asyncio
async def test_get_modify_annotate_and_tags(state) -> None:
    await registry.handle(state, "/add Write report")

    assert await registry.handle(state, "/modify 1 priority M") == "Modified task 1."
    assert await registry.handle(state, "/modify 1 project work") == "Modified task 1."
    assert await registry.handle(state, "/annotate 1 first draft done") == "Annotated task 1."
    assert await registry.handle(state, "/tag 1 +urgent") == "Tagged task 1 with urgent."

    data = json.loads(await registry.handle(state, "/get 1 --json") or "{}")
    assert data["priority"] == "M"
    assert data["project"] == "work"
    assert data["tags"] == ["urgent"]
    assert data["annotations"][0]["description"] == "first draft done"

    assert await registry.handle(state, "/untag 1 urgent") == "Removed tag urgent from task 1."
    assert await registry.handle(state, "/modify 1 project none") == "Modified task 1."

    detail = await registry.handle(state, "/get 1")
    assert detail is not None
    assert detail.startswith("Task 1: Write report")
    assert "project:" not in detail

    assert await registry.handle(state, "/get 99") == "Task not found: 99"
    assert (await registry.handle(state, "/get abc") or "").startswith("Error:")
    assert (await registry.handle(state, "/modify 1 color red") or "").startswith("Unknown field")


@pytest.mark.asyncio
async def test_add_rejects_empty_description(state) -> None:
    out = await registry.handle(state, "/add project:home")
    assert out is not None and out.startswith("Error:")


@pytest.mark.asyncio
async def test_delete_hides_task_from_default_list(state) -> None:
    await registry.handle(state, "/add Temporary")
    assert await registry.handle(state, "/delete 1") == "Deleted task 1."
    assert await registry.handle(state, "/list") == "No matching tasks."
    assert "Temporary" in (await registry.handle(state, "/list all") or "")


@pytest.mark.asyncio
async def test_sync_pushes_queued_work(state, provider: FakeSyncProvider) -> None:
    await registry.handle(state, "/add Sync me")

    notes: list[str] = []
    out = await registry.handle(state, "/sync", emit=notes.append)
    assert out is not None and out.startswith("Sync completed:")
    assert [t.description for t in provider.pushed] == ["Sync me"]
    assert any("Fake" in n for n in notes)

    out = await registry.handle(state, "/sync push", emit=notes.append)
    assert out is not None and out.startswith("Sync completed:")
    assert len(provider.pushed) == 2
    assert any("1 task(s) queued" in n for n in notes)


@pytest.mark.asyncio
async def test_sync_reports_failures(state, provider: FakeSyncProvider) -> None:
    await registry.handle(state, "/add Will fail")
    task = await state.engine.get(1)
    assert task is not None
    provider.fail_uuids.add(task.uuid)

    out = await registry.handle(state, "/sync")
    assert out is not None
    assert out.startswith("Sync finished with errors")
    assert "  ! " in out

    status = await registry.handle(state, "/sync-status")
    assert status is not None
    assert "Provider: Fake" in status
    assert "Pending operations: 1" in status
    assert "! task 1:" in status


@pytest.mark.asyncio
async def test_sync_without_provider(settings) -> None:
    from edda.cli.bootstrap import create_initial_state

    state = create_initial_state(settings=settings)
    try:
        out = await registry.handle(state, "/sync")
        assert out is not None and out.startswith("Error:")
        status = await registry.handle(state, "/sync-status")
        assert status is not None and "Provider: not configured" in status
    finally:
        state.store.close()


@pytest.mark.asyncio
async def test_help_lists_registered_commands(state) -> None:
    out = await registry.handle(state, "/help")
    assert out is not None
    for name in ("add", "list", "done", "sync", "sync-status", "config", "init"):
        assert f"/{name} - " in out


def _real_settings(tmp_path, **overrides):
    from edda.config import Settings

    values = dict(
        app_name="edda",
        log_level="info",
        data_dir=tmp_path / "data",
        tasks_db_path=tmp_path / "data" / "tasks.sqlite3",
        github_token="s3cret-token",
        github_repository="acme/app",
        github_api_url="https://api.github.com",
        sync_interval_seconds=300,
        sync_queue_capacity=250,
        sync_overflow_policy="drop_oldest",
        conflict_strategy="manual",
        sync_timeout_seconds=30.0,
        sync_max_retries=2,
        sync_retry_backoff_seconds=1.0,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture()
def workdir(tmp_path, monkeypatch: pytest.MonkeyPatch):
    """Empty working directory with no config file in play."""
    monkeypatch.delenv("EDDA_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture()
def configured_state(workdir, provider: FakeSyncProvider):
    from edda.cli.bootstrap import create_initial_state

    state = create_initial_state(settings=_real_settings(workdir), provider=provider)
    yield state
    state.store.close()


@pytest.mark.asyncio
async def test_config_show_masks_the_token(configured_state) -> None:
    out = await registry.handle(configured_state, "/config")
    assert out is not None
    assert out.startswith("Current configuration:")
    assert "  config_file = -" in out
    assert "  github_token = ***" in out
    assert "  github_repository = acme/app" in out
    assert "s3cret-token" not in out
    assert await registry.handle(configured_state, "/config show") == out


@pytest.mark.asyncio
async def test_config_get(configured_state) -> None:
    assert await registry.handle(configured_state, "/config get sync_queue_capacity") == "250"
    assert await registry.handle(configured_state, "/config get sync-queue-capacity") == "250"
    assert await registry.handle(configured_state, "/config get github_token") == "***"
    assert await registry.handle(configured_state, "/config get colour") == "Unknown configuration key: colour"
    assert await registry.handle(configured_state, "/config get") == "Usage: /config get <key>"
    assert (await registry.handle(configured_state, "/config frobnicate") or "").startswith("Usage:")


@pytest.mark.asyncio
async def test_config_validate(workdir, provider: FakeSyncProvider) -> None:
    from edda.cli.bootstrap import create_initial_state

    state = create_initial_state(settings=_real_settings(workdir), provider=provider)
    try:
        assert await registry.handle(state, "/config validate") == "Configuration is valid."
    finally:
        state.store.close()

    state = create_initial_state(settings=_real_settings(workdir, log_level="loud"), provider=provider)
    try:
        out = await registry.handle(state, "/config validate")
    finally:
        state.store.close()
    assert out is not None
    assert out.startswith("Configuration validation failed:")
    assert "loud" in out


@pytest.mark.asyncio
async def test_init_writes_default_config_once(configured_state, workdir) -> None:
    import tomllib

    out = await registry.handle(configured_state, "/init")
    assert out is not None
    assert f"Created default .edda.toml in {workdir}" in out
    assert "Database ready:" in out and "(0 task(s))" in out

    written = workdir / ".edda.toml"
    data = tomllib.loads(written.read_text(encoding="utf-8"))
    assert data["database"]["url"].startswith("sqlite:")
    assert data["sync"]["conflict_strategy"] == "manual"
    assert "token" not in data["github"]

    before = written.read_text(encoding="utf-8")
    again = await registry.handle(configured_state, "/init")
    assert again is not None and "Config file already present: .edda.toml" in again
    assert written.read_text(encoding="utf-8") == before


@pytest.mark.asyncio
async def test_init_creates_missing_data_dir(workdir, provider: FakeSyncProvider) -> None:
    import shutil

    from edda.cli.bootstrap import create_initial_state

    state = create_initial_state(settings=_real_settings(workdir), provider=provider)
    try:
        # Data dir missing after startup; the database stays where it was opened.
        other = workdir / "elsewhere"
        shutil.rmtree(other, ignore_errors=True)
        state.settings = _real_settings(workdir, data_dir=other)
        out = await registry.handle(state, "/init")
    finally:
        state.store.close()
    assert out is not None
    assert f"Created data directory: {other}" in out
    assert other.is_dir()
