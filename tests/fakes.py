# tests/fakes.py

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from datetime import timedelta

import httpx

from edda.core.errors import NetworkError
from edda.core.ports import ProviderStatus
from edda.sync.sync_models import SyncStatus
from edda.tasks.task_models import Task, utc_now


@dataclass
class FakeSyncProvider:
    """
    In-memory SyncProvider used by sync tests.

    - `remote` is the remote side (uuid -> Task); push() writes into it, pull() reads it
    - failure switches: connection down, failing uuids, a number of transient failures
    - `push_delay` makes push() slow enough to hit the call timeout
    """

    remote: dict[str, Task] = field(default_factory=dict)
    pushed: list[Task] = field(default_factory=list)

    connection_ok: bool = True
    fail_uuids: set[str] = field(default_factory=set)
    transient_failures: int = 0
    push_delay: float = 0.0

    push_calls: int = 0
    pull_calls: int = 0

    @property
    def name(self) -> str:
        return "Fake"

    async def pull(self) -> list[Task]:
        self.pull_calls += 1
        return [t.copy() for t in self.remote.values()]

    async def push(self, tasks: list[Task]) -> None:
        self.push_calls += 1
        if self.push_delay:
            await asyncio.sleep(self.push_delay)
        if self.transient_failures > 0:
            self.transient_failures -= 1
            raise NetworkError("transient failure")
        for task in tasks:
            if task.uuid in self.fail_uuids:
                raise NetworkError(f"remote rejected {task.uuid}")
            self.pushed.append(task.copy())
            self.remote[task.uuid] = task.copy()

    async def status(self) -> ProviderStatus:
        if not self.connection_ok:
            return ProviderStatus(SyncStatus.FAILED, "offline")
        return ProviderStatus(SyncStatus.COMPLETED)

    async def test_connection(self) -> None:
        if not self.connection_ok:
            raise NetworkError("offline")


class FakeGitHub:
    """
    Stateful stand-in for the GitHub issues API, served through httpx.MockTransport.

    Issues survive across provider instances, so a second "process" sees what the
    first one created. edit() simulates a change made on github.com.
    """

    def __init__(self, repository: str = "acme/app") -> None:
        self.repository = repository
        self.issues: dict[int, dict] = {}
        self.requests: list[httpx.Request] = []

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def edit(self, number: int, **fields) -> None:
        self.issues[number].update(fields)
        # Later than any local timestamp taken so far.
        self.issues[number]["updated_at"] = (utc_now() + timedelta(seconds=5)).isoformat()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = request.url.path.rstrip("/").split("/")

        if request.method == "GET":
            return httpx.Response(200, json=list(self.issues.values()))

        payload = json.loads(request.content or b"{}")
        now = utc_now().isoformat()

        if request.method == "POST":
            number = len(self.issues) + 1
            self.issues[number] = {
                "id": 5000 + number,
                "number": number,
                "title": payload.get("title", ""),
                "body": payload.get("body") or None,
                "state": "open",
                "labels": [],
                "assignees": [],
                "created_at": now,
                "updated_at": now,
                "closed_at": None,
                "html_url": f"https://github.com/{self.repository}/issues/{number}",
            }
            return httpx.Response(201, json=self.issues[number])

        if request.method == "PATCH":
            issue = self.issues.get(int(parts[-1]))
            if issue is None:
                return httpx.Response(404, json={"message": "Not Found"})
            issue.update({k: v for k, v in payload.items() if k in ("title", "body", "state")})
            issue["closed_at"] = now if issue["state"] == "closed" else None
            issue["updated_at"] = now
            return httpx.Response(200, json=issue)

        return httpx.Response(405)
