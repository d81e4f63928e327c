# src/edda/sync/github_provider.py

from __future__ import annotations

"""
GitHub Issues as a sync provider.

Mapping:
- issue title (+ body)        <-> task description
- open / closed               <-> pending / completed (deleted tasks close the issue)
- labels, assignees (@login)  -> tags
- created_at / updated_at / closed_at -> entry / modified / end
- html_url                    -> annotation "GitHub Issue #N: <url>"

The local uuid -> issue number mapping lives in memory and is rebuilt from that
annotation (link_local_tasks() before each pull), so tasks keep pointing at their issue
across restarts.
"""

import logging
import re
import uuid
from typing import Any

import httpx

from ..core.errors import AuthenticationError, NetworkError, SyncConfigurationError
from ..core.ports import ProviderStatus
from ..tasks.task_models import Annotation, Task, TaskStatus, parse_ts, utc_now
from .sync_models import SyncStatus

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
USER_AGENT = "edda-cli"

_BODY_MARKER = "\n\nGitHub Issue: "
_ISSUE_REF_RE = re.compile(r"GitHub Issue #(\d+):")


def parse_repository(repository: str | None) -> tuple[str, str]:
    """Split "owner/repo"; anything else is a configuration error."""
    raw = (repository or "").strip()
    if not raw:
        raise SyncConfigurationError("GitHub repository not configured")
    parts = raw.split("/")
    if len(parts) != 2 or not all(p.strip() for p in parts):
        raise SyncConfigurationError(f"Invalid repository format: {raw}")
    return parts[0].strip(), parts[1].strip()


def issue_ref(task: Task) -> int | None:
    """Issue number recorded in the task's annotations, if any."""
    for ann in task.annotations:
        m = _ISSUE_REF_RE.search(ann.description)
        if m:
            return int(m.group(1))
    return None


def issue_to_task(issue: dict[str, Any], task_uuid: str | None = None) -> Task:
    title = str(issue.get("title") or "").strip() or f"GitHub issue #{issue.get('number')}"
    body = str(issue.get("body") or "").strip()
    description = f"{title}{_BODY_MARKER}{body}" if body and body != title else title

    html_url = str(issue.get("html_url") or "")
    entry = parse_ts(issue.get("created_at")) or utc_now()
    modified = parse_ts(issue.get("updated_at")) or entry

    task = Task(
        description=description,
        uuid=task_uuid or str(uuid.uuid5(uuid.NAMESPACE_URL, html_url or f"issue:{issue.get('id')}")),
        status=TaskStatus.COMPLETED if issue.get("state") == "closed" else TaskStatus.PENDING,
        entry=entry,
        modified=modified,
        end=parse_ts(issue.get("closed_at")),
    )

    for label in issue.get("labels") or []:
        name = label.get("name") if isinstance(label, dict) else label
        if name:
            task.tags.add(str(name))
    for assignee in issue.get("assignees") or []:
        login = (assignee or {}).get("login")
        if login:
            task.tags.add(f"@{login}")

    task.annotations.append(
        Annotation(entry=entry, description=f"GitHub Issue #{issue.get('number')}: {html_url}")
    )
    return task


def task_to_issue_payload(task: Task) -> dict[str, Any]:
    title, sep, body = task.description.partition(_BODY_MARKER)
    if not sep:
        title, _, body = task.description.partition("\n")
        body = body.strip()
    closed = task.status in (TaskStatus.COMPLETED, TaskStatus.DELETED)
    return {
        "title": title.strip() or task.description,
        "body": body,
        "state": "closed" if closed else "open",
    }


class GitHubProvider:
    """SyncProvider over the GitHub REST API (v3)."""

    def __init__(
        self,
        token: str | None,
        repository: str | None,
        *,
        api_url: str = DEFAULT_API_URL,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not (token or "").strip():
            raise SyncConfigurationError("GitHub token not configured")
        self.owner, self.repo = parse_repository(repository)
        self.api_url = (api_url or DEFAULT_API_URL).rstrip("/")

        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            headers={
                "Authorization": f"token {token.strip()}",
                "Accept": "application/vnd.github.v3+json",
                "User-Agent": USER_AGENT,
            },
            timeout=timeout_seconds,
            transport=transport,
        )
        self._issue_numbers: dict[str, int] = {}  # task uuid -> issue number

    @classmethod
    def from_settings(cls, settings: Any, *, transport: httpx.AsyncBaseTransport | None = None) -> GitHubProvider:
        return cls(
            settings.github_token,
            settings.github_repository,
            api_url=getattr(settings, "github_api_url", DEFAULT_API_URL),
            timeout_seconds=float(getattr(settings, "sync_timeout_seconds", 30.0)),
            transport=transport,
        )

    @property
    def name(self) -> str:
        return "GitHub"

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"

    def issue_number_for(self, task: Task) -> int | None:
        number = self._issue_numbers.get(task.uuid)
        if number is None:
            number = issue_ref(task)
            if number is not None:
                self._issue_numbers[task.uuid] = number
        return number

    def link_local_tasks(self, tasks: list[Task]) -> int:
        """Learn uuid -> issue number from stored "GitHub Issue #N" annotations (called before pull)."""
        linked = 0
        for task in tasks:
            number = issue_ref(task)
            if number is not None and self._issue_numbers.get(task.uuid) != number:
                self._issue_numbers[task.uuid] = number
                linked += 1
        if linked:
            logger.debug("Linked %s local task(s) to GitHub issues", linked)
        return linked

    async def aclose(self) -> None:
        await self._client.aclose()

    # ---- HTTP ----

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise NetworkError(f"GitHub request failed ({method} {path}): {e}") from e

        if resp.status_code in (401, 403):
            raise AuthenticationError(f"GitHub rejected credentials: {resp.status_code} {resp.text[:200]}")
        if resp.is_error:
            raise NetworkError(f"GitHub API error: {resp.status_code} {resp.text[:200]}")
        return resp

    @staticmethod
    def _json(resp: httpx.Response, what: str) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise NetworkError(f"Failed to parse GitHub {what}: {e}") from e

    def _issues_path(self, number: int | None = None) -> str:
        base = f"/repos/{self.owner}/{self.repo}/issues"
        return base if number is None else f"{base}/{number}"

    # ---- SyncProvider ----

    async def pull(self) -> list[Task]:
        by_number = {n: u for u, n in self._issue_numbers.items()}
        tasks: list[Task] = []

        url: str | None = self._issues_path()
        params: dict[str, Any] | None = {"state": "all", "per_page": 100}
        while url:
            resp = await self._request("GET", url, params=params)
            for issue in self._json(resp, "issues") or []:
                if "pull_request" in issue:
                    continue
                number = int(issue["number"])
                task = issue_to_task(issue, task_uuid=by_number.get(number))
                self._issue_numbers[task.uuid] = number
                tasks.append(task)

            nxt = resp.links.get("next", {}).get("url")
            url, params = (nxt, None) if nxt else (None, None)

        logger.info("GitHub pull: %s issue(s) from %s", len(tasks), self.repository)
        return tasks

    async def push(self, tasks: list[Task]) -> None:
        for task in tasks:
            payload = task_to_issue_payload(task)
            number = self.issue_number_for(task)

            if number is not None:
                await self._request("PATCH", self._issues_path(number), json=payload)
                logger.debug("GitHub issue #%s updated from task uuid=%s", number, task.uuid)
                continue

            if task.status == TaskStatus.DELETED:
                logger.debug("Deleted task uuid=%s never reached GitHub; nothing to close", task.uuid)
                continue

            resp = await self._request(
                "POST",
                self._issues_path(),
                json={"title": payload["title"], "body": payload["body"]},
            )
            created = self._json(resp, "issue")
            number = int(created["number"])
            self._issue_numbers[task.uuid] = number
            # The sync manager persists annotations added here, so the link survives restarts.
            task.annotations.append(
                Annotation(entry=utc_now(), description=f"GitHub Issue #{number}: {created.get('html_url', '')}")
            )
            logger.info("GitHub issue #%s created for task uuid=%s", number, task.uuid)

            if payload["state"] == "closed":
                await self._request("PATCH", self._issues_path(number), json={"state": "closed"})

    async def status(self) -> ProviderStatus:
        try:
            await self.test_connection()
        except (NetworkError, AuthenticationError) as e:
            return ProviderStatus(SyncStatus.FAILED, str(e))
        return ProviderStatus(SyncStatus.COMPLETED, self.repository)

    async def test_connection(self) -> None:
        await self._request("GET", self._issues_path(), params={"state": "open", "per_page": 1})
