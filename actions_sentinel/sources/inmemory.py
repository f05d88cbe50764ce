"""In-memory data source for tests and offline analysis."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml
from pydantic import ValidationError

from ..errors import DataSourceError, OrganizationAccessError
from ..models import QuotaStatus, Run, WorkflowDescriptor
from .base import DataSource


class InMemoryDataSource(DataSource):
    """Serve repositories, workflows and runs from plain dictionaries.

    The expected shape is::

        {
          "organization": "acme",
          "quota": {"remaining": 5000, "limit": 5000},
          "repositories": [
            {"name": "api", "workflows": [
              {"id": 1, "name": "CI", "path": ".github/workflows/ci.yml",
               "content": "...", "runs": [{...}, ...]}
            ]}
          ]
        }

    A repository or workflow may carry ``"error": "message"`` to make its
    fetches fail, which is handy for exercising degraded passes.
    """

    def __init__(self, data: dict[str, Any]) -> None:
        self.organization = data.get("organization")
        quota = data.get("quota") or {"remaining": 5000, "limit": 5000}
        self._quota = QuotaStatus.model_validate(quota)
        self._repositories: dict[str, dict[str, Any]] = {
            repo["name"]: repo for repo in data.get("repositories", [])
        }
        self.calls: list[tuple[str, ...]] = []

    @classmethod
    def from_file(cls, path: str | Path) -> "InMemoryDataSource":
        """Load a fixture from a YAML or JSON file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(data)

    # ------------------------------------------------------------------
    def _workflow_entry(self, repository: str, workflow_id: int) -> dict[str, Any]:
        repo = self._repositories.get(repository, {})
        for workflow in repo.get("workflows", []):
            if workflow["id"] == workflow_id:
                return workflow
        raise DataSourceError(
            f"Workflow {workflow_id} not found in {repository}", status=404
        )

    # ------------------------------------------------------------------
    async def list_repositories(
        self, organization: str, exclude: Iterable[str] = ()
    ) -> list[str]:
        self.calls.append(("list_repositories", organization))
        if self.organization and organization != self.organization:
            raise OrganizationAccessError(
                f"Organization '{organization}' not found", status=404
            )
        excluded = set(exclude)
        return [name for name in self._repositories if name not in excluded]

    async def list_workflows(self, repository: str) -> list[WorkflowDescriptor]:
        self.calls.append(("list_workflows", repository))
        repo = self._repositories.get(repository)
        if repo is None:
            return []
        if repo.get("error"):
            raise DataSourceError(repo["error"])
        return [
            WorkflowDescriptor(
                id=wf["id"],
                name=wf["name"],
                path=wf["path"],
                state=wf.get("state", "active"),
            )
            for wf in repo.get("workflows", [])
        ]

    async def list_runs(
        self, repository: str, workflow_id: int, since: datetime
    ) -> list[Run]:
        self.calls.append(("list_runs", repository, str(workflow_id)))
        workflow = self._workflow_entry(repository, workflow_id)
        if workflow.get("error"):
            raise DataSourceError(workflow["error"])
        try:
            runs = [Run.model_validate(run) for run in workflow.get("runs", [])]
        except ValidationError as exc:
            raise DataSourceError(
                f"Malformed run data for {repository} workflow {workflow_id}: {exc}"
            ) from exc
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        runs = [run for run in runs if run.created_at >= since]
        runs.sort(key=lambda run: run.created_at, reverse=True)
        return runs

    async def get_definition_content(
        self, repository: str, path: str
    ) -> Optional[str]:
        self.calls.append(("get_definition_content", repository, path))
        repo = self._repositories.get(repository, {})
        for workflow in repo.get("workflows", []):
            if workflow["path"] == path:
                return workflow.get("content")
        return None

    async def check_quota(self) -> QuotaStatus:
        self.calls.append(("check_quota",))
        return self._quota
