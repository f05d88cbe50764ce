"""Data models shared by the analysis pass and the lifecycle manager."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SUCCESS_CONCLUSION = "success"
# GitHub reports timeouts as ``timed_out``.
FAILURE_CONCLUSIONS = frozenset({"failure", "timed_out"})


class Run(BaseModel):
    """One execution of a workflow as delivered by the data source."""

    model_config = ConfigDict(frozen=True)

    id: int
    run_number: int
    name: str = ""
    status: Optional[str] = None
    conclusion: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    html_url: str = ""

    @field_validator("created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Timestamps without an offset are UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def succeeded(self) -> bool:
        return self.conclusion == SUCCESS_CONCLUSION

    @property
    def failed(self) -> bool:
        return self.conclusion in FAILURE_CONCLUSIONS


class WorkflowDescriptor(BaseModel):
    """Workflow identity and state as enumerated by the data source."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    path: str
    state: str = "active"

    @property
    def file_name(self) -> str:
        return self.path.rsplit("/", 1)[-1]


class QuotaStatus(BaseModel):
    """Remaining request quota reported by the data source."""

    remaining: int
    limit: int
    reset_at: Optional[datetime] = None


class WorkflowAnalysis(BaseModel):
    """Snapshot of one workflow's health for a single analysis pass."""

    model_config = ConfigDict(frozen=True)

    repository: str
    workflow_id: int
    workflow_name: str
    workflow_path: str
    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    failure_rate: float = 0.0
    consecutive_failures: int = 0
    last_successful_run: Optional[Run] = None
    last_runs: list[Run] = Field(default_factory=list)
    should_disable: bool = False
    disable_reasons: list[str] = Field(default_factory=list)
    issues: list[str] = Field(default_factory=list)


class RepositoryAnalysis(BaseModel):
    """All workflow snapshots of one repository."""

    model_config = ConfigDict(frozen=True)

    repository: str
    total_workflows: int
    failing_workflows: int
    workflows: list[WorkflowAnalysis] = Field(default_factory=list)


class RunTotals(BaseModel):
    """Raw run counts the overall success rate is derived from."""

    model_config = ConfigDict(frozen=True)

    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0


class AnalysisReport(BaseModel):
    """Result of one full analysis pass over an organization."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    organization: str
    repositories_scanned: int = 0
    total_repositories: int = 0
    total_workflows: int = 0
    failing_workflows: int = 0
    success_rate: float = 0.0
    repositories: list[RepositoryAnalysis] = Field(default_factory=list)
    summary: RunTotals = Field(default_factory=RunTotals)
    complete: bool = True

    def flagged_workflows(self) -> list[WorkflowAnalysis]:
        """Return every workflow marked for disabling, in report order."""
        return [
            workflow
            for repo in self.repositories
            for workflow in repo.workflows
            if workflow.should_disable
        ]
