"""Data models for the persisted set of disabled workflows."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ..models import WorkflowAnalysis

DISABLED_SUFFIX = ".disabled"


class DisabledWorkflowRecord(BaseModel):
    """A workflow taken out of service by a disable transition."""

    repository: str
    workflow_name: str
    original_path: str
    disabled_path: str
    backup_path: str
    disabled_at: datetime
    reasons: list[str] = Field(default_factory=list)
    analysis: WorkflowAnalysis

    @property
    def key(self) -> tuple[str, str]:
        return (self.repository, self.original_path)

    @property
    def file_name(self) -> str:
        return self.original_path.rsplit("/", 1)[-1]


class Manifest(BaseModel):
    """Every workflow currently disabled. One record per repository and path."""

    timestamp: Optional[datetime] = None
    disabled_workflows: list[DisabledWorkflowRecord] = Field(default_factory=list)

    def find(self, repository: str, original_path: str) -> Optional[DisabledWorkflowRecord]:
        for record in self.disabled_workflows:
            if record.key == (repository, original_path):
                return record
        return None

    def with_records(
        self, added: list[DisabledWorkflowRecord], timestamp: datetime
    ) -> "Manifest":
        """Return a copy with ``added`` appended, skipping known workflows."""
        known = {record.key for record in self.disabled_workflows}
        merged = list(self.disabled_workflows)
        for record in added:
            if record.key not in known:
                known.add(record.key)
                merged.append(record)
        return Manifest(timestamp=timestamp, disabled_workflows=merged)

    def without_records(
        self, removed: list[DisabledWorkflowRecord], timestamp: datetime
    ) -> "Manifest":
        """Return a copy with ``removed`` taken out."""
        keys = {record.key for record in removed}
        return Manifest(
            timestamp=timestamp,
            disabled_workflows=[
                record for record in self.disabled_workflows if record.key not in keys
            ],
        )
