"""Append-only audit trail of analysis and lifecycle actions."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

AuditAction = Literal["analyze", "disable", "restore", "backup"]


class AuditLogEntry(BaseModel):
    """A single audit record. Never edited once written."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    action: AuditAction
    repository: Optional[str] = None
    workflow: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)
    success: bool
    error: Optional[str] = None


class AuditLogger:
    """Write audit entries to a JSON Lines file.

    Every entry is appended and synced to disk before :meth:`record` returns,
    so the trail survives a crash in the operation being recorded. The file is
    never rewritten.
    """

    def __init__(self, path: str | Path = "audit-log.jsonl") -> None:
        self.path = Path(path)

    def record(
        self,
        action: AuditAction,
        *,
        repository: Optional[str] = None,
        workflow: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        success: bool = True,
        error: Optional[str] = None,
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            timestamp=datetime.now(timezone.utc),
            action=action,
            repository=repository,
            workflow=workflow,
            details=details or {},
            success=success,
            error=error,
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(entry.model_dump_json() + "\n")
            f.flush()
            os.fsync(f.fileno())
        logger.debug("Audit %s %s/%s success=%s", action, repository, workflow, success)
        return entry

    def entries(self) -> list[AuditLogEntry]:
        """Read back every entry in write order."""
        if not self.path.exists():
            return []
        with open(self.path, encoding="utf-8") as f:
            return [
                AuditLogEntry.model_validate_json(line)
                for line in f
                if line.strip()
            ]
