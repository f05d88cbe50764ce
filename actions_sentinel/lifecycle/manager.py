"""Disable and restore transitions driven by an analysis report."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from ..audit import AuditLogger
from ..config import SentinelConfig
from ..errors import ManifestWriteError
from ..models import AnalysisReport, WorkflowAnalysis
from ..utils.files import atomic_write_text
from .models import DISABLED_SUFFIX, DisabledWorkflowRecord, Manifest
from .mutator import RemoteMutator
from .store import ManifestStore

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class LifecycleFailure:
    repository: str
    workflow: str
    error: str


@dataclass
class DisableResult:
    dry_run: bool
    disabled: list[DisabledWorkflowRecord] = field(default_factory=list)
    already_disabled: list[WorkflowAnalysis] = field(default_factory=list)
    safelisted: list[WorkflowAnalysis] = field(default_factory=list)
    failures: list[LifecycleFailure] = field(default_factory=list)


@dataclass
class RestoreResult:
    dry_run: bool
    restored: list[DisabledWorkflowRecord] = field(default_factory=list)
    failures: list[LifecycleFailure] = field(default_factory=list)

    @property
    def nothing_to_do(self) -> bool:
        return not self.restored and not self.failures


def _backup_stamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")


class WorkflowLifecycleManager:
    """Move flagged workflows between the active and disabled states.

    The manifest is the single record of what is disabled. Each transition
    leaves a backup and audit entries behind. Remote changes go through an
    optional :class:`RemoteMutator`; without one, transitions are recorded
    as pending.
    """

    def __init__(
        self,
        config: SentinelConfig,
        store: ManifestStore,
        audit: AuditLogger,
        mutator: Optional[RemoteMutator] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.config = config
        self.store = store
        self.audit = audit
        self.mutator = mutator
        self._clock = clock

    # ------------------------------------------------------------------
    # Helpers
    def _build_record(self, analysis: WorkflowAnalysis) -> DisabledWorkflowRecord:
        now = self._clock()
        file_name = analysis.workflow_path.rsplit("/", 1)[-1]
        backup_path = (
            Path(self.config.backup_directory)
            / f"{analysis.repository}_{file_name}_{_backup_stamp(now)}.json"
        )
        return DisabledWorkflowRecord(
            repository=analysis.repository,
            workflow_name=analysis.workflow_name,
            original_path=analysis.workflow_path,
            disabled_path=f"{analysis.workflow_path}{DISABLED_SUFFIX}",
            backup_path=str(backup_path),
            disabled_at=now,
            reasons=list(analysis.disable_reasons),
            analysis=analysis,
        )

    async def _apply_remote(self, action: str, record: DisabledWorkflowRecord) -> bool:
        if self.mutator is None:
            logger.warning(
                "No remote mutator configured: %s of %s/%s is recorded but "
                "must be applied to the CI system separately",
                action,
                record.repository,
                record.original_path,
            )
            return False
        if action == "disable":
            await self.mutator.disable(record)
        else:
            await self.mutator.restore(record)
        return True

    def _persist(self, manifest: Manifest, action: str, pending: list[DisabledWorkflowRecord]) -> None:
        try:
            self.store.save(manifest)
        except ManifestWriteError as exc:
            logger.error("Manifest write failed: %s", exc)
            self.audit.record(
                action,
                details={
                    "stage": "manifest",
                    "unsaved": [
                        {"repository": r.repository, "path": r.original_path}
                        for r in pending
                    ],
                },
                success=False,
                error=str(exc),
            )
            raise

    # ------------------------------------------------------------------
    # Disable
    async def disable_workflows(
        self, report: AnalysisReport, dry_run: bool = True
    ) -> DisableResult:
        """Back up and disable every workflow ``report`` flags.

        In dry-run mode nothing is written: no backups, no manifest change
        and no audit entries. One workflow failing does not stop the batch.
        """

        result = DisableResult(dry_run=dry_run)
        manifest = self.store.load()
        safelist = set(self.config.safelist_workflows)
        accumulated: list[DisabledWorkflowRecord] = []

        for workflow in report.flagged_workflows():
            file_name = workflow.workflow_path.rsplit("/", 1)[-1]
            if file_name in safelist:
                logger.info("Skipping safelisted workflow %s/%s", workflow.repository, file_name)
                result.safelisted.append(workflow)
                continue
            if manifest.find(workflow.repository, workflow.workflow_path) is not None:
                logger.info(
                    "Workflow %s/%s is already disabled", workflow.repository, workflow.workflow_path
                )
                result.already_disabled.append(workflow)
                continue

            record = self._build_record(workflow)
            if dry_run:
                logger.info("[DRY RUN] would disable %s/%s", record.repository, record.workflow_name)
                result.disabled.append(record)
                continue

            if await self._disable_one(record, result):
                accumulated.append(record)

        if not dry_run and accumulated:
            updated = manifest.with_records(accumulated, self._clock())
            self._persist(updated, "disable", accumulated)
            logger.info("Disabled workflows manifest saved")
        return result

    async def _disable_one(self, record: DisabledWorkflowRecord, result: DisableResult) -> bool:
        try:
            atomic_write_text(
                record.backup_path, record.analysis.model_dump_json(indent=2) + "\n"
            )
        except OSError as exc:
            logger.error("Backup of %s/%s failed: %s", record.repository, record.workflow_name, exc)
            self.audit.record(
                "backup",
                repository=record.repository,
                workflow=record.workflow_name,
                details={"backup_path": record.backup_path},
                success=False,
                error=str(exc),
            )
            self._record_failure("disable", record, result.failures, str(exc))
            return False

        self.audit.record(
            "backup",
            repository=record.repository,
            workflow=record.workflow_name,
            details={"backup_path": record.backup_path},
        )

        try:
            remote_applied = await self._apply_remote("disable", record)
        except Exception as exc:
            logger.error("Disabling %s/%s failed: %s", record.repository, record.workflow_name, exc)
            self._record_failure("disable", record, result.failures, str(exc))
            return False

        self.audit.record(
            "disable",
            repository=record.repository,
            workflow=record.workflow_name,
            details={
                "original_path": record.original_path,
                "disabled_path": record.disabled_path,
                "backup_path": record.backup_path,
                "reasons": record.reasons,
                "remote_applied": remote_applied,
            },
        )
        result.disabled.append(record)
        return True

    def _record_failure(
        self,
        action: str,
        record: DisabledWorkflowRecord,
        failures: list[LifecycleFailure],
        error: str,
    ) -> None:
        self.audit.record(
            action,
            repository=record.repository,
            workflow=record.workflow_name,
            details={"original_path": record.original_path, "error": error},
            success=False,
            error=error,
        )
        failures.append(LifecycleFailure(record.repository, record.workflow_name, error))

    # ------------------------------------------------------------------
    # Restore
    @staticmethod
    def select(
        manifest: Manifest,
        repository: Optional[str] = None,
        workflow: Optional[str] = None,
        all_: bool = False,
    ) -> list[DisabledWorkflowRecord]:
        """Return manifest records matching every given filter.

        ``workflow`` matches exactly against the original path, its file
        name, or the workflow's display name. Without any filter nothing is
        selected unless ``all_`` is set.
        """

        if repository is None and workflow is None and not all_:
            return []
        candidates = list(manifest.disabled_workflows)
        if repository is not None:
            candidates = [r for r in candidates if r.repository == repository]
        if workflow is not None:
            candidates = [
                r
                for r in candidates
                if workflow in (r.original_path, r.file_name, r.workflow_name)
            ]
        return candidates

    async def restore_workflows(
        self,
        repository: Optional[str] = None,
        workflow: Optional[str] = None,
        all_: bool = False,
        dry_run: bool = True,
    ) -> RestoreResult:
        """Restore disabled workflows selected from the persisted manifest.

        Every processed record leaves the manifest, whether its restore
        succeeded or failed; a failed restore keeps the full record in its
        audit entry.
        """

        result = RestoreResult(dry_run=dry_run)
        manifest = self.store.load()
        candidates = self.select(manifest, repository, workflow, all_)
        if not candidates:
            logger.info("No disabled workflows match the restore criteria")
            return result

        if dry_run:
            for record in candidates:
                logger.info("[DRY RUN] would restore %s/%s", record.repository, record.workflow_name)
            result.restored.extend(candidates)
            return result

        processed: list[DisabledWorkflowRecord] = []
        for record in candidates:
            processed.append(record)
            try:
                remote_applied = await self._apply_remote("restore", record)
            except Exception as exc:
                logger.error("Restoring %s/%s failed: %s", record.repository, record.workflow_name, exc)
                self.audit.record(
                    "restore",
                    repository=record.repository,
                    workflow=record.workflow_name,
                    details={"record": record.model_dump(mode="json")},
                    success=False,
                    error=str(exc),
                )
                result.failures.append(
                    LifecycleFailure(record.repository, record.workflow_name, str(exc))
                )
                continue

            self.audit.record(
                "restore",
                repository=record.repository,
                workflow=record.workflow_name,
                details={
                    "original_path": record.original_path,
                    "disabled_path": record.disabled_path,
                    "remote_applied": remote_applied,
                },
            )
            result.restored.append(record)

        self._persist(manifest.without_records(processed, self._clock()), "restore", processed)
        logger.info("Manifest updated")
        return result
