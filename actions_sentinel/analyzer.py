"""Analysis pass over every workflow of every repository in an organization."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .classifier import FailureClassifier
from .config import SentinelConfig
from .detection import IssueDetector, get_detector
from .errors import DataSourceError
from .metrics import compute_metrics
from .models import (
    AnalysisReport,
    RepositoryAnalysis,
    Run,
    RunTotals,
    WorkflowAnalysis,
    WorkflowDescriptor,
)
from .sources import DataSource

logger = logging.getLogger(__name__)

T = TypeVar("T")

RECENT_RUNS_KEPT = 10


class PassCancelled(Exception):
    """Raised inside a pass once no further fetches may be issued."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowAnalyzer:
    """Drive metrics, classification and issue detection over an organization.

    The pass is read-only. Fetches run concurrently up to
    ``config.max_concurrent_requests`` but the report is always ordered as
    the data source lists repositories and workflows.
    """

    def __init__(
        self,
        config: SentinelConfig,
        source: DataSource,
        detector: Optional[IssueDetector] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.config = config
        self.source = source
        self.detector = detector if detector is not None else get_detector(config)
        self.classifier = FailureClassifier(
            failure_threshold=config.failure_threshold,
            failure_rate_threshold=config.failure_rate_threshold,
            safelist=config.safelist_workflows,
        )
        self._clock = clock
        self._limiter: Optional[asyncio.Semaphore] = None
        self._cancel: Optional[asyncio.Event] = None
        self._abort: Optional[asyncio.Event] = None

    def _stopped(self) -> bool:
        return self._cancel.is_set() or self._abort.is_set()

    async def _call(self, fn: Callable[..., Awaitable[T]], *args: Any) -> T:
        """Issue one data source call under the in-flight limit and timeout."""

        if self._stopped():
            raise PassCancelled()
        async with self._limiter:
            if self._stopped():
                raise PassCancelled()
            try:
                return await asyncio.wait_for(
                    fn(*args), timeout=self.config.request_timeout_seconds
                )
            except asyncio.TimeoutError as exc:
                raise DataSourceError(
                    f"{fn.__name__}{args} timed out after "
                    f"{self.config.request_timeout_seconds}s"
                ) from exc
            except DataSourceError as exc:
                if exc.fatal:
                    self._abort.set()
                raise

    async def analyze(self, cancel: Optional[asyncio.Event] = None) -> AnalysisReport:
        """Run one full pass and return its report.

        Setting ``cancel`` stops new fetches; the report returned then holds
        whatever finished and has ``complete`` set to ``False``.
        """

        self._limiter = asyncio.Semaphore(self.config.max_concurrent_requests)
        self._cancel = cancel if cancel is not None else asyncio.Event()
        self._abort = asyncio.Event()
        started = self._clock()
        since = started - timedelta(days=self.config.time_window_days)
        cancelled = False

        logger.info("Starting workflow analysis for %s", self.config.organization)
        await self._check_quota()

        try:
            repositories = await self._call(
                self.source.list_repositories,
                self.config.organization,
                self.config.exclude_repositories,
            )
        except PassCancelled:
            repositories = []
            cancelled = True
        excluded = set(self.config.exclude_repositories)
        repositories = [repo for repo in repositories if repo not in excluded]
        logger.info("Found %d repositories to analyze", len(repositories))

        results = await asyncio.gather(
            *(self._analyze_repository(repo, since) for repo in repositories)
        )
        cancelled = cancelled or self._cancel.is_set()

        repository_analyses = [result for result in results if result is not None]
        report = self._build_report(
            started, len(repositories), repository_analyses, complete=not cancelled
        )
        if cancelled:
            logger.warning(
                "Analysis cancelled; partial report covers %d repositories",
                report.total_repositories,
            )
        else:
            logger.info("Analysis complete")
        return report

    async def _check_quota(self) -> None:
        try:
            quota = await self._call(self.source.check_quota)
        except DataSourceError as exc:
            if exc.fatal:
                raise
            logger.warning("Could not check API quota: %s", exc)
            return
        except PassCancelled:
            return
        if quota.remaining < self.config.quota_safety_margin:
            reset = quota.reset_at.isoformat() if quota.reset_at else "unknown"
            logger.warning(
                "Only %d/%d API requests remaining. Resets at %s",
                quota.remaining,
                quota.limit,
                reset,
            )

    async def _analyze_repository(
        self, repository: str, since: datetime
    ) -> Optional[RepositoryAnalysis]:
        try:
            workflows = await self._call(self.source.list_workflows, repository)
        except PassCancelled:
            return None
        except DataSourceError as exc:
            if exc.fatal:
                raise
            logger.warning("Error fetching workflows for %s: %s", repository, exc)
            workflows = []

        if not workflows:
            logger.debug("Repository %s has no workflows, skipping", repository)
            return None

        logger.info("Analyzing repository: %s", repository)
        analyses = await asyncio.gather(
            *(self._analyze_workflow(repository, wf, since) for wf in workflows)
        )
        completed = [analysis for analysis in analyses if analysis is not None]
        if not completed:
            return None
        return RepositoryAnalysis(
            repository=repository,
            total_workflows=len(workflows),
            failing_workflows=sum(1 for wf in completed if wf.should_disable),
            workflows=completed,
        )

    async def _fetch_runs(
        self, repository: str, workflow: WorkflowDescriptor, since: datetime
    ) -> list[Run]:
        try:
            return await self._call(self.source.list_runs, repository, workflow.id, since)
        except DataSourceError as exc:
            if exc.fatal:
                raise
            logger.warning(
                "Error fetching runs for %s workflow %s, treating as no runs: %s",
                repository,
                workflow.id,
                exc,
            )
            return []

    async def _fetch_content(self, repository: str, path: str) -> Optional[str]:
        try:
            return await self._call(self.source.get_definition_content, repository, path)
        except DataSourceError as exc:
            if exc.fatal:
                raise
            logger.warning(
                "Error fetching workflow content for %s:%s: %s", repository, path, exc
            )
            return None

    async def _analyze_workflow(
        self, repository: str, workflow: WorkflowDescriptor, since: datetime
    ) -> Optional[WorkflowAnalysis]:
        try:
            runs = await self._fetch_runs(repository, workflow, since)
            content = await self._fetch_content(repository, workflow.path)
        except PassCancelled:
            return None

        metrics = compute_metrics(
            runs, cancelled_breaks_streak=self.config.cancelled_breaks_streak
        )
        decision = self.classifier.classify(workflow.file_name, metrics)
        issues = self.detector.detect(repository, workflow.path, content)

        return WorkflowAnalysis(
            repository=repository,
            workflow_id=workflow.id,
            workflow_name=workflow.name,
            workflow_path=workflow.path,
            total_runs=metrics.total_runs,
            successful_runs=metrics.successful_runs,
            failed_runs=metrics.failed_runs,
            failure_rate=metrics.failure_rate,
            consecutive_failures=metrics.consecutive_failures,
            last_successful_run=metrics.last_successful_run,
            last_runs=list(runs[:RECENT_RUNS_KEPT]),
            should_disable=decision.should_disable,
            disable_reasons=decision.reasons,
            issues=issues,
        )

    def _build_report(
        self,
        timestamp: datetime,
        scanned: int,
        repositories: list[RepositoryAnalysis],
        complete: bool,
    ) -> AnalysisReport:
        workflows = [wf for repo in repositories for wf in repo.workflows]
        totals = RunTotals(
            total_runs=sum(wf.total_runs for wf in workflows),
            successful_runs=sum(wf.successful_runs for wf in workflows),
            failed_runs=sum(wf.failed_runs for wf in workflows),
        )
        success_rate = (
            round(totals.successful_runs / totals.total_runs * 100, 2)
            if totals.total_runs
            else 0.0
        )
        return AnalysisReport(
            timestamp=timestamp,
            organization=self.config.organization,
            repositories_scanned=scanned,
            total_repositories=len(repositories),
            total_workflows=sum(repo.total_workflows for repo in repositories),
            failing_workflows=sum(repo.failing_workflows for repo in repositories),
            success_rate=success_rate,
            repositories=repositories,
            summary=totals,
            complete=complete,
        )
