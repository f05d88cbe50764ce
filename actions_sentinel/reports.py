"""Persist analysis reports and render them as Markdown."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from .errors import IncompleteReportError, SentinelError
from .models import AnalysisReport, RepositoryAnalysis, WorkflowAnalysis
from .utils.files import atomic_write_text

logger = logging.getLogger(__name__)


def save_report(report: AnalysisReport, path: str | Path) -> None:
    """Write ``report`` as JSON, replacing any previous report atomically.

    Partial reports from a cancelled pass are refused so that they never
    overwrite a complete one.
    """

    if not report.complete:
        raise IncompleteReportError(
            "Refusing to save an incomplete analysis report; rerun the analysis"
        )
    atomic_write_text(path, report.model_dump_json(indent=2) + "\n")
    logger.info("JSON report generated: %s", path)


def load_report(path: str | Path) -> AnalysisReport:
    report_path = Path(path)
    if not report_path.exists():
        raise SentinelError(
            f"No analysis report found at {report_path}; run 'actions-sentinel analyze' first"
        )
    try:
        return AnalysisReport.model_validate_json(report_path.read_text(encoding="utf-8"))
    except ValidationError as exc:
        raise SentinelError(f"Analysis report {report_path} is invalid: {exc}") from exc


def _row(cells: list[str]) -> str:
    return "| " + " | ".join(str(cell).replace("|", "\\|") for cell in cells) + " |"


def _table(rows: list[list[str]]) -> str:
    header, *body = rows
    lines = [_row(header), "| " + " | ".join("---" for _ in header) + " |"]
    lines.extend(_row(row) for row in body)
    return "\n".join(lines)


def _repository_status(repo: RepositoryAnalysis) -> str:
    return "Healthy" if repo.failing_workflows == 0 else "Issues Found"


def _workflow_section(workflow: WorkflowAnalysis) -> str:
    lines = [
        f"#### {workflow.workflow_name}",
        "",
        f"- **Path**: `{workflow.workflow_path}`",
        f"- **Total Runs**: {workflow.total_runs}",
        f"- **Successful**: {workflow.successful_runs}",
        f"- **Failed**: {workflow.failed_runs}",
        f"- **Failure Rate**: {workflow.failure_rate:.1f}%",
        f"- **Consecutive Failures**: {workflow.consecutive_failures}",
    ]
    if workflow.last_successful_run is not None:
        lines.append(
            f"- **Last Success**: {workflow.last_successful_run.created_at.isoformat()}"
        )
    else:
        lines.append("- **Last Success**: never (in window)")

    lines.extend(["", "**Reasons for disabling:**", ""])
    lines.extend(f"- {reason}" for reason in workflow.disable_reasons)

    if workflow.issues:
        lines.extend(["", "**Issues detected:**", ""])
        lines.extend(f"- {issue}" for issue in workflow.issues)

    if workflow.last_runs:
        rows = [["Run", "Status", "Conclusion", "Created"]]
        rows.extend(
            [
                f"#{run.run_number}",
                run.status or "-",
                run.conclusion or "-",
                run.created_at.isoformat(),
            ]
            for run in workflow.last_runs
        )
        lines.extend(["", "**Recent runs:**", "", _table(rows)])
    return "\n".join(lines)


def render_markdown(report: AnalysisReport, time_window_days: int = 7) -> str:
    """Render a human-readable Markdown summary of ``report``."""

    parts = [
        "# GitHub Actions Workflow Analysis Report",
        "",
        "## Executive Summary",
        "",
        f"- **Analysis Date**: {report.timestamp.isoformat()}",
        f"- **Organization**: {report.organization}",
        f"- **Repositories Scanned**: {report.repositories_scanned}",
        f"- **Repositories With Workflows**: {report.total_repositories}",
        f"- **Total Workflows**: {report.total_workflows}",
        f"- **Failing Workflows**: {report.failing_workflows}",
        f"- **Overall Success Rate**: {report.success_rate}%",
        f"- **Total Workflow Runs (last {time_window_days} days)**: {report.summary.total_runs}",
        f"- **Successful Runs**: {report.summary.successful_runs}",
        f"- **Failed Runs**: {report.summary.failed_runs}",
        "",
    ]

    if report.failing_workflows > 0:
        parts.extend(
            [
                "## Recommendations",
                "",
                f"Found {report.failing_workflows} failing workflows that should be "
                "disabled to reduce wasted workflow runs.",
                "",
                "**Action Required**: run `actions-sentinel disable --dry-run` to preview, "
                "then `actions-sentinel disable --confirm`.",
                "",
            ]
        )
    else:
        parts.extend(
            ["## Status", "", "All workflows are functioning properly. No action required.", ""]
        )

    if report.repositories:
        rows = [["Repository", "Total Workflows", "Failing", "Status"]]
        rows.extend(
            [
                repo.repository,
                str(repo.total_workflows),
                str(repo.failing_workflows),
                _repository_status(repo),
            ]
            for repo in report.repositories
        )
        parts.extend(["## Repository Breakdown", "", _table(rows), ""])

    flagged_repos = [repo for repo in report.repositories if repo.failing_workflows]
    if flagged_repos:
        parts.extend(["## Failing Workflows", ""])
        for repo in flagged_repos:
            parts.extend([f"### {repo.repository}", ""])
            for workflow in repo.workflows:
                if workflow.should_disable:
                    parts.extend([_workflow_section(workflow), ""])

    advisories = [
        (repo.repository, wf)
        for repo in report.repositories
        for wf in repo.workflows
        if wf.issues and not wf.should_disable
    ]
    if advisories:
        parts.extend(["## Other Issues Detected", ""])
        for repository, workflow in advisories:
            parts.append(f"### {repository} / {workflow.workflow_name}")
            parts.append("")
            parts.extend(f"- {issue}" for issue in workflow.issues)
            parts.append("")

    return "\n".join(parts).rstrip() + "\n"


def save_markdown_report(
    report: AnalysisReport, path: str | Path, time_window_days: int = 7
) -> None:
    if not report.complete:
        raise IncompleteReportError(
            "Refusing to save an incomplete analysis report; rerun the analysis"
        )
    atomic_write_text(path, render_markdown(report, time_window_days))
    logger.info("Markdown report generated: %s", path)
