"""Command line interface for auditing and managing CI workflows."""

from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path
from typing import NoReturn, Optional

import typer

from .analyzer import WorkflowAnalyzer
from .audit import AuditLogger
from .config import SentinelConfig, load_config, validate_config
from .errors import SentinelError
from .lifecycle import WorkflowLifecycleManager, get_manifest_store
from .models import AnalysisReport
from .reports import load_report, save_markdown_report, save_report
from .sources import get_data_source

app = typer.Typer(help="Audit GitHub Actions workflow health across an organization")

ConfigOption = typer.Option(None, "--config", "-c", help="Path to config file")
DryRunOption = typer.Option(False, "--dry-run", help="Preview changes without making them")
ConfirmOption = typer.Option(False, "--confirm", help="Apply changes (not a dry run)")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """actions-sentinel CLI entry point."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _fail(message: str) -> NoReturn:
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _load(config_path: Optional[Path], require_source: bool) -> SentinelConfig:
    try:
        config = load_config(str(config_path) if config_path else None)
        validate_config(config, require_source=require_source)
    except SentinelError as exc:
        _fail(str(exc))
    return config


def _resolve_dry_run(config: SentinelConfig, dry_run: bool, confirm: bool) -> bool:
    if confirm and dry_run:
        raise typer.BadParameter("--dry-run and --confirm are mutually exclusive")
    if confirm:
        return False
    if dry_run:
        return True
    return config.dry_run


async def _run_analysis(config: SentinelConfig) -> AnalysisReport:
    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.set)
    except (NotImplementedError, RuntimeError):
        pass
    try:
        async with get_data_source(config) as source:
            return await WorkflowAnalyzer(config, source).analyze(cancel=cancel)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass


@app.command("analyze")
def analyze(
    config_path: Optional[Path] = ConfigOption,
    json_only: bool = typer.Option(False, "--json-only", help="Generate only the JSON report"),
    markdown_only: bool = typer.Option(
        False, "--markdown-only", help="Generate only the Markdown report"
    ),
) -> None:
    """
    Analyze all workflows across the organization's repositories.

    Fetches run history for every workflow inside the configured time window,
    flags failing workflows and writes JSON and Markdown reports.

    Example:
        actions-sentinel analyze
        actions-sentinel analyze --config sentinel.yaml --json-only
    """
    config = _load(config_path, require_source=True)
    audit = AuditLogger(config.audit_log_path)

    typer.echo(f"Analyzing workflows for {config.organization}...")
    try:
        report = asyncio.run(_run_analysis(config))
    except SentinelError as exc:
        _fail(str(exc))

    if not report.complete:
        typer.secho(
            "Analysis was cancelled; the partial report was not saved.",
            fg=typer.colors.YELLOW,
        )
        raise typer.Exit(code=130)

    details = {
        "total_repositories": report.total_repositories,
        "total_workflows": report.total_workflows,
        "failing_workflows": report.failing_workflows,
    }
    try:
        if not markdown_only:
            save_report(report, config.report_path)
        if not json_only:
            save_markdown_report(report, config.markdown_report_path, config.time_window_days)
    except (SentinelError, OSError) as exc:
        audit.record("analyze", details=details, success=False, error=str(exc))
        _fail(str(exc))
    audit.record("analyze", details=details)

    typer.echo("Analysis complete!")
    typer.echo("Summary:")
    typer.echo(f"  - Repositories: {report.total_repositories}")
    typer.echo(f"  - Total Workflows: {report.total_workflows}")
    typer.echo(f"  - Failing Workflows: {report.failing_workflows}")
    typer.echo(f"  - Success Rate: {report.success_rate}%")
    if report.failing_workflows > 0:
        typer.echo("Action required:")
        typer.echo("  Run 'actions-sentinel disable --dry-run' to preview disabling failing workflows")
        typer.echo("  Run 'actions-sentinel disable --confirm' to disable failing workflows")


@app.command("disable")
def disable(
    config_path: Optional[Path] = ConfigOption,
    dry_run: bool = DryRunOption,
    confirm: bool = ConfirmOption,
) -> None:
    """
    Disable the workflows flagged by the latest analysis report.

    Without --confirm nothing is written. With --confirm every flagged
    workflow is backed up, recorded in the manifest and audited.

    Example:
        actions-sentinel disable --dry-run
        actions-sentinel disable --confirm
    """
    config = _load(config_path, require_source=False)
    live = not _resolve_dry_run(config, dry_run, confirm)

    try:
        report = load_report(config.report_path)
    except SentinelError as exc:
        _fail(str(exc))

    if report.failing_workflows == 0:
        typer.echo("No failing workflows to disable.")
        return

    manager = WorkflowLifecycleManager(
        config, get_manifest_store(config), AuditLogger(config.audit_log_path)
    )
    typer.echo("LIVE MODE - workflows will be disabled" if live else "DRY RUN - no changes will be made")
    try:
        result = asyncio.run(manager.disable_workflows(report, dry_run=not live))
    except SentinelError as exc:
        _fail(str(exc))

    prefix = "Disabled" if live else "[DRY RUN] Would disable"
    for record in result.disabled:
        typer.echo(f"  {prefix} {record.repository}/{record.workflow_name}")
    for workflow in result.already_disabled:
        typer.echo(f"  Already disabled: {workflow.repository}/{workflow.workflow_name}")
    for failure in result.failures:
        typer.secho(
            f"  Failed {failure.repository}/{failure.workflow}: {failure.error}",
            fg=typer.colors.RED,
        )
    typer.echo(f"{'Disabled' if live else 'Would disable'} {len(result.disabled)} workflow(s)")
    if live:
        typer.echo(f"Manifest: {config.manifest_path}")
        typer.echo("Use 'actions-sentinel restore' to restore workflows if needed.")
    else:
        typer.echo("Run 'actions-sentinel disable --confirm' to actually disable workflows.")


@app.command("restore")
def restore(
    config_path: Optional[Path] = ConfigOption,
    repo: Optional[str] = typer.Option(None, "--repo", "-r", help="Restore workflows of one repository"),
    workflow: Optional[str] = typer.Option(
        None, "--workflow", "-w", help="Workflow path, file name or display name"
    ),
    all_: bool = typer.Option(False, "--all", help="Restore all disabled workflows"),
    dry_run: bool = DryRunOption,
    confirm: bool = ConfirmOption,
) -> None:
    """
    Restore workflows recorded in the disabled workflows manifest.

    Example:
        actions-sentinel restore --repo api --dry-run
        actions-sentinel restore --repo api --workflow ci.yml --confirm
        actions-sentinel restore --all --confirm
    """
    config = _load(config_path, require_source=False)
    if repo is None and workflow is None and not all_:
        raise typer.BadParameter("Specify --repo, --workflow or --all")
    live = not _resolve_dry_run(config, dry_run, confirm)

    manager = WorkflowLifecycleManager(
        config, get_manifest_store(config), AuditLogger(config.audit_log_path)
    )
    try:
        result = asyncio.run(
            manager.restore_workflows(repository=repo, workflow=workflow, all_=all_, dry_run=not live)
        )
    except SentinelError as exc:
        _fail(str(exc))

    if result.nothing_to_do:
        typer.echo("No workflows found matching criteria")
        return

    prefix = "Restored" if live else "[DRY RUN] Would restore"
    for record in result.restored:
        typer.echo(f"  {prefix} {record.repository}/{record.workflow_name}")
    for failure in result.failures:
        typer.secho(
            f"  Failed {failure.repository}/{failure.workflow}: {failure.error}",
            fg=typer.colors.RED,
        )
    if not live:
        typer.echo("Run with --confirm to actually restore workflows.")


@app.command("report")
def report(
    config_path: Optional[Path] = ConfigOption,
    as_json: bool = typer.Option(False, "--json", help="Show the JSON report"),
) -> None:
    """Show the latest analysis report (Markdown by default)."""
    config = _load(config_path, require_source=False)
    path = Path(config.report_path if as_json else config.markdown_report_path)
    if not path.exists():
        _fail(f"No analysis report found at {path}; run 'actions-sentinel analyze' first")
    typer.echo(path.read_text(encoding="utf-8"))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
