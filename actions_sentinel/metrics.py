"""Failure metrics computed from a workflow's run history."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from .models import Run


@dataclass(frozen=True)
class WorkflowMetrics:
    total_runs: int
    successful_runs: int
    failed_runs: int
    failure_rate: float
    consecutive_failures: int
    last_successful_run: Optional[Run]


def count_consecutive_failures(
    runs: Sequence[Run], cancelled_breaks_streak: bool = False
) -> int:
    """Count failing runs from the most recent one backward.

    The streak ends at the first success. Runs that neither failed nor
    succeeded (cancelled, skipped, still running) are passed over unless
    ``cancelled_breaks_streak`` is set, in which case they end the streak too.
    """

    streak = 0
    for run in runs:
        if run.failed:
            streak += 1
        elif run.succeeded:
            break
        elif cancelled_breaks_streak:
            break
    return streak


def compute_metrics(
    runs: Sequence[Run], cancelled_breaks_streak: bool = False
) -> WorkflowMetrics:
    """Compute failure metrics for ``runs`` ordered most recent first."""

    total = len(runs)
    successful = sum(1 for run in runs if run.succeeded)
    failed = sum(1 for run in runs if run.failed)
    failure_rate = (failed / total) * 100 if total else 0.0
    last_success = next((run for run in runs if run.succeeded), None)

    return WorkflowMetrics(
        total_runs=total,
        successful_runs=successful,
        failed_runs=failed,
        failure_rate=failure_rate,
        consecutive_failures=count_consecutive_failures(
            runs, cancelled_breaks_streak=cancelled_breaks_streak
        ),
        last_successful_run=last_success,
    )
