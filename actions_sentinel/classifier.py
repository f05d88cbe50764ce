"""Threshold rules deciding whether a workflow should be disabled."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .metrics import WorkflowMetrics

# Below this many runs the failure rate is too noisy to act on.
MIN_RUNS_FOR_RATE = 5


@dataclass(frozen=True)
class Decision:
    should_disable: bool
    reasons: list[str] = field(default_factory=list)


class FailureClassifier:
    """Apply the disable rules to computed metrics.

    Rules are evaluated in order and every matching rule contributes its
    reason. A safelisted workflow file is never flagged.
    """

    def __init__(
        self,
        failure_threshold: int,
        failure_rate_threshold: float,
        safelist: Iterable[str] = (),
    ) -> None:
        self.failure_threshold = failure_threshold
        self.failure_rate_threshold = failure_rate_threshold
        self.safelist = frozenset(safelist)

    def classify(self, file_name: str, metrics: WorkflowMetrics) -> Decision:
        if file_name in self.safelist:
            return Decision(should_disable=False)

        reasons: list[str] = []
        if (
            metrics.consecutive_failures >= self.failure_threshold
            and metrics.total_runs >= self.failure_threshold
        ):
            reasons.append(
                f"{metrics.consecutive_failures} consecutive failures "
                f"(threshold: {self.failure_threshold})"
            )

        if (
            metrics.failure_rate >= self.failure_rate_threshold
            and metrics.total_runs >= MIN_RUNS_FOR_RATE
        ):
            reasons.append(
                f"{metrics.failure_rate:.1f}% failure rate "
                f"(threshold: {self.failure_rate_threshold:g}%)"
            )

        if metrics.total_runs > 0 and metrics.successful_runs == 0:
            reasons.append("No successful runs")

        return Decision(should_disable=bool(reasons), reasons=reasons)
