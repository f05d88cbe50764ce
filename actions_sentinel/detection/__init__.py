"""Advisory checks on workflow definition content."""

from __future__ import annotations

from ..config import SentinelConfig
from .base import DefinitionContext, IssueDetector, IssueRule
from .rules import (
    RULE_FACTORIES,
    build_rules,
    duplicate_install,
    high_frequency_schedule,
    push_deploy,
    scoped,
)


def get_detector(config: SentinelConfig) -> IssueDetector:
    """Build the issue detector described by ``config.issue_rules``."""
    return IssueDetector(build_rules(config.issue_rules))


__all__ = [
    "DefinitionContext",
    "IssueDetector",
    "IssueRule",
    "RULE_FACTORIES",
    "build_rules",
    "duplicate_install",
    "get_detector",
    "high_frequency_schedule",
    "push_deploy",
    "scoped",
]
