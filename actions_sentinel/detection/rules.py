"""Built-in detection rules and the factory building them from configuration."""

from __future__ import annotations

import fnmatch
import functools
from typing import Any, Callable, Iterable, Sequence

from ..config import IssueRuleConfig
from ..errors import ConfigurationError
from .base import DefinitionContext, IssueRule


def high_frequency_schedule(context: DefinitionContext) -> list[str]:
    """Flag cron schedules whose minute field is a wildcard or a list."""

    triggers = context.triggers
    if not isinstance(triggers, dict):
        return []
    schedules = triggers.get("schedule")
    if not schedules:
        return []
    if not isinstance(schedules, list):
        schedules = [schedules]

    issues = []
    for schedule in schedules:
        if not isinstance(schedule, dict):
            continue
        cron = schedule.get("cron")
        if not isinstance(cron, str) or not cron.split():
            continue
        minute = cron.split()[0]
        if minute == "*" or "," in minute:
            issues.append(
                f'High-frequency cron schedule: "{cron}" may run too frequently'
            )
    return issues


def duplicate_install(
    first: str = "npm ci", second: str = "npm install"
) -> IssueRule:
    """Flag definitions that run two competing install commands."""

    def duplicate_install_rule(context: DefinitionContext) -> list[str]:
        lines = context.content.splitlines()
        if any(first in line for line in lines) and any(
            second in line for line in lines
        ):
            return [
                f'Duplicate install commands: both "{first}" and "{second}" found'
            ]
        return []

    return duplicate_install_rule


def push_deploy(branch: str = "main", marker: str = "deploy") -> IssueRule:
    """Flag deployment definitions triggered by pushes to ``branch``."""

    def push_deploy_rule(context: DefinitionContext) -> list[str]:
        if marker not in context.file_name:
            return []
        triggers = context.triggers
        if not isinstance(triggers, dict):
            return []
        push = triggers.get("push")
        branches = push.get("branches") if isinstance(push, dict) else None
        if isinstance(branches, str):
            branches = [branches]
        if isinstance(branches, list) and branch in branches:
            return ["Multiple deployment workflows detected - may cause conflicts"]
        return []

    return push_deploy_rule


def scoped(
    rule: IssueRule, repositories: Iterable[str] = (), paths: Sequence[str] = ()
) -> IssueRule:
    """Restrict ``rule`` to some repositories and path patterns.

    An empty selector matches everything.
    """

    repos = frozenset(repositories)
    patterns = list(paths)

    @functools.wraps(rule)
    def scoped_rule(context: DefinitionContext) -> list[str]:
        if repos and context.repository not in repos:
            return []
        if patterns and not any(
            fnmatch.fnmatch(context.path, pattern) for pattern in patterns
        ):
            return []
        return rule(context)

    return scoped_rule


RULE_FACTORIES: dict[str, Callable[..., IssueRule]] = {
    "high_frequency_schedule": lambda: high_frequency_schedule,
    "duplicate_install": duplicate_install,
    "push_deploy": push_deploy,
}


def build_rules(configs: Iterable[IssueRuleConfig]) -> list[IssueRule]:
    """Instantiate configured rules, preserving their order."""

    rules: list[IssueRule] = []
    for config in configs:
        factory = RULE_FACTORIES[config.kind]
        options: dict[str, Any] = dict(config.options)
        try:
            rule = factory(**options)
        except TypeError as exc:
            raise ConfigurationError(
                f"Invalid options for issue rule {config.kind!r}: {exc}"
            ) from exc
        if config.repositories or config.paths:
            rule = scoped(rule, config.repositories, config.paths)
        rules.append(rule)
    return rules
