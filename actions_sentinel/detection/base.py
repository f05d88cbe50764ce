"""Core loop of the workflow definition issue detector."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DefinitionContext:
    """A workflow definition handed to every detection rule."""

    repository: str
    path: str
    content: str
    document: dict[str, Any]

    @property
    def file_name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def triggers(self) -> Any:
        # PyYAML follows YAML 1.1 and loads a bare ``on:`` key as ``True``.
        if "on" in self.document:
            return self.document["on"]
        return self.document.get(True)


IssueRule = Callable[[DefinitionContext], list[str]]


class IssueDetector:
    """Run an ordered list of rules over a workflow definition.

    Findings are advisory only and never influence the disable decision.
    """

    def __init__(self, rules: Sequence[IssueRule] = ()) -> None:
        self.rules = list(rules)

    def detect(self, repository: str, path: str, content: Optional[str]) -> list[str]:
        if not content:
            return []

        try:
            document = yaml.safe_load(content)
        except yaml.YAMLError as exc:
            logger.warning(
                "Could not parse workflow definition %s:%s, skipping issue checks: %s",
                repository,
                path,
                exc,
            )
            return []
        if not isinstance(document, dict):
            logger.warning(
                "Workflow definition %s:%s is not a mapping, skipping issue checks",
                repository,
                path,
            )
            return []

        context = DefinitionContext(
            repository=repository, path=path, content=content, document=document
        )
        issues: list[str] = []
        for rule in self.rules:
            try:
                issues.extend(rule(context))
            except Exception as exc:
                logger.warning(
                    "Issue rule %s failed on %s:%s, skipping it: %s",
                    getattr(rule, "__name__", repr(rule)),
                    repository,
                    path,
                    exc,
                )
        return issues
