from __future__ import annotations

import os
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigurationError

DEFAULT_API_URL = "https://api.github.com"


class SourceConfig(BaseModel):
    """Where repository, workflow and run data comes from."""

    backend: Literal["github", "fixture"] = "github"
    api_url: str = DEFAULT_API_URL
    fixture_path: Optional[str] = None


class IssueRuleConfig(BaseModel):
    """One entry of the ordered issue detection rule list."""

    kind: Literal["high_frequency_schedule", "duplicate_install", "push_deploy"]
    repositories: list[str] = Field(default_factory=list)
    paths: list[str] = Field(default_factory=list)
    options: dict[str, Any] = Field(default_factory=dict)


class SentinelConfig(BaseModel):
    """Top-level configuration model."""

    organization: str = ""
    github_token: Optional[str] = None

    failure_threshold: int = Field(3, ge=1)
    failure_rate_threshold: float = Field(80, ge=0, le=100)
    time_window_days: int = Field(7, ge=1)
    cancelled_breaks_streak: bool = False

    exclude_repositories: list[str] = Field(default_factory=list)
    safelist_workflows: list[str] = Field(default_factory=list)

    max_concurrent_requests: int = Field(5, ge=1)
    request_timeout_seconds: float = Field(60, gt=0)
    max_retries: int = Field(3, ge=0)
    quota_safety_margin: int = Field(100, ge=0)
    max_runs_per_workflow: int = Field(100, ge=1)

    dry_run: bool = True
    backup_directory: str = "workflow-backups"
    manifest_path: str = "disabled-workflows-manifest.json"
    audit_log_path: str = "audit-log.jsonl"
    report_path: str = "workflow-analysis-report.json"
    markdown_report_path: str = "workflow-analysis-report.md"

    source: SourceConfig = SourceConfig()
    issue_rules: list[IssueRuleConfig] = Field(
        default_factory=lambda: [IssueRuleConfig(kind="high_frequency_schedule")]
    )


_INT_ENV_OVERRIDES = {
    "FAILURE_THRESHOLD": "failure_threshold",
    "TIME_WINDOW_DAYS": "time_window_days",
}


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if os.getenv("GITHUB_TOKEN"):
        overrides["github_token"] = os.environ["GITHUB_TOKEN"]
    if os.getenv("GITHUB_ORG"):
        overrides["organization"] = os.environ["GITHUB_ORG"]
    for env_name, field_name in _INT_ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            try:
                overrides[field_name] = int(value)
            except ValueError as exc:
                raise ConfigurationError(
                    f"{env_name} must be an integer, got {value!r}"
                ) from exc
    rate = os.getenv("FAILURE_RATE_THRESHOLD")
    if rate:
        try:
            overrides["failure_rate_threshold"] = float(rate)
        except ValueError as exc:
            raise ConfigurationError(
                f"FAILURE_RATE_THRESHOLD must be a number, got {rate!r}"
            ) from exc
    return overrides


def load_config(path: Optional[str] = None) -> SentinelConfig:
    """Load configuration from a YAML (or JSON) file plus environment overrides.

    Args:
        path: Optional path to config file. Falls back to the SENTINEL_CONFIG
            env variable or 'config.yaml' in the current directory. A missing
            file is not an error; defaults and environment values apply.
    """

    config_path = path or os.getenv("SENTINEL_CONFIG", "config.yaml")
    data: dict[str, Any] = {}
    if os.path.exists(config_path):
        with open(config_path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(
                    f"Could not parse config file {config_path}: {exc}",
                    hint="check the file is valid YAML or JSON",
                ) from exc
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Config file {config_path} must contain a mapping"
            )

    data.update(_env_overrides())
    api_url = os.getenv("SENTINEL_API_URL")
    if api_url:
        data["source"] = {**(data.get("source") or {}), "api_url": api_url}

    try:
        return SentinelConfig(**data)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
        raise ConfigurationError(
            f"Invalid configuration: {problems}",
            hint=f"fix the values in {config_path} or the environment",
        ) from exc


def validate_config(config: SentinelConfig, require_source: bool = True) -> None:
    """Check the values a command needs before it touches the data source."""

    if not require_source:
        return
    if not config.organization:
        raise ConfigurationError(
            "Organization name is required",
            hint="set GITHUB_ORG or 'organization' in the config file",
        )

    if config.source.backend == "github" and not config.github_token:
        raise ConfigurationError(
            "GitHub token is required",
            hint="set GITHUB_TOKEN or 'github_token' in the config file; "
            "the token needs 'repo', 'workflow' and 'read:org' scopes",
        )
    if config.source.backend == "fixture":
        if not config.source.fixture_path:
            raise ConfigurationError(
                "source.fixture_path is required for the fixture backend"
            )
        if not os.path.exists(config.source.fixture_path):
            raise ConfigurationError(
                f"Fixture file not found: {config.source.fixture_path}"
            )
