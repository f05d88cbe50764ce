"""Data source factory and initialization."""

from __future__ import annotations

from ..config import SentinelConfig
from .base import DataSource
from .inmemory import InMemoryDataSource


def get_data_source(config: SentinelConfig) -> DataSource:
    """Factory function to get the configured data source."""

    backend = config.source.backend
    if backend == "github":
        from .github import GitHubDataSource

        return GitHubDataSource(
            organization=config.organization,
            token=config.github_token or "",
            api_url=config.source.api_url,
            timeout=config.request_timeout_seconds,
            max_retries=config.max_retries,
            max_runs=config.max_runs_per_workflow,
            quota_safety_margin=config.quota_safety_margin,
        )
    elif backend == "fixture":
        return InMemoryDataSource.from_file(config.source.fixture_path)
    else:
        raise ValueError(f"Unsupported data source backend: {backend}")


__all__ = ["DataSource", "InMemoryDataSource", "get_data_source"]
