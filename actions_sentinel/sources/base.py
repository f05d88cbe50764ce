"""Data source interface for repository, workflow and run data."""

from __future__ import annotations

import abc
from datetime import datetime
from typing import Iterable, Optional

from ..models import QuotaStatus, Run, WorkflowDescriptor


class DataSource(metaclass=abc.ABCMeta):
    """Abstract read-only view of an organization's CI data.

    Implementations raise :class:`~actions_sentinel.errors.DataSourceError`
    (or a fatal subclass) when a fetch fails.
    """

    async def connect(self) -> None:
        """Open underlying connections (no-op by default)."""
        pass

    async def close(self) -> None:
        """Release underlying connections (no-op by default)."""
        pass

    async def __aenter__(self) -> "DataSource":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @abc.abstractmethod
    async def list_repositories(
        self, organization: str, exclude: Iterable[str] = ()
    ) -> list[str]:
        """Return repository names of ``organization`` minus ``exclude``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def list_workflows(self, repository: str) -> list[WorkflowDescriptor]:
        """Return the workflows defined in ``repository``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def list_runs(
        self, repository: str, workflow_id: int, since: datetime
    ) -> list[Run]:
        """Return runs created at or after ``since``, most recent first."""
        raise NotImplementedError

    @abc.abstractmethod
    async def get_definition_content(
        self, repository: str, path: str
    ) -> Optional[str]:
        """Return the raw workflow definition, or ``None`` if unavailable."""
        raise NotImplementedError

    @abc.abstractmethod
    async def check_quota(self) -> QuotaStatus:
        """Report the remaining request quota."""
        raise NotImplementedError
