"""Error taxonomy for actions-sentinel."""

from __future__ import annotations

from typing import Optional


class SentinelError(Exception):
    """Base class for every error surfaced to the CLI."""


class ConfigurationError(SentinelError):
    """Invalid or incomplete configuration. Always fatal."""

    def __init__(self, message: str, hint: Optional[str] = None) -> None:
        super().__init__(message)
        self.hint = hint

    def __str__(self) -> str:
        message = super().__str__()
        if self.hint:
            return f"{message} ({self.hint})"
        return message


class DataSourceError(SentinelError):
    """A fetch against the data source failed.

    Non-fatal by default: the aggregator degrades the affected repository or
    workflow to empty data and keeps going. Subclasses that set ``fatal``
    stop the pass.
    """

    fatal = False

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class OrganizationAccessError(DataSourceError):
    """The organization cannot be enumerated (not found or unauthorized)."""

    fatal = True


class QuotaExhaustedError(DataSourceError):
    """The data source keeps rejecting requests for rate-limit reasons."""

    fatal = True


class LifecycleError(SentinelError):
    """A disable or restore transition could not be completed."""


class ManifestWriteError(LifecycleError):
    """The manifest could not be persisted; the previous file is intact."""


class IncompleteReportError(SentinelError):
    """A cancelled pass produced a partial report that must not be saved."""
