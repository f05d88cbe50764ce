"""Boundary to the system that actually changes workflow state remotely."""

from __future__ import annotations

from typing import Protocol

from .models import DisabledWorkflowRecord


class RemoteMutator(Protocol):
    """Apply disable and restore transitions to the CI system itself.

    actions-sentinel does not ship an implementation: the manifest and the
    backups record what should happen, and an integration supplying this
    protocol makes it happen. Both methods raise on failure.
    """

    async def disable(self, record: DisabledWorkflowRecord) -> None:
        """Take the workflow described by ``record`` out of service."""

    async def restore(self, record: DisabledWorkflowRecord) -> None:
        """Put the workflow described by ``record`` back into service."""
