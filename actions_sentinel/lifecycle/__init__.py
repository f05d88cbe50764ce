"""Reversible disable/restore lifecycle for flagged workflows."""

from __future__ import annotations

from ..config import SentinelConfig
from .manager import (
    DisableResult,
    LifecycleFailure,
    RestoreResult,
    WorkflowLifecycleManager,
)
from .models import DisabledWorkflowRecord, Manifest
from .mutator import RemoteMutator
from .store import InMemoryManifestStore, JsonManifestStore, ManifestStore


def get_manifest_store(config: SentinelConfig) -> ManifestStore:
    """Return the manifest store configured by ``config.manifest_path``."""
    return JsonManifestStore(config.manifest_path)


__all__ = [
    "DisableResult",
    "DisabledWorkflowRecord",
    "InMemoryManifestStore",
    "JsonManifestStore",
    "LifecycleFailure",
    "Manifest",
    "ManifestStore",
    "RemoteMutator",
    "RestoreResult",
    "WorkflowLifecycleManager",
    "get_manifest_store",
]
