"""Manifest persistence backends."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol

from pydantic import ValidationError

from ..errors import LifecycleError, ManifestWriteError
from ..utils.files import atomic_write_text
from .models import Manifest

logger = logging.getLogger(__name__)


class ManifestStore(Protocol):
    """Protocol for manifest persistence backends."""

    def load(self) -> Manifest:
        """Return the persisted manifest, or an empty one if none exists."""

    def save(self, manifest: Manifest) -> None:
        """Replace the persisted manifest in a single all-or-nothing write."""


class JsonManifestStore(ManifestStore):
    """Keep the manifest in a JSON file on local disk."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> Manifest:
        if not self.path.exists():
            logger.debug("No manifest at %s, starting empty", self.path)
            return Manifest()
        try:
            return Manifest.model_validate_json(self.path.read_text(encoding="utf-8"))
        except ValidationError as exc:
            raise LifecycleError(f"Manifest {self.path} is corrupt: {exc}") from exc

    def save(self, manifest: Manifest) -> None:
        try:
            atomic_write_text(self.path, manifest.model_dump_json(indent=2) + "\n")
        except OSError as exc:
            raise ManifestWriteError(
                f"Could not write manifest {self.path}: {exc}"
            ) from exc


class InMemoryManifestStore(ManifestStore):
    """Hold the manifest in memory. Useful for tests."""

    def __init__(self, manifest: Optional[Manifest] = None) -> None:
        self.manifest = manifest or Manifest()
        self.saves = 0

    def load(self) -> Manifest:
        return self.manifest.model_copy(deep=True)

    def save(self, manifest: Manifest) -> None:
        self.manifest = manifest.model_copy(deep=True)
        self.saves += 1
