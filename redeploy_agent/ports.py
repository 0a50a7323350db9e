"""Capability interfaces the deployment orchestrator depends on.

Concrete implementations shell out to git and docker; tests substitute fakes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from .models import CommandResult, EngineStatus, RepositoryRecord


class CatalogPort(ABC):
    """Enumerates local checkouts."""

    @abstractmethod
    def discover(self, root_dir: str | Path) -> list[RepositoryRecord]:
        """Scan ``root_dir`` and describe each checkout found in it."""
        raise NotImplementedError

    @abstractmethod
    def resolve_remote_name(self, path: str | Path) -> Optional[str]:
        """Return the project name of the checkout's remote, if it has one."""
        raise NotImplementedError


class SourceSyncPort(ABC):
    @abstractmethod
    def advance(self, path: str | Path, branch: str) -> CommandResult:
        """Bring the working copy at ``path`` up to date with ``branch``."""
        raise NotImplementedError


class WorkloadPort(ABC):
    """Container lifecycle for a single checkout."""

    @abstractmethod
    def redeploy(self, path: str | Path, name: str) -> CommandResult:
        """Tear down, rebuild, start and verify the checkout's workload."""
        raise NotImplementedError

    @abstractmethod
    def diagnose(self, path: str | Path, name: str) -> str:
        """Collect troubleshooting output. Never raises."""
        raise NotImplementedError

    @abstractmethod
    def availability(self) -> EngineStatus:
        raise NotImplementedError

    def is_available(self) -> bool:
        return self.availability().available
