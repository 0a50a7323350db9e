"""Discovery of the git checkouts living under the apps directory."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, Optional

from .config import Settings
from .models import RepositoryRecord
from .ports import CatalogPort
from .shell import run_command

logger = logging.getLogger(__name__)

# git@host:owner/name.git, ssh://git@host/owner/name.git, https://host/owner/name(.git)
REMOTE_URL_PATTERN = re.compile(r"[:/](?P<owner>[^/:]+)/(?P<name>[^/]+?)(?:\.git)?/?$")


def parse_remote_name(url: str) -> Optional[str]:
    """Extract the project name from an SSH or HTTPS remote URL."""

    match = REMOTE_URL_PATTERN.search(url.strip())
    if not match:
        return None
    return match.group("name") or None


class GitRepositoryCatalog(CatalogPort):
    def __init__(
        self,
        *,
        compose_files: Iterable[str],
        self_dir_name: str | None = None,
        git_executable: str = "git",
        remote: str = "origin",
        timeout_seconds: float = 10.0,
        name_from_remote: bool = False,
    ):
        self._compose_files = tuple(compose_files)
        self._self_dir_name = self_dir_name
        self._git = git_executable
        self._remote = remote
        self._timeout = timeout_seconds
        self._name_from_remote = name_from_remote

    @classmethod
    def from_settings(cls, config: Settings) -> "GitRepositoryCatalog":
        return cls(
            compose_files=config.compose_files,
            self_dir_name=config.self_dir_name,
            git_executable=config.git_executable,
            remote=config.git_remote,
            timeout_seconds=config.probe_timeout_seconds,
            name_from_remote=config.name_from_remote,
        )

    def discover(self, root_dir: str | Path) -> list[RepositoryRecord]:
        root = Path(root_dir)
        try:
            entries = sorted(root.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            logger.error(f"Error scanning repositories in {root}: {exc}")
            return []

        records: list[RepositoryRecord] = []
        for entry in entries:
            if entry.name.startswith(".") or entry.name == self._self_dir_name:
                continue
            try:
                record = self._describe(entry)
            except Exception as exc:
                logger.error(f"Error reading repository {entry.name}: {exc}")
                continue
            if record is not None:
                records.append(record)
        return records

    def resolve_remote_name(self, path: str | Path) -> Optional[str]:
        result = run_command(
            self._git_in(path, "remote", "get-url", self._remote),
            cwd=path,
            timeout=self._timeout,
        )
        if not result.ok:
            logger.warning(f"Could not read remote '{self._remote}' for {path}: {result.details()}")
            return None
        name = parse_remote_name(result.stdout)
        if name is None:
            logger.warning(f"Unrecognised remote URL for {path}: {result.stdout.strip()}")
        return name

    def _git_in(self, path: str | Path, *args: str) -> list[str]:
        # Checkouts mounted from the host are often owned by another uid
        return [self._git, "-c", f"safe.directory={path}", *args]

    def _describe(self, path: Path) -> RepositoryRecord | None:
        if not path.is_dir() or not self._is_checkout(path):
            return None

        branch = run_command(
            self._git_in(path, "branch", "--show-current"),
            cwd=path,
            timeout=self._timeout,
        ).check()

        name = path.name
        if self._name_from_remote:
            name = self.resolve_remote_name(path) or name

        return RepositoryRecord(
            name=name,
            local_path=str(path),
            active_branch=branch.stdout.strip(),
            is_deployable=self._has_descriptor(path),
        )

    def _is_checkout(self, path: Path) -> bool:
        try:
            if (path / ".git").exists():
                return True
        except OSError as exc:
            logger.debug(f"Could not stat {path / '.git'}: {exc}")

        # Nested directories of an enclosing repository report its top level
        probe = run_command(
            [self._git, "rev-parse", "--show-toplevel"],
            cwd=path,
            timeout=self._timeout,
        )
        if not probe.ok:
            return False
        toplevel = probe.stdout.strip()
        return bool(toplevel) and Path(toplevel).resolve() == path.resolve()

    def _has_descriptor(self, path: Path) -> bool:
        return any((path / filename).is_file() for filename in self._compose_files)
