"""Bringing a checkout up to date with its remote branch."""

from __future__ import annotations

import logging
from pathlib import Path

from .config import Settings
from .models import CommandResult
from .ports import SourceSyncPort
from .shell import run_command

logger = logging.getLogger(__name__)


class GitSourceSync(SourceSyncPort):
    def __init__(self, *, git_executable: str = "git", remote: str = "origin", timeout_seconds: float = 120.0):
        self._git = git_executable
        self._remote = remote
        self._timeout = timeout_seconds

    @classmethod
    def from_settings(cls, config: Settings) -> "GitSourceSync":
        return cls(
            git_executable=config.git_executable,
            remote=config.git_remote,
            timeout_seconds=config.git_timeout_seconds,
        )

    def advance(self, path: str | Path, branch: str) -> CommandResult:
        logger.info(f"Pulling latest changes for {path} on branch {branch}")
        self._trust(path)

        result = run_command(
            [self._git, "pull", self._remote, branch],
            cwd=path,
            timeout=self._timeout,
        )
        if result.timed_out:
            message = f"git pull timed out after {self._timeout:g}s"
            logger.error(f"Error pulling changes for {path}: {message}")
            return CommandResult(success=False, message=message)
        if not result.ok:
            logger.error(f"Error pulling changes for {path}: {result.details()}")
            return CommandResult(success=False, message=f"Failed to pull changes: {result.details()}")

        return CommandResult(success=True, message=f"Successfully pulled changes: {result.stdout.strip()}")

    def _trust(self, path: str | Path) -> None:
        # Checkouts mounted from the host are often owned by another uid
        known = run_command(
            [self._git, "config", "--global", "--get-all", "safe.directory"],
            timeout=self._timeout,
        )
        if known.ok and str(path) in known.stdout.splitlines():
            return
        result = run_command(
            [self._git, "config", "--global", "--add", "safe.directory", str(path)],
            timeout=self._timeout,
        )
        if not result.ok:
            logger.warning(f"Could not mark {path} as a safe directory: {result.details()}")
