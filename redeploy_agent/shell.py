"""Thin wrapper around subprocess for the external tools the agent drives."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

logger = logging.getLogger(__name__)


class CommandError(RuntimeError):
    """An external command exited non-zero, timed out or could not be started."""

    def __init__(self, output: "CommandOutput"):
        super().__init__(output.describe_failure())
        self.output = output


@dataclass
class CommandOutput:
    command: list[str]
    returncode: int | None
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    timeout: float | None = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def command_line(self) -> str:
        return " ".join(self.command)

    def details(self) -> str:
        return self.stderr.strip() or self.stdout.strip() or "No command output"

    def describe_failure(self) -> str:
        if self.timed_out:
            return f"{self.command_line} timed out after {self.timeout:g}s"
        return f"{self.command_line} failed ({self.returncode}): {self.details()}"

    def check(self) -> "CommandOutput":
        if not self.ok:
            raise CommandError(self)
        return self


def _decode(stream: str | bytes | None) -> str:
    if stream is None:
        return ""
    if isinstance(stream, bytes):
        return stream.decode("utf-8", errors="replace")
    return stream


def run_command(
    args: Sequence[str],
    *,
    cwd: str | Path | None = None,
    timeout: float = 60.0,
) -> CommandOutput:
    """Run a command without a shell and capture its output.

    Never raises for process failures: a missing executable or working
    directory is reported as return code 127 and a timeout sets ``timed_out``.
    Undecodable output bytes are replaced rather than raised.
    """
    command = [str(arg) for arg in args]
    logger.debug(f"exec: {' '.join(command)} (cwd={cwd}, timeout={timeout}s)")
    try:
        completed = subprocess.run(
            command,
            cwd=str(cwd) if cwd is not None else None,
            check=False,
            encoding="utf-8",
            errors="replace",
            capture_output=True,
            timeout=timeout,
        )
    except OSError as exc:
        # missing executable or working directory
        return CommandOutput(
            command=command,
            returncode=127 if isinstance(exc, FileNotFoundError) else 126,
            stderr=f"{exc.strerror or exc}: {exc.filename or command[0]}",
        )
    except subprocess.TimeoutExpired as exc:
        logger.warning(f"command timed out after {timeout}s: {' '.join(command)}")
        return CommandOutput(
            command=command,
            returncode=None,
            stdout=_decode(exc.stdout),
            stderr=_decode(exc.stderr),
            timed_out=True,
            timeout=timeout,
        )
    return CommandOutput(
        command=command,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )
