"""Docker Compose lifecycle for a checkout's workload."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence

from .config import Settings
from .models import CommandResult, ContainerState, EngineStatus
from .ports import WorkloadPort
from .shell import CommandOutput, run_command

logger = logging.getLogger(__name__)

# Compose writes progress and warnings to stderr even when it succeeds, so a
# populated stderr only counts as a failure when it carries one of these.
FAILURE_MARKERS = ("error", "fail")

NOTHING_TO_STOP_MARKERS = ("no containers to stop", "nothing to stop", "no resource found to remove")

UNHEALTHY_STATES = {"exited", "dead", "restarting"}

SOURCE_FILE_PATTERNS = ("*.py", "app*", "main*")
SOURCE_FILE_LIMIT = 20


def indicates_failure(stream: str | None) -> bool:
    """Heuristic: does a tool's diagnostic stream report a failure?

    Case-insensitive search for ``FAILURE_MARKERS``. This is a guess, not a
    contract: a warning that happens to mention "error" is classified as a
    failure, and a failure that prints neither marker is missed unless the exit
    code catches it.
    """
    if not stream:
        return False
    lowered = stream.lower()
    return any(marker in lowered for marker in FAILURE_MARKERS)


def _nothing_to_stop(output: CommandOutput) -> bool:
    text = f"{output.stdout}\n{output.stderr}".lower()
    return any(marker in text for marker in NOTHING_TO_STOP_MARKERS)


def parse_ps_output(text: str) -> list[ContainerState]:
    """Parse ``docker compose ps --format json``.

    Older compose releases print one JSON array, newer ones one object per line.
    """
    text = text.strip()
    if not text:
        return []

    if text.startswith("["):
        items = json.loads(text)
    else:
        items = [json.loads(line) for line in text.splitlines() if line.strip()]

    states: list[ContainerState] = []
    for item in items:
        exit_code = item.get("ExitCode")
        states.append(
            ContainerState(
                name=item.get("Name") or item.get("ID") or "unknown",
                service=item.get("Service") or "",
                state=(item.get("State") or "").lower(),
                status=item.get("Status") or "",
                exit_code=exit_code if isinstance(exit_code, int) else None,
                health=(item.get("Health") or "").lower(),
            )
        )
    return states


@dataclass
class WorkloadSignals:
    running: int = 0
    exited: int = 0
    restarting: int = 0
    unhealthy: int = 0
    total: int = 0
    failing: list[ContainerState] = field(default_factory=list)


def analyze_container_states(states: Iterable[ContainerState]) -> WorkloadSignals:
    signals = WorkloadSignals()
    for container in states:
        signals.total += 1
        if container.state == "running":
            signals.running += 1
        if container.state in ("exited", "dead"):
            signals.exited += 1
        if container.state == "restarting":
            signals.restarting += 1
        if container.health == "unhealthy":
            signals.unhealthy += 1
        if container.state in UNHEALTHY_STATES or container.health == "unhealthy":
            signals.failing.append(container)
    return signals


def should_fail(signals: WorkloadSignals) -> bool:
    # A container that starts and immediately dies is a failed deployment
    return signals.total == 0 or bool(signals.failing)


def describe_failing(signals: WorkloadSignals) -> str:
    if signals.total == 0:
        return "no containers found after start"
    parts = []
    for container in signals.failing:
        detail = container.status or container.state
        if container.health == "unhealthy" and container.state not in UNHEALTHY_STATES:
            detail = f"{detail}, health: unhealthy"
        parts.append(f"{container.label} ({detail})")
    return ", ".join(parts)


class StepFailed(Exception):
    """A redeploy step did not complete; carries the operator-facing message."""


class ComposeWorkloadController(WorkloadPort):
    def __init__(
        self,
        *,
        docker_executable: str = "docker",
        probe_timeout: float = 10.0,
        down_timeout: float = 60.0,
        cleanup_timeout: float = 30.0,
        build_timeout: float = 300.0,
        up_timeout: float = 60.0,
        settle_seconds: float = 5.0,
        status_attempts: int = 2,
        log_tail_lines: int = 100,
        entrypoint_paths: Sequence[str] = ("app", "app/main.py", "app/__init__.py"),
    ):
        self._docker = docker_executable
        self._probe_timeout = probe_timeout
        self._down_timeout = down_timeout
        self._cleanup_timeout = cleanup_timeout
        self._build_timeout = build_timeout
        self._up_timeout = up_timeout
        self._settle_seconds = settle_seconds
        self._status_attempts = max(1, status_attempts)
        self._log_tail_lines = log_tail_lines
        self._entrypoint_paths = tuple(entrypoint_paths)

    @classmethod
    def from_settings(cls, config: Settings) -> "ComposeWorkloadController":
        return cls(
            docker_executable=config.docker_executable,
            probe_timeout=config.probe_timeout_seconds,
            down_timeout=config.down_timeout_seconds,
            cleanup_timeout=config.cleanup_timeout_seconds,
            build_timeout=config.build_timeout_seconds,
            up_timeout=config.up_timeout_seconds,
            settle_seconds=config.settle_seconds,
            status_attempts=config.status_attempts,
            log_tail_lines=config.log_tail_lines,
            entrypoint_paths=config.entrypoint_paths,
        )

    def _compose(self, path: str | Path, args: Sequence[str], timeout: float) -> CommandOutput:
        return run_command([self._docker, "compose", *args], cwd=path, timeout=timeout)

    # -- redeploy ---------------------------------------------------------

    def redeploy(self, path: str | Path, name: str) -> CommandResult:
        logger.info(f"Deploy {name} @ {path}")
        try:
            build, up = self._redeploy(Path(path), name)
        except StepFailed as exc:
            logger.error(f"deploy error {name}: {exc}")
            return CommandResult(success=False, message=str(exc))
        except Exception as exc:
            logger.exception(f"deploy error {name}")
            return CommandResult(success=False, message=f"Deployment failed: {exc}")

        logger.info(f"Deployed {name}")
        return CommandResult(
            success=True,
            message=f"Successfully deployed {name}. Build: {build.stdout.strip()}, Start: {up.stdout.strip()}",
        )

    def _redeploy(self, path: Path, name: str) -> tuple[CommandOutput, CommandOutput]:
        self._teardown(path, name)
        self._cleanup_orphans(path, name)

        logger.info(f"docker compose build --no-cache -> {name}")
        build = self._compose(path, ["build", "--no-cache"], self._build_timeout)
        self._raise_for_step(build, "build")

        logger.info(f"docker compose up --force-recreate -d -> {name}")
        up = self._compose(path, ["up", "--force-recreate", "-d"], self._up_timeout)
        self._raise_for_step(up, "start")

        self._verify(path, name)
        return build, up

    def _teardown(self, path: Path, name: str) -> None:
        logger.info(f"docker compose down -> {name}")
        down = self._compose(path, ["down"], self._down_timeout)
        if down.timed_out:
            raise StepFailed(f"Docker Compose teardown timed out after {self._down_timeout:g}s")
        if _nothing_to_stop(down):
            return
        if not down.ok:
            raise StepFailed(f"Docker Compose teardown error: {down.details()}")
        if down.stderr.strip():
            logger.warning(f"down warning {name}: {down.stderr.strip()}")

    def _cleanup_orphans(self, path: Path, name: str) -> None:
        logger.info(f"docker compose down --remove-orphans -> {name}")
        cleanup = self._compose(path, ["down", "--remove-orphans"], self._cleanup_timeout)
        if not cleanup.ok:
            logger.warning(f"orphan cleanup for {name} did not complete: {cleanup.describe_failure()}")

    def _raise_for_step(self, output: CommandOutput, step: str) -> None:
        if output.timed_out:
            raise StepFailed(f"Docker Compose {step} timed out after {output.timeout:g}s")
        if not output.ok or indicates_failure(output.stderr):
            raise StepFailed(f"Docker Compose {step} error: {output.details()}")

    def _verify(self, path: Path, name: str) -> None:
        if self._settle_seconds > 0:
            time.sleep(self._settle_seconds)

        signals = analyze_container_states(self.container_states(path))
        logger.info(
            f"{name}: {signals.running}/{signals.total} running, "
            f"{signals.exited} exited, {signals.restarting} restarting, {signals.unhealthy} unhealthy"
        )
        if should_fail(signals):
            raise StepFailed(f"Workload unhealthy after start: {describe_failing(signals)}")

    def container_states(self, path: str | Path) -> list[ContainerState]:
        """Current containers of the workload; raises StepFailed if the probe keeps failing."""
        output: CommandOutput | None = None
        for attempt in range(1, self._status_attempts + 1):
            output = self._compose(path, ["ps", "--all", "--format", "json"], self._probe_timeout)
            if output.ok:
                try:
                    return parse_ps_output(output.stdout)
                except (ValueError, AttributeError) as exc:
                    raise StepFailed(f"Unable to parse workload status: {exc}") from exc
            logger.warning(
                f"status probe failed (attempt {attempt}/{self._status_attempts}): {output.describe_failure()}"
            )
            if attempt < self._status_attempts:
                time.sleep(1)
        raise StepFailed(f"Unable to inspect workload status: {output.describe_failure()}")

    # -- availability -----------------------------------------------------

    def availability(self) -> EngineStatus:
        docker = run_command([self._docker, "--version"], timeout=self._probe_timeout)
        if not docker.ok:
            logger.error(f"Docker is not available: {docker.describe_failure()}")
        compose = run_command([self._docker, "compose", "version"], timeout=self._probe_timeout)
        if not compose.ok:
            logger.error(f"Docker Compose is not available: {compose.describe_failure()}")
        return EngineStatus(docker=docker.ok, compose=compose.ok)

    # -- diagnostics ------------------------------------------------------

    def status(self, path: str | Path) -> str:
        output = self._compose(path, ["ps", "-a"], self._probe_timeout)
        return output.stdout if output.ok else f"Error getting status: {output.describe_failure()}"

    def logs(self, path: str | Path, lines: int | None = None) -> str:
        tail = lines if lines is not None else self._log_tail_lines
        output = self._compose(path, ["logs", "--no-color", f"--tail={tail}"], self._probe_timeout)
        return output.stdout if output.ok else f"Error getting logs: {output.describe_failure()}"

    def diagnose(self, path: str | Path, name: str) -> str:
        root = Path(path)
        probes = [
            ("docker compose ps -a", lambda: self.status(root)),
            ("docker compose config", lambda: self._config_dump(root)),
            (f"docker compose logs --tail={self._log_tail_lines}", lambda: self.logs(root)),
            (f"ls {root}", lambda: describe_path(root)),
            ('find . -name "*.py" -o -name "app*" -o -name "main*"', lambda: find_source_files(root)),
        ]
        for entry in self._entrypoint_paths:
            probes.append((f"ls {entry}", lambda entry=entry: describe_path(root / entry)))

        sections = [f"=== Debug Info for {name} ==="]
        for title, probe in probes:
            try:
                body = probe()
            except Exception as exc:
                body = f"Error: {exc}"
            sections.append(f"--- {title} ---\n{body.rstrip()}")
        return "\n\n".join(sections) + "\n"

    def _config_dump(self, path: Path) -> str:
        output = self._compose(path, ["config"], self._probe_timeout)
        return output.stdout if output.ok else f"Error: {output.describe_failure()}"


def describe_path(path: Path) -> str:
    """List a directory (or stat a file) the way ``ls -la`` would summarise it."""
    if not path.exists():
        return f"{path} not found"
    if path.is_file():
        return f"{path.name}  {path.stat().st_size} bytes"

    lines = []
    for child in sorted(path.iterdir(), key=lambda p: p.name):
        if child.is_dir():
            lines.append(f"{child.name}/")
        else:
            try:
                size = child.stat().st_size
            except OSError:
                size = "?"
            lines.append(f"{child.name}  {size} bytes")
    return "\n".join(lines) if lines else "(empty)"


def find_source_files(root: Path, limit: int = SOURCE_FILE_LIMIT) -> str:
    """Relative paths under ``root`` that look like application code, first ``limit`` only."""
    if not root.is_dir():
        return f"{root} not found"

    matches = []
    for candidate in sorted(root.rglob("*")):
        if any(candidate.match(pattern) for pattern in SOURCE_FILE_PATTERNS):
            matches.append(f"./{candidate.relative_to(root).as_posix()}")
            if len(matches) >= limit:
                break
    return "\n".join(matches) if matches else "(no matches)"
