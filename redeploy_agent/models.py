"""Core models shared across components."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

BRANCH_REF_PREFIX = "refs/heads/"


def extract_branch(ref: str) -> str:
    """Strip the leading ``refs/heads/`` from a git ref, keeping embedded slashes."""

    if ref.startswith(BRANCH_REF_PREFIX):
        return ref[len(BRANCH_REF_PREFIX):]
    return ref


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PushNotification(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_repo_name: str
    ref: str
    commit_id: str = ""
    pusher_identity: str = ""
    full_name: Optional[str] = None
    commit_message: Optional[str] = None

    @property
    def branch(self) -> str:
        return extract_branch(self.ref)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "PushNotification":
        """Build a notification from a GitHub push payload.

        Raises ValueError when the repository name or ref is missing.
        """
        if not isinstance(payload, dict):
            raise ValueError("push payload must be a JSON object")

        repository = payload.get("repository") or {}
        name = repository.get("name") if isinstance(repository, dict) else None
        ref = payload.get("ref")
        if not isinstance(name, str) or not name:
            raise ValueError("push payload is missing repository.name")
        if not isinstance(ref, str) or not ref:
            raise ValueError("push payload is missing ref")

        # Branch deletions carry head_commit: null
        head_commit = payload.get("head_commit")
        if not isinstance(head_commit, dict):
            head_commit = {}
        pusher = payload.get("pusher")
        if not isinstance(pusher, dict):
            pusher = {}
        return cls(
            source_repo_name=name,
            ref=ref,
            commit_id=head_commit.get("id") or "",
            pusher_identity=pusher.get("name") or "",
            full_name=repository.get("full_name"),
            commit_message=head_commit.get("message"),
        )


class RepositoryRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    local_path: str
    active_branch: str
    is_deployable: bool


class DeploymentResult(BaseModel):
    repository: str
    branch: str
    success: bool
    message: str
    timestamp: datetime = Field(default_factory=_utcnow)


class CommandResult(BaseModel):
    success: bool
    message: str


class EngineStatus(BaseModel):
    docker: bool
    compose: bool

    @property
    def available(self) -> bool:
        return self.docker and self.compose


class ContainerState(BaseModel):
    name: str
    service: str = ""
    state: str = ""
    status: str = ""
    exit_code: Optional[int] = None
    health: str = ""

    @property
    def label(self) -> str:
        return self.service or self.name
