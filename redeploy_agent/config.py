"""Settings for the redeploy agent."""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    github_webhook_secret: Optional[str] = Field(
        default=None,
        description="Shared secret used to sign GitHub webhook deliveries",
    )
    apps_dir: str = Field(default="/apps", description="Directory holding one checkout per managed app")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)
    self_dir_name: str = Field(
        default="redeployment-service",
        description="Directory name of the agent's own checkout, never redeployed",
    )

    # Repository discovery
    compose_files: list[str] = Field(
        default_factory=lambda: ["docker-compose.yml", "docker-compose.yaml", "compose.yml", "compose.yaml"],
        description="File names that mark a checkout as deployable",
    )
    name_from_remote: bool = Field(
        default=False,
        description="If True, identify checkouts by their origin remote name instead of the directory name.",
    )

    # External tools
    git_executable: str = Field(default="git")
    git_remote: str = Field(default="origin")
    docker_executable: str = Field(default="docker")

    # Timeouts
    git_timeout_seconds: float = Field(default=120)
    probe_timeout_seconds: float = Field(default=10, description="Status, version and diagnostic probes")
    down_timeout_seconds: float = Field(default=60)
    cleanup_timeout_seconds: float = Field(default=30)
    build_timeout_seconds: float = Field(default=300)
    up_timeout_seconds: float = Field(default=60)

    # Post-start verification
    settle_seconds: float = Field(
        default=5,
        description="Delay between starting containers and inspecting their state",
    )
    status_attempts: int = Field(default=2, description="Attempts for the post-start status probe")

    # Diagnostics
    log_tail_lines: int = Field(default=100)
    entrypoint_paths: list[str] = Field(
        default_factory=lambda: ["app", "app/main.py", "app/__init__.py"],
        description="Paths inside a checkout listed when a deployment fails",
    )

    metrics_port: Optional[int] = Field(default=8000, description="Prometheus metrics port, None disables")
    log_level: str = Field(default="INFO")

    class Config:
        env_prefix = "REDEPLOY_"
        case_sensitive = False


settings = Settings()
