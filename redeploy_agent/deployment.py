"""Push-to-redeploy orchestration."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from prometheus_client import Counter, Histogram

from .catalog import GitRepositoryCatalog
from .config import Settings
from .models import DeploymentResult, EngineStatus, PushNotification, RepositoryRecord
from .ports import CatalogPort, SourceSyncPort, WorkloadPort
from .sync import GitSourceSync
from .workload import ComposeWorkloadController

logger = logging.getLogger(__name__)

DEPLOYMENTS = Counter(
    'redeploy_agent_deployments_total',
    'Repositories processed in response to push events',
    ['status']  # success, sync_failed, deploy_failed, error
)

DEPLOYMENT_DURATION = Histogram(
    'redeploy_agent_deployment_duration_seconds',
    'Time spent syncing and redeploying a single repository',
    buckets=[5, 15, 30, 60, 120, 300, 600, 900]
)


def matches_push(record: RepositoryRecord, name: str, branch: str) -> bool:
    """A checkout is only redeployed when name, branch and descriptor all line up."""
    return record.name == name and record.active_branch == branch and record.is_deployable


class DeploymentOrchestrator:
    def __init__(
        self,
        *,
        catalog: CatalogPort,
        source_sync: SourceSyncPort,
        workload: WorkloadPort,
        apps_dir: str | Path,
    ):
        self._catalog = catalog
        self._sync = source_sync
        self._workload = workload
        self._apps_dir = Path(apps_dir)

    @classmethod
    def from_settings(cls, config: Settings) -> "DeploymentOrchestrator":
        return cls(
            catalog=GitRepositoryCatalog.from_settings(config),
            source_sync=GitSourceSync.from_settings(config),
            workload=ComposeWorkloadController.from_settings(config),
            apps_dir=config.apps_dir,
        )

    def process_push(self, push: PushNotification) -> list[DeploymentResult]:
        """Redeploy every local checkout matching the pushed project and branch.

        Repositories are handled one at a time, in discovery order. A failure in
        one repository is reported in its result and never stops the others;
        no match at all is an empty list.
        """
        name = push.source_repo_name
        branch = push.branch
        logger.info(f"Process push {name}:{branch}")

        try:
            repositories = self._catalog.discover(self._apps_dir)
        except Exception as exc:
            logger.exception("Error processing push event")
            DEPLOYMENTS.labels(status="error").inc()
            return [
                DeploymentResult(
                    repository=name,
                    branch=branch,
                    success=False,
                    message=f"Error processing push event: {exc}",
                )
            ]
        logger.info(f"Repos in apps dir: {len(repositories)}")

        matching = [repo for repo in repositories if matches_push(repo, name, branch)]
        logger.info(f"Matching for deploy: {len(matching)}")
        if not matching:
            logger.info(f"No matches for {name}:{branch}")
            return []

        results = []
        for repo in matching:
            results.append(self._deploy_repository(repo, branch))
        return results

    def _deploy_repository(self, repo: RepositoryRecord, branch: str) -> DeploymentResult:
        started_at = datetime.now(timezone.utc)
        started = time.monotonic()
        try:
            logger.info(f"Start deploy {repo.name}:{branch}")

            pulled = self._sync.advance(repo.local_path, branch)
            if not pulled.success:
                DEPLOYMENTS.labels(status="sync_failed").inc()
                return DeploymentResult(
                    repository=repo.name,
                    branch=branch,
                    success=False,
                    message=pulled.message,
                    timestamp=started_at,
                )
            logger.info(f"Pulled {repo.name}")

            deployed = self._workload.redeploy(repo.local_path, repo.name)
            if not deployed.success:
                logger.info(f"Getting debug info for failed deployment: {repo.name}")
                diagnostics = self._workload.diagnose(repo.local_path, repo.name)
                logger.warning(f"Diagnostics for {repo.name}:\n{diagnostics}")

            DEPLOYMENTS.labels(status="success" if deployed.success else "deploy_failed").inc()
            return DeploymentResult(
                repository=repo.name,
                branch=branch,
                success=deployed.success,
                message=deployed.message,
                timestamp=started_at,
            )
        except Exception as exc:
            logger.exception(f"Deploy error {repo.name}")
            DEPLOYMENTS.labels(status="error").inc()
            return DeploymentResult(
                repository=repo.name,
                branch=branch,
                success=False,
                message=f"Deployment error: {exc}",
                timestamp=started_at,
            )
        finally:
            DEPLOYMENT_DURATION.observe(time.monotonic() - started)

    def repositories_status(self) -> list[RepositoryRecord]:
        return self._catalog.discover(self._apps_dir)

    def check_docker_availability(self) -> EngineStatus:
        return self._workload.availability()

    def diagnose_repository(self, name: str) -> Optional[tuple[RepositoryRecord, str]]:
        """Run diagnostics for the checkout called ``name``; None if there is none."""
        for repo in self._catalog.discover(self._apps_dir):
            if repo.name == name:
                return repo, self._workload.diagnose(repo.local_path, repo.name)
        return None
