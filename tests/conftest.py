import pytest
from unittest.mock import MagicMock, patch

from redeploy_agent.catalog import GitRepositoryCatalog
from redeploy_agent.models import CommandResult, EngineStatus
from redeploy_agent.ports import CatalogPort, SourceSyncPort, WorkloadPort
from tests.helpers import COMPOSE_FILES, fake_git


@pytest.fixture
def apps_dir(tmp_path):
    root = tmp_path / "apps"
    root.mkdir()
    return root


@pytest.fixture
def make_checkout(apps_dir):
    """Create a fake checkout; the branch lives in .git/HEAD like a real one."""

    def _make(name, branch="main", compose="docker-compose.yml", remote_url=None):
        path = apps_dir / name
        (path / ".git").mkdir(parents=True)
        if branch is None:
            (path / ".git" / "HEAD").write_text("4b825dc642cb6eb9a060e54bf8d69288fbee4904\n")
        else:
            (path / ".git" / "HEAD").write_text(f"ref: refs/heads/{branch}\n")
        if remote_url:
            (path / ".git" / "remote-url").write_text(remote_url + "\n")
        if compose:
            (path / compose).write_text("services:\n  web:\n    build: .\n")
        return path

    return _make


@pytest.fixture
def patched_git():
    with patch("redeploy_agent.catalog.run_command", side_effect=fake_git) as mock_run:
        yield mock_run


@pytest.fixture
def catalog():
    return GitRepositoryCatalog(compose_files=COMPOSE_FILES, self_dir_name="redeployment-service")


@pytest.fixture
def mock_catalog():
    return MagicMock(spec=CatalogPort)


@pytest.fixture
def mock_sync():
    sync = MagicMock(spec=SourceSyncPort)
    sync.advance.return_value = CommandResult(success=True, message="Successfully pulled changes: Already up to date.")
    return sync


@pytest.fixture
def mock_workload():
    workload = MagicMock(spec=WorkloadPort)
    workload.redeploy.return_value = CommandResult(success=True, message="Successfully deployed")
    workload.diagnose.return_value = "=== Debug Info ==="
    workload.availability.return_value = EngineStatus(docker=True, compose=True)
    return workload
