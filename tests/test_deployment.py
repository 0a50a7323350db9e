import json

from unittest.mock import patch

from redeploy_agent.deployment import DeploymentOrchestrator, matches_push
from redeploy_agent.models import CommandResult, PushNotification, RepositoryRecord
from redeploy_agent.workload import ComposeWorkloadController
from tests.helpers import FakeCompose, output


def _push(name="svc", ref="refs/heads/main"):
    return PushNotification(source_repo_name=name, ref=ref, commit_id="4d5e6f", pusher_identity="octocat")


def _record(name="svc", branch="main", deployable=True):
    return RepositoryRecord(name=name, local_path=f"/apps/{name}", active_branch=branch, is_deployable=deployable)


def _orchestrator(catalog, sync, workload):
    return DeploymentOrchestrator(catalog=catalog, source_sync=sync, workload=workload, apps_dir="/apps")


def test_matches_push_requires_all_three():
    assert matches_push(_record(), "svc", "main") is True
    assert matches_push(_record(name="other"), "svc", "main") is False
    assert matches_push(_record(branch="develop"), "svc", "main") is False
    assert matches_push(_record(deployable=False), "svc", "main") is False


def test_process_push_success(mock_catalog, mock_sync, mock_workload):
    mock_catalog.discover.return_value = [_record(), _record(name="other")]

    results = _orchestrator(mock_catalog, mock_sync, mock_workload).process_push(_push())

    assert len(results) == 1
    [result] = results
    assert result.repository == "svc"
    assert result.branch == "main"
    assert result.success is True
    assert result.timestamp.tzinfo is not None
    mock_catalog.discover.assert_called_once()
    mock_sync.advance.assert_called_once_with("/apps/svc", "main")
    mock_workload.redeploy.assert_called_once_with("/apps/svc", "svc")
    mock_workload.diagnose.assert_not_called()


def test_process_push_no_match_is_noop(mock_catalog, mock_sync, mock_workload):
    mock_catalog.discover.return_value = [_record(branch="develop"), _record(name="other")]

    results = _orchestrator(mock_catalog, mock_sync, mock_workload).process_push(_push())

    assert results == []
    mock_sync.advance.assert_not_called()
    mock_workload.redeploy.assert_not_called()


def test_process_push_non_deployable_is_noop(mock_catalog, mock_sync, mock_workload):
    mock_catalog.discover.return_value = [_record(deployable=False)]

    results = _orchestrator(mock_catalog, mock_sync, mock_workload).process_push(_push())

    assert results == []
    mock_sync.advance.assert_not_called()
    mock_workload.redeploy.assert_not_called()


def test_process_push_branch_with_slashes(mock_catalog, mock_sync, mock_workload):
    mock_catalog.discover.return_value = [_record(branch="feature/x")]

    results = _orchestrator(mock_catalog, mock_sync, mock_workload).process_push(_push(ref="refs/heads/feature/x"))

    assert [r.branch for r in results] == ["feature/x"]
    mock_sync.advance.assert_called_once_with("/apps/svc", "feature/x")


def test_process_push_sync_failure_skips_redeploy(mock_catalog, mock_sync, mock_workload):
    mock_catalog.discover.return_value = [_record()]
    mock_sync.advance.return_value = CommandResult(
        success=False, message="Failed to pull changes: fatal: Authentication failed"
    )

    results = _orchestrator(mock_catalog, mock_sync, mock_workload).process_push(_push())

    assert len(results) == 1
    assert results[0].success is False
    assert "Authentication failed" in results[0].message
    assert mock_workload.redeploy.call_count == 0


def test_process_push_failure_does_not_stop_siblings(mock_catalog, mock_sync, mock_workload):
    # same project checked out twice, e.g. staging and preview copies
    records = [
        RepositoryRecord(name="svc", local_path=f"/apps/{d}", active_branch="main", is_deployable=True)
        for d in ("a", "b", "c", "d")
    ]
    mock_catalog.discover.return_value = records
    mock_sync.advance.side_effect = [
        RuntimeError("disk full"),
        CommandResult(success=False, message="Failed to pull changes: conflict"),
        CommandResult(success=True, message="ok"),
        CommandResult(success=True, message="ok"),
    ]
    mock_workload.redeploy.side_effect = [
        CommandResult(success=False, message="Docker Compose build error: boom"),
        CommandResult(success=True, message="Successfully deployed svc"),
    ]

    results = _orchestrator(mock_catalog, mock_sync, mock_workload).process_push(_push())

    assert len(results) == 4
    assert [r.success for r in results] == [False, False, False, True]
    assert results[0].message == "Deployment error: disk full"
    assert mock_workload.redeploy.call_count == 2
    mock_workload.diagnose.assert_called_once_with("/apps/c", "svc")


def test_process_push_redeploy_exception_is_isolated(mock_catalog, mock_sync, mock_workload):
    mock_catalog.discover.return_value = [_record(), _record()]
    mock_workload.redeploy.side_effect = [ValueError("unexpected"), CommandResult(success=True, message="ok")]

    results = _orchestrator(mock_catalog, mock_sync, mock_workload).process_push(_push())

    assert [r.success for r in results] == [False, True]


def test_process_push_discovery_crash(mock_catalog, mock_sync, mock_workload):
    mock_catalog.discover.side_effect = OSError("stale file handle")

    results = _orchestrator(mock_catalog, mock_sync, mock_workload).process_push(_push())

    assert len(results) == 1
    assert results[0].success is False
    assert "stale file handle" in results[0].message
    mock_sync.advance.assert_not_called()


def test_process_push_crash_loop_runs_diagnostics(mock_catalog, mock_sync):
    mock_catalog.discover.return_value = [_record()]
    restarting = {"Name": "svc-web-1", "Service": "web", "State": "restarting", "Status": "Restarting (1) 1 second ago"}
    fake = FakeCompose({
        "up --force-recreate -d": output(stderr=" Container svc-web-1  Started\n"),
        "ps --all --format json": output(stdout=json.dumps(restarting) + "\n"),
        "ps -a": output(stdout="svc-web-1  restarting\n"),
    })
    workload = ComposeWorkloadController(settle_seconds=0, status_attempts=1)

    with patch("redeploy_agent.workload.run_command", side_effect=fake):
        results = _orchestrator(mock_catalog, mock_sync, workload).process_push(_push())

    assert len(results) == 1
    assert results[0].success is False
    assert "Restarting" in results[0].message
    # diagnostics ran after the failed verification
    subcommands = fake.subcommands()
    assert subcommands.index("ps -a") > subcommands.index("ps --all --format json")
    assert "config" in subcommands


def test_repositories_status_rescans(mock_catalog, mock_sync, mock_workload):
    mock_catalog.discover.return_value = [_record()]
    orchestrator = _orchestrator(mock_catalog, mock_sync, mock_workload)

    orchestrator.repositories_status()
    orchestrator.repositories_status()

    assert mock_catalog.discover.call_count == 2


def test_check_docker_availability(mock_catalog, mock_sync, mock_workload):
    status = _orchestrator(mock_catalog, mock_sync, mock_workload).check_docker_availability()
    assert status.docker is True
    assert status.compose is True


def test_diagnose_repository(mock_catalog, mock_sync, mock_workload):
    mock_catalog.discover.return_value = [_record()]
    orchestrator = _orchestrator(mock_catalog, mock_sync, mock_workload)

    repo, text = orchestrator.diagnose_repository("svc")
    assert repo.local_path == "/apps/svc"
    assert text == "=== Debug Info ==="
    assert orchestrator.diagnose_repository("missing") is None
