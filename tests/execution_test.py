import asyncio

import pytest

from rightsize.execution import ExecutionUnit
from rightsize.rollout import RolloutState, RolloutVerifier
from rightsize.types import AutomationStatus, ContainerResources, Duration, RequestLimit
from tests.helpers import FakeCluster, command, container, pod, replica_set


@pytest.fixture
def cluster(cluster: FakeCluster) -> FakeCluster:
    cluster.add_container(
        "default",
        "Deployment",
        "web",
        container(
            requests={"cpu": "100m", "memory": "128Mi"},
            limits={"cpu": "500m", "memory": "512Mi"},
        ),
    )
    cluster.replica_sets = [replica_set("web-5d9f", replicas=2)]
    return cluster


@pytest.fixture
def unit(cluster: FakeCluster, poll_interval: Duration) -> ExecutionUnit:
    verifier = RolloutVerifier(cluster, poll_interval=poll_interval, timeout=Duration("30ms"))
    return ExecutionUnit(cluster, cluster, verifier)


async def test_successful_execution(unit: ExecutionUnit, cluster: FakeCluster) -> None:
    cluster.pods = [pod("web-5d9f-"), pod("web-5d9f-")]
    execution = await unit.run(command(requests={"cpu": 200}))

    assert execution.feedback.status == AutomationStatus.executed
    assert execution.feedback.message == "pods restarted successfully"
    assert execution.state == RolloutState.succeeded
    assert not execution.rolled_back
    assert len(cluster.applied) == 1
    kind, name, namespace, applied = cluster.applied[0]
    assert (kind, name, namespace) == ("Deployment", "web", "default")
    assert applied == ContainerResources(
        name="app",
        requests=RequestLimit(cpu=200, memory=128),
        limits=RequestLimit(cpu=500, memory=512),
    )


async def test_execute_returns_feedback(unit: ExecutionUnit, cluster: FakeCluster) -> None:
    cluster.pods = [pod("web-5d9f-"), pod("web-5d9f-")]
    feedback = await unit.execute(command(id="a-42", limits={"memory": 1024}))
    assert feedback.id == "a-42"
    assert feedback.container_name == "app"
    assert feedback.status == AutomationStatus.executed


async def test_shortfall_rolls_back(unit: ExecutionUnit, cluster: FakeCluster) -> None:
    cluster.pods = [pod("web-5d9f-"), pod("web-5d9f-", phase="Pending")]
    execution = await unit.run(command(requests={"cpu": 200}))

    assert execution.feedback.status == AutomationStatus.failed
    assert execution.feedback.message == "pods failed to restart"
    assert execution.state == RolloutState.rollout_failed
    assert execution.rolled_back
    assert len(cluster.applied) == 2
    assert cluster.applied[1][3] == execution.original
    assert cluster.applied[1][3].requests.cpu == 100


async def test_rollback_removes_added_requirements(
    unit: ExecutionUnit, cluster: FakeCluster
) -> None:
    cluster.add_container("default", "Deployment", "web", container(requests={"cpu": "100m"}))
    cluster.pods = [pod("web-5d9f-")]
    execution = await unit.run(command(limits={"cpu": 200}))

    assert execution.rolled_back
    assert cluster.applied[0][3].limits.cpu == 200
    restored = cluster.applied[1][3]
    assert restored.requests == RequestLimit(cpu=100)
    assert restored.limits == RequestLimit()
    assert cluster.replaced == [False, True]


async def test_rollback_failure_does_not_change_feedback(
    unit: ExecutionUnit, cluster: FakeCluster
) -> None:
    cluster.pods = [pod("web-5d9f-", phase="Failed")]
    cluster.set_results = [(False, None), RuntimeError("conflict")]
    execution = await unit.run(command(requests={"cpu": 200}))

    assert execution.feedback.message == "pods failed to restart"
    assert execution.state == RolloutState.rollout_failed
    assert not execution.rolled_back


async def test_container_not_found(unit: ExecutionUnit, cluster: FakeCluster) -> None:
    feedback = await unit.execute(command(container="missing"))
    assert feedback.status == AutomationStatus.failed
    assert feedback.message.startswith("unable to get container details ")
    assert "missing" in feedback.message
    assert cluster.applied == []


async def test_unreadable_container_quantities(
    unit: ExecutionUnit, cluster: FakeCluster
) -> None:
    cluster.add_container("default", "Deployment", "web", container(requests={"cpu": "many"}))
    feedback = await unit.execute(command())
    assert feedback.message.startswith("unable to get container details ")
    assert cluster.applied == []


async def test_dry_run(cluster: FakeCluster, poll_interval: Duration) -> None:
    verifier = RolloutVerifier(cluster, poll_interval=poll_interval)
    unit = ExecutionUnit(cluster, cluster, verifier, dry_run=True)
    execution = await unit.run(command(requests={"cpu": 200}))

    assert execution.feedback.status == AutomationStatus.failed
    assert execution.feedback.message == "dry run enabled"
    assert execution.recommended.requests.cpu == 200
    assert execution.rollout is None
    assert cluster.applied == []
    assert cluster.pod_queries == 0


async def test_skipped_change(unit: ExecutionUnit, cluster: FakeCluster) -> None:
    cluster.set_results = [(True, "resources of a Job cannot be changed once created")]
    execution = await unit.run(command())

    assert execution.feedback.status == AutomationStatus.failed
    assert execution.feedback.message == "resources of a Job cannot be changed once created"
    assert execution.rollout is None
    assert cluster.pod_queries == 0


async def test_apply_error_message(unit: ExecutionUnit, cluster: FakeCluster) -> None:
    cluster.set_results = [(False, "failed to update Deployment web: 422 Unprocessable")]
    feedback = await unit.execute(command())
    assert feedback.status == AutomationStatus.failed
    assert feedback.message == "failed to update Deployment web: 422 Unprocessable"
    assert cluster.pod_queries == 0


async def test_apply_raises(unit: ExecutionUnit, cluster: FakeCluster) -> None:
    cluster.set_results = [ConnectionError("connection reset")]
    feedback = await unit.execute(command())
    assert feedback.status == AutomationStatus.failed
    assert feedback.message == "connection reset"


async def test_dispatch_failure_is_not_rolled_back(
    unit: ExecutionUnit, cluster: FakeCluster
) -> None:
    cluster.replica_sets = []
    execution = await unit.run(command())
    assert execution.state == RolloutState.dispatch_failed
    assert execution.feedback.message == "failed to trigger pod status"
    assert not execution.rolled_back
    assert len(cluster.applied) == 1


async def test_cancelled_rollout_rolls_back(cluster: FakeCluster) -> None:
    stop = asyncio.Event()
    stop.set()
    verifier = RolloutVerifier(cluster, poll_interval=Duration("1h"), stop=stop)
    unit = ExecutionUnit(cluster, cluster, verifier)
    cluster.pods = []

    execution = await asyncio.wait_for(unit.run(command()), 1)
    assert execution.state == RolloutState.cancelled
    assert execution.feedback.status == AutomationStatus.failed
    assert execution.feedback.message == "rollout verification cancelled"
    assert execution.rolled_back
    assert cluster.applied[-1][3] == execution.original
    assert cluster.pod_queries == 0


async def test_log_lines_bind_automation(
    unit: ExecutionUnit, cluster: FakeCluster, captured_logs
) -> None:
    cluster.pods = [pod("web-5d9f-"), pod("web-5d9f-")]
    await unit.execute(command(id="bound-1"))
    records = [m.record for m in captured_logs if "executing automation" in m.record["message"]]
    assert records
    assert records[0]["extra"]["automation_id"] == "bound-1"
    assert records[0]["extra"]["controller_name"] == "web"


async def test_verification_error_rolls_back(
    unit: ExecutionUnit, cluster: FakeCluster, mocker
) -> None:
    mocker.patch.object(
        unit.verifier, "verify", mocker.AsyncMock(side_effect=RuntimeError("watch expired"))
    )
    execution = await unit.run(command(requests={"cpu": 200}))

    assert execution.state == RolloutState.rollout_failed
    assert execution.feedback.status == AutomationStatus.failed
    assert execution.feedback.message == "pods failed to restart"
    assert execution.rolled_back
    assert cluster.applied[-1][3] == execution.original
