"""Tests for the DeploymentOrchestrator pipeline."""

import pytest
from rollwatch.application.use_cases.apply_manifests import ApplyCoordinator
from rollwatch.application.use_cases.orchestrate_rollout import DeploymentOrchestrator
from rollwatch.application.use_cases.rollback_deployments import RollbackCoordinator
from rollwatch.application.verification import (
    LoadBalancerResolver,
    ReplicaConvergenceVerifier,
    ServiceReadinessVerifier,
)
from rollwatch.domain.errors import ClusterQueryError
from rollwatch.domain.events.rollout_events import (
    RollbackCompletedEvent,
    RolloutFailedEvent,
    RolloutStageFailedEvent,
    RolloutStageStartedEvent,
    RolloutSucceededEvent,
)
from rollwatch.domain.value_objects.cluster_state import DeploymentState
from rollwatch.domain.value_objects.stage_result import Stage
from rollwatch.infrastructure.event_bus import EventBus

INTERVAL = 0.01


def _orchestrator(cluster, timeout=1.0, event_bus=None):
    return DeploymentOrchestrator(
        reader=cluster,
        applier=ApplyCoordinator(cluster, timeout),
        replicas=ReplicaConvergenceVerifier(cluster, timeout, INTERVAL),
        services=ServiceReadinessVerifier(cluster, timeout, INTERVAL),
        endpoints=LoadBalancerResolver(cluster, timeout, INTERVAL),
        rollback=RollbackCoordinator(cluster),
        event_bus=event_bus,
    )


def _bump(cluster, name, generation, desired=1):
    """Make ``name`` appear at ``generation`` once apply completes."""
    if cluster.after_apply is None:
        cluster.after_apply = dict(cluster.deployments)
    cluster.after_apply[name] = DeploymentState(
        name=name,
        observed_generation=generation,
        available_replicas=desired,
        desired_replicas=desired,
    )


class _Recorder:
    def __init__(self, bus):
        self.events = []
        for event_type in (
            RolloutStageStartedEvent,
            RolloutStageFailedEvent,
            RollbackCompletedEvent,
            RolloutSucceededEvent,
            RolloutFailedEvent,
        ):
            bus.subscribe(event_type, self.record)

    async def record(self, event):
        self.events.append(event)


class TestSuccessfulRollout:
    @pytest.mark.asyncio
    async def test_converges_after_replicas_catch_up(self, cluster, ready_pod):
        cluster.add_deployment("a", generation=1, desired=3)
        _bump(cluster, "a", generation=2, desired=3)
        cluster.available["a"] = [1, 2, 3]
        cluster.add_service("a", ingress=("203.0.113.10",), pods=[ready_pod])
        cluster.apply_lines = ["deployment.apps/a", "service/a"]

        outcome = await _orchestrator(cluster).execute(b"manifest")

        assert outcome.succeeded
        assert outcome.exit_code == 0
        assert outcome.changed == {"a"}
        assert cluster.undone == []

    @pytest.mark.asyncio
    async def test_unchanged_deployments_are_not_verified(self, cluster):
        cluster.add_deployment("a", generation=1)
        cluster.add_deployment("b", generation=4, desired=2, available=0)
        _bump(cluster, "a", generation=2)
        cluster.apply_lines = ["deployment.apps/a", "deployment.apps/b"]

        outcome = await _orchestrator(cluster, timeout=0.1).execute(b"manifest")

        assert outcome.succeeded
        assert outcome.changed == {"a"}

    @pytest.mark.asyncio
    async def test_new_deployment_counts_as_changed(self, cluster):
        _bump(cluster, "fresh", generation=1)
        cluster.apply_lines = ["deployment.apps/fresh"]

        outcome = await _orchestrator(cluster).execute(b"manifest")

        assert outcome.changed == {"fresh"}

    @pytest.mark.asyncio
    async def test_no_services_skips_readiness_and_endpoints(self, cluster, caplog):
        cluster.add_deployment("a")
        cluster.apply_lines = ["deployment.apps/a"]

        with caplog.at_level("INFO", logger="rollwatch"):
            outcome = await _orchestrator(cluster).execute(b"manifest")

        assert outcome.succeeded
        assert "SKIPPING: No services were configured" in caplog.text

    @pytest.mark.asyncio
    async def test_publishes_stage_events(self, cluster):
        bus = EventBus()
        recorder = _Recorder(bus)
        cluster.add_deployment("a")
        cluster.apply_lines = ["deployment.apps/a"]

        await _orchestrator(cluster, event_bus=bus).execute(b"manifest")

        stages = [
            e.stage for e in recorder.events if isinstance(e, RolloutStageStartedEvent)
        ]
        assert stages == ["apply", "diff", "replicas", "services", "endpoints"]
        assert isinstance(recorder.events[-1], RolloutSucceededEvent)


class TestFailedRollout:
    @pytest.mark.asyncio
    async def test_replica_timeout_rolls_back_the_deployment(self, cluster):
        cluster.add_deployment("a", generation=1, desired=2)
        cluster.add_deployment("b", generation=1)
        _bump(cluster, "a", generation=2, desired=2)
        _bump(cluster, "b", generation=2)
        cluster.available["a"] = [0]
        cluster.apply_lines = ["deployment.apps/a", "deployment.apps/b"]

        outcome = await _orchestrator(cluster, timeout=0.1).execute(b"manifest")

        assert not outcome.succeeded
        assert outcome.exit_code == 1
        assert outcome.failure.stage is Stage.REPLICAS
        assert outcome.failure.names == {"a"}
        assert outcome.rollback.targets == ("a",)
        assert cluster.undone == ["a"]

    @pytest.mark.asyncio
    async def test_service_failure_rolls_back_same_named_deployment(self, cluster):
        cluster.add_deployment("web", generation=1)
        _bump(cluster, "web", generation=2)
        cluster.add_service("web", pods=[])
        cluster.apply_lines = ["deployment.apps/web", "service/web"]

        outcome = await _orchestrator(cluster, timeout=0.05).execute(b"manifest")

        assert outcome.failure.stage is Stage.SERVICES
        assert cluster.undone == ["web"]

    @pytest.mark.asyncio
    async def test_failure_outside_changed_set_is_not_rolled_back(self, cluster, ready_pod):
        cluster.add_deployment("api", generation=3)
        cluster.add_service("gateway", pods=[ready_pod])
        cluster.apply_lines = ["deployment.apps/api", "service/gateway"]

        outcome = await _orchestrator(cluster, timeout=0.05).execute(b"manifest")

        assert outcome.failure.stage is Stage.ENDPOINTS
        assert outcome.failure.names == {"gateway"}
        assert outcome.rollback.is_noop
        assert cluster.undone == []

    @pytest.mark.asyncio
    async def test_apply_error_ends_without_rollback(self, cluster):
        cluster.add_deployment("a")
        cluster.apply_lines = ["deployment.apps/a"]
        cluster.apply_returncode = 1

        outcome = await _orchestrator(cluster).execute(b"manifest")

        assert outcome.failure.stage is Stage.APPLY
        assert "exited with code 1" in str(outcome.failure)
        assert outcome.rollback is None
        assert cluster.undone == []

    @pytest.mark.asyncio
    async def test_rollout_status_failure_rolls_back_changed(self, cluster, command_error):
        cluster.add_deployment("a", generation=1)
        cluster.add_deployment("b", generation=1)
        _bump(cluster, "a", generation=2)
        cluster.rollout_errors["a"] = command_error
        cluster.rollout_errors["b"] = command_error
        cluster.apply_lines = ["deployment.apps/a", "deployment.apps/b"]

        outcome = await _orchestrator(cluster).execute(b"manifest")

        assert outcome.failure.stage is Stage.APPLY
        assert outcome.failure.names == {"a", "b"}
        assert outcome.rollback.targets == ("a",)
        assert cluster.undone == ["a"]

    @pytest.mark.asyncio
    async def test_snapshot_error_propagates(self, cluster):
        async def broken():
            raise ClusterQueryError("unauthorized", 1)

        cluster.list_deployments = broken

        with pytest.raises(ClusterQueryError):
            await _orchestrator(cluster).execute(b"manifest")

    @pytest.mark.asyncio
    async def test_publishes_failure_events(self, cluster):
        bus = EventBus()
        recorder = _Recorder(bus)
        cluster.add_deployment("a", generation=1)
        _bump(cluster, "a", generation=2)
        cluster.available["a"] = [0]
        cluster.apply_lines = ["deployment.apps/a"]

        await _orchestrator(cluster, timeout=0.05, event_bus=bus).execute(b"manifest")

        kinds = [type(e) for e in recorder.events[-3:]]
        assert kinds == [
            RolloutStageFailedEvent,
            RollbackCompletedEvent,
            RolloutFailedEvent,
        ]
