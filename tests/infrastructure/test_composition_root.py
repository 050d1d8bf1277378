"""Tests for composition root DI container."""

import pytest
from rollwatch.composition_root import RollwatchContainer, create_container
from rollwatch.domain.events.rollout_events import RolloutStageStartedEvent
from rollwatch.infrastructure.adapters.kubectl_adapter import KubectlAdapter
from rollwatch.infrastructure.config import (
    ClusterConfig,
    RollwatchConfig,
    TimeoutConfig,
)


class TestCompositionRoot:
    def test_create_container(self):
        container = create_container(RollwatchConfig())

        assert isinstance(container, RollwatchContainer)
        assert isinstance(container.kubectl, KubectlAdapter)
        assert container.event_bus is not None
        assert container.telemetry is not None
        assert container.rollback is not None
        assert container.orchestrator is not None

    def test_cluster_settings_reach_adapter(self):
        config = RollwatchConfig(
            cluster=ClusterConfig(kubectl="/opt/kubectl", namespace="shop", context="prod")
        )

        container = create_container(config)

        assert container.kubectl.kubectl == "/opt/kubectl"
        assert container.kubectl.namespace == "shop"
        assert container.kubectl.context == "prod"

    def test_timeouts_threaded_into_stages(self):
        config = RollwatchConfig(
            timeouts=TimeoutConfig(
                deploy_wait=10, replica_wait=20, service_ready=30, poll_interval=0.5
            )
        )

        orchestrator = create_container(config).orchestrator

        assert orchestrator.applier.deploy_wait_timeout == 10
        assert orchestrator.replicas.timeout == 20
        assert orchestrator.services.timeout == 30
        assert orchestrator.endpoints.timeout == 30
        assert orchestrator.replicas.interval == 0.5

    def test_single_adapter_shared(self, cluster):
        container = create_container(RollwatchConfig(), kubectl=cluster)

        orchestrator = container.orchestrator
        assert container.kubectl is cluster
        assert orchestrator.reader is cluster
        assert orchestrator.applier.commands is cluster
        assert container.rollback.commands is cluster

    def test_telemetry_subscribed(self):
        container = create_container(RollwatchConfig())
        handlers = container.event_bus._handlers[RolloutStageStartedEvent]
        assert container.telemetry.on_stage_started in handlers

    def test_orchestrator_publishes_to_container_bus(self):
        container = create_container(RollwatchConfig())
        assert container.orchestrator.event_bus is container.event_bus
