"""
Composition Root

Architectural Intent:
- Dependency injection composition root for the rollwatch application
- Single place where the kubectl adapter, verifiers and use cases are wired
- Configuration is passed in once and threaded into every component here

Design Decisions:
- Uses a simple dataclass container instead of a DI framework
- Telemetry is constructed and subscribed here but initialized by the caller,
  since SDK setup is async
"""

from dataclasses import dataclass
from typing import Optional

from rollwatch.application.use_cases.apply_manifests import ApplyCoordinator
from rollwatch.application.use_cases.orchestrate_rollout import DeploymentOrchestrator
from rollwatch.application.use_cases.rollback_deployments import RollbackCoordinator
from rollwatch.application.verification.load_balancer import LoadBalancerResolver
from rollwatch.application.verification.replica_convergence import (
    ReplicaConvergenceVerifier,
)
from rollwatch.application.verification.service_readiness import (
    ServiceReadinessVerifier,
)
from rollwatch.infrastructure.adapters.kubectl_adapter import KubectlAdapter
from rollwatch.infrastructure.config import RollwatchConfig
from rollwatch.infrastructure.event_bus import EventBus
from rollwatch.infrastructure.telemetry.otel_exporter import OTELConfig, OTELExporter


@dataclass
class RollwatchContainer:
    """DI container holding all wired dependencies."""

    config: RollwatchConfig
    kubectl: KubectlAdapter
    event_bus: EventBus
    telemetry: OTELExporter
    rollback: RollbackCoordinator
    orchestrator: DeploymentOrchestrator


def create_container(
    config: RollwatchConfig, kubectl: Optional[KubectlAdapter] = None
) -> RollwatchContainer:
    """Create and wire all dependencies."""
    kubectl = kubectl or KubectlAdapter(
        kubectl=config.cluster.kubectl,
        namespace=config.cluster.namespace,
        context=config.cluster.context,
    )
    timeouts = config.timeouts

    event_bus = EventBus()
    telemetry = OTELExporter(
        OTELConfig(
            endpoint=config.telemetry.endpoint,
            service_name=config.telemetry.service_name,
            insecure=config.telemetry.insecure,
        )
    )
    telemetry.subscribe(event_bus)

    rollback = RollbackCoordinator(kubectl)
    orchestrator = DeploymentOrchestrator(
        reader=kubectl,
        applier=ApplyCoordinator(kubectl, timeouts.deploy_wait),
        replicas=ReplicaConvergenceVerifier(
            kubectl, timeouts.replica_wait, timeouts.poll_interval
        ),
        services=ServiceReadinessVerifier(
            kubectl, timeouts.service_ready, timeouts.poll_interval
        ),
        endpoints=LoadBalancerResolver(
            kubectl, timeouts.service_ready, timeouts.poll_interval
        ),
        rollback=rollback,
        event_bus=event_bus,
    )

    return RollwatchContainer(
        config=config,
        kubectl=kubectl,
        event_bus=event_bus,
        telemetry=telemetry,
        rollback=rollback,
        orchestrator=orchestrator,
    )
