"""
Orchestrate Rollout Use Case

Architectural Intent:
- Drives the fixed pipeline: snapshot -> apply -> diff -> replicas ->
  services -> endpoints, with rollback on the first stage failure
- Stages run strictly one after another; concurrency lives inside stages
- The Rollout aggregate owns the state machine; this class only sequences
  collaborators and feeds their results into it
- Domain events are published as each transition happens so subscribers
  (telemetry) observe the run live
"""

import logging
from typing import Awaitable, Callable, Optional, Sequence

from rollwatch.application.use_cases.apply_manifests import ApplyCoordinator
from rollwatch.application.use_cases.rollback_deployments import RollbackCoordinator
from rollwatch.application.verification.load_balancer import LoadBalancerResolver
from rollwatch.application.verification.replica_convergence import (
    ReplicaConvergenceVerifier,
)
from rollwatch.application.verification.service_readiness import (
    ServiceReadinessVerifier,
)
from rollwatch.domain.entities.rollout import Rollout
from rollwatch.domain.errors import ApplyError
from rollwatch.domain.ports.cluster_port import ClusterStateReader
from rollwatch.domain.ports.event_bus_port import EventBusPort
from rollwatch.domain.value_objects.configured_objects import ConfiguredObjectIndex
from rollwatch.domain.value_objects.generation_snapshot import (
    GenerationDiff,
    GenerationSnapshot,
    diff_generations,
)
from rollwatch.domain.value_objects.stage_result import (
    RolloutOutcome,
    Stage,
    StageFailure,
    StageResult,
)

logger = logging.getLogger(__name__)


class DeploymentOrchestrator:
    def __init__(
        self,
        reader: ClusterStateReader,
        applier: ApplyCoordinator,
        replicas: ReplicaConvergenceVerifier,
        services: ServiceReadinessVerifier,
        endpoints: LoadBalancerResolver,
        rollback: RollbackCoordinator,
        event_bus: Optional[EventBusPort] = None,
    ):
        self.reader = reader
        self.applier = applier
        self.replicas = replicas
        self.services = services
        self.endpoints = endpoints
        self.rollback = rollback
        self.event_bus = event_bus
        self._published = 0

    async def _advance(self, rollout: Rollout) -> Rollout:
        if self.event_bus is not None:
            await self.event_bus.publish(list(rollout.domain_events[self._published:]))
        self._published = len(rollout.domain_events)
        return rollout

    async def snapshot(self) -> GenerationSnapshot:
        return GenerationSnapshot.capture(await self.reader.list_deployments())

    async def diff(
        self, snapshot: GenerationSnapshot, index: ConfiguredObjectIndex
    ) -> GenerationDiff:
        current = await self.reader.list_deployments()
        diff = diff_generations(snapshot, current, index.deployments)
        for entry in diff.entries:
            logger.info("\t%s", entry.describe())
        return diff

    async def _for_services(
        self,
        stage: Stage,
        index: ConfiguredObjectIndex,
        verify: Callable[[Sequence[str]], Awaitable[StageResult]],
    ) -> StageResult:
        if not index.services:
            logger.info("SKIPPING: No services were configured")
            return StageResult.skip(stage)
        return await verify(index.services)

    async def _fail(self, rollout: Rollout, failure: StageFailure) -> RolloutOutcome:
        rollout = await self._advance(rollout.fail_stage(failure))
        outcome = await self.rollback.rollback(failure, rollout.changed)
        rollout = await self._advance(rollout.complete_rollback(outcome))
        return rollout.outcome()

    async def execute(self, manifest: bytes) -> RolloutOutcome:
        self._published = 0
        rollout = Rollout()
        logger.info("Starting rollout %s", rollout.rollout_id)

        snapshot = await self.snapshot()
        rollout = await self._advance(rollout.begin(Stage.APPLY))

        try:
            applied = await self.applier.apply(manifest)
        except ApplyError as e:
            logger.error("%s", e)
            failure = StageFailure(stage=Stage.APPLY, names=frozenset(), message=str(e))
            rollout = await self._advance(rollout.abort(failure))
            return rollout.outcome()

        index = applied.value
        if not applied.ok:
            # Watches failed but apply succeeded: the diff still bounds rollback.
            diff = await self.diff(snapshot, index)
            rollout = rollout.record_changes(diff.changed)
            return await self._fail(rollout, applied.failure)

        rollout = await self._advance(rollout.begin(Stage.DIFF))
        logger.info("All deployments have been rolled out. Fetching changes...")
        diff = await self.diff(snapshot, index)
        rollout = rollout.record_changes(diff.changed)

        rollout = await self._advance(rollout.begin(Stage.REPLICAS))
        result = await self.replicas.verify(diff.changed_in_order())
        if not result.ok:
            return await self._fail(rollout, result.failure)

        rollout = await self._advance(rollout.begin(Stage.SERVICES))
        logger.info("Waiting for services to become available...")
        result = await self._for_services(Stage.SERVICES, index, self.services.verify)
        if not result.ok:
            return await self._fail(rollout, result.failure)

        rollout = await self._advance(rollout.begin(Stage.ENDPOINTS))
        logger.info("Waiting for endpoints to become available...")
        result = await self._for_services(Stage.ENDPOINTS, index, self.endpoints.resolve)
        if not result.ok:
            return await self._fail(rollout, result.failure)

        rollout = await self._advance(rollout.succeed())
        logger.info("Deployment Successful")
        return rollout.outcome()
