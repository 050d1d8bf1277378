"""
Apply Manifests Use Case

Architectural Intent:
- Submits the manifest batch and indexes applied objects as they stream in
- Each discovered deployment gets its own rollout-status watch task started
  immediately, overlapping the remainder of the apply stream
- Watches are joined before the stage completes; their failures are recorded
  per deployment and returned as an apply StageFailure, never raised
- A non-zero apply exit cancels outstanding watches and raises ApplyError
"""

import asyncio
import logging
from typing import Optional

from rollwatch.domain.errors import RolloutStatusError
from rollwatch.domain.ports.cluster_port import ClusterCommandPort
from rollwatch.domain.value_objects.configured_objects import (
    ConfiguredObjectIndex,
    ConfiguredObjectIndexBuilder,
)
from rollwatch.domain.value_objects.stage_result import (
    Stage,
    StageFailure,
    StageResult,
)

logger = logging.getLogger(__name__)


class ApplyCoordinator:
    def __init__(self, commands: ClusterCommandPort, deploy_wait_timeout: float):
        self.commands = commands
        self.deploy_wait_timeout = deploy_wait_timeout

    async def watch_rollout(self, name: str) -> Optional[RolloutStatusError]:
        """Wait for one deployment's rollout; returns the error instead of raising."""
        try:
            await asyncio.wait_for(
                self.commands.rollout_status(name, self.deploy_wait_timeout),
                timeout=self.deploy_wait_timeout or None,
            )
        except asyncio.TimeoutError:
            reason = f"rollout status timed out after {self.deploy_wait_timeout:g}s"
            logger.error("[kubectl rollout status error] %s: %s", name, reason)
            return RolloutStatusError(name, reason)
        except Exception as e:
            logger.error("[kubectl rollout status error] %s: %s", name, e)
            return RolloutStatusError(name, str(e))
        logger.debug("Rollout of %s finished", name)
        return None

    async def apply(self, manifest: bytes) -> StageResult[ConfiguredObjectIndex]:
        builder = ConfiguredObjectIndexBuilder()
        watches: dict[str, asyncio.Task] = {}

        logger.info("Calling kubectl to apply changes...")
        try:
            async for line in self.commands.apply(manifest):
                applied = builder.feed(line)
                if applied is None or applied.kind != "deployment":
                    continue
                if applied.name not in watches:
                    watches[applied.name] = asyncio.create_task(
                        self.watch_rollout(applied.name)
                    )
        except BaseException:
            for task in watches.values():
                task.cancel()
            await asyncio.gather(*watches.values(), return_exceptions=True)
            raise

        index = builder.freeze()
        if index.deployments:
            logger.info(
                "Waiting until deployments %s have been applied.",
                ", ".join(index.deployments),
            )

        errors = await asyncio.gather(*watches.values())
        failed = {error.name: error.reason for error in errors if error is not None}
        if failed:
            failure = StageFailure(
                stage=Stage.APPLY,
                names=frozenset(failed),
                message="Rollout status failed for deployments",
                reasons=failed,
            )
            return StageResult.failed(Stage.APPLY, failure, index)
        return StageResult.succeeded(Stage.APPLY, index)
