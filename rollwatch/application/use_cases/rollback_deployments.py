"""
Rollback Deployments Use Case

Architectural Intent:
- Reverts deployments that failed to converge, restricted to the ones this
  run actually changed: targets = failure.names & changed
- Undo operations run concurrently; each outcome is recorded on its own and a
  failing undo never blocks, retries or escalates past its own slot
"""

import asyncio
import logging
from typing import Iterable, Optional

from rollwatch.domain.errors import RollbackItemError
from rollwatch.domain.ports.cluster_port import ClusterCommandPort
from rollwatch.domain.value_objects.stage_result import RollbackOutcome, StageFailure

logger = logging.getLogger(__name__)


def rollback_targets(failure: StageFailure, changed: Iterable[str]) -> tuple[str, ...]:
    return tuple(sorted(failure.names & frozenset(changed)))


class RollbackCoordinator:
    def __init__(self, commands: ClusterCommandPort):
        self.commands = commands

    async def _undo_one(self, name: str) -> Optional[RollbackItemError]:
        try:
            output = await self.commands.rollout_undo(name)
        except Exception as e:
            logger.error("\t%s rollback ERROR %s", name, e)
            return RollbackItemError(name, str(e))
        if output.strip():
            logger.info("%s", output.strip())
        return None

    async def undo(self, names: Iterable[str]) -> RollbackOutcome:
        targets = tuple(names)
        errors = await asyncio.gather(*(self._undo_one(name) for name in targets))
        failed = {error.name: error.reason for error in errors if error is not None}
        succeeded = tuple(name for name in targets if name not in failed)
        if failed:
            logger.error("Error rolling back %s", ", ".join(sorted(failed)))
        elif targets:
            logger.info("Rollback Finished")
        return RollbackOutcome(targets=targets, succeeded=succeeded, failed=failed)

    async def rollback(
        self, failure: StageFailure, changed: Iterable[str]
    ) -> RollbackOutcome:
        changed = frozenset(changed)
        targets = rollback_targets(failure, changed)

        # Service failures are attributed to the deployment of the same name.
        unrelated = sorted(failure.names - changed)
        if unrelated:
            logger.warning(
                "Not rolling back %s: not changed by this rollout "
                "(services are assumed to share their deployment's name)",
                ", ".join(unrelated),
            )

        logger.warning(
            "DEPLOYMENT FAILED: %s Rolling Back Deployments %s",
            failure,
            ", ".join(targets) or "(none)",
        )
        if not targets:
            logger.warning("Nothing eligible to roll back")
            return RollbackOutcome()
        return await self.undo(targets)
