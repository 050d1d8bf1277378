"""
Replica Convergence Verifier

Architectural Intent:
- Confirms every changed deployment reaches its desired available replicas
- Deployments are polled concurrently; one timing out never stops the rest
"""

import logging
from typing import Optional, Sequence

from rollwatch.application.polling.convergence_poller import poll
from rollwatch.application.verification.fan_out import verify_all
from rollwatch.domain.errors import PollTimeoutError, ReplicaConvergenceError
from rollwatch.domain.ports.cluster_port import ClusterStateReader
from rollwatch.domain.value_objects.cluster_state import DeploymentState
from rollwatch.domain.value_objects.stage_result import Stage, StageResult

logger = logging.getLogger(__name__)


class ReplicaConvergenceVerifier:
    def __init__(
        self,
        reader: ClusterStateReader,
        timeout: float,
        interval: float = 1.0,
    ):
        self.reader = reader
        self.timeout = timeout
        self.interval = interval

    async def wait_for_replicas(self, name: str) -> int:
        """Poll until available replicas reach the desired count; returns it."""
        last: Optional[DeploymentState] = None

        async def probe() -> tuple[bool, int]:
            nonlocal last
            last = await self.reader.get_deployment(name)
            return last.is_available, last.available_replicas

        try:
            return await poll(probe, self.interval, self.timeout)
        except PollTimeoutError as e:
            seen = (
                f" ({last.available_replicas}/{last.desired_replicas} available)"
                if last is not None
                else ""
            )
            raise ReplicaConvergenceError(name, f"{e}{seen}") from e
        except Exception as e:
            raise ReplicaConvergenceError(name, str(e)) from e

    async def verify(self, names: Sequence[str]) -> StageResult[dict[str, int]]:
        return await verify_all(
            Stage.REPLICAS,
            names,
            self.wait_for_replicas,
            "Failed to verify replicasets for",
            lambda name, count: f"{name} replicas updated ({count} replicas)",
        )
