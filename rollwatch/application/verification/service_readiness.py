"""
Service Readiness Verifier

Architectural Intent:
- Resolves each configured service's pod selector once, then polls the
  matching pods until at least one is Running with Ready=True
- Services are verified concurrently with per-service failure collection
"""

import logging
from typing import Sequence

from rollwatch.application.polling.convergence_poller import poll
from rollwatch.application.verification.fan_out import verify_all
from rollwatch.domain.errors import ServiceReadinessError
from rollwatch.domain.ports.cluster_port import ClusterStateReader
from rollwatch.domain.value_objects.stage_result import Stage, StageResult

logger = logging.getLogger(__name__)


class ServiceReadinessVerifier:
    def __init__(
        self,
        reader: ClusterStateReader,
        timeout: float,
        interval: float = 1.0,
    ):
        self.reader = reader
        self.timeout = timeout
        self.interval = interval

    async def resolve_selector(self, name: str) -> str:
        service = await self.reader.get_service(name)
        selector = service.selector_expression()
        if not selector:
            raise ServiceReadinessError(name, "service has no pod selector")
        return selector

    async def wait_until_ready(self, name: str) -> str:
        """Poll until a backing pod is running and ready; returns the selector."""
        try:
            selector = await self.resolve_selector(name)
            logger.debug("Service %s selects pods with %s", name, selector)

            async def probe() -> tuple[bool, str]:
                pods = await self.reader.list_pods(selector)
                return any(pod.is_running_and_ready for pod in pods), selector

            return await poll(probe, self.interval, self.timeout)
        except ServiceReadinessError:
            raise
        except Exception as e:
            raise ServiceReadinessError(name, str(e)) from e

    async def verify(self, names: Sequence[str]) -> StageResult[dict[str, str]]:
        return await verify_all(
            Stage.SERVICES,
            names,
            self.wait_until_ready,
            "Failed to verify services for",
            lambda name, _selector: f"{name} running & ready",
        )
