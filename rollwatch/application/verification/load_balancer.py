"""
Load Balancer Resolver

Architectural Intent:
- Waits for each configured service to be assigned an external ingress
  address (ip, or hostname on providers that hand out DNS names)
- Resolved addresses are reported for the operator, not consumed downstream
"""

from typing import Sequence

from rollwatch.application.polling.convergence_poller import poll
from rollwatch.application.verification.fan_out import verify_all
from rollwatch.domain.errors import LoadBalancerTimeoutError
from rollwatch.domain.ports.cluster_port import ClusterStateReader
from rollwatch.domain.value_objects.stage_result import Stage, StageResult


class LoadBalancerResolver:
    def __init__(
        self,
        reader: ClusterStateReader,
        timeout: float,
        interval: float = 1.0,
    ):
        self.reader = reader
        self.timeout = timeout
        self.interval = interval

    async def wait_for_address(self, name: str) -> str:
        async def probe() -> tuple[bool, str]:
            service = await self.reader.get_service(name)
            address = service.external_address
            return address is not None, address or ""

        try:
            return await poll(probe, self.interval, self.timeout)
        except Exception as e:
            raise LoadBalancerTimeoutError(name, str(e)) from e

    async def resolve(self, names: Sequence[str]) -> StageResult[dict[str, str]]:
        return await verify_all(
            Stage.ENDPOINTS,
            names,
            self.wait_for_address,
            "Failed to get endpoints for",
            lambda name, address: f"{name} at {address}",
        )
