"""
Cluster State Value Objects

Architectural Intent:
- Immutable snapshots of the few cluster fields the pipeline reads
- Adapters translate raw kubectl JSON into these; the domain never sees JSON
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class DeploymentState:
    name: str
    observed_generation: Optional[int] = None
    available_replicas: int = 0
    desired_replicas: int = 0

    @property
    def is_available(self) -> bool:
        return self.available_replicas >= self.desired_replicas


@dataclass(frozen=True)
class ServiceState:
    name: str
    selector: tuple[tuple[str, str], ...] = ()
    ingress: tuple[str, ...] = ()

    def selector_expression(self) -> str:
        """Label selector conjoining every key=value pair, e.g. ``app=web,tier=fe``."""
        return ",".join(f"{key}={value}" for key, value in self.selector)

    @property
    def external_address(self) -> Optional[str]:
        return self.ingress[0] if self.ingress else None


@dataclass(frozen=True)
class PodState:
    name: str
    phase: str = ""
    conditions: tuple[tuple[str, str], ...] = field(default=())

    @property
    def is_running_and_ready(self) -> bool:
        if self.phase != "Running":
            return False
        return any(
            kind == "Ready" and status == "True" for kind, status in self.conditions
        )
