"""Global test configuration.

Provides an in-memory cluster implementing both cluster ports so use cases
can be exercised without kubectl.
"""

import asyncio
from typing import Optional

import pytest

from rollwatch.domain.errors import ApplyError, ClusterCommandError, ClusterQueryError
from rollwatch.domain.ports.cluster_port import ClusterCommandPort, ClusterStateReader
from rollwatch.domain.value_objects.cluster_state import (
    DeploymentState,
    PodState,
    ServiceState,
)


def _next(sequences: dict, key: str):
    """Pop the next value of a per-key sequence, repeating the last one."""
    values = sequences[key]
    if len(values) > 1:
        return values.pop(0)
    return values[0]


class FakeCluster(ClusterStateReader, ClusterCommandPort):
    def __init__(self) -> None:
        self.deployments: dict[str, DeploymentState] = {}
        self.after_apply: Optional[dict[str, DeploymentState]] = None
        self.available: dict[str, list[int]] = {}
        self.services: dict[str, list[ServiceState]] = {}
        self.pods: dict[str, list[list[PodState]]] = {}
        self.apply_lines: list[str] = []
        self.apply_returncode = 0
        self.rollout_errors: dict[str, Exception] = {}
        self.rollout_hangs: set[str] = set()
        self.undo_errors: dict[str, Exception] = {}
        self.query_errors: dict[str, Exception] = {}
        self.manifests: list[bytes] = []
        self.watched: list[str] = []
        self.undone: list[str] = []

    def add_deployment(self, name, generation=1, desired=1, available=None):
        self.deployments[name] = DeploymentState(
            name=name,
            observed_generation=generation,
            available_replicas=desired if available is None else available,
            desired_replicas=desired,
        )

    def add_service(self, name, selector=None, ingress=(), pods=None):
        selector = {"app": name} if selector is None else selector
        service = ServiceState(
            name=name, selector=tuple(selector.items()), ingress=tuple(ingress)
        )
        self.services[name] = [service]
        if pods is not None:
            self.pods[service.selector_expression()] = [pods]

    async def list_deployments(self):
        return list(self.deployments.values())

    async def get_deployment(self, name):
        if name in self.query_errors:
            raise self.query_errors[name]
        if name not in self.deployments:
            raise ClusterQueryError(f"deployment {name} not found", 1)
        state = self.deployments[name]
        if name in self.available:
            return DeploymentState(
                name=name,
                observed_generation=state.observed_generation,
                available_replicas=_next(self.available, name),
                desired_replicas=state.desired_replicas,
            )
        return state

    async def get_service(self, name):
        if name in self.query_errors:
            raise self.query_errors[name]
        if name not in self.services:
            raise ClusterQueryError(f"service {name} not found", 1)
        return _next(self.services, name)

    async def list_pods(self, selector):
        if selector not in self.pods:
            return []
        return _next(self.pods, selector)

    async def apply(self, manifest):
        self.manifests.append(manifest)
        for line in self.apply_lines:
            await asyncio.sleep(0)
            yield line
        if self.apply_returncode != 0:
            raise ApplyError(self.apply_returncode, "error: apply failed")
        if self.after_apply is not None:
            self.deployments = dict(self.after_apply)

    async def rollout_status(self, deployment, timeout):
        self.watched.append(deployment)
        if deployment in self.rollout_hangs:
            await asyncio.sleep(3600)
        if deployment in self.rollout_errors:
            raise self.rollout_errors[deployment]
        return f'deployment "{deployment}" successfully rolled out'

    async def rollout_undo(self, deployment):
        self.undone.append(deployment)
        if deployment in self.undo_errors:
            raise self.undo_errors[deployment]
        return f"deployment.apps/{deployment} rolled back"


@pytest.fixture
def cluster():
    return FakeCluster()


@pytest.fixture
def ready_pod():
    return PodState(name="pod-1", phase="Running", conditions=(("Ready", "True"),))


@pytest.fixture
def command_error():
    return ClusterCommandError("kubectl rollout failed", 1)
