"""
Cluster Ports

Architectural Intent:
- ClusterStateReader is the read-only boundary the verifiers poll
- ClusterCommandPort covers the write side: apply, rollout status, undo
- Implemented by KubectlAdapter; tests substitute an in-memory fake
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, List

from rollwatch.domain.value_objects.cluster_state import (
    DeploymentState,
    PodState,
    ServiceState,
)


class ClusterStateReader(ABC):
    """
    Port interface for read-only queries against the cluster.
    Implementations raise ClusterQueryError when a query fails.
    """

    @abstractmethod
    async def list_deployments(self) -> List[DeploymentState]:
        pass

    @abstractmethod
    async def get_deployment(self, name: str) -> DeploymentState:
        pass

    @abstractmethod
    async def get_service(self, name: str) -> ServiceState:
        pass

    @abstractmethod
    async def list_pods(self, selector: str) -> List[PodState]:
        """
        Lists pods matching a label selector expression (``k=v,k2=v2``).
        """
        pass


class ClusterCommandPort(ABC):
    """
    Port interface for operations that change cluster state.
    """

    @abstractmethod
    def apply(self, manifest: bytes) -> AsyncIterator[str]:
        """
        Applies a manifest batch, yielding each output line as it arrives.
        Raises ApplyError once the stream ends if the apply exited non-zero.
        """
        pass

    @abstractmethod
    async def rollout_status(self, deployment: str, timeout: float) -> str:
        """
        Blocks until the deployment's rollout finishes.
        Raises ClusterCommandError if the rollout fails or times out.
        """
        pass

    @abstractmethod
    async def rollout_undo(self, deployment: str) -> str:
        """
        Reverts a deployment to its previous revision. Returns tool output.
        """
        pass
