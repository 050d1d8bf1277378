"""
Error Taxonomy

Architectural Intent:
- Single hierarchy for every failure rollwatch raises or records
- Per-item errors (rollout status, replicas, readiness, load balancer,
  rollback) are caught inside their stage and folded into a StageFailure
- Only ApplyError and ClusterError escape a stage as exceptions
"""

from typing import Optional


class RollwatchError(Exception):
    """Base class for all rollwatch errors."""


class ClusterError(RollwatchError):
    """A kubectl invocation failed or returned something unparseable."""

    def __init__(self, message: str, returncode: Optional[int] = None) -> None:
        super().__init__(message)
        self.returncode = returncode


class ClusterQueryError(ClusterError):
    pass


class ClusterCommandError(ClusterError):
    pass


class ApplyError(RollwatchError):
    """The apply process exited non-zero. Nothing can be rolled back."""

    def __init__(self, returncode: int, stderr: str = "") -> None:
        message = f"kubectl apply exited with code {returncode}"
        if stderr:
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class PollTimeoutError(RollwatchError, TimeoutError):
    def __init__(self, timeout: float) -> None:
        super().__init__(f"Condition not met within {timeout:g}s")
        self.timeout = timeout


class ItemError(RollwatchError):
    """An error attributed to one named resource inside a stage."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"{name}: {reason}")
        self.name = name
        self.reason = reason


class RolloutStatusError(ItemError):
    pass


class ReplicaConvergenceError(ItemError):
    pass


class ServiceReadinessError(ItemError):
    pass


class LoadBalancerTimeoutError(ItemError):
    pass


class RollbackItemError(ItemError):
    pass
