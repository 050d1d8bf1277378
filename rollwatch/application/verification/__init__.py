"""
Verification Package

Architectural Intent:
- One verifier per convergence concern, all sharing the fan-out discipline
"""

from rollwatch.application.verification.replica_convergence import (
    ReplicaConvergenceVerifier,
)
from rollwatch.application.verification.service_readiness import (
    ServiceReadinessVerifier,
)
from rollwatch.application.verification.load_balancer import LoadBalancerResolver

__all__ = [
    "ReplicaConvergenceVerifier",
    "ServiceReadinessVerifier",
    "LoadBalancerResolver",
]
