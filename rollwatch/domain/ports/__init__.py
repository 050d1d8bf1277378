"""
Domain Ports Package

Architectural Intent:
- Contains port interfaces (abstract contracts) for external dependencies
- Ports define what the domain needs, adapters implement how
- Follows Hexagonal Architecture principles
"""

from rollwatch.domain.ports.cluster_port import ClusterStateReader, ClusterCommandPort
from rollwatch.domain.ports.event_bus_port import EventBusPort

__all__ = [
    "ClusterStateReader",
    "ClusterCommandPort",
    "EventBusPort",
]
