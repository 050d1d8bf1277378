"""
Domain Events Package

Architectural Intent:
- Contains domain events raised by the Rollout aggregate
- Events are the primary mechanism for cross-boundary communication
"""

from rollwatch.domain.events.event_base import DomainEvent
from rollwatch.domain.events.rollout_events import (
    RolloutStageStartedEvent,
    RolloutStageFailedEvent,
    RollbackCompletedEvent,
    RolloutSucceededEvent,
    RolloutFailedEvent,
)

__all__ = [
    "DomainEvent",
    "RolloutStageStartedEvent",
    "RolloutStageFailedEvent",
    "RollbackCompletedEvent",
    "RolloutSucceededEvent",
    "RolloutFailedEvent",
]
