"""
Rollout Events

Architectural Intent:
- Events appended by the Rollout aggregate on each state transition
- Published on the EventBus as each transition happens
"""

from dataclasses import dataclass
from typing import Any

from rollwatch.domain.events.event_base import DomainEvent


@dataclass(frozen=True)
class RolloutStageStartedEvent(DomainEvent):
    stage: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "stage": self.stage}


@dataclass(frozen=True)
class RolloutStageFailedEvent(DomainEvent):
    stage: str = ""
    names: tuple[str, ...] = ()
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "stage": self.stage,
            "names": list(self.names),
            "message": self.message,
        }


@dataclass(frozen=True)
class RollbackCompletedEvent(DomainEvent):
    targets: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "targets": list(self.targets),
            "failed": list(self.failed),
        }


@dataclass(frozen=True)
class RolloutSucceededEvent(DomainEvent):
    changed: tuple[str, ...] = ()


@dataclass(frozen=True)
class RolloutFailedEvent(DomainEvent):
    stage: str = ""
    message: str = ""
