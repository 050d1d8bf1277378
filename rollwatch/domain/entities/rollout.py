"""
Rollout Module

Architectural Intent:
- Rollout aggregate is the consistency boundary for one pipeline run
- Lifecycle enforced by domain methods; illegal transitions raise ValueError
- All state changes produce new instances to ensure auditability
- Domain events recorded on every transition for the orchestrator to publish

State Machine:
    INIT -> APPLYING -> DIFFING -> VERIFYING_REPLICAS -> VERIFYING_SERVICES
         -> VERIFYING_ENDPOINTS -> SUCCEEDED
    APPLYING | VERIFYING_* -> ROLLING_BACK -> FAILED
    APPLYING -> FAILED  (apply process error, nothing to roll back)
"""

from __future__ import annotations
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Optional

from rollwatch.domain.events.event_base import DomainEvent
from rollwatch.domain.events.rollout_events import (
    RollbackCompletedEvent,
    RolloutFailedEvent,
    RolloutStageFailedEvent,
    RolloutStageStartedEvent,
    RolloutSucceededEvent,
)
from rollwatch.domain.value_objects.stage_result import (
    RollbackOutcome,
    RolloutOutcome,
    Stage,
    StageFailure,
)


class RolloutState(Enum):
    INIT = auto()
    APPLYING = auto()
    DIFFING = auto()
    VERIFYING_REPLICAS = auto()
    VERIFYING_SERVICES = auto()
    VERIFYING_ENDPOINTS = auto()
    ROLLING_BACK = auto()
    SUCCEEDED = auto()
    FAILED = auto()

    @property
    def is_terminal(self) -> bool:
        return self in (RolloutState.SUCCEEDED, RolloutState.FAILED)


STAGE_STATES: dict[Stage, RolloutState] = {
    Stage.APPLY: RolloutState.APPLYING,
    Stage.DIFF: RolloutState.DIFFING,
    Stage.REPLICAS: RolloutState.VERIFYING_REPLICAS,
    Stage.SERVICES: RolloutState.VERIFYING_SERVICES,
    Stage.ENDPOINTS: RolloutState.VERIFYING_ENDPOINTS,
}

_TRANSITIONS: dict[RolloutState, frozenset[RolloutState]] = {
    RolloutState.INIT: frozenset({RolloutState.APPLYING}),
    RolloutState.APPLYING: frozenset(
        {RolloutState.DIFFING, RolloutState.ROLLING_BACK, RolloutState.FAILED}
    ),
    RolloutState.DIFFING: frozenset({RolloutState.VERIFYING_REPLICAS}),
    RolloutState.VERIFYING_REPLICAS: frozenset(
        {RolloutState.VERIFYING_SERVICES, RolloutState.ROLLING_BACK}
    ),
    RolloutState.VERIFYING_SERVICES: frozenset(
        {RolloutState.VERIFYING_ENDPOINTS, RolloutState.ROLLING_BACK}
    ),
    RolloutState.VERIFYING_ENDPOINTS: frozenset(
        {RolloutState.SUCCEEDED, RolloutState.ROLLING_BACK}
    ),
    RolloutState.ROLLING_BACK: frozenset({RolloutState.FAILED}),
    RolloutState.SUCCEEDED: frozenset(),
    RolloutState.FAILED: frozenset(),
}


@dataclass(frozen=True)
class Rollout:
    rollout_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: RolloutState = RolloutState.INIT
    changed: frozenset[str] = frozenset()
    failure: Optional[StageFailure] = None
    rollback: Optional[RollbackOutcome] = None
    domain_events: tuple[DomainEvent, ...] = ()

    def _transition(self, target: RolloutState, *events: DomainEvent, **changes) -> "Rollout":
        if target not in _TRANSITIONS[self.state]:
            raise ValueError(
                f"Rollout cannot move from {self.state.name} to {target.name}"
            )
        return replace(
            self,
            state=target,
            domain_events=self.domain_events + events,
            **changes,
        )

    def begin(self, stage: Stage) -> "Rollout":
        return self._transition(
            STAGE_STATES[stage],
            RolloutStageStartedEvent(aggregate_id=self.rollout_id, stage=stage.value),
        )

    def record_changes(self, changed: frozenset[str]) -> "Rollout":
        if self.state not in (RolloutState.DIFFING, RolloutState.APPLYING):
            raise ValueError("Changes can only be recorded while applying or diffing")
        return replace(self, changed=frozenset(changed))

    def fail_stage(self, failure: StageFailure) -> "Rollout":
        """Move to ROLLING_BACK because ``failure`` ended the current stage."""
        return self._transition(
            RolloutState.ROLLING_BACK,
            RolloutStageFailedEvent(
                aggregate_id=self.rollout_id,
                stage=failure.stage.value,
                names=tuple(sorted(failure.names)),
                message=failure.message,
            ),
            failure=failure,
        )

    def complete_rollback(self, outcome: RollbackOutcome) -> "Rollout":
        if self.failure is None:
            raise ValueError("Rollback requires a recorded stage failure")
        return self._transition(
            RolloutState.FAILED,
            RollbackCompletedEvent(
                aggregate_id=self.rollout_id,
                targets=outcome.targets,
                failed=tuple(sorted(outcome.failed)),
            ),
            RolloutFailedEvent(
                aggregate_id=self.rollout_id,
                stage=self.failure.stage.value,
                message=self.failure.message,
            ),
            rollback=outcome,
        )

    def abort(self, failure: StageFailure) -> "Rollout":
        """Fail without rollback; only legal while applying."""
        return self._transition(
            RolloutState.FAILED,
            RolloutStageFailedEvent(
                aggregate_id=self.rollout_id,
                stage=failure.stage.value,
                names=tuple(sorted(failure.names)),
                message=failure.message,
            ),
            RolloutFailedEvent(
                aggregate_id=self.rollout_id,
                stage=failure.stage.value,
                message=failure.message,
            ),
            failure=failure,
        )

    def succeed(self) -> "Rollout":
        return self._transition(
            RolloutState.SUCCEEDED,
            RolloutSucceededEvent(
                aggregate_id=self.rollout_id, changed=tuple(sorted(self.changed))
            ),
        )

    def outcome(self) -> RolloutOutcome:
        if not self.state.is_terminal:
            raise ValueError("Rollout has not finished")
        if self.state is RolloutState.SUCCEEDED:
            return RolloutOutcome.success(self.changed)
        return RolloutOutcome.failed(self.failure, self.rollback, self.changed)
