"""
Stage Results

Architectural Intent:
- Every pipeline stage returns a StageResult instead of raising on failure
- StageFailure carries only the names that failed, never all attempted
- RollbackOutcome and RolloutOutcome are the terminal reporting values
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Generic, Mapping, Optional, TypeVar

T = TypeVar("T")


class Stage(Enum):
    APPLY = "apply"
    DIFF = "diff"
    REPLICAS = "replicas"
    SERVICES = "services"
    ENDPOINTS = "endpoints"


def _freeze_reasons(reasons: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    return MappingProxyType(dict(reasons or {}))


@dataclass(frozen=True)
class StageFailure:
    stage: Stage
    names: frozenset[str]
    message: str
    reasons: Mapping[str, str] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "names", frozenset(self.names))
        object.__setattr__(self, "reasons", _freeze_reasons(self.reasons))

    def __str__(self) -> str:
        if not self.names:
            return self.message
        return f"{self.message} {', '.join(sorted(self.names))}"


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """Success(value) | Failure(StageFailure), with skipped counting as success."""

    stage: Stage
    value: Optional[T] = None
    failure: Optional[StageFailure] = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.failure is None

    @staticmethod
    def succeeded(stage: Stage, value: T) -> "StageResult[T]":
        return StageResult(stage=stage, value=value)

    @staticmethod
    def failed(
        stage: Stage, failure: StageFailure, value: Optional[T] = None
    ) -> "StageResult[T]":
        return StageResult(stage=stage, value=value, failure=failure)

    @staticmethod
    def skip(stage: Stage) -> "StageResult[T]":
        return StageResult(stage=stage, skipped=True)


@dataclass(frozen=True)
class RollbackOutcome:
    targets: tuple[str, ...] = ()
    succeeded: tuple[str, ...] = ()
    failed: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "failed", _freeze_reasons(self.failed))

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def is_noop(self) -> bool:
        return not self.targets


@dataclass(frozen=True)
class RolloutOutcome:
    failure: Optional[StageFailure] = None
    rollback: Optional[RollbackOutcome] = None
    changed: frozenset[str] = frozenset()

    @property
    def succeeded(self) -> bool:
        return self.failure is None

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    @staticmethod
    def success(changed: frozenset[str] = frozenset()) -> "RolloutOutcome":
        return RolloutOutcome(changed=changed)

    @staticmethod
    def failed(
        failure: StageFailure,
        rollback: Optional[RollbackOutcome] = None,
        changed: frozenset[str] = frozenset(),
    ) -> "RolloutOutcome":
        return RolloutOutcome(failure=failure, rollback=rollback, changed=changed)
