"""
Generation Snapshot and Diff

Architectural Intent:
- GenerationSnapshot records observed generations once, before apply
- diff_generations compares a post-apply listing against the snapshot,
  restricted to the deployments this run's apply actually touched
- Deployments absent from the snapshot are new and count as changed
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Sequence

from rollwatch.domain.value_objects.cluster_state import DeploymentState


class GenerationSnapshot:
    """Immutable deployment name -> observed generation mapping."""

    __slots__ = ("_generations",)

    def __init__(self, generations: Mapping[str, Optional[int]]) -> None:
        self._generations = MappingProxyType(dict(generations))

    @classmethod
    def capture(cls, deployments: Iterable[DeploymentState]) -> "GenerationSnapshot":
        return cls({d.name: d.observed_generation for d in deployments})

    @property
    def generations(self) -> Mapping[str, Optional[int]]:
        return self._generations

    def __contains__(self, name: object) -> bool:
        return name in self._generations

    def __getitem__(self, name: str) -> Optional[int]:
        return self._generations[name]

    def __len__(self) -> int:
        return len(self._generations)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GenerationSnapshot):
            return NotImplemented
        return dict(self._generations) == dict(other._generations)

    def __repr__(self) -> str:
        return f"GenerationSnapshot({dict(self._generations)!r})"


class ChangeKind(Enum):
    ADDED = "ADDED"
    UPDATED = "UPDATED"
    UNCHANGED = "UNCHANGED"


@dataclass(frozen=True)
class GenerationChange:
    name: str
    kind: ChangeKind
    previous: Optional[int] = None
    current: Optional[int] = None

    def describe(self) -> str:
        if self.kind is ChangeKind.UPDATED:
            return f"{self.name} V {self.previous} => {self.current}"
        return f"{self.name} {self.kind.value}"


@dataclass(frozen=True)
class GenerationDiff:
    entries: tuple[GenerationChange, ...] = ()

    @property
    def changed(self) -> frozenset[str]:
        return frozenset(
            e.name for e in self.entries if e.kind is not ChangeKind.UNCHANGED
        )

    @property
    def unchanged(self) -> frozenset[str]:
        return frozenset(
            e.name for e in self.entries if e.kind is ChangeKind.UNCHANGED
        )

    def changed_in_order(self) -> list[str]:
        """Changed names in apply discovery order, for stable fan-out."""
        return [e.name for e in self.entries if e.kind is not ChangeKind.UNCHANGED]


def diff_generations(
    snapshot: GenerationSnapshot,
    current: Iterable[DeploymentState],
    configured: Sequence[str],
) -> GenerationDiff:
    """Compare post-apply generations with the pre-apply snapshot.

    Only deployments named in ``configured`` (the apply output) are
    considered; anything else in the namespace was not touched by this run.
    A configured name missing from the post-apply listing is skipped.
    """
    observed = {d.name: d.observed_generation for d in current}
    entries: list[GenerationChange] = []
    seen: set[str] = set()

    for name in configured:
        if name in seen or name not in observed:
            continue
        seen.add(name)
        generation = observed[name]
        if name not in snapshot:
            entries.append(GenerationChange(name, ChangeKind.ADDED, None, generation))
        elif snapshot[name] != generation:
            entries.append(
                GenerationChange(name, ChangeKind.UPDATED, snapshot[name], generation)
            )
        else:
            entries.append(
                GenerationChange(name, ChangeKind.UNCHANGED, generation, generation)
            )

    return GenerationDiff(tuple(entries))
