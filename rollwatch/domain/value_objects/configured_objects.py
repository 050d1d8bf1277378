"""
Configured Object Index

Architectural Intent:
- Turns apply output lines into (kind, name) discoveries
- The line-matching rule lives in parse_applied_object so it can be tested
  against literal kubectl output without running anything
- The builder accumulates discoveries while apply streams; freeze() yields
  the immutable index the rest of the pipeline reads
"""

from __future__ import annotations
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterator, Mapping, Optional

# deployment/web, deployment.apps/web, service/api-gateway
_SLASH_FORM_RE = re.compile(
    r"(?P<kind>[A-Za-z0-9_-]+)(?:\.[A-Za-z0-9.-]+)?/(?P<name>[A-Za-z0-9][A-Za-z0-9._-]*)"
)

# deployment "web" configured  (kubectl without -o name)
_QUOTED_FORM_RE = re.compile(
    r'^(?P<kind>[A-Za-z0-9_-]+)(?:\.[A-Za-z0-9.-]+)?\s+"(?P<name>[^"]+)"'
)


@dataclass(frozen=True)
class AppliedObject:
    kind: str
    name: str


def parse_applied_object(line: str) -> Optional[AppliedObject]:
    """Extract the applied object from one line of kubectl apply output."""
    text = line.strip()
    if not text:
        return None
    match = _SLASH_FORM_RE.search(text) or _QUOTED_FORM_RE.search(text)
    if not match:
        return None
    return AppliedObject(kind=match.group("kind").lower(), name=match.group("name"))


class ConfiguredObjectIndex:
    """Frozen kind -> names mapping, names kept in discovery order."""

    __slots__ = ("_objects",)

    def __init__(self, objects: Optional[Mapping[str, tuple[str, ...]]] = None) -> None:
        self._objects = MappingProxyType(
            {kind: tuple(names) for kind, names in (objects or {}).items()}
        )

    def names(self, kind: str) -> tuple[str, ...]:
        return self._objects.get(kind, ())

    @property
    def deployments(self) -> tuple[str, ...]:
        return self.names("deployment")

    @property
    def services(self) -> tuple[str, ...]:
        return self.names("service")

    def kinds(self) -> tuple[str, ...]:
        return tuple(self._objects)

    def __getitem__(self, kind: str) -> tuple[str, ...]:
        return self.names(kind)

    def __iter__(self) -> Iterator[str]:
        return iter(self._objects)

    def __len__(self) -> int:
        return sum(len(names) for names in self._objects.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConfiguredObjectIndex):
            return NotImplemented
        return dict(self._objects) == dict(other._objects)

    def __repr__(self) -> str:
        return f"ConfiguredObjectIndex({dict(self._objects)!r})"


class ConfiguredObjectIndexBuilder:
    def __init__(self) -> None:
        self._objects: dict[str, list[str]] = {}
        self._frozen = False

    def feed(self, line: str) -> Optional[AppliedObject]:
        """Record the object named on ``line``, if any, and return it."""
        if self._frozen:
            raise ValueError("Index already frozen")
        applied = parse_applied_object(line)
        if applied is not None:
            names = self._objects.setdefault(applied.kind, [])
            if applied.name not in names:
                names.append(applied.name)
        return applied

    def freeze(self) -> ConfiguredObjectIndex:
        self._frozen = True
        return ConfiguredObjectIndex(
            {kind: tuple(names) for kind, names in self._objects.items()}
        )
