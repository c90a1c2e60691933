"""Effect vocabulary returned by rule actions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable


class Effect:
    """Base class for effects."""

    op: str = ""

    def to_dict(self) -> dict[str, Any]:  # pragma: no cover - interface
        raise NotImplementedError


@dataclass(frozen=True)
class Assert(Effect):
    fact: Any
    op = "assert"

    def to_dict(self) -> dict[str, Any]:
        return {"op": self.op, "fact": self.fact}


@dataclass(frozen=True)
class Retract(Effect):
    """Retract by identity (``FactKey``) or by fact value."""

    target: Any
    op = "retract"

    def to_dict(self) -> dict[str, Any]:
        return {"op": self.op, "target": self.target}


@dataclass(frozen=True)
class Upsert(Effect):
    fact: Any
    op = "upsert"

    def to_dict(self) -> dict[str, Any]:
        return {"op": self.op, "fact": self.fact}


@dataclass(frozen=True)
class Emit(Effect):
    name: str
    payload: Any = None
    op = "emit"

    def to_dict(self) -> dict[str, Any]:
        return {"op": self.op, "name": self.name, "payload": self.payload}


@dataclass(frozen=True)
class Log(Effect):
    level: str
    message: str
    op = "log"

    def to_dict(self) -> dict[str, Any]:
        return {"op": self.op, "level": self.level, "message": self.message}


@dataclass(frozen=True)
class Set(Effect):
    """Key/value note for the host. The engine never interprets it."""

    key: str
    value: Any = None
    op = "set"

    def to_dict(self) -> dict[str, Any]:
        return {"op": self.op, "key": self.key, "value": self.value}


MEMORY_EFFECTS = (Assert, Retract, Upsert)
PASSTHROUGH_EFFECTS = (Emit, Log, Set)


@dataclass(frozen=True, init=False)
class Effects:
    """Explicit effect list returned by an action."""

    items: tuple[Any, ...]

    def __init__(self, items: Iterable[Any] = ()) -> None:
        object.__setattr__(self, "items", tuple(items))

    def __iter__(self):
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)
