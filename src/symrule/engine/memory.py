"""Working memory: an identity-indexed, copy-on-write fact store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from symrule.ir.facts import FactKey, fact_key, freeze


_ABSENT = object()


@dataclass(frozen=True)
class WorkingMemory:
    """At most one fact per identity. Mutators return ``(memory, changed_keys)``."""

    by_key: dict[FactKey, Any] = field(default_factory=dict)

    def assert_fact(self, fact: Any) -> tuple["WorkingMemory", list[FactKey]]:
        key = fact_key(fact)
        if key in self.by_key:
            return self, []
        return self._put(key, fact), [key]

    def upsert(self, fact: Any) -> tuple["WorkingMemory", list[FactKey]]:
        key = fact_key(fact)
        existing = self.by_key.get(key, _ABSENT)
        if existing is not _ABSENT and existing == fact:
            return self, []
        return self._put(key, fact), [key]

    def retract(self, key_or_fact: Any) -> tuple["WorkingMemory", list[FactKey]]:
        """Remove by ``FactKey``, ``(kind, id)`` pair or fact value."""
        key = self._target_key(key_or_fact)
        if key not in self.by_key:
            return self, []
        by_key = dict(self.by_key)
        del by_key[key]
        return WorkingMemory(by_key=by_key), [key]

    def _target_key(self, target: Any) -> FactKey:
        if isinstance(target, tuple) and len(target) == 2 and isinstance(target[0], str):
            key = FactKey(kind=target[0], ref=freeze(target[1]))
            if key in self.by_key:
                return key
        return fact_key(target)

    def _put(self, key: FactKey, fact: Any) -> "WorkingMemory":
        by_key = dict(self.by_key)
        by_key[key] = fact
        return WorkingMemory(by_key=by_key)

    def get(self, key: FactKey) -> Optional[Any]:
        return self.by_key.get(key)

    def facts(self) -> list[Any]:
        return list(self.by_key.values())

    def keys(self) -> list[FactKey]:
        return list(self.by_key.keys())

    def __contains__(self, key_or_fact: Any) -> bool:
        return fact_key(key_or_fact) in self.by_key

    def __iter__(self) -> Iterator[Any]:
        return iter(self.by_key.values())

    def __len__(self) -> int:
        return len(self.by_key)

