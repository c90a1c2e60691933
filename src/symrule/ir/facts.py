"""Fact identity: kinds, ids, canonical content digests and frozen bindings."""

from __future__ import annotations

import dataclasses
import enum
import hashlib
import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Hashable


_KIND_KEY = "kind"
_ID_KEY = "id"


def sha256_token(data: bytes) -> str:
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


def fact_kind(fact: Any) -> str:
    """Kind of a fact: a mapping's ``kind`` entry, else the class name."""
    if isinstance(fact, Mapping):
        kind = fact.get(_KIND_KEY)
        if kind is not None:
            return str(kind)
    return type(fact).__name__


def fact_id(fact: Any) -> Any:
    """The fact's ``id`` field, or None when it has none."""
    if isinstance(fact, Mapping):
        return fact.get(_ID_KEY)
    value = getattr(fact, _ID_KEY, None)
    if callable(value):
        return None
    return value


def canonical_payload(value: Any) -> Any:
    """Render a value into JSON-compatible data with a stable layout."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, enum.Enum):
        return {"__enum__": f"{type(value).__name__}.{value.name}"}
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            "__kind__": type(value).__name__,
            "fields": {
                f.name: canonical_payload(getattr(value, f.name))
                for f in dataclasses.fields(value)
            },
        }
    if isinstance(value, Mapping):
        items = [[canonical_payload(k), canonical_payload(v)] for k, v in value.items()]
        items.sort(key=_canonical_json)
        return {"__map__": items}
    if isinstance(value, (set, frozenset)):
        members = [canonical_payload(v) for v in value]
        members.sort(key=_canonical_json)
        return {"__set__": members}
    if isinstance(value, (list, tuple)):
        return [canonical_payload(v) for v in value]
    if isinstance(value, bytes):
        return {"__bytes__": value.hex()}
    return {"__repr__": repr(value)}


def _canonical_json(payload: Any) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def content_digest(value: Any) -> str:
    return sha256_token(_canonical_json(canonical_payload(value)).encode("utf-8"))


def freeze(value: Any) -> Hashable:
    """Return a hashable stand-in for ``value`` that compares structurally."""
    try:
        hash(value)
    except TypeError:
        pass
    else:
        return value
    if isinstance(value, Mapping):
        items = [(freeze(k), freeze(v)) for k, v in value.items()]
        return ("__map__", tuple(sorted(items, key=repr)))
    if isinstance(value, (set, frozenset)):
        return frozenset(freeze(v) for v in value)
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return (
            type(value).__name__,
            tuple((f.name, freeze(getattr(value, f.name))) for f in dataclasses.fields(value)),
        )
    return ("__digest__", content_digest(value))


@dataclass(frozen=True)
class FactKey:
    """Identity of a fact in working memory."""

    kind: str
    ref: Hashable
    by_content: bool = False

    def __str__(self) -> str:
        return f"{self.kind}:{self.ref}"


def fact_key(fact: Any) -> FactKey:
    """Identity ``(kind, id)`` when the fact has an id, else its content digest."""
    if isinstance(fact, FactKey):
        return fact
    kind = fact_kind(fact)
    ident = fact_id(fact)
    if ident is not None:
        return FactKey(kind=kind, ref=freeze(ident))
    return FactKey(kind=kind, ref=content_digest(fact), by_content=True)
