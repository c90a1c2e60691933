"""Pattern combinators: build ``Fact -> Optional[Binding]`` matchers from field terms.

A pattern selects facts by kind and describes their fields with terms:

- ``Var("x")`` binds the field value to ``x`` (or checks it when ``x`` is
  already bound inside the same pattern);
- ``ANY`` accepts any value but requires the field to exist;
- a mapping is a nested pattern over the field value;
- anything else is compared with ``==``.

Example::

    pattern(Order, id=Var("id"), total=Var("total"), where=lambda b: b["total"] > 1000)
    pattern("user", {"user": {"status": "vip", "id": Var("user_id")}})
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

from symrule.errors import RuleDefinitionError
from symrule.ir.facts import fact_kind
from symrule.ir.types import Binding, Guard, Pattern


@dataclass(frozen=True)
class Var:
    name: str

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise RuleDefinitionError("Var name must be a non-empty string.")


class _AnyValue:
    def __repr__(self) -> str:
        return "ANY"


ANY = _AnyValue()

_NOT_FOUND = object()


def pattern(
    kind: Any = None,
    fields: Optional[Mapping[str, Any]] = None,
    *,
    where: Optional[Guard] = None,
    bind: Optional[str] = None,
    **field_terms: Any,
) -> Pattern:
    """Compile a pattern.

    Args:
        kind: a class (``isinstance`` check), a tuple of classes, a kind
            string (compared with ``fact_kind``) or None for any fact.
        fields: field terms, for field names that clash with keywords here.
        where: guard over the binding unified so far.
        bind: variable that receives the whole fact.
    """
    _check_kind(kind)
    if bind is not None and (not isinstance(bind, str) or not bind):
        raise RuleDefinitionError("pattern bind must be a non-empty string.")
    terms: dict[str, Any] = dict(fields or {})
    terms.update(field_terms)
    _check_terms(terms)
    return Pattern(matcher=_build_matcher(kind, terms, bind), guard=where)


def pattern_variables(terms: Mapping[str, Any]) -> set[str]:
    """Variable names bound by a term mapping, nested mappings included."""
    names: set[str] = set()
    for term in terms.values():
        if isinstance(term, Var):
            names.add(term.name)
        elif isinstance(term, Mapping):
            names |= pattern_variables(term)
    return names


def _check_kind(kind: Any) -> None:
    if kind is None or isinstance(kind, (str, type)):
        return
    if isinstance(kind, tuple) and kind and all(isinstance(k, type) for k in kind):
        return
    raise RuleDefinitionError(f"pattern kind must be a class, kind string or None, got {kind!r}.")


def _check_terms(terms: Mapping[str, Any]) -> None:
    for name, term in terms.items():
        if not isinstance(name, str) or not name:
            raise RuleDefinitionError("pattern field names must be non-empty strings.")
        if isinstance(term, Mapping):
            _check_terms(term)


def _build_matcher(kind: Any, terms: Mapping[str, Any], bind: Optional[str]):
    def matcher(fact: Any) -> Optional[Binding]:
        if not _kind_matches(kind, fact):
            return None
        binding: Binding = {}
        if not _match_fields(terms, fact, binding):
            return None
        if bind is not None:
            if bind in binding and binding[bind] != fact:
                return None
            binding[bind] = fact
        return binding

    return matcher


def _kind_matches(kind: Any, fact: Any) -> bool:
    if kind is None:
        return True
    if isinstance(kind, str):
        return fact_kind(fact) == kind
    return isinstance(fact, kind)


def _field(value: Any, name: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(name, _NOT_FOUND)
    return getattr(value, name, _NOT_FOUND)


def _match_fields(terms: Mapping[str, Any], value: Any, binding: Binding) -> bool:
    for name, term in terms.items():
        field_value = _field(value, name)
        if field_value is _NOT_FOUND:
            return False
        if not _match_term(term, field_value, binding):
            return False
    return True


def _match_term(term: Any, value: Any, binding: Binding) -> bool:
    if isinstance(term, Var):
        if term.name in binding:
            return binding[term.name] == value
        binding[term.name] = value
        return True
    if term is ANY:
        return True
    if isinstance(term, Mapping):
        return _match_fields(term, value, binding)
    return term == value
