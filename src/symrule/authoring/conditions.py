"""Condition atoms for declarative guards.

An atom is ``[op, lhs, rhs]`` where each side is a ``"$var"`` reference or a
literal, e.g. ``["gt", "$total", 1000]`` or ``["in", "$country", ["DE", "FR"]]``.
"""

from __future__ import annotations

import operator
from typing import Any, Callable, Mapping, Optional, Sequence

from symrule.errors import RuleDefinitionError
from symrule.ir.types import Guard


_OPS: dict[str, Callable[[Any, Any], bool]] = {
    "eq": operator.eq,
    "ne": operator.ne,
    "gt": operator.gt,
    "ge": operator.ge,
    "lt": operator.lt,
    "le": operator.le,
    "in": lambda lhs, rhs: lhs in rhs,
    "not_in": lambda lhs, rhs: lhs not in rhs,
    "contains": lambda lhs, rhs: rhs in lhs,
}

CONDITION_OPS = tuple(_OPS)


def is_var_ref(value: Any) -> bool:
    return isinstance(value, str) and value.startswith("$") and value[1:].isidentifier()


def var_name(value: str) -> str:
    return value[1:]


def unescape(value: Any) -> Any:
    """``"$$text"`` stands for the literal string ``"$text"``."""
    if isinstance(value, str) and value.startswith("$$"):
        return value[1:]
    return value


def validate_condition(atom: Sequence[Any]) -> tuple[str, Any, Any]:
    if isinstance(atom, (str, bytes)) or not isinstance(atom, Sequence) or len(atom) != 3:
        raise RuleDefinitionError(f"condition must be [op, lhs, rhs], got {atom!r}.")
    op, lhs, rhs = atom
    if op not in _OPS:
        raise RuleDefinitionError(
            f"unsupported condition op: {op!r} (expected one of {', '.join(CONDITION_OPS)})."
        )
    if not is_var_ref(lhs) and not is_var_ref(rhs):
        raise RuleDefinitionError(f"{op} condition requires at least one variable side.")
    return op, lhs, rhs


def condition_variables(atoms: Sequence[Sequence[Any]]) -> set[str]:
    names: set[str] = set()
    for atom in atoms:
        _, lhs, rhs = validate_condition(atom)
        for side in (lhs, rhs):
            if is_var_ref(side):
                names.add(var_name(side))
    return names


def _resolve(binding: Mapping[str, Any], term: Any) -> Any:
    if is_var_ref(term):
        return binding[var_name(term)]
    return unescape(term)


def compile_condition(atom: Sequence[Any]) -> Guard:
    op, lhs, rhs = validate_condition(atom)
    fn = _OPS[op]

    def guard(binding: Mapping[str, Any]) -> bool:
        return bool(fn(_resolve(binding, lhs), _resolve(binding, rhs)))

    return guard


def compile_conditions(atoms: Sequence[Sequence[Any]]) -> Optional[Guard]:
    """AND of all atoms; None for an empty list."""
    guards = [compile_condition(atom) for atom in atoms]
    if not guards:
        return None
    if len(guards) == 1:
        return guards[0]

    def guard(binding: Mapping[str, Any]) -> bool:
        return all(g(binding) for g in guards)

    return guard


def conditions(*atoms: Sequence[Any]) -> Guard:
    """Guard built from condition atoms, for use as ``pattern(where=...)``."""
    guard = compile_conditions(list(atoms))
    if guard is None:
        raise RuleDefinitionError("conditions() requires at least one atom.")
    return guard
