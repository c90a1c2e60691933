"""Pattern matching and unification over working memory."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Sequence

from symrule.ir.types import Binding, Pattern, Rule
from symrule.observability import get_logger


logger = get_logger("symrule.engine.matcher")


def unify(left: Mapping[str, Any], right: Mapping[str, Any]) -> Optional[Binding]:
    """Merge two bindings; None when a shared variable disagrees."""
    if not left:
        return dict(right)
    if not right:
        return dict(left)
    merged = dict(left)
    for name, value in right.items():
        if name in merged:
            if merged[name] != value:
                return None
        else:
            merged[name] = value
    return merged


def match_pattern(pattern: Pattern, fact: Any, binding: Mapping[str, Any]) -> Optional[Binding]:
    """Match one fact under ``binding``; None on mismatch, conflict or failed guard."""
    try:
        partial = pattern.matcher(fact)
    except Exception as exc:  # noqa: BLE001 - matchers fail closed
        logger.debug("matcher_failed", fact=repr(fact), error=repr(exc))
        return None
    if not isinstance(partial, Mapping):
        return None
    merged = unify(binding, partial)
    if merged is None:
        return None
    if pattern.guard is not None and not guard_passes(pattern, merged):
        return None
    return merged


def guard_passes(pattern: Pattern, binding: Mapping[str, Any]) -> bool:
    try:
        return bool(pattern.guard(binding))
    except Exception as exc:  # noqa: BLE001 - guards fail closed
        logger.debug("guard_failed", binding=repr(dict(binding)), error=repr(exc))
        return False


def extend_bindings(
    pattern: Pattern,
    facts: Sequence[Any],
    bindings: Iterable[Mapping[str, Any]],
) -> list[Binding]:
    out: list[Binding] = []
    for binding in bindings:
        for fact in facts:
            merged = match_pattern(pattern, fact, binding)
            if merged is not None:
                out.append(merged)
    return out


def match_patterns(patterns: Sequence[Pattern], facts: Sequence[Any]) -> list[Binding]:
    """Join ``patterns`` left to right against ``facts``."""
    bindings: list[Binding] = [{}]
    for pattern in patterns:
        bindings = extend_bindings(pattern, facts, bindings)
        if not bindings:
            return []
    return bindings


def match_rule(rule: Rule, facts: Sequence[Any]) -> list[Binding]:
    return match_patterns(rule.patterns, facts)
