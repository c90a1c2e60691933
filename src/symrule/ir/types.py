"""Compiled rule IR: patterns, rules, tokens and activations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Hashable, Mapping, Optional

from symrule.errors import RuleDefinitionError
from symrule.ir.facts import freeze


Binding = dict[str, Any]
Matcher = Callable[[Any], Optional[Mapping[str, Any]]]
Guard = Callable[[Mapping[str, Any]], bool]
Action = Callable[[Any], Any]


class RuleMode(str, Enum):
    ONCE = "once"
    PER_FACT = "per_fact"


@dataclass(frozen=True)
class Pattern:
    """Matcher over one fact plus an optional guard over the unified binding."""

    matcher: Matcher
    guard: Optional[Guard] = None

    def __post_init__(self) -> None:
        if not callable(self.matcher):
            raise RuleDefinitionError("Pattern matcher must be callable.")
        if self.guard is not None and not callable(self.guard):
            raise RuleDefinitionError("Pattern guard must be callable or None.")


@dataclass(frozen=True, init=False)
class Rule:
    name: str
    patterns: tuple[Pattern, ...]
    action: Action
    salience: int = 0
    once: bool = False
    mode: RuleMode = RuleMode.PER_FACT
    throttle: Any = None

    def __init__(
        self,
        name: str,
        patterns: list[Pattern] | tuple[Pattern, ...],
        action: Action,
        salience: int = 0,
        once: bool = False,
        mode: RuleMode | str | None = None,
        throttle: Any = None,
    ) -> None:
        if not isinstance(name, str) or not name:
            raise RuleDefinitionError("Rule name must be a non-empty string.")
        patterns = tuple(patterns)
        if not patterns:
            raise RuleDefinitionError(f"Rule '{name}' must declare at least one pattern.")
        for pat in patterns:
            if not isinstance(pat, Pattern):
                raise RuleDefinitionError(f"Rule '{name}' patterns must be Pattern instances.")
        if not callable(action):
            raise RuleDefinitionError(f"Rule '{name}' action must be callable.")
        if not isinstance(salience, int) or isinstance(salience, bool):
            raise RuleDefinitionError(f"Rule '{name}' salience must be an int.")
        if mode is None:
            resolved = RuleMode.ONCE if once else RuleMode.PER_FACT
        else:
            try:
                resolved = RuleMode(mode)
            except ValueError as exc:
                raise RuleDefinitionError(
                    f"Rule '{name}' mode must be 'once' or 'per_fact', got {mode!r}."
                ) from exc
            if once and resolved is RuleMode.PER_FACT:
                raise RuleDefinitionError(
                    f"Rule '{name}' sets once=True but mode='per_fact'."
                )
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "patterns", patterns)
        object.__setattr__(self, "action", action)
        object.__setattr__(self, "salience", salience)
        object.__setattr__(self, "once", bool(once) or resolved is RuleMode.ONCE)
        object.__setattr__(self, "mode", resolved)
        object.__setattr__(self, "throttle", throttle)


@dataclass(frozen=True)
class Token:
    """Dedup identity of an activation: rule name plus frozen binding."""

    rule: str
    binding: Hashable

    @classmethod
    def of(cls, rule: str, binding: Mapping[str, Any]) -> "Token":
        return cls(rule=rule, binding=freeze(dict(binding)))


@dataclass(frozen=True)
class Activation:
    rule: str
    binding: Binding
    salience: int
    once: bool = False
    token: Token = field(default=None, compare=False)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if self.token is None:
            object.__setattr__(self, "token", Token.of(self.rule, self.binding))

    def __hash__(self) -> int:
        return hash(self.token)

    @property
    def sort_key(self) -> tuple[int, str]:
        return (-self.salience, self.rule)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule": self.rule,
            "binding": dict(self.binding),
            "salience": self.salience,
            "once": self.once,
        }
