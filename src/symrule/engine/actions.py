"""Action context, effect helpers and action invocation."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping

from symrule.errors import ActionError
from symrule.ir.effects import Assert, Effect, Effects, Emit, Log, Retract, Set, Upsert
from symrule.ir.types import Rule


@dataclass(frozen=True)
class ActionContext:
    """What an action sees: the session, its binding and the effects so far.

    Helpers return a new context with one more effect, so actions chain them::

        def then(ctx):
            return ctx.assert_fact(Decision(ctx.binding["id"])).emit("flagged", {})
    """

    session: Any
    binding: Mapping[str, Any]
    effects: tuple[Any, ...] = field(default_factory=tuple)

    def add(self, effect: Effect) -> "ActionContext":
        return replace(self, effects=self.effects + (effect,))

    def assert_fact(self, fact: Any) -> "ActionContext":
        return self.add(Assert(fact))

    def retract(self, key_or_fact: Any) -> "ActionContext":
        return self.add(Retract(key_or_fact))

    def upsert(self, fact: Any) -> "ActionContext":
        return self.add(Upsert(fact))

    def emit(self, name: str, payload: Any = None) -> "ActionContext":
        return self.add(Emit(name, payload))

    def log(self, level: str, message: str) -> "ActionContext":
        return self.add(Log(level, message))

    def set(self, key: str, value: Any) -> "ActionContext":
        return self.add(Set(key, value))

    def __getitem__(self, name: str) -> Any:
        return self.binding[name]


def normalize_effects(result: Any) -> list[Any]:
    """Turn an action's return value into an effect list.

    ``Effects`` wrappers are used as is; contexts (``ActionContext`` or any
    mapping) contribute their ``effects`` entry; ``None`` means no effects;
    lists and tuples are taken element-wise; anything else is one effect.
    """
    if isinstance(result, Effects):
        return list(result.items)
    if isinstance(result, ActionContext):
        return list(result.effects)
    if isinstance(result, Mapping):
        return list(result.get("effects") or ())
    if result is None:
        return []
    if isinstance(result, (list, tuple)):
        return list(result)
    return [result]


def execute_action(rule: Rule, context: ActionContext) -> list[Any]:
    try:
        result = rule.action(context)
    except Exception as exc:
        raise ActionError(rule.name, repr(exc)) from exc
    return normalize_effects(result)
