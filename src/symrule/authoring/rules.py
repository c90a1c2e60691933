"""``@rule`` decorator and ``RuleSet`` for rules written as Python functions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from symrule.errors import RuleDefinitionError
from symrule.ir.types import Action, Pattern, Rule, RuleMode


RULE_ATTR = "__symrule_rule__"


@dataclass(frozen=True)
class RuleDef:
    """Rule metadata attached to an action function by ``@rule``."""

    name: Optional[str]
    when: tuple[Pattern, ...]
    salience: int = 0
    once: bool = False
    mode: RuleMode | str | None = None
    throttle: Any = None

    def build(self, action: Action, default_name: str) -> Rule:
        return Rule(
            name=self.name or default_name,
            patterns=self.when,
            action=action,
            salience=self.salience,
            once=self.once,
            mode=self.mode,
            throttle=self.throttle,
        )


def rule(
    name: Optional[str] = None,
    *,
    when: Sequence[Pattern],
    salience: int = 0,
    once: bool = False,
    mode: RuleMode | str | None = None,
    throttle: Any = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Declare the decorated function as a rule action.

    The rule name defaults to the function name. Patterns join in the order
    given; variables shared between patterns must unify.
    """
    if name is not None and (not isinstance(name, str) or not name):
        raise RuleDefinitionError("rule name must be a non-empty string.")
    patterns = tuple(when)
    for pat in patterns:
        if not isinstance(pat, Pattern):
            raise RuleDefinitionError("rule when= must contain Pattern objects; use pattern().")
    definition = RuleDef(
        name=name,
        when=patterns,
        salience=salience,
        once=once,
        mode=mode,
        throttle=throttle,
    )

    def decorate(fn: Callable[..., Any]) -> Callable[..., Any]:
        setattr(fn, RULE_ATTR, definition)
        return fn

    return decorate


def rule_definition(obj: Any) -> Optional[RuleDef]:
    definition = getattr(obj, RULE_ATTR, None)
    return definition if isinstance(definition, RuleDef) else None


def rule_from_function(fn: Callable[..., Any]) -> Rule:
    definition = rule_definition(fn)
    if definition is None:
        raise RuleDefinitionError(f"{fn!r} is not decorated with @rule.")
    return definition.build(fn, getattr(fn, "__name__", "rule"))


class RuleSet:
    """A group of rules declared as ``@rule`` methods.

    Rules compile in definition order; a subclass inherits its bases' rules
    and keeps their position when it overrides one.

    Example::

        class FraudRules(RuleSet):
            @rule(when=[pattern(Payment, id=Var("payment_id"))], salience=10)
            def review(self, ctx):
                return ctx.emit("review", {"payment": ctx["payment_id"]})
    """

    def rules(self) -> list[Rule]:
        names: dict[str, None] = {}
        for klass in reversed(type(self).__mro__):
            for attr, value in vars(klass).items():
                if rule_definition(value) is not None:
                    names.setdefault(attr, None)
        compiled: list[Rule] = []
        for attr in names:
            bound = getattr(self, attr)
            definition = rule_definition(bound)
            if definition is None:
                continue
            compiled.append(definition.build(bound, attr))
        return compiled
