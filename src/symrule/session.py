"""Session: the immutable aggregate that owns memory, rules, agenda and tokens."""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from symrule.authoring.sources import compile_sources
from symrule.config import SessionOptions, build_options
from symrule.engine.actions import ActionContext, execute_action
from symrule.engine.agenda import build_agenda
from symrule.engine.memory import WorkingMemory
from symrule.errors import ConfigurationError, ContractViolationError
from symrule.ir.effects import MEMORY_EFFECTS, PASSTHROUGH_EFFECTS, Assert, Effects, Retract, Upsert
from symrule.ir.facts import FactKey
from symrule.ir.types import Activation, Rule, Token
from symrule.observability import (
    EVENT_ACTIVATION_FIRE,
    EVENT_MEMORY_ASSERT,
    EVENT_MEMORY_RETRACT,
    EVENT_MEMORY_UPSERT,
    elapsed_ms,
    get_logger,
    notify,
)


logger = get_logger("symrule.session")

_ASSERT = "assert"
_RETRACT = "retract"
_UPSERT = "upsert"

_MEMORY_EVENTS = {
    _ASSERT: EVENT_MEMORY_ASSERT,
    _RETRACT: EVENT_MEMORY_RETRACT,
    _UPSERT: EVENT_MEMORY_UPSERT,
}

_COUNTERS = {
    _ASSERT: "asserted",
    _RETRACT: "retracted",
    _UPSERT: "upserted",
}


class SessionState(str, Enum):
    IDLE = "idle"
    READY = "ready"


@dataclass(frozen=True, eq=False, repr=False)
class Session:
    """A rule session. Every operation returns a new session.

    API:
        Session.new(rules, options)  build from rule sources
        session.assert_fact(fact)    insert unless the identity exists
        session.retract(key|fact)    remove by identity
        session.upsert(fact)         insert or replace when different
        session.step()               fire the top activation
        session.run(max_steps)       step until idle or out of budget
        session.agenda()             pending activations, in firing order
        session.facts()              facts in working memory
        session.metrics()            counters and sizes
    """

    rules: tuple[Rule, ...] = ()
    options: SessionOptions = field(default_factory=SessionOptions)
    memory: WorkingMemory = field(default_factory=WorkingMemory)
    pending: tuple[Activation, ...] = ()
    tokens: frozenset[Token] = frozenset()
    once_tokens: frozenset[Token] = frozenset()
    counters: Mapping[str, int] = field(default_factory=dict)
    last_effects: tuple[Any, ...] = ()
    rule_index: Mapping[str, Rule] = field(default_factory=dict)

    @classmethod
    def new(
        cls,
        rules: Any = None,
        options: SessionOptions | Mapping[str, Any] | None = None,
        **overrides: Any,
    ) -> "Session":
        """Build a session. Rules may also be passed as the ``rules`` entry of an options mapping."""
        if isinstance(options, Mapping) and "rules" in options:
            options = dict(options)
            option_rules = options.pop("rules")
            if rules is not None and option_rules is not None:
                raise ConfigurationError("rules given both as an argument and as an option.")
            if rules is None:
                rules = option_rules
        opts = build_options(options, **overrides)
        compiled = compile_sources(rules)
        index: dict[str, Rule] = {}
        for rule in compiled:
            if rule.name in index:
                raise ConfigurationError(f"Duplicate rule name: {rule.name}")
            index[rule.name] = rule
        return cls(rules=tuple(compiled), options=opts, rule_index=index)

    def assert_fact(self, fact: Any) -> "Session":
        return self._mutate(_ASSERT, fact)

    def retract(self, key_or_fact: Any) -> "Session":
        return self._mutate(_RETRACT, key_or_fact)

    def upsert(self, fact: Any) -> "Session":
        return self._mutate(_UPSERT, fact)

    def _mutate(self, op: str, value: Any) -> "Session":
        """Apply one memory operation and rebuild the agenda; tokens are kept."""
        metadata: dict[str, Any] = {}
        if op == _ASSERT:
            memory, changed = self.memory.assert_fact(value)
        elif op == _RETRACT:
            memory, changed = self.memory.retract(value)
        elif op == _UPSERT:
            inserted = value not in self.memory
            memory, changed = self.memory.upsert(value)
            metadata["inserted" if inserted else "updated"] = True
        else:  # pragma: no cover - internal
            raise ContractViolationError(f"Unknown memory operation: {op}")

        counters = self.counters
        if changed:
            counters = _bump(counters, _COUNTERS[op])
            metadata["key"] = str(changed[0])
            notify(self.options.observer, _MEMORY_EVENTS[op], {}, metadata)
        return replace(self, memory=memory, counters=counters)._rebuild()

    def _rebuild(self) -> "Session":
        agenda = build_agenda(self.rules, self.memory, self.tokens, self.once_tokens, self.options)
        return replace(self, pending=agenda, counters=_bump(self.counters, "agenda_builds"))

    def step(self) -> tuple["Session", Optional[Activation]]:
        """Fire the highest-priority activation; ``(self, None)`` when idle."""
        if not self.pending:
            return self, None
        activation, rest = self.pending[0], self.pending[1:]
        fired, effects = replace(self, pending=rest)._fire(activation)
        rebuilt = fired._rebuild()
        return replace(rebuilt, last_effects=tuple(effects)), activation

    def run(self, max_steps: Optional[int] = None) -> tuple["Session", list[Activation]]:
        """Step until idle or until ``max_steps`` activations have fired."""
        budget = self.options.max_steps if max_steps is None else max_steps
        if budget is not None and budget < 0:
            raise ValueError("max_steps must be non-negative")
        session = self
        fired: list[Activation] = []
        while budget is None or len(fired) < budget:
            session, activation = session.step()
            if activation is None:
                break
            fired.append(activation)
        return session, fired

    def _fire(self, activation: Activation) -> tuple["Session", list[Any]]:
        t0 = time.perf_counter()
        rule = self.rule_index.get(activation.rule)
        if rule is None:
            raise ContractViolationError(
                f"Agenda references unknown rule '{activation.rule}'."
            )
        context = ActionContext(session=self, binding=dict(activation.binding))
        effects = _known_effects(execute_action(rule, context))

        once_tokens = self.once_tokens
        if rule.once:
            once_tokens = once_tokens | {activation.token}
        session = replace(
            self,
            tokens=self.tokens | {activation.token},
            once_tokens=once_tokens,
            counters=_bump(self.counters, "fired"),
        )

        if self.options.pure:
            applied = effects
        else:
            session, applied = session._apply_effects(effects)

        logger.debug("activation_fired", rule=rule.name, effects=len(applied))
        notify(
            self.options.observer,
            EVENT_ACTIVATION_FIRE,
            {"duration_ms": elapsed_ms(t0)},
            {"rule": rule.name, "effects": len(applied), "pure": self.options.pure},
        )
        return session, applied

    def apply(self, effects: Effects | Iterable[Any]) -> tuple["Session", list[Any]]:
        """Interpret effects against this session, e.g. ones returned in pure mode."""
        return self._apply_effects(list(effects))

    def _apply_effects(self, effects: list[Any]) -> tuple["Session", list[Any]]:
        session = self
        applied: list[Any] = []
        for effect in _known_effects(effects):
            if isinstance(effect, Assert):
                session = session._mutate(_ASSERT, effect.fact)
            elif isinstance(effect, Retract):
                session = session._mutate(_RETRACT, effect.target)
            elif isinstance(effect, Upsert):
                session = session._mutate(_UPSERT, effect.fact)
            applied.append(effect)
        if applied:
            session = replace(session, counters=_bump(session.counters, "effects", len(applied)))
        return session, applied

    @property
    def state(self) -> SessionState:
        return SessionState.READY if self.pending else SessionState.IDLE

    def agenda(self) -> list[Activation]:
        return list(self.pending)

    def facts(self) -> list[Any]:
        return self.memory.facts()

    def fact(self, key: FactKey) -> Optional[Any]:
        return self.memory.get(key)

    def metrics(self) -> dict[str, int]:
        metrics = {name: 0 for name in ("asserted", "retracted", "upserted", "agenda_builds", "fired", "effects")}
        metrics.update(self.counters)
        metrics.update(
            facts=len(self.memory),
            agenda=len(self.pending),
            tokens=len(self.tokens),
            once_tokens=len(self.once_tokens),
        )
        return metrics

    def __repr__(self) -> str:
        return (
            f"Session(rules={len(self.rules)}, facts={len(self.memory)}, "
            f"agenda={len(self.pending)}, state={self.state.value})"
        )


def _known_effects(values: Iterable[Any]) -> list[Any]:
    """Keep effect values; anything else is dropped with a warning."""
    effects: list[Any] = []
    for value in values:
        if isinstance(value, MEMORY_EFFECTS + PASSTHROUGH_EFFECTS):
            effects.append(value)
        else:
            logger.warning("effect_dropped", value=repr(value))
    return effects


def _bump(counters: Mapping[str, int], name: str, by: int = 1) -> dict[str, int]:
    updated = dict(counters)
    updated[name] = updated.get(name, 0) + by
    return updated
