"""Agenda construction: match every rule, drop fired tokens, order by salience."""

from __future__ import annotations

import time
from typing import AbstractSet, Iterable, Sequence

from symrule.config import SessionOptions
from symrule.engine.matcher import match_rule
from symrule.engine.memory import WorkingMemory
from symrule.ir.types import Activation, Rule, Token
from symrule.observability import EVENT_AGENDA_BUILD, elapsed_ms, get_logger, notify


logger = get_logger("symrule.engine.agenda")


def activations_for(rule: Rule, facts: Sequence[object]) -> list[Activation]:
    return [
        Activation(rule=rule.name, binding=binding, salience=rule.salience, once=rule.once)
        for binding in match_rule(rule, facts)
    ]


def filter_fired(
    activations: Iterable[Activation],
    tokens: AbstractSet[Token],
    once_tokens: AbstractSet[Token],
) -> list[Activation]:
    """Drop activations already fired, and every activation of a spent once rule."""
    spent_once_rules = {token.rule for token in once_tokens}
    return [
        act
        for act in activations
        if act.token not in tokens and not (act.once and act.rule in spent_once_rules)
    ]


def resolve_conflicts(activations: Iterable[Activation], options: SessionOptions) -> list[Activation]:
    """Order by ``(-salience, rule name)``; the sort is stable within a rule.

    ``options.recency`` ("lifo" or "fifo") is validated on the options but
    does not change the order yet.
    """
    return sorted(activations, key=lambda act: act.sort_key)


def build_agenda(
    rules: Sequence[Rule],
    memory: WorkingMemory,
    tokens: AbstractSet[Token],
    once_tokens: AbstractSet[Token],
    options: SessionOptions,
) -> tuple[Activation, ...]:
    t0 = time.perf_counter()
    facts = memory.facts()
    activations: list[Activation] = []
    for rule in rules:
        activations.extend(activations_for(rule, facts))
    agenda = tuple(resolve_conflicts(filter_fired(activations, tokens, once_tokens), options))
    duration_ms = elapsed_ms(t0)
    logger.debug("agenda_built", rules=len(rules), facts=len(facts), count=len(agenda))
    notify(
        options.observer,
        EVENT_AGENDA_BUILD,
        {"duration_ms": duration_ms},
        {"count": len(agenda), "facts": len(facts)},
    )
    return agenda
