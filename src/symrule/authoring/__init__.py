"""Authoring layer: pattern combinators, @rule, RuleSet and rule documents."""

from symrule.authoring.conditions import compile_conditions, conditions
from symrule.authoring.patterns import ANY, Var, pattern
from symrule.authoring.rules import RuleSet, rule
from symrule.authoring.sources import compile_rules, compile_sources
from symrule.authoring.documents import (
    PatternSpec,
    RuleBookSpec,
    RuleSpec,
    compile_rulebook,
    load_rulebook,
    parse_rulebook,
)

__all__ = [
    "compile_conditions",
    "conditions",
    "ANY",
    "Var",
    "pattern",
    "RuleSet",
    "rule",
    "compile_rules",
    "compile_sources",
    "PatternSpec",
    "RuleBookSpec",
    "RuleSpec",
    "compile_rulebook",
    "load_rulebook",
    "parse_rulebook",
]
