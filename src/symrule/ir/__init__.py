"""Rule IR: fact identity, effects, patterns, rules and activations."""

from symrule.ir.effects import (
    Assert,
    Effect,
    Effects,
    Emit,
    Log,
    Retract,
    Set,
    Upsert,
)
from symrule.ir.facts import FactKey, content_digest, fact_id, fact_key, fact_kind, freeze
from symrule.ir.types import Activation, Binding, Pattern, Rule, RuleMode, Token

__all__ = [
    "Assert",
    "Effect",
    "Effects",
    "Emit",
    "Log",
    "Retract",
    "Set",
    "Upsert",
    "FactKey",
    "content_digest",
    "fact_id",
    "fact_key",
    "fact_kind",
    "freeze",
    "Activation",
    "Binding",
    "Pattern",
    "Rule",
    "RuleMode",
    "Token",
]
