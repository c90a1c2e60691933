"""Matching, agenda construction, working memory and action execution."""

from symrule.engine.actions import ActionContext, execute_action, normalize_effects
from symrule.engine.agenda import build_agenda, filter_fired, resolve_conflicts
from symrule.engine.matcher import match_patterns, match_rule, unify
from symrule.engine.memory import WorkingMemory

__all__ = [
    "ActionContext",
    "execute_action",
    "normalize_effects",
    "build_agenda",
    "filter_fired",
    "resolve_conflicts",
    "match_patterns",
    "match_rule",
    "unify",
    "WorkingMemory",
]
