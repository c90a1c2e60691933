"""Rule sources: everything ``Session.new(rules=...)`` can compile."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from types import ModuleType
from typing import Any

from symrule.authoring.rules import RuleSet, rule_definition, rule_from_function
from symrule.authoring.documents import RuleBookSpec, RuleSpec, compile_rulebook, load_rulebook
from symrule.errors import ConfigurationError
from symrule.ir.types import Rule


def compile_rules(source: Any) -> list[Rule]:
    """Compile one rule source; a source without rules is a configuration error.

    Accepted sources: a ``Rule``; a ``@rule`` function; a ``RuleSet`` class or
    instance; a module holding ``@rule`` functions; a rule document (model,
    mapping or JSON path); a list or tuple of sources.
    """
    rules = _compile(source)
    if not rules:
        raise ConfigurationError(f"{_describe(source)} does not define any rules.")
    return rules


def compile_sources(sources: Any) -> list[Rule]:
    """Compile ``Session.new``'s ``rules`` argument; None means no rules."""
    if sources is None:
        return []
    if isinstance(sources, (list, tuple)):
        compiled: list[Rule] = []
        for source in sources:
            compiled.extend(compile_rules(source))
        return compiled
    return compile_rules(sources)


def _compile(source: Any) -> list[Rule]:
    if isinstance(source, Rule):
        return [source]
    if isinstance(source, type) and issubclass(source, RuleSet):
        return source().rules()
    if isinstance(source, RuleSet):
        return source.rules()
    if isinstance(source, ModuleType):
        return _module_rules(source)
    if isinstance(source, (RuleBookSpec, RuleSpec, Mapping)):
        return compile_rulebook(source)
    if isinstance(source, (str, Path)):
        return load_rulebook(source)
    if isinstance(source, (list, tuple)):
        compiled: list[Rule] = []
        for item in source:
            compiled.extend(compile_rules(item))
        return compiled
    if callable(source) and rule_definition(source) is not None:
        return [rule_from_function(source)]
    raise ConfigurationError(f"Unsupported rule source: {_describe(source)}")


def _module_rules(module: ModuleType) -> list[Rule]:
    return [
        rule_from_function(value)
        for value in vars(module).values()
        if callable(value)
        and rule_definition(value) is not None
        and getattr(value, "__module__", None) == module.__name__
    ]


def _describe(source: Any) -> str:
    if isinstance(source, ModuleType):
        return f"module {source.__name__}"
    if isinstance(source, type):
        return f"class {source.__qualname__}"
    return f"{type(source).__name__} {source!r}"[:200]
