"""symrule: a deterministic forward-chaining rule engine."""

from symrule.authoring import (
    ANY,
    RuleBookSpec,
    RuleSet,
    RuleSpec,
    Var,
    compile_rules,
    conditions,
    load_rulebook,
    pattern,
    rule,
)
from symrule.config import SessionOptions
from symrule.engine.actions import ActionContext
from symrule.errors import (
    ActionError,
    ConfigurationError,
    ContractViolationError,
    RuleDefinitionError,
    SymruleError,
)
from symrule.ir import (
    Activation,
    Assert,
    Effect,
    Effects,
    Emit,
    FactKey,
    Log,
    Pattern,
    Retract,
    Rule,
    RuleMode,
    Set,
    Token,
    Upsert,
    fact_key,
)
from symrule.observability import EventRecorder, configure_logging, get_logger
from symrule.session import Session, SessionState

__version__ = "0.1.0"
__all__ = [
    "ANY",
    "RuleBookSpec",
    "RuleSet",
    "RuleSpec",
    "Var",
    "compile_rules",
    "conditions",
    "load_rulebook",
    "pattern",
    "rule",
    "SessionOptions",
    "ActionContext",
    "ActionError",
    "ConfigurationError",
    "ContractViolationError",
    "RuleDefinitionError",
    "SymruleError",
    "Activation",
    "Assert",
    "Effect",
    "Effects",
    "Emit",
    "FactKey",
    "Log",
    "Pattern",
    "Retract",
    "Rule",
    "RuleMode",
    "Set",
    "Token",
    "Upsert",
    "fact_key",
    "EventRecorder",
    "configure_logging",
    "get_logger",
    "Session",
    "SessionState",
]
