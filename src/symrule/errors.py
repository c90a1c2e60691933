"""Custom exceptions for the rule engine."""

from __future__ import annotations


class SymruleError(Exception):
    """Base exception for rule engine failures."""


class ConfigurationError(SymruleError):
    """Raised when a session cannot be built from its rule sources or options."""


class RuleDefinitionError(SymruleError):
    """Raised when a rule, pattern or rule document is malformed."""


class ContractViolationError(SymruleError):
    """Raised when the agenda references a rule the session does not hold."""


class ActionError(SymruleError):
    """Raised when a rule action fails while firing an activation."""

    def __init__(self, rule: str, message: str) -> None:
        self.rule = rule
        super().__init__(f"Action for rule '{rule}' failed: {message}")
