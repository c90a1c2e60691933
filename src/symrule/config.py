"""Session options."""

from __future__ import annotations

import os
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from symrule.errors import ConfigurationError
from symrule.observability import Observer


_ENV_PREFIX = "SYMRULE_"
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}

Recency = Literal["lifo", "fifo"]


class SessionOptions(BaseModel):
    """Validated options held by every session."""

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    pure: bool = False
    recency: Recency = "lifo"
    max_steps: Optional[int] = Field(default=None, ge=0)
    observer: Optional[Any] = None

    @field_validator("observer")
    @classmethod
    def _observer_callable(cls, value: Any) -> Optional[Observer]:
        if value is not None and not callable(value):
            raise ValueError("observer must be callable")
        return value

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SessionOptions":
        """Build options from ``SYMRULE_PURE``, ``SYMRULE_RECENCY`` and ``SYMRULE_MAX_STEPS``."""
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        pure = env.get(f"{_ENV_PREFIX}PURE")
        if pure is not None:
            flag = pure.strip().lower()
            if flag in _TRUE_VALUES:
                values["pure"] = True
            elif flag in _FALSE_VALUES:
                values["pure"] = False
            else:
                raise ConfigurationError(f"{_ENV_PREFIX}PURE must be a boolean flag, got {pure!r}.")
        recency = env.get(f"{_ENV_PREFIX}RECENCY")
        if recency:
            values["recency"] = recency.strip().lower()
        max_steps = env.get(f"{_ENV_PREFIX}MAX_STEPS")
        if max_steps:
            try:
                values["max_steps"] = int(max_steps)
            except ValueError as exc:
                raise ConfigurationError(
                    f"{_ENV_PREFIX}MAX_STEPS must be an integer, got {max_steps!r}."
                ) from exc
        return build_options(values)


def build_options(
    options: SessionOptions | Mapping[str, Any] | None = None,
    **overrides: Any,
) -> SessionOptions:
    """Merge ``overrides`` into ``options`` and validate the result."""
    if options is None:
        base: dict[str, Any] = {}
    elif isinstance(options, SessionOptions):
        base = dict(options)
    elif isinstance(options, Mapping):
        base = dict(options)
    else:
        raise ConfigurationError(
            f"options must be SessionOptions or a mapping, got {type(options).__name__}."
        )
    base.update(overrides)
    try:
        return SessionOptions(**base)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid session options: {exc}") from exc
