"""Structured logging and the best-effort observer hook."""

from __future__ import annotations

import logging
import sys
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Mapping, Optional

import structlog


Observer = Callable[[str, Mapping[str, Any], Mapping[str, Any]], None]

EVENT_MEMORY_ASSERT = "memory.assert"
EVENT_MEMORY_UPSERT = "memory.upsert"
EVENT_MEMORY_RETRACT = "memory.retract"
EVENT_AGENDA_BUILD = "agenda.build"
EVENT_ACTIVATION_FIRE = "activation.fire"


def configure_logging(
    level: str = "info",
    fmt: Literal["console", "json"] = "console",
) -> None:
    """Configure structlog on top of stdlib logging for the host process."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Structured logger backed by the stdlib logger ``name``.

    Level filtering stays with stdlib logging, so an unconfigured host only
    sees warnings and above.
    """
    return structlog.wrap_logger(
        logging.getLogger(name),
        wrapper_class=structlog.stdlib.BoundLogger,
    )


logger = get_logger("symrule.observability")


def notify(
    observer: Optional[Observer],
    event: str,
    measurements: Optional[Mapping[str, Any]] = None,
    metadata: Optional[Mapping[str, Any]] = None,
) -> None:
    """Deliver one event to the observer; observer failures never propagate."""
    if observer is None:
        return
    try:
        observer(event, dict(measurements or {}), dict(metadata or {}))
    except Exception as exc:  # noqa: BLE001 - observers are best-effort
        logger.warning("observer_failed", observer_event=event, error=repr(exc))


def elapsed_ms(t0: float) -> float:
    return (time.perf_counter() - t0) * 1000


@dataclass(frozen=True)
class Event:
    name: str
    measurements: dict[str, Any]
    metadata: dict[str, Any]
    created_at: float = field(default_factory=time.time)


class EventRecorder:
    """Observer that keeps every event in memory, oldest first."""

    def __init__(self, limit: Optional[int] = None) -> None:
        if limit is not None and limit <= 0:
            raise ValueError("limit must be positive")
        self.limit = limit
        self._events: list[Event] = []

    def __call__(
        self,
        event: str,
        measurements: Mapping[str, Any],
        metadata: Mapping[str, Any],
    ) -> None:
        self._events.append(Event(event, dict(measurements), dict(metadata)))
        if self.limit is not None and len(self._events) > self.limit:
            del self._events[0]

    def events(self, name: Optional[str] = None) -> list[Event]:
        if name is None:
            return list(self._events)
        return [ev for ev in self._events if ev.name == name]

    def count(self, name: Optional[str] = None) -> int:
        return len(self.events(name))

    def clear(self) -> None:
        self._events.clear()

    def __len__(self) -> int:
        return len(self._events)
