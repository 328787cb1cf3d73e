"""
FeCap Hysteresis Model
======================
Diagnostics sinks. Purely observational: nothing a sink does feeds back
into the model.

Author: Thesis Project
Date: February 2026
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional

from .logging import logger


# Event kinds
INITIALIZATION = "initialization"
CONVERGENCE_FAILURE = "convergence_failure"
ARITHMETIC_FAULT = "arithmetic_fault"
DIRECTION_CHANGE = "direction_change"
CAPACITY_FAULT = "capacity_fault"
STACK_DUMP = "stack_dump"
STATE_FAULT = "state_fault"

_LEVELS = {
    INITIALIZATION: logging.INFO,
    CONVERGENCE_FAILURE: logging.WARNING,
    ARITHMETIC_FAULT: logging.WARNING,
    CAPACITY_FAULT: logging.WARNING,
    STATE_FAULT: logging.WARNING,
    DIRECTION_CHANGE: logging.DEBUG,
    STACK_DUMP: logging.DEBUG,
}

FAULT_EVENTS = {
    "arithmetic": ARITHMETIC_FAULT,
    "convergence": CONVERGENCE_FAILURE,
    "capacity": CAPACITY_FAULT,
    "state": STATE_FAULT,
}


@dataclass(frozen=True)
class DiagnosticEvent:
    """Structured diagnostic record."""
    kind: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)


class DiagnosticsSink:
    """Base sink: receives events, does nothing."""

    def emit(self, event: DiagnosticEvent):
        pass


NullSink = DiagnosticsSink


class LoggingSink(DiagnosticsSink):
    """Forward events to the fecap logger at a level chosen by event kind."""

    def __init__(self, log: Optional[logging.Logger] = None, name: str = ""):
        self.log = log or logger
        self.name = name

    def emit(self, event: DiagnosticEvent):
        level = _LEVELS.get(event.kind, logging.INFO)
        if not self.log.isEnabledFor(level):
            return
        prefix = f"[{self.name}] " if self.name else ""
        if event.kind == STACK_DUMP:
            lines = [f"{prefix}{event.message}"]
            for stack_name in ("ascending", "descending"):
                for idx, (v, p) in enumerate(event.data.get(stack_name, [])):
                    lines.append(f"  {stack_name}[{idx}]: V={v:+.6g} V, P={p:+.6g} C/m²")
            self.log.log(level, "\n".join(lines))
        else:
            details = ", ".join(f"{k}={v}" for k, v in event.data.items())
            self.log.log(level, f"{prefix}{event.message}" + (f" ({details})" if details else ""))


class RecordingSink(DiagnosticsSink):
    """Keep every event in memory; used by tests and sweep studies."""

    def __init__(self):
        self.events: List[DiagnosticEvent] = []

    def emit(self, event: DiagnosticEvent):
        self.events.append(event)

    def of_kind(self, kind: str) -> List[DiagnosticEvent]:
        return [e for e in self.events if e.kind == kind]

    def clear(self):
        self.events.clear()
