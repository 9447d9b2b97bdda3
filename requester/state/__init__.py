"""
State Layer - Runtime Data Models

Defines the per-run ExecutionState, the append-only EventLog and the
terminal Outcome of a run.
"""

from requester.state.models import (
    EventLog,
    ExecutionPhase,
    ExecutionState,
    FailureCause,
    LogEntry,
    LogSeverity,
    Outcome,
    OutcomeResult,
)

__all__ = [
    "EventLog",
    "ExecutionPhase",
    "ExecutionState",
    "FailureCause",
    "LogEntry",
    "LogSeverity",
    "Outcome",
    "OutcomeResult",
]
