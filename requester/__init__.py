"""
Requester

A request execution engine: a small deterministic state machine that fires
one HTTP request through a pluggable Transport, enforces a per-attempt
deadline, retries with a fixed delay and keeps an ordered audit log.
"""

from requester.domain import (
    Header,
    HttpMethod,
    METHODS,
    RequestJob,
    WireRequest,
)
from requester.state import (
    EventLog,
    ExecutionPhase,
    ExecutionState,
    FailureCause,
    LogEntry,
    LogSeverity,
    Outcome,
    OutcomeResult,
)
from requester.exceptions import (
    AbortedByCaller,
    ConfigurationError,
    ExecutionInProgressError,
    RetriesExhausted,
)
from requester.execution import ExecutionController

__all__ = [
    # Domain Layer
    "Header",
    "HttpMethod",
    "METHODS",
    "RequestJob",
    "WireRequest",
    # State Layer
    "EventLog",
    "ExecutionPhase",
    "ExecutionState",
    "FailureCause",
    "LogEntry",
    "LogSeverity",
    "Outcome",
    "OutcomeResult",
    # Errors
    "AbortedByCaller",
    "ConfigurationError",
    "ExecutionInProgressError",
    "RetriesExhausted",
    # Execution Layer
    "ExecutionController",
]
