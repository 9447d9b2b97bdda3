"""
State Layer - Runtime Data Models

This module defines everything that changes while a job runs: the
ExecutionState owned by the controller, the append-only EventLog that
serves as the audit trail of a run, and the terminal Outcome.
"""

import logging
import uuid
from datetime import datetime
from enum import Enum
from typing import Callable, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..exceptions import AbortedByCaller, RetriesExhausted
from ..infrastructure.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class ExecutionPhase(str, Enum):
    """
    Phases of the run state machine.

    IDLE is the only initial phase and FINISHED the only terminal one.
    """
    IDLE = "IDLE"
    PREPARING = "PREPARING"
    FIRING = "FIRING"
    WAITING = "WAITING"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    RETRYING = "RETRYING"
    FINISHED = "FINISHED"


class LogSeverity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    SYSTEM = "system"


class OutcomeResult(str, Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    ABORTED = "ABORTED"


class FailureCause(str, Enum):
    """
    Why the last attempt of a failed run did not succeed.
    TIMEOUT must never be confused with HTTP_ERROR.
    """
    TIMEOUT = "TIMEOUT"
    HTTP_ERROR = "HTTP_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    ABORTED = "ABORTED"


class ExecutionState(BaseModel):
    """
    Mutable state of a single run. One instance per run, owned exclusively
    by the controller and passed explicitly through every transition.
    """
    run_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    attempt_count: int = 0
    phase: ExecutionPhase = ExecutionPhase.IDLE
    started_at: Optional[datetime] = None

    # Every phase entered, in order (IDLE excluded)
    transitions: List[ExecutionPhase] = Field(default_factory=list)


class LogEntry(BaseModel):
    """
    One line of the event log. Frozen once appended.
    """
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    message: str
    severity: LogSeverity


LogListener = Callable[[LogEntry], None]


class EventLog:
    """
    Append-only, ordered sequence of LogEntry.

    Order is append order; entries are never removed, reordered or deduplicated.
    Listeners are notified synchronously after every append (live consoles).
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        listeners: Optional[List[LogListener]] = None,
    ):
        self._clock = clock or SystemClock()
        self._entries: List[LogEntry] = []
        self._listeners: List[LogListener] = list(listeners or [])

    def append(self, message: str, severity: LogSeverity = LogSeverity.INFO) -> LogEntry:
        entry = LogEntry(
            timestamp=self._clock.now(),
            message=message,
            severity=LogSeverity(severity),
        )
        self._entries.append(entry)
        for listener in self._listeners:
            try:
                listener(entry)
            except Exception:
                # A broken display must not break the audit trail
                logger.exception(f"Event log listener {listener!r} failed")
        return entry

    @property
    def entries(self) -> Tuple[LogEntry, ...]:
        return tuple(self._entries)

    def messages(self) -> List[str]:
        return [entry.message for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(tuple(self._entries))

    def __getitem__(self, index: int) -> LogEntry:
        return self._entries[index]


class Outcome(BaseModel):
    """
    Terminal result of a run, produced exactly once.
    """
    model_config = ConfigDict(frozen=True)

    result: OutcomeResult
    attempts_used: int
    final_status: Optional[int] = None
    final_error: Optional[str] = None
    failure_cause: Optional[FailureCause] = None

    @property
    def succeeded(self) -> bool:
        return self.result == OutcomeResult.SUCCESS

    def raise_for_result(self) -> None:
        """
        Raise the terminal error matching a non-successful outcome.
        No-op for SUCCESS.
        """
        if self.result == OutcomeResult.ABORTED:
            raise AbortedByCaller(self.final_error or "Execution aborted by caller.")
        if self.result == OutcomeResult.FAILURE:
            raise RetriesExhausted(self.attempts_used, self.final_error)
