"""
Exceptions - Error Taxonomy

Custom exceptions for the request execution engine.

Only ConfigurationError (rejected before a run starts) and
ExecutionInProgressError are ever raised out of ExecutionController.run().
Attempt failures are handled by the retry loop and end up in the EventLog
and the Outcome instead.
"""

from typing import Optional


class RequesterError(Exception):
    """Base class for every error raised by this package."""
    pass


class ConfigurationError(RequesterError, ValueError):
    """Raised when a RequestJob cannot be executed (bad method, URL, timeout...)."""
    pass


class ExecutionInProgressError(RequesterError):
    """Raised when run() is called on a controller that is already running a job."""
    pass


# ==========================================================================
# Attempt failures (recoverable through the retry policy)
# ==========================================================================


class AttemptFailure(RequesterError):
    """
    A single attempt did not succeed.

    The string form of the exception is the reason shown in the event log.
    `cause` is the FailureCause value copied into the Outcome.
    """

    cause: str = "NETWORK_ERROR"
    status: Optional[int] = None


class AttemptTimeout(AttemptFailure):
    """The per-attempt deadline expired before the transport answered."""

    cause = "TIMEOUT"

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Timeout exceeded ({timeout_seconds:g}s)")


class ProtocolError(AttemptFailure):
    """The transport answered with a status outside the success range."""

    cause = "HTTP_ERROR"

    def __init__(self, status: int):
        self.status = status
        super().__init__(f"HTTP Error: {status}")


class TransportFailure(AttemptFailure):
    """The transport reported a network-level failure."""

    cause = "NETWORK_ERROR"


# ==========================================================================
# Terminal errors (raised only by Outcome.raise_for_result)
# ==========================================================================


class RetriesExhausted(RequesterError):
    """Every allowed attempt failed."""

    def __init__(self, attempts_used: int, last_error: Optional[str] = None):
        self.attempts_used = attempts_used
        self.last_error = last_error
        message = f"All {attempts_used} attempt(s) failed"
        if last_error:
            message += f": {last_error}"
        super().__init__(message)


class AbortedByCaller(RequesterError):
    """The run was cancelled from outside while suspended."""
    pass


# ==========================================================================
# Transport-side errors (raised by Transport implementations)
# ==========================================================================


class TransportError(RequesterError):
    """Base class for failures reported by a Transport."""
    pass


class NetworkError(TransportError):
    """Connection refused, DNS failure, reset... anything below HTTP."""
    pass


class TransportAborted(TransportError):
    """The transport gave up on its own deadline or observed a cancellation."""
    pass
