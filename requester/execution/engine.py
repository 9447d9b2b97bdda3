"""
Engine - Request Execution Controller

The ExecutionController is the deterministic state machine that drives one
RequestJob through its attempt loop and delegates the actual network call
to a Transport.
-----------------------------------------------

A run moves through:

    IDLE -> PREPARING -> FIRING -> WAITING -> SUCCESS ------------> FINISHED
                           ^          |
                           |          +-> (failure) -> RETRYING --+
                           |                        +-> FAILURE -> FINISHED
                           +----------------------------------------+

The Control Logic is "First Resolution Wins":
1. While WAITING, the transport call, the per-attempt deadline and the
    caller's abort signal race each other. Whichever resolves first is
    honoured; the others are cancelled and their results discarded.
2. Attempt failures (timeout, HTTP status, network) never escape run().
    They are written to the EventLog and either trigger a retry or become
    a FAILURE Outcome.
3. The only points where control yields are the initial delay, the retry
    delay and WAITING. The abort signal is checked at each of them.
"""

import asyncio
import json
import logging
from typing import Any, List, Optional

from ..config import settings
from ..domain.models import RequestJob
from ..exceptions import (
    AbortedByCaller,
    AttemptFailure,
    AttemptTimeout,
    ExecutionInProgressError,
    ProtocolError,
    TransportAborted,
    TransportError,
    TransportFailure,
)
from ..infrastructure.clock import Clock, SystemClock
from ..repositories.response_store import InMemoryResponseStore, ResponseStore
from ..state.models import (
    EventLog,
    ExecutionPhase,
    ExecutionState,
    FailureCause,
    LogListener,
    LogSeverity,
    Outcome,
    OutcomeResult,
)
from ..transport.interface import Transport, TransportResponse
from . import messages

logger = logging.getLogger(__name__)


class ExecutionController:
    """
    Runs one RequestJob at a time. Not reentrant: the caller must wait for
    run() to return before starting the next job on the same instance.
    """

    def __init__(
        self,
        transport: Transport,
        store: Optional[ResponseStore] = None,
        clock: Optional[Clock] = None,
        payload_preview_chars: int = settings.PAYLOAD_PREVIEW_CHARS,
    ):
        self.transport = transport
        self.store = store if store is not None else InMemoryResponseStore()
        self.clock = clock or SystemClock()
        self.payload_preview_chars = payload_preview_chars

        self._listeners: List[LogListener] = []
        self._state: Optional[ExecutionState] = None
        self._log: Optional[EventLog] = None
        self._outcome: Optional[Outcome] = None
        self._abort_event: Optional[asyncio.Event] = None
        self._running = False

    # ==========================================================================
    # Public API
    # ==========================================================================

    @property
    def state(self) -> Optional[ExecutionState]:
        """State of the current (or most recent) run."""
        return self._state

    @property
    def event_log(self) -> Optional[EventLog]:
        """Event log of the current (or most recent) run."""
        return self._log

    @property
    def outcome(self) -> Optional[Outcome]:
        """Outcome of the most recent finished run."""
        return self._outcome

    @property
    def is_running(self) -> bool:
        return self._running

    def subscribe(self, listener: LogListener) -> None:
        """Registers a callable notified with every LogEntry of later runs."""
        self._listeners.append(listener)

    def abort(self) -> None:
        """
        Cancels the run in flight. Takes effect at the next suspension point
        (or immediately if the run is currently suspended). No-op when idle.
        """
        if not self._running or self._abort_event is None:
            return
        logger.info(f"Abort requested for run {self._state.run_id}")
        self._abort_event.set()

    async def run(self, job: RequestJob) -> Outcome:
        """
        Executes `job` until it reaches FINISHED and returns the Outcome.

        Raises ConfigurationError before any transition when the job is
        invalid, and ExecutionInProgressError when a run is already in flight.
        """
        job.validate()
        if self._running:
            raise ExecutionInProgressError("A job is already running on this controller.")

        state = ExecutionState()
        log = EventLog(clock=self.clock, listeners=self._listeners)
        self._state, self._log, self._outcome = state, log, None
        self._abort_event = asyncio.Event()
        self._running = True

        logger.info(f"Run {state.run_id} started: {job.method} {job.url}")
        try:
            try:
                outcome = await self._execute(job, state, log)
            except AbortedByCaller:
                outcome = self._finish_aborted(state, log)
        finally:
            self._running = False

        self._outcome = outcome
        logger.info(
            f"Run {state.run_id} finished: {outcome.result.value} "
            f"after {outcome.attempts_used} attempt(s)"
        )
        return outcome

    # ==========================================================================
    # The Attempt Loop
    # ==========================================================================

    async def _execute(self, job: RequestJob, state: ExecutionState, log: EventLog) -> Outcome:
        # 1. IDLE -> PREPARING
        self._transition(state, ExecutionPhase.PREPARING)
        state.attempt_count = 0
        state.started_at = self.clock.now()
        log.append(messages.SYSTEM_START, LogSeverity.SYSTEM)
        log.append(messages.LOADING_CONFIGURATION, LogSeverity.SYSTEM)
        log.append(
            messages.JOB_ALLOCATED.format(method=job.method, url=job.url),
            LogSeverity.SYSTEM,
        )

        # 2. Initial delay. Runs even when zero so an abort can still preempt it.
        if job.delay_seconds > 0:
            log.append(
                messages.INITIAL_DELAY.format(delay=job.delay_seconds),
                LogSeverity.WARNING,
            )
        await self._suspend(job.delay_seconds)

        while True:
            try:
                response = await self._fire(job, state, log)
            except AttemptFailure as failure:
                log.append(
                    messages.REQUEST_FAILED.format(reason=failure),
                    LogSeverity.ERROR,
                )
                if not self._should_retry(job, state):
                    return self._fail(state, log, failure)

                self._transition(state, ExecutionPhase.RETRYING)
                logger.warning(
                    f"Run {state.run_id}: attempt {state.attempt_count} failed ({failure}), retrying"
                )
                log.append(
                    messages.RETRY_SCHEDULED.format(delay=job.delay_seconds),
                    LogSeverity.WARNING,
                )
                await self._suspend(job.delay_seconds)
                continue

            return self._succeed(job, state, log, response)

    async def _fire(
        self, job: RequestJob, state: ExecutionState, log: EventLog
    ) -> TransportResponse:
        """
        FIRING + WAITING. Returns a 2xx response or raises AttemptFailure.
        """
        self._transition(state, ExecutionPhase.FIRING)
        state.attempt_count += 1
        log.append(
            messages.ATTEMPT.format(attempt=state.attempt_count, total=job.total_attempts),
            LogSeverity.INFO,
        )
        log.append(messages.BUILDING_REQUEST, LogSeverity.INFO)
        request = job.to_wire_request()
        logger.debug(f"Run {state.run_id}: sending {request}")

        transport_task = asyncio.ensure_future(
            self.transport.attempt(request, job.timeout_seconds)
        )
        abort_task = asyncio.ensure_future(self._abort_event.wait())

        self._transition(state, ExecutionPhase.WAITING)
        log.append(messages.WAITING_RESPONSE, LogSeverity.WARNING)

        try:
            done, _ = await asyncio.wait(
                {transport_task, abort_task},
                timeout=job.timeout_seconds,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            # Wait until every cancellation is acknowledged: no late result may leak
            await self._cancel_pending(transport_task, abort_task)

        if abort_task in done:
            self._discard(transport_task)
            raise AbortedByCaller(messages.ABORTED)

        if transport_task not in done:
            self._discard(transport_task)
            raise AttemptTimeout(job.timeout_seconds)

        try:
            response = transport_task.result()
        except TransportAborted as e:
            raise AttemptTimeout(job.timeout_seconds) from e
        except TransportError as e:
            raise TransportFailure(f"Network error: {e}") from e
        except Exception as e:
            logger.exception(f"Run {state.run_id}: transport raised an unexpected error")
            raise TransportFailure(f"Network error: {e}") from e

        if not response.ok:
            raise ProtocolError(response.status)
        return response

    # ==========================================================================
    # Terminal Paths
    # ==========================================================================

    def _succeed(
        self,
        job: RequestJob,
        state: ExecutionState,
        log: EventLog,
        response: TransportResponse,
    ) -> Outcome:
        self._transition(state, ExecutionPhase.SUCCESS)
        log.append(
            messages.RESPONSE_SUCCESS.format(status=response.status),
            LogSeverity.SUCCESS,
        )
        if job.logging_enabled:
            self._store_payload(state, log, response.body)

        return self._finish(
            state,
            log,
            Outcome(
                result=OutcomeResult.SUCCESS,
                attempts_used=state.attempt_count,
                final_status=response.status,
            ),
        )

    def _fail(self, state: ExecutionState, log: EventLog, failure: AttemptFailure) -> Outcome:
        self._transition(state, ExecutionPhase.FAILURE)
        log.append(messages.RETRIES_EXHAUSTED, LogSeverity.ERROR)
        log.append(messages.FATAL_ERROR, LogSeverity.ERROR)
        logger.error(f"Run {state.run_id} failed after {state.attempt_count} attempt(s): {failure}")

        return self._finish(
            state,
            log,
            Outcome(
                result=OutcomeResult.FAILURE,
                attempts_used=state.attempt_count,
                final_status=failure.status,
                final_error=str(failure),
                failure_cause=FailureCause(failure.cause),
            ),
        )

    def _finish_aborted(self, state: ExecutionState, log: EventLog) -> Outcome:
        log.append(messages.ABORTED, LogSeverity.WARNING)
        return self._finish(
            state,
            log,
            Outcome(
                result=OutcomeResult.ABORTED,
                attempts_used=state.attempt_count,
                final_error=messages.ABORTED,
                failure_cause=FailureCause.ABORTED,
            ),
        )

    def _finish(self, state: ExecutionState, log: EventLog, outcome: Outcome) -> Outcome:
        self._transition(state, ExecutionPhase.FINISHED)
        if outcome.succeeded:
            log.append(messages.FINISHED_SUCCESS, LogSeverity.SUCCESS)
        else:
            log.append(messages.FINISHED_ERROR, LogSeverity.ERROR)
        return outcome

    # ==========================================================================
    # Standard Helpers
    # ==========================================================================

    def _should_retry(self, job: RequestJob, state: ExecutionState) -> bool:
        return job.retry_enabled and state.attempt_count <= job.max_retries

    def _transition(self, state: ExecutionState, phase: ExecutionPhase) -> None:
        if state.phase == ExecutionPhase.FINISHED:
            raise RuntimeError(f"Run {state.run_id} is already finished.")
        state.phase = phase
        state.transitions.append(phase)

    async def _suspend(self, seconds: float) -> None:
        """
        Sleeps on the clock unless the run is aborted first.
        Raises AbortedByCaller.
        """
        if self._abort_event.is_set():
            raise AbortedByCaller(messages.ABORTED)

        sleep_task = asyncio.ensure_future(self.clock.sleep(seconds))
        abort_task = asyncio.ensure_future(self._abort_event.wait())
        try:
            done, _ = await asyncio.wait(
                {sleep_task, abort_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            await self._cancel_pending(sleep_task, abort_task)

        if abort_task in done:
            raise AbortedByCaller(messages.ABORTED)

    def _store_payload(self, state: ExecutionState, log: EventLog, payload: Any) -> None:
        log.append(messages.STORING_RESPONSE, LogSeverity.SYSTEM)
        try:
            self.store.save(payload)
        except Exception as e:
            # Storage is best-effort: the response already succeeded
            logger.warning(f"Run {state.run_id}: storing the response failed: {e}")
            log.append(messages.STORE_FAILED.format(error=e), LogSeverity.WARNING)
            return
        log.append(
            messages.PAYLOAD_SAVED.format(preview=self._preview(payload)),
            LogSeverity.SYSTEM,
        )

    def _preview(self, payload: Any) -> str:
        return json.dumps(payload, default=str, ensure_ascii=False)[: self.payload_preview_chars]

    @staticmethod
    async def _cancel_pending(*tasks: "asyncio.Future[Any]") -> None:
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    @staticmethod
    def _discard(task: "asyncio.Future[Any]") -> None:
        # Retrieve the loser's exception so asyncio does not report it as unhandled
        if task.done() and not task.cancelled():
            task.exception()
