import asyncio
import inspect
import math
import time
import warnings

import pytest

from requester.domain.models import Header
from requester.exceptions import (
    ConfigurationError,
    ExecutionInProgressError,
    NetworkError,
    TransportAborted,
)
from requester.execution import messages
from requester.execution.engine import ExecutionController
from requester.infrastructure.clock import SystemClock
from requester.repositories.response_store import ResponseStore
from requester.state.models import (
    ExecutionPhase,
    FailureCause,
    LogSeverity,
    OutcomeResult,
)
from requester.transport.adapters.simulated import HANG, ScriptedTransport
from requester.transport.interface import Transport, TransportResponse


class FailingStore(ResponseStore):
    def save(self, payload):
        raise IOError("disk full")

    def list_recent(self, limit=20):
        return []


class ExplodingTransport(Transport):
    async def attempt(self, request, deadline):
        raise ValueError("unexpected bug")


# ==========================================================================
# Scenarios
# ==========================================================================


@pytest.mark.asyncio
async def test_single_attempt_success(make_job, make_controller, store):
    transport = ScriptedTransport([200])
    controller = make_controller(transport)

    outcome = await controller.run(make_job(retry_enabled=False))

    assert outcome.result == OutcomeResult.SUCCESS
    assert outcome.attempts_used == 1
    assert outcome.final_status == 200
    assert outcome.failure_cause is None
    assert controller.event_log.messages() == [
        messages.SYSTEM_START,
        messages.LOADING_CONFIGURATION,
        "Allocating job for: GET https://api.example.com/items",
        "Attempt 1 of 1",
        messages.BUILDING_REQUEST,
        messages.WAITING_RESPONSE,
        "Success! Status: 200",
        messages.STORING_RESPONSE,
        'Payload saved: {"status": 200}...',
        messages.FINISHED_SUCCESS,
    ]
    assert controller.event_log.messages().count("Attempt 1 of 1") == 1
    assert store.payloads == [{"status": 200}]


@pytest.mark.asyncio
async def test_succeeds_on_third_attempt(make_job, make_controller):
    transport = ScriptedTransport([500, NetworkError("connection reset"), 200])
    controller = make_controller(transport)

    outcome = await controller.run(make_job(retry_enabled=True, max_retries=2))

    assert outcome.result == OutcomeResult.SUCCESS
    assert outcome.attempts_used == 3
    log = controller.event_log.messages()
    assert [m for m in log if m.startswith("Attempt")] == [
        "Attempt 1 of 3",
        "Attempt 2 of 3",
        "Attempt 3 of 3",
    ]
    assert "Request failed: HTTP Error: 500" in log
    assert "Request failed: Network error: connection reset" in log
    retries = [m for m in log if m.startswith("Retry policy active")]
    assert len(retries) == 2


@pytest.mark.asyncio
async def test_all_attempts_fail(make_job, make_controller):
    transport = ScriptedTransport([503])
    controller = make_controller(transport)

    outcome = await controller.run(make_job(retry_enabled=True, max_retries=1))

    assert outcome.result == OutcomeResult.FAILURE
    assert outcome.attempts_used == 2
    assert outcome.final_status == 503
    assert outcome.final_error == "HTTP Error: 503"
    assert outcome.failure_cause == FailureCause.HTTP_ERROR

    last = controller.event_log[-1]
    assert last.message == messages.FINISHED_ERROR
    assert last.severity == LogSeverity.ERROR
    assert controller.event_log.messages()[-3:] == [
        messages.RETRIES_EXHAUSTED,
        messages.FATAL_ERROR,
        messages.FINISHED_ERROR,
    ]


@pytest.mark.asyncio
async def test_deadline_expiry_is_a_timeout(make_job, make_controller):
    transport = ScriptedTransport([HANG])
    controller = make_controller(transport)

    started = time.monotonic()
    outcome = await controller.run(make_job(timeout_seconds=0.1, retry_enabled=False))
    elapsed = time.monotonic() - started

    assert outcome.result == OutcomeResult.FAILURE
    assert outcome.attempts_used == 1
    assert outcome.failure_cause == FailureCause.TIMEOUT
    assert outcome.final_status is None
    assert outcome.final_error == "Timeout exceeded (0.1s)"
    assert "Request failed: Timeout exceeded (0.1s)" in controller.event_log.messages()
    assert transport.cancelled == 1
    assert elapsed < 2.0


class LateSuccessTransport(Transport):
    """Swallows the cancellation and answers 200 anyway."""

    def __init__(self):
        self.calls = 0

    async def attempt(self, request, deadline):
        self.calls += 1
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            return TransportResponse(status=200, body={"late": True})


@pytest.mark.asyncio
async def test_response_after_deadline_is_discarded(make_job, make_controller, store):
    transport = LateSuccessTransport()
    controller = make_controller(transport)

    outcome = await controller.run(make_job(timeout_seconds=0.05, logging_enabled=True))

    assert transport.calls == 1
    assert outcome.result == OutcomeResult.FAILURE
    assert outcome.failure_cause == FailureCause.TIMEOUT
    assert outcome.final_status is None
    assert outcome.final_error == "Timeout exceeded (0.05s)"
    assert store.payloads == []
    assert not any(m.startswith("Success!") for m in controller.event_log.messages())
    assert controller.event_log.messages()[-1] == messages.FINISHED_ERROR


@pytest.mark.asyncio
async def test_transport_aborted_counts_as_timeout(make_job, make_controller):
    transport = ScriptedTransport([TransportAborted("gave up")])
    outcome = await make_controller(transport).run(make_job(timeout_seconds=3))

    assert outcome.failure_cause == FailureCause.TIMEOUT
    assert outcome.final_error == "Timeout exceeded (3s)"


@pytest.mark.asyncio
async def test_unexpected_transport_error_becomes_network_failure(make_job, make_controller):
    outcome = await make_controller(ExplodingTransport()).run(make_job())

    assert outcome.result == OutcomeResult.FAILURE
    assert outcome.failure_cause == FailureCause.NETWORK_ERROR
    assert outcome.final_error == "Network error: unexpected bug"


@pytest.mark.asyncio
async def test_redirect_is_a_failure(make_job, make_controller):
    outcome = await make_controller(ScriptedTransport([302])).run(make_job())

    assert outcome.result == OutcomeResult.FAILURE
    assert outcome.failure_cause == FailureCause.HTTP_ERROR
    assert outcome.final_status == 302


# ==========================================================================
# Retry budget
# ==========================================================================


@pytest.mark.asyncio
@pytest.mark.parametrize("script", [[200], [500], [NetworkError("down")], [HANG]])
async def test_retry_disabled_always_one_attempt(make_job, make_controller, script):
    transport = ScriptedTransport(script)
    job = make_job(retry_enabled=False, max_retries=5, timeout_seconds=0.05)

    outcome = await make_controller(transport).run(job)

    assert outcome.attempts_used == 1
    assert len(transport.requests) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("max_retries", [0, 1, 3])
async def test_attempts_bounded_by_retry_budget(make_job, make_controller, max_retries):
    transport = ScriptedTransport([500])
    job = make_job(retry_enabled=True, max_retries=max_retries)

    outcome = await make_controller(transport).run(job)

    assert outcome.attempts_used == max_retries + 1
    assert len(transport.requests) == max_retries + 1


@pytest.mark.asyncio
async def test_zero_retries_with_retry_enabled_means_one_attempt(make_job, make_controller):
    controller = make_controller(ScriptedTransport([500]))
    outcome = await controller.run(make_job(retry_enabled=True, max_retries=0))

    assert outcome.attempts_used == 1
    assert not any(m.startswith("Retry policy") for m in controller.event_log.messages())


# ==========================================================================
# Delays
# ==========================================================================


@pytest.mark.asyncio
async def test_delay_applied_before_first_and_every_retry(make_job, make_controller, clock):
    controller = make_controller(ScriptedTransport([500]))
    await controller.run(make_job(retry_enabled=True, max_retries=2, delay_seconds=2))

    assert clock.sleeps == [2, 2, 2]
    log = controller.event_log.messages()
    assert "Applying initial delay of 2s..." in log
    assert log.count("Retry policy active. Waiting 2s before next attempt...") == 2


@pytest.mark.asyncio
async def test_zero_delay_still_runs_the_delay_step(make_job, make_controller, clock):
    controller = make_controller(ScriptedTransport([200]))
    await controller.run(make_job(delay_seconds=0))

    assert clock.sleeps == [0]
    assert not any(m.startswith("Applying initial delay") for m in controller.event_log.messages())


# ==========================================================================
# Log shape & state
# ==========================================================================


@pytest.mark.asyncio
@pytest.mark.parametrize("script", [[200], [404], [NetworkError("down")]])
async def test_log_starts_with_system_start_and_ends_with_banner(make_job, make_controller, script):
    controller = make_controller(ScriptedTransport(script))
    await controller.run(make_job(retry_enabled=True, max_retries=1))

    log = controller.event_log
    assert log[0].message == messages.SYSTEM_START
    assert log[0].severity == LogSeverity.SYSTEM
    assert log[-1].message in (messages.FINISHED_SUCCESS, messages.FINISHED_ERROR)


@pytest.mark.asyncio
async def test_phase_transitions_follow_the_state_machine(make_job, make_controller):
    controller = make_controller(ScriptedTransport([500, 200]))
    await controller.run(make_job(retry_enabled=True, max_retries=1))

    assert controller.state.transitions == [
        ExecutionPhase.PREPARING,
        ExecutionPhase.FIRING,
        ExecutionPhase.WAITING,
        ExecutionPhase.RETRYING,
        ExecutionPhase.FIRING,
        ExecutionPhase.WAITING,
        ExecutionPhase.SUCCESS,
        ExecutionPhase.FINISHED,
    ]
    assert controller.state.phase == ExecutionPhase.FINISHED
    assert controller.state.attempt_count == 2
    assert not controller.is_running


@pytest.mark.asyncio
async def test_terminal_failure_passes_through_failure_phase(make_job, make_controller):
    controller = make_controller(ScriptedTransport([500]))
    await controller.run(make_job())

    assert controller.state.transitions[-2:] == [
        ExecutionPhase.FAILURE,
        ExecutionPhase.FINISHED,
    ]


@pytest.mark.asyncio
async def test_same_job_twice_is_reproducible(make_job, make_controller):
    job = make_job(retry_enabled=True, max_retries=2)

    first = make_controller(ScriptedTransport([500, 200]))
    second = make_controller(ScriptedTransport([500, 200]))
    outcome_a = await first.run(job)
    outcome_b = await second.run(job)

    assert outcome_a == outcome_b
    assert first.event_log.messages() == second.event_log.messages()


@pytest.mark.asyncio
async def test_each_run_gets_a_fresh_log(make_job, make_controller):
    controller = make_controller(ScriptedTransport([200]))
    await controller.run(make_job())
    first_log = controller.event_log
    first_run_id = controller.state.run_id

    await controller.run(make_job())

    assert controller.event_log is not first_log
    assert controller.state.run_id != first_run_id
    assert controller.event_log.messages() == first_log.messages()


@pytest.mark.asyncio
async def test_subscribers_see_every_entry(make_job, make_controller):
    controller = make_controller(ScriptedTransport([200]))
    seen = []
    controller.subscribe(lambda entry: seen.append(entry.message))

    await controller.run(make_job())

    assert seen == controller.event_log.messages()


@pytest.mark.asyncio
async def test_wire_request_sent_to_transport(make_job, make_controller):
    transport = ScriptedTransport([201])
    job = make_job(
        method="POST",
        body='{"name": "widget"}',
        headers=(Header("Content-Type", "application/json"), Header("", "dropped")),
    )

    await make_controller(transport).run(job)

    request = transport.requests[0]
    assert request.method == "POST"
    assert request.url == "https://api.example.com/items"
    assert request.headers == {"Content-Type": "application/json"}
    assert request.body == '{"name": "widget"}'


# ==========================================================================
# Storage
# ==========================================================================


@pytest.mark.asyncio
async def test_full_payload_stored_but_preview_truncated(make_job, make_controller, store):
    body = {"data": "x" * 200}
    controller = make_controller(ScriptedTransport([TransportResponse(status=200, body=body)]))

    await controller.run(make_job(logging_enabled=True))

    assert store.payloads == [body]
    saved = [m for m in controller.event_log.messages() if m.startswith("Payload saved: ")]
    assert len(saved) == 1
    preview = saved[0][len("Payload saved: "):-len("...")]
    assert len(preview) == 50
    assert preview == '{"data": "' + "x" * 40


@pytest.mark.asyncio
async def test_logging_disabled_skips_store(make_job, make_controller, store):
    controller = make_controller(ScriptedTransport([200]))
    await controller.run(make_job(logging_enabled=False))

    assert store.payloads == []
    assert messages.STORING_RESPONSE not in controller.event_log.messages()


@pytest.mark.asyncio
async def test_store_failure_does_not_fail_the_run(make_job, make_controller):
    controller = make_controller(ScriptedTransport([200]), store=FailingStore())

    outcome = await controller.run(make_job(logging_enabled=True))

    assert outcome.result == OutcomeResult.SUCCESS
    warnings = [e for e in controller.event_log if e.severity == LogSeverity.WARNING]
    assert warnings[-1].message == "Storage write failed: disk full"
    assert controller.event_log[-1].message == messages.FINISHED_SUCCESS


@pytest.mark.asyncio
async def test_store_not_called_on_failure(make_job, make_controller, store):
    await make_controller(ScriptedTransport([500])).run(make_job(logging_enabled=True))
    assert store.payloads == []


# ==========================================================================
# Configuration errors
# ==========================================================================


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [{"timeout_seconds": 0}, {"timeout_seconds": math.nan}, {"method": "TRACE"}, {"url": ""}],
)
async def test_configuration_error_rejected_before_any_event(make_job, make_controller, overrides):
    transport = ScriptedTransport([200])
    controller = make_controller(transport)

    with pytest.raises(ConfigurationError):
        await controller.run(make_job(**overrides))

    assert controller.event_log is None
    assert controller.state is None
    assert transport.requests == []


# ==========================================================================
# Abort & reentrancy
# ==========================================================================


@pytest.mark.asyncio
async def test_abort_during_retry_delay_stops_further_attempts(make_job, make_controller):
    transport = ScriptedTransport([500])
    controller = make_controller(transport)
    controller.subscribe(
        lambda entry: controller.abort() if entry.message.startswith("Retry policy") else None
    )

    outcome = await controller.run(make_job(retry_enabled=True, max_retries=3, delay_seconds=1))

    assert outcome.result == OutcomeResult.ABORTED
    assert outcome.failure_cause == FailureCause.ABORTED
    assert outcome.attempts_used == 1
    assert len(transport.requests) == 1
    assert controller.event_log.messages()[-2:] == [messages.ABORTED, messages.FINISHED_ERROR]


@pytest.mark.asyncio
async def test_abort_while_waiting_cancels_transport(make_job, make_controller):
    transport = ScriptedTransport([HANG])
    controller = make_controller(transport)
    asyncio.get_running_loop().call_later(0.05, controller.abort)

    outcome = await controller.run(make_job(timeout_seconds=5, retry_enabled=True, max_retries=3))

    assert outcome.result == OutcomeResult.ABORTED
    assert outcome.attempts_used == 1
    assert transport.cancelled == 1
    assert "Request failed" not in " ".join(controller.event_log.messages())


@pytest.mark.asyncio
async def test_abort_during_initial_delay(make_job, store):
    transport = ScriptedTransport([200])
    controller = ExecutionController(transport=transport, store=store, clock=SystemClock())
    asyncio.get_running_loop().call_later(0.05, controller.abort)

    started = time.monotonic()
    outcome = await controller.run(make_job(delay_seconds=5))

    assert outcome.result == OutcomeResult.ABORTED
    assert outcome.attempts_used == 0
    assert transport.requests == []
    assert time.monotonic() - started < 2.0


@pytest.mark.asyncio
async def test_abort_when_idle_is_a_no_op(make_job, make_controller):
    controller = make_controller(ScriptedTransport([200]))
    controller.abort()

    outcome = await controller.run(make_job())

    assert outcome.result == OutcomeResult.SUCCESS


@pytest.mark.asyncio
async def test_second_run_while_in_flight_is_rejected(make_job, make_controller):
    controller = make_controller(ScriptedTransport([HANG]))
    first = asyncio.ensure_future(controller.run(make_job(timeout_seconds=5)))
    await asyncio.sleep(0.01)

    assert controller.is_running
    with pytest.raises(ExecutionInProgressError):
        await controller.run(make_job())

    controller.abort()
    outcome = await first
    assert outcome.result == OutcomeResult.ABORTED
    assert not controller.is_running


@pytest.mark.asyncio
async def test_no_helper_tasks_outlive_the_run(make_job, make_controller, store):
    before = asyncio.all_tasks()

    await make_controller(ScriptedTransport([500, 200])).run(
        make_job(retry_enabled=True, max_retries=1, delay_seconds=1)
    )
    assert asyncio.all_tasks() == before

    waiting = make_controller(ScriptedTransport([HANG]))
    asyncio.get_running_loop().call_later(0.05, waiting.abort)
    assert (await waiting.run(make_job())).result == OutcomeResult.ABORTED
    assert asyncio.all_tasks() == before

    delayed = ExecutionController(
        transport=ScriptedTransport([200]), store=store, clock=SystemClock()
    )
    asyncio.get_running_loop().call_later(0.05, delayed.abort)
    assert (await delayed.run(make_job(delay_seconds=5))).result == OutcomeResult.ABORTED
    assert asyncio.all_tasks() == before


def test_engine_module_compiles_without_warnings():
    path = inspect.getsourcefile(ExecutionController)
    with open(path, encoding="utf-8") as f:
        source = f.read()

    with warnings.catch_warnings():
        warnings.simplefilter("error")
        compile(source, path, "exec")
