"""
Simulated Transports.

Stand-ins for real network I/O. SimulatedTransport reproduces the
"simulation mode" of the request console: a fixed latency followed by a
coin flip. ScriptedTransport replays a fixed list of outcomes and is what
the test suite drives the controller with.
"""

import asyncio
import logging
import random
from typing import Any, List, Optional, Sequence, Union

from ..interface import Transport, TransportResponse
from ...domain.models import WireRequest
from ...exceptions import NetworkError, TransportError

logger = logging.getLogger(__name__)

SIMULATED_PAYLOAD = {"success": True, "message": "Simulated data received"}


class SimulatedTransport(Transport):
    """
    Succeeds with probability `success_probability` after `latency_seconds`,
    otherwise fails with a simulated network error. Pass `seed` for a
    reproducible sequence.
    """

    def __init__(
        self,
        success_probability: float = 0.5,
        latency_seconds: float = 1.5,
        seed: Optional[int] = None,
    ):
        if not 0.0 <= success_probability <= 1.0:
            raise ValueError("success_probability must be between 0 and 1")
        self.success_probability = success_probability
        self.latency_seconds = latency_seconds
        self._rng = random.Random(seed)

    async def attempt(self, request: WireRequest, deadline: float) -> TransportResponse:
        await asyncio.sleep(self.latency_seconds)
        if self._rng.random() < self.success_probability:
            return TransportResponse(status=200, body=dict(SIMULATED_PAYLOAD))
        raise NetworkError("Network Error (Simulated)")


class _Hang:
    def __repr__(self) -> str:
        return "HANG"


# Script step that never resolves (until cancelled)
HANG = _Hang()

ScriptStep = Union[int, TransportResponse, TransportError, _Hang]


class ScriptedTransport(Transport):
    """
    Replays `script` one step per attempt. A step is a status code, a full
    TransportResponse, a TransportError to raise, or HANG. Once the script
    is exhausted the last step repeats.

    Every request received is recorded in `requests`; attempts cancelled by
    the caller are counted in `cancelled`.
    """

    def __init__(self, script: Sequence[ScriptStep], body: Any = None):
        if not script:
            raise ValueError("script must contain at least one step")
        self.script: List[ScriptStep] = list(script)
        self.body = body
        self.requests: List[WireRequest] = []
        self.cancelled = 0

    async def attempt(self, request: WireRequest, deadline: float) -> TransportResponse:
        index = min(len(self.requests), len(self.script) - 1)
        step = self.script[index]
        self.requests.append(request)
        logger.debug(f"Scripted attempt {len(self.requests)}: {step!r}")

        try:
            # Yield once so the attempt is genuinely asynchronous
            await asyncio.sleep(0)
            if step is HANG:
                await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled += 1
            raise

        if isinstance(step, TransportError):
            raise step
        if isinstance(step, TransportResponse):
            return step
        body = self.body if self.body is not None else {"status": step}
        return TransportResponse(status=step, body=body)
