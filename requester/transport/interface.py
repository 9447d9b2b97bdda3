from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict

from ..domain.models import WireRequest

SUCCESS_STATUS_RANGE = range(200, 300)


@dataclass(frozen=True)
class TransportResponse:
    """
    What a Transport hands back for any HTTP answer, successful or not.
    Classification (2xx vs the rest) is the controller's job.
    """
    status: int
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status in SUCCESS_STATUS_RANGE


class Transport(ABC):
    """
    Abstract Base Class interface that defines the contract for anything able
    to perform one attempt (httpx, a simulation, a scripted stub, etc.)
    """

    @abstractmethod
    async def attempt(self, request: WireRequest, deadline: float) -> TransportResponse:
        """
        Performs a single attempt and returns the response for any status code.

        `deadline` is the per-attempt timeout in seconds. The caller enforces it
        by cancelling the task running this coroutine; implementations must stop
        the underlying operation when cancelled and never report a late success.

        Raises NetworkError for failures below HTTP and TransportAborted when
        the implementation gives up on its own.
        """
        pass
