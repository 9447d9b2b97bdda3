"""
Clock - Time Source for the Engine.

The controller never calls datetime.now() or asyncio.sleep() directly.
Timestamps and delays go through a Clock so tests can replace it with a
fake that records sleeps instead of waiting.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone


class Clock(ABC):
    """
    Abstract Base Class for time sources.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Returns the current time (timezone-aware)."""
        pass

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspends the caller for `seconds`. Must be cancellable."""
        pass


class SystemClock(Clock):
    """
    Wall clock + event loop timer.
    """

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))
