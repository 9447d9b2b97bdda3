import asyncio
from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from requester.domain.models import RequestJob
from requester.execution.engine import ExecutionController
from requester.infrastructure.clock import Clock
from requester.repositories.response_store import InMemoryResponseStore


class FakeClock(Clock):
    """Records every sleep and advances virtual time instead of waiting."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, tzinfo=timezone.utc)):
        self.current = start
        self.sleeps: List[float] = []

    def now(self) -> datetime:
        return self.current

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += timedelta(seconds=seconds)
        await asyncio.sleep(0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryResponseStore()


@pytest.fixture
def make_job():
    def _make_job(**overrides) -> RequestJob:
        fields = dict(
            method="GET",
            url="https://api.example.com/items",
            timeout_seconds=5,
        )
        fields.update(overrides)
        return RequestJob(**fields)

    return _make_job


@pytest.fixture
def make_controller(clock, store):
    def _make_controller(transport, **kwargs) -> ExecutionController:
        kwargs.setdefault("store", store)
        kwargs.setdefault("clock", clock)
        return ExecutionController(transport=transport, **kwargs)

    return _make_controller
