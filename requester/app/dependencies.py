"""
Dependency Injection Wiring (Composition Root).

This module acts as the central "container" for the application's services.
It is responsible for:
1. Instantiating the shared collaborators (Transport, Response Store).
2. Building a fresh ExecutionController for every run, since a controller
   only ever runs one job at a time.
3. Managing the lifecycle of the shared objects using @lru_cache so they
   are created only once per application process.

Tests override these functions through app.dependency_overrides.
"""

from functools import lru_cache
from fastapi import Depends

from ..config import settings
from ..transport.interface import Transport
from ..transport.adapters.httpx_adapter import HttpxTransport
from ..transport.adapters.simulated import SimulatedTransport
from ..repositories.response_store import (
    InMemoryResponseStore,
    ResponseStore,
    SQLResponseStore,
)
from ..execution.engine import ExecutionController

from ..infrastructure.database.connection import init_db

# Transport (Singleton)
@lru_cache()
def get_transport() -> Transport:
    if settings.TRANSPORT_MODE == "http":
        return HttpxTransport()
    return SimulatedTransport(
        success_probability=settings.SIMULATION_SUCCESS_PROBABILITY,
        latency_seconds=settings.SIMULATION_LATENCY_SECONDS,
    )

# Response Store (Singleton)
# Note: In-memory storage must be a singleton so payloads persist across requests!
@lru_cache()
def get_response_store() -> ResponseStore:
    if settings.STORE_BACKEND == "sql":
        init_db()
        return SQLResponseStore()
    return InMemoryResponseStore()

# The Controller (one per run, never cached)
def get_execution_controller(
    transport: Transport = Depends(get_transport),
    store: ResponseStore = Depends(get_response_store),
) -> ExecutionController:
    return ExecutionController(transport=transport, store=store)
