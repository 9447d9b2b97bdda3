"""
Execution Layer - The Request Attempt Loop

Defines the ExecutionController, the deterministic state machine that
fires a RequestJob through a Transport, retries it and records every
step in the EventLog.
"""

from requester.execution.engine import ExecutionController


__all__ = [
    "ExecutionController",
]
