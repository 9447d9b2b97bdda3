"""
Domain Layer - Static Job Configuration

Defines the immutable RequestJob handed to the engine and the WireRequest
it is turned into before every attempt.
"""

from requester.domain.models import (
    BODY_METHODS,
    METHODS,
    Header,
    HttpMethod,
    RequestJob,
    WireRequest,
)

__all__ = [
    "BODY_METHODS",
    "METHODS",
    "Header",
    "HttpMethod",
    "RequestJob",
    "WireRequest",
]
