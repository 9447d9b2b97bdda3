"""
Domain Layer - Static Job Configuration

This module defines the immutable configuration of one execution: which
request to send and under which policy (retries, timeout, delay, storage).
A RequestJob is produced by an outside collaborator (the API layer, a
script, a form) and handed to the ExecutionController, which only reads it.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, Literal, Optional, Tuple

from ..exceptions import ConfigurationError

"""
HttpMethod lists the verbs the engine knows how to fire:
- GET / DELETE: never carry a body
- POST / PUT / PATCH: carry the job body when it is non-empty
"""
HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH"]

METHODS: Tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "PATCH")
BODY_METHODS: Tuple[str, ...] = ("POST", "PUT", "PATCH")


@dataclass(frozen=True)
class Header:
    """
    One row of the header list.

    Keys are not required to be unique. Rows with an empty key are kept in
    the job (the editor produces them) but never reach the wire.
    """
    key: str
    value: str = ""


@dataclass(frozen=True)
class WireRequest:
    """
    The request exactly as the Transport receives it.

    Attributes:
        method: HTTP verb.
        url: Target URL.
        headers: Merged headers (empty keys dropped, last write wins).
        body: Raw body, or None when the method does not carry one.
    """
    method: HttpMethod
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None


@dataclass(frozen=True)
class RequestJob:
    """
    Immutable configuration for one run.

    Attributes:
        method: HTTP verb, one of METHODS.
        url: Target URL (non-empty).
        headers: Ordered header rows.
        body: Optional raw body, only sent for POST/PUT/PATCH.
        retry_enabled: Whether failed attempts are retried.
        max_retries: Attempts allowed beyond the first. Ignored when
            retry_enabled is False.
        timeout_seconds: Deadline for each attempt. Must be positive.
        delay_seconds: Pause before the first attempt and before every retry.
        logging_enabled: Persist the successful payload through the Store.
    """
    method: HttpMethod
    url: str
    headers: Tuple[Header, ...] = ()
    body: Optional[str] = None
    retry_enabled: bool = False
    max_retries: int = 3
    timeout_seconds: float = 30.0
    delay_seconds: float = 0.0
    logging_enabled: bool = True

    def validate(self) -> None:
        """
        Reject configurations that cannot be executed.
        Raises ConfigurationError; never emits events.
        """
        if self.method not in METHODS:
            raise ConfigurationError(
                f"Unsupported method '{self.method}'. Expected one of {', '.join(METHODS)}."
            )
        if not self.url or not self.url.strip():
            raise ConfigurationError("A URL is required.")
        if not math.isfinite(self.timeout_seconds) or self.timeout_seconds <= 0:
            raise ConfigurationError(
                f"timeout_seconds must be a positive number, got {self.timeout_seconds}."
            )
        if not math.isfinite(self.delay_seconds) or self.delay_seconds < 0:
            raise ConfigurationError(
                f"delay_seconds must be a non-negative number, got {self.delay_seconds}."
            )
        if self.max_retries < 0:
            raise ConfigurationError(
                f"max_retries must not be negative, got {self.max_retries}."
            )

    @property
    def effective_max_retries(self) -> int:
        return self.max_retries if self.retry_enabled else 0

    @property
    def total_attempts(self) -> int:
        return self.effective_max_retries + 1

    @property
    def sends_body(self) -> bool:
        return self.method in BODY_METHODS and bool(self.body)

    def wire_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        for header in self.headers:
            if not header.key.strip():
                continue
            headers[header.key] = header.value
        return headers

    def to_wire_request(self) -> WireRequest:
        return WireRequest(
            method=self.method,
            url=self.url,
            headers=self.wire_headers(),
            body=self.body if self.sends_body else None,
        )
