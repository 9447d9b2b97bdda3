"""
API Layer - Request/Response Schemas

Pydantic models for API request and response validation.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field

from ..config import settings
from ..domain.models import Header, RequestJob
from ..state.models import LogEntry, Outcome


class HeaderIn(BaseModel):
    key: str = ""
    value: str = ""


class JobRequest(BaseModel):
    """
    The finished job configuration, as a form or script would submit it.
    Semantic checks (method, URL, timeout) are left to RequestJob.validate().
    """
    method: str = "GET"
    url: str = ""
    headers: List[HeaderIn] = Field(default_factory=list)
    body: Optional[str] = None
    retry_enabled: bool = False
    max_retries: int = settings.DEFAULT_MAX_RETRIES
    timeout_seconds: float = settings.DEFAULT_TIMEOUT_SECONDS
    delay_seconds: float = settings.DEFAULT_DELAY_SECONDS
    logging_enabled: bool = True

    def to_job(self) -> RequestJob:
        return RequestJob(
            method=self.method.upper(),
            url=self.url,
            headers=tuple(Header(key=h.key, value=h.value) for h in self.headers),
            body=self.body,
            retry_enabled=self.retry_enabled,
            max_retries=self.max_retries,
            timeout_seconds=self.timeout_seconds,
            delay_seconds=self.delay_seconds,
            logging_enabled=self.logging_enabled,
        )


class RunResponse(BaseModel):
    run_id: str
    outcome: Outcome
    log: List[LogEntry]


class StoredResponses(BaseModel):
    payloads: List[Any]
