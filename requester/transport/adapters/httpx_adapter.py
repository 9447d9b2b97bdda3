from typing import Any, Optional

import httpx

from ..interface import Transport, TransportResponse
from ...domain.models import WireRequest
from ...exceptions import NetworkError, TransportAborted


class HttpxTransport(Transport):
    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        # Redirects are not followed: a 3xx is reported as-is and counts as a failure
        self.client = client or httpx.AsyncClient(follow_redirects=False)

    async def attempt(self, request: WireRequest, deadline: float) -> TransportResponse:
        try:
            response = await self.client.request(
                request.method,
                request.url,
                headers=request.headers,
                content=request.body,
                timeout=deadline,
            )
        except httpx.TimeoutException as e:
            raise TransportAborted(f"Timed out: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkError(str(e) or e.__class__.__name__) from e

        return TransportResponse(
            status=response.status_code,
            body=self._parse_body(response),
            headers=dict(response.headers),
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        # Try JSON first, fall back to raw text
        try:
            return response.json()
        except ValueError:
            return response.text
