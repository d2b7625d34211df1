"""HTTP transport capability.

The flow talks to providers only through `HTTPTransport.send`, so tests and
host applications can swap in their own client.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import httpx

from sociallogin.models.errors import TransportError
from sociallogin.models.http import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)


@runtime_checkable
class HTTPTransport(Protocol):
    """Executes HTTP requests and returns the raw response."""

    async def send(self, request: HttpRequest) -> HttpResponse: ...


class HttpxTransport:
    """`HTTPTransport` backed by `httpx.AsyncClient`.

    Non-2xx responses are returned, not raised; interpreting them is the
    caller's job. Network failures raise `TransportError`.
    """

    def __init__(
        self, timeout: float = 30.0, client: httpx.AsyncClient | None = None
    ):
        """Initialize the transport.

        Args:
            timeout: HTTP request timeout in seconds
            client: Optional pre-configured client; it is not closed by `close`
        """
        self.timeout = timeout
        self._owns_client = client is None
        self._http_client = client or httpx.AsyncClient(timeout=timeout)

    async def send(self, request: HttpRequest) -> HttpResponse:
        logger.debug(f"{request.method} {request.url}")

        try:
            response = await self._http_client.request(
                request.method,
                request.url,
                headers=request.headers or None,
                params=request.params or None,
                data=request.data,
                json=request.json,
            )
        except httpx.HTTPError as e:
            raise TransportError(
                f"HTTP error during {request.method} {request.url}: {e}"
            ) from e

        return HttpResponse(
            status_code=response.status_code,
            body=response.text,
            headers=dict(response.headers),
        )

    async def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._owns_client:
            await self._http_client.aclose()
