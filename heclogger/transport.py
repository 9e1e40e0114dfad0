"""
HTTP transport for heclogger, built on httpx.

The transport makes exactly one POST per call and never retries; retry
policy belongs to the delivery engine.
"""

import logging
from typing import Any, Protocol

import httpx

from .context import RequestOptions
from .errors import TransportError

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Anything that can POST request options to the collector."""

    async def post(self, options: RequestOptions) -> tuple[Any, Any]: ...


def decode_body(response: httpx.Response) -> Any:
    """Decode a collector response: JSON if possible, otherwise text."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class HttpxTransport:
    """
    POSTs events with an ``httpx.AsyncClient``.

    Args:
        client: Client to use; one is created (and owned) if omitted
    """

    def __init__(self, client: httpx.AsyncClient | None = None):
        self._client = client
        self._owns_client = client is None
        self._insecure_client: httpx.AsyncClient | None = None

    def _client_for(self, options: RequestOptions) -> httpx.AsyncClient:
        if not self._owns_client:
            return self._client
        if options.strict_ssl:
            if self._client is None:
                self._client = httpx.AsyncClient(verify=True)
            return self._client
        if self._insecure_client is None:
            self._insecure_client = httpx.AsyncClient(verify=False)
        return self._insecure_client

    async def post(self, options: RequestOptions) -> tuple[httpx.Response, Any]:
        """
        Send one POST.

        Returns:
            ``(response, body)`` where body is the decoded response

        Raises:
            TransportError: If the request could not be completed
        """
        client = self._client_for(options)
        if isinstance(options.body, str | bytes):
            kwargs: dict[str, Any] = {"content": options.body}
        else:
            kwargs = {"json": options.body}

        try:
            response = await client.post(
                options.url,
                headers=options.headers,
                timeout=options.timeout,
                **kwargs,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e

        logger.debug(f"POST {options.url} -> HTTP {response.status_code}")
        return response, decode_body(response)

    async def aclose(self) -> None:
        """Close any client this transport created."""
        if not self._owns_client:
            return
        for client in (self._client, self._insecure_client):
            if client is not None:
                await client.aclose()
        self._client = None
        self._insecure_client = None
