"""
HTTP client for the assistant API.
Opens the streaming ask request and hands the raw byte stream to the caller.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from core.config import get_api_url, get_ask_path, get_request_timeout
from core.exceptions import TransportError
from core.types import AskRequest

logger = logging.getLogger(__name__)


class AssistantClient:
    """
    Thin wrapper over `httpx.AsyncClient` for the `/ask` endpoint.

    Every transport failure, including non-2xx answers and errors while
    reading the body, surfaces as `TransportError`.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        ask_path: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = (base_url or get_api_url()).rstrip("/")
        self._ask_path = ask_path or get_ask_path()
        self._timeout = timeout if timeout is not None else get_request_timeout()
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=transport)

    @property
    def ask_url(self) -> str:
        return f"{self._base_url}{self._ask_path}"

    @asynccontextmanager
    async def stream_answer(self, request: AskRequest) -> AsyncIterator[AsyncIterator[bytes]]:
        """
        Send a request and yield the response body as an async byte iterator.

        The response is closed when the context exits, including when the
        caller stops reading early.

        Raises:
            TransportError: If the request fails or the server answers an error
        """
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        try:
            async with self._client.stream(
                "POST", self.ask_url, json=request.to_payload(), headers=headers
            ) as response:
                if response.is_error:
                    raise TransportError(
                        f"Server answered {response.status_code} for {self.ask_url}"
                    )
                yield self._iter_bytes(response)
        except httpx.HTTPError as exc:
            raise TransportError(f"Request to {self.ask_url} failed: {exc}") from exc

    @staticmethod
    async def _iter_bytes(response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as exc:
            raise TransportError(f"Response stream broke: {exc}") from exc

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AssistantClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
