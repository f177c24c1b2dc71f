"""Shared test setup."""

from __future__ import annotations

import asyncio
import json
import os
from typing import Union

import httpx
import pytest

from core.client import AssistantClient

# Qt tests run without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

HANG = object()  # Chunk placeholder: the stream stalls here until cancelled

ResponseSpec = Union[Exception, tuple[int, list]]


class FakeAssistantServer:
    """Scripted `/ask` endpoint served through `httpx.MockTransport`.

    Each request pops the next scripted response; the last one is reused.
    A response is either an exception to raise or `(status, chunks)`, where
    chunks are delivered one by one as separate network reads.
    """

    base_url = "http://assistant.test"
    HANG = HANG

    def __init__(self):
        self.requests: list[dict] = []
        self._responses: list[ResponseSpec] = []
        self.transport = httpx.MockTransport(self._handle)

    @staticmethod
    def line(**payload) -> bytes:
        return f"data: {json.dumps(payload, ensure_ascii=False)}\n".encode("utf-8")

    def respond(self, chunks: list, status: int = 200) -> None:
        self._responses.append((status, list(chunks)))

    def fail_with(self, exc: Exception) -> None:
        self._responses.append(exc)

    def client(self) -> AssistantClient:
        return AssistantClient(
            base_url=self.base_url,
            ask_path="/ask",
            timeout=5.0,
            transport=self.transport,
        )

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        spec = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(spec, Exception):
            raise spec
        status, chunks = spec
        return httpx.Response(status, content=self._stream(chunks))

    @staticmethod
    async def _stream(chunks: list):
        for chunk in chunks:
            if chunk is HANG:
                await asyncio.Event().wait()
            yield chunk


@pytest.fixture
def fake_server() -> FakeAssistantServer:
    return FakeAssistantServer()
