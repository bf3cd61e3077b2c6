"""Pytest configuration and fixtures for km200_core tests."""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from km200_core import KM200Client, KM200Credentials, KM200Crypto
from km200_core.protocol import Request, Response

GATEWAY_PASSWORD = "aaaa-bbbb-cccc-dddd"
PRIVATE_PASSWORD = "secret1"
SALT = "ab" * 32
URI = "http://192.168.1.100"


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock aiohttp ClientSession."""
    import aiohttp

    return MagicMock(spec=aiohttp.ClientSession)


@pytest.fixture
def crypto() -> KM200Crypto:
    """Codec for the test credentials."""
    return KM200Crypto.from_credentials(
        KM200Credentials.from_strings(GATEWAY_PASSWORD, PRIVATE_PASSWORD, SALT)
    )


def create_mock_response(
    status: int = 200,
    read_data: bytes = b"",
    charset: str | None = None,
) -> AsyncMock:
    """Create a configured mock aiohttp response.

    Args:
        status: HTTP status code
        read_data: Data to return from read() call
        charset: Charset declared in the Content-Type header

    Returns:
        Configured AsyncMock response
    """
    response = AsyncMock()
    response.status = status
    response.charset = charset
    response.read.return_value = read_data

    response.__aenter__.return_value = response
    response.__aexit__.return_value = None

    return response


class ScriptedTransport:
    """Raw transport returning or raising the scripted outcomes in order.

    The last outcome repeats once the script is exhausted.
    """

    def __init__(self, *outcomes: Response | BaseException, delay: float = 0.0) -> None:
        self.requests: list[Request] = []
        self.intervals: list[tuple[float, float]] = []
        self._outcomes = list(outcomes)
        self._delay = delay

    async def exchange(self, request: Request) -> Response:
        self.requests.append(request)
        start = time.monotonic()
        if self._delay:
            await asyncio.sleep(self._delay)
        self.intervals.append((start, time.monotonic()))
        outcome = self._outcomes.pop(0) if len(self._outcomes) > 1 else self._outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeGateway:
    """Raw transport serving encrypted documents by path.

    Values may be a JSON document (dict or str), an HTTP status code, a raw
    Response sent unchanged, or an exception to raise. Unknown paths answer
    404.
    """

    def __init__(self, crypto: KM200Crypto, documents: dict[str, Any]) -> None:
        self.requests: list[Request] = []
        self._crypto = crypto
        self._documents = documents

    async def exchange(self, request: Request) -> Response:
        self.requests.append(request)
        document = self._documents.get(request.path, 404)
        if isinstance(document, BaseException):
            raise document
        if isinstance(document, Response):
            return document
        if isinstance(document, int):
            return Response(status=document, body=b"")
        if isinstance(document, dict):
            document = json.dumps(document)
        return Response(status=200, body=self._crypto.encode(document))

    @property
    def paths(self) -> list[str]:
        return [request.path for request in self.requests]


def create_client(transport: Any, *, retries: int = 3) -> KM200Client:
    """Create a client on top of a fake raw transport without retry delays."""
    return KM200Client(
        URI,
        GATEWAY_PASSWORD,
        PRIVATE_PASSWORD,
        SALT,
        retries=retries,
        transport=transport,
        retry_delay=(0.0, 0.0),
    )
