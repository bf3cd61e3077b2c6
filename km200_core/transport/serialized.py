"""Mutual exclusion for KM200 exchanges."""

from __future__ import annotations

import asyncio

from ..protocol import Request, Response, Transport


class SerializedTransport:
    """Allow at most one exchange at a time through the wrapped transport.

    The gateway only handles a single session. Concurrent callers wait for
    the lock; a caller cancelled while waiting never reaches the gateway.
    """

    def __init__(self, transport: Transport) -> None:
        self._transport = transport
        self._lock = asyncio.Lock()

    async def exchange(self, request: Request) -> Response:
        async with self._lock:
            return await self._transport.exchange(request)
