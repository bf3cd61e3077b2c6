"""Status code classification for KM200 responses."""

from __future__ import annotations

from ..protocol import Request, Response, Transport, raise_for_status


class CheckedTransport:
    """Turn non-2xx responses of the wrapped transport into errors."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    async def exchange(self, request: Request) -> Response:
        response = await self._transport.exchange(request)
        return raise_for_status(request, response)
