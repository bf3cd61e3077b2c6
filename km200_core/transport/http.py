"""HTTP transport for KM200 gateway endpoints."""

from __future__ import annotations

import logging

import aiohttp
from yarl import URL

from ..config import DEFAULT_TIMEOUT
from ..errors import KM200ConfigurationError, KM200ConnectionError, KM200Timeout
from ..protocol import USER_AGENT, Get, Post, Request, Response

_LOGGER = logging.getLogger(__name__)


def normalize_uri(uri: str) -> str:
    """Validate a gateway base URI and strip trailing slashes.

    Raises:
        KM200ConfigurationError: If the URI is not an absolute http(s) URI
    """
    try:
        parsed = URL(uri)
    except (TypeError, ValueError) as err:
        raise KM200ConfigurationError(f"Invalid gateway URI {uri!r}") from err
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise KM200ConfigurationError(f"Invalid gateway URI {uri!r}")
    return uri.rstrip("/")


class KM200HttpTransport:
    """Perform exactly one HTTP exchange per call.

    The response is returned for every status code; classification happens in
    an outer layer.

    When no session is given the transport creates its own session whose
    connector closes the connection after every exchange. A POST is then never
    replayed on a stale keep-alive connection. A caller supplying a session is
    responsible for configuring it the same way.
    """

    def __init__(
        self,
        uri: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        session: aiohttp.ClientSession | None = None,
        user_agent: str = USER_AGENT,
    ) -> None:
        if timeout <= 0:
            raise KM200ConfigurationError("Timeout must be positive")
        self._uri = normalize_uri(uri)
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._user_agent = user_agent

    @property
    def uri(self) -> str:
        return self._uri

    def _url(self, path: str) -> str:
        return f"{self._uri}{path}"

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": self._user_agent, "Accept": "application/json"}

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(force_close=True)
            )
        return self._session

    async def close(self) -> None:
        """Close the session if this transport created it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def exchange(self, request: Request) -> Response:
        """Send one request to the gateway.

        Raises:
            KM200Timeout: If the exchange exceeded the timeout
            KM200ConnectionError: If the connection failed or the response
                was malformed
        """
        session = self._get_session()
        url = self._url(request.path)
        timeout = aiohttp.ClientTimeout(total=self._timeout)
        _LOGGER.debug("%s", request)
        try:
            if isinstance(request, Get):
                context = session.get(url, headers=self._headers(), timeout=timeout)
            elif isinstance(request, Post):
                context = session.post(
                    url, data=request.body, headers=self._headers(), timeout=timeout
                )
            else:
                raise TypeError(f"Unsupported request {request!r}")

            async with context as resp:
                body = await resp.read()
                return Response(
                    status=resp.status,
                    body=body,
                    charset=resp.charset or "utf-8",
                )
        except TimeoutError as err:
            raise KM200Timeout(f"{request} timed out") from err
        except aiohttp.ClientError as err:
            raise KM200ConnectionError(f"{request} failed: {err}") from err
