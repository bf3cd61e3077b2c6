"""Client for reading and writing KM200 gateway capabilities."""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Iterator
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import aiohttp

from .config import DEFAULT_RETRIES, DEFAULT_TIMEOUT, KM200Config
from .crypto import KM200Credentials, KM200Crypto
from .errors import (
    KM200ConfigurationError,
    KM200CryptoError,
    KM200Error,
    KM200ServerError,
    KM200TransportError,
)
from .protocol import FIRMWARE_PATH, Get, Post, Transport
from .transport import (
    CheckedTransport,
    KM200HttpTransport,
    RetryTransport,
    SerializedTransport,
)
from .transport.retry import RETRY_DELAY_MAX, RETRY_DELAY_MIN
from .tree import KM200Endpoint, KM200Tree, KM200TreeBuilder

_LOGGER = logging.getLogger(__name__)

# A GET can always be repeated. A POST that timed out may already have
# changed the device, so updates are only retried on explicit server errors.
QUERY_RETRY_ON: tuple[type[KM200Error], ...] = (KM200TransportError, KM200ServerError)
UPDATE_RETRY_ON: tuple[type[KM200Error], ...] = (KM200ServerError,)

UpdateValue = str | int | float | Decimal | datetime


def check_path(path: str) -> str:
    """Return path if it is a valid capability path.

    Raises:
        KM200ConfigurationError: If path is empty, relative or contains
            whitespace or control characters
    """
    if not path or not path.startswith("/"):
        raise KM200ConfigurationError(f"Invalid path {path!r}")
    if any(char.isspace() or not char.isprintable() for char in path):
        raise KM200ConfigurationError(f"Invalid path {path!r}")
    return path


def _value_payload(value: UpdateValue) -> str:
    if isinstance(value, bool):
        raise KM200ConfigurationError("Boolean values are not supported")
    if isinstance(value, str):
        text = json.dumps(value, ensure_ascii=False)
    elif isinstance(value, datetime):
        if value.tzinfo is not None:
            raise KM200ConfigurationError("Only naive local times are supported")
        text = json.dumps(value.isoformat(timespec="seconds"))
    elif isinstance(value, Decimal):
        if not value.is_finite():
            raise KM200ConfigurationError(f"Cannot send {value}")
        text = str(value)
    elif isinstance(value, int):
        text = str(value)
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise KM200ConfigurationError(f"Cannot send {value}")
        text = json.dumps(value)
    else:
        raise KM200ConfigurationError(f"Unsupported value type {type(value).__name__}")
    return '{"value":' + text + "}"


class KM200Client:
    """Encrypted access to the capabilities of a KM200 gateway.

    Usage:
        async with KM200Client("http://192.168.0.10", gateway, private, salt) as km200:
            temperature = await km200.query_double("/system/sensors/temperatures/outdoor_t1")
            await km200.update("/dhwCircuits/dhw1/temperatureLevels/high", 55)

    All exchanges of one client are serialized. Queries are retried on
    network and server errors, updates only on server errors.
    """

    def __init__(
        self,
        uri: str,
        gateway_password: str,
        private_password: str,
        salt: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        retry_delay: tuple[float, float] = (RETRY_DELAY_MIN, RETRY_DELAY_MAX),
    ) -> None:
        """Initialize the client.

        Args:
            uri: Base URI of the gateway
            gateway_password: Password from the type sign, hyphens allowed
            private_password: Password chosen in the vendor app
            salt: Hex encoded device salt
            timeout: Per attempt timeout in seconds
            retries: Additional attempts after retryable failures, 0 disables
            session: Optional aiohttp session, otherwise one is created
            transport: Optional raw transport replacing the HTTP transport
            retry_delay: Range of the random delay between attempts
        """
        if retries < 0:
            raise KM200ConfigurationError("retries must not be negative")

        self._http = KM200HttpTransport(uri, timeout=timeout, session=session)
        self._crypto = KM200Crypto.from_credentials(
            KM200Credentials.from_strings(gateway_password, private_password, salt)
        )

        raw: Transport = transport if transport is not None else self._http
        serialized = SerializedTransport(CheckedTransport(raw))
        delay_min, delay_max = retry_delay
        self._query_transport = RetryTransport(
            serialized,
            retries,
            QUERY_RETRY_ON,
            delay_min=delay_min,
            delay_max=delay_max,
        )
        self._update_transport = RetryTransport(
            serialized,
            retries,
            UPDATE_RETRY_ON,
            delay_min=delay_min,
            delay_max=delay_max,
        )

    @classmethod
    def from_config(
        cls,
        config: KM200Config,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> KM200Client:
        """Create a client from a KM200Config."""
        return cls(
            config.uri,
            config.gateway_password,
            config.private_password,
            config.salt,
            timeout=config.timeout,
            retries=config.retries,
            session=session,
        )

    @property
    def uri(self) -> str:
        return self._http.uri

    async def connect(self) -> None:
        """Verify that the gateway answers and the credentials decrypt."""
        await self.query("/system")
        _LOGGER.debug("[%s] Gateway is reachable", self.uri)

    async def close(self) -> None:
        """Release the HTTP session if the client created it."""
        await self._http.close()

    async def __aenter__(self) -> KM200Client:
        try:
            await self.connect()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Raw access
    # -------------------------------------------------------------------------

    async def query(self, path: str) -> str:
        """Read and decrypt the JSON document of a capability.

        The firmware capability is returned as is, also when the gateway sends
        it unencrypted. Every other body must be a JSON object.

        Raises:
            KM200ConfigurationError: If path is invalid
            KM200TransportError: If the gateway was unreachable
            KM200ResponseError: If the gateway answered with an error status
            KM200CryptoError: If the body could not be decrypted
        """
        check_path(path)
        request = Get(path)
        response = await self._query_transport.exchange(request)
        if path == FIRMWARE_PATH:
            try:
                return self._crypto.decode(response.body, response.charset)
            except KM200CryptoError:
                _LOGGER.debug("%s is not encrypted", path)
                return response.body.decode(response.charset, errors="replace")
        decrypted = self._crypto.decode(response.body, response.charset)
        if not decrypted.startswith("{"):
            raise KM200CryptoError(f"Could not decrypt query {path}")
        return decrypted

    async def update_json(
        self, path: str, payload: str, *, charset: str = "utf-8"
    ) -> None:
        """Encrypt a JSON document and write it to a capability.

        The payload is encoded in charset before encryption, UTF-8 unless the
        device expects otherwise.

        Raises:
            KM200ConfigurationError: If path is invalid
            KM200TransportError: If the exchange failed, never retried
            KM200ResponseError: If the gateway answered with an error status
            KM200CryptoError: If the payload could not be encrypted
        """
        check_path(path)
        body = self._crypto.encode(payload, charset)
        await self._update_transport.exchange(Post(path, body))

    async def update(
        self, path: str, value: UpdateValue, *, charset: str = "utf-8"
    ) -> None:
        """Write a single value as ``{"value": ...}`` to a capability."""
        await self.update_json(path, _value_payload(value), charset=charset)

    # -------------------------------------------------------------------------
    # Typed reads
    # -------------------------------------------------------------------------

    async def _query_value(self, path: str, **parse_options: Any) -> Any:
        text = await self.query(path)
        try:
            document = json.loads(text, **parse_options)
        except json.JSONDecodeError as err:
            raise KM200Error(f"{path} returned invalid JSON") from err
        if not isinstance(document, dict) or "value" not in document:
            raise KM200Error(f"{path} has no value")
        return document["value"]

    async def query_string(self, path: str) -> str:
        value = await self._query_value(path)
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (str, int, float)):
            return str(value)
        raise KM200Error(f"{path} has no scalar value")

    async def query_double(self, path: str) -> float:
        value = await self._query_value(path)
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise KM200Error(f"{path} has no numeric value")
        try:
            return float(value)
        except ValueError as err:
            raise KM200Error(f"{path} has no numeric value") from err

    async def query_decimal(self, path: str) -> Decimal:
        """Read a numeric value without losing precision."""
        value = await self._query_value(path, parse_float=Decimal, parse_int=Decimal)
        if isinstance(value, Decimal):
            return value
        if isinstance(value, str):
            try:
                return Decimal(value)
            except InvalidOperation as err:
                raise KM200Error(f"{path} has no numeric value") from err
        raise KM200Error(f"{path} has no numeric value")

    async def query_bool(self, path: str) -> bool:
        value = await self._query_value(path)
        if isinstance(value, bool):
            return value
        if isinstance(value, int):
            return value != 0
        raise KM200Error(f"{path} has no boolean value")

    # -------------------------------------------------------------------------
    # Discovery
    # -------------------------------------------------------------------------

    async def tree(self) -> KM200Tree:
        """Explore all well known capabilities of the gateway."""
        return await KM200TreeBuilder(self).build()

    async def endpoints(self) -> Iterator[KM200Endpoint]:
        """Explore the gateway and return every non-reference capability."""
        tree = await self.tree()
        return tree.traverse()
