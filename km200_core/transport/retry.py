"""Retry policy for KM200 exchanges."""

from __future__ import annotations

import asyncio
import logging
import random

from ..errors import KM200ConfigurationError
from ..protocol import Request, Response, Transport

_LOGGER = logging.getLogger(__name__)

RETRY_DELAY_MIN = 1.0
RETRY_DELAY_MAX = 2.0


class RetryTransport:
    """Retry failed exchanges of the wrapped transport.

    Only exceptions matching ``retry_on`` are retried, after a random delay
    between ``delay_min`` and ``delay_max`` seconds. After ``retries``
    additional attempts the last error is raised unchanged. Cancellation
    during the delay aborts without another attempt.
    """

    def __init__(
        self,
        transport: Transport,
        retries: int,
        retry_on: tuple[type[BaseException], ...],
        *,
        delay_min: float = RETRY_DELAY_MIN,
        delay_max: float = RETRY_DELAY_MAX,
    ) -> None:
        if retries < 0:
            raise KM200ConfigurationError("Retries must not be negative")
        if not 0 <= delay_min <= delay_max:
            raise KM200ConfigurationError("Invalid retry delay range")
        self._transport = transport
        self._retries = retries
        self._retry_on = retry_on
        self._delay_min = delay_min
        self._delay_max = delay_max

    @property
    def retries(self) -> int:
        return self._retries

    def _delay(self) -> float:
        # Jitter only, not used for anything security related
        return random.uniform(self._delay_min, self._delay_max)  # noqa: S311

    async def exchange(self, request: Request) -> Response:
        attempt = 0
        while True:
            try:
                return await self._transport.exchange(request)
            except self._retry_on as err:
                if attempt >= self._retries:
                    raise
                attempt += 1
                delay = self._delay()
                _LOGGER.warning(
                    "%s failed (%s), retry %d/%d in %.1fs",
                    request,
                    err,
                    attempt,
                    self._retries,
                    delay,
                )
            await asyncio.sleep(delay)
