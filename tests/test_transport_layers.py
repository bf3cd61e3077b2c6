"""Test the classification, serialization and retry transport layers."""

from __future__ import annotations

import asyncio

import pytest

from km200_core import (
    Get,
    KM200BadRequest,
    KM200ConfigurationError,
    KM200Forbidden,
    KM200Locked,
    KM200NotFound,
    KM200ResponseError,
    KM200ServerError,
    Post,
    Response,
)
from km200_core.client import QUERY_RETRY_ON, UPDATE_RETRY_ON
from km200_core.errors import KM200ConnectionError, KM200Timeout
from km200_core.transport import CheckedTransport, RetryTransport, SerializedTransport

from .conftest import ScriptedTransport

OK = Response(status=200, body=b"ok")


def _retry(inner: ScriptedTransport, retries: int, retry_on=QUERY_RETRY_ON) -> RetryTransport:
    return RetryTransport(inner, retries, retry_on, delay_min=0.0, delay_max=0.0)


class TestCheckedTransport:
    """Tests for status code classification."""

    @pytest.mark.parametrize("status", [200, 201, 204, 299])
    async def test_2xx_is_success(self, status: int) -> None:
        """Test every 2xx status passes through."""
        response = Response(status=status, body=b"x")
        transport = CheckedTransport(ScriptedTransport(response))

        assert await transport.exchange(Get("/system")) is response

    @pytest.mark.parametrize(
        ("status", "error"),
        [
            (400, KM200BadRequest),
            (403, KM200Forbidden),
            (404, KM200NotFound),
            (423, KM200Locked),
            (500, KM200ServerError),
        ],
    )
    async def test_known_status_codes(self, status: int, error: type) -> None:
        """Test known error codes map to their error class."""
        transport = CheckedTransport(ScriptedTransport(Response(status, b"")))

        with pytest.raises(error) as exc_info:
            await transport.exchange(Get("/system"))

        assert exc_info.value.status == status

    @pytest.mark.parametrize("status", [301, 401, 402, 499, 503, 599])
    async def test_unclassified_status_codes(self, status: int) -> None:
        """Test other codes raise the generic response error."""
        transport = CheckedTransport(ScriptedTransport(Response(status, b"")))

        with pytest.raises(KM200ResponseError) as exc_info:
            await transport.exchange(Post("/system", b""))

        assert type(exc_info.value) is KM200ResponseError
        assert exc_info.value.status == status
        assert f"POST /system failed with response code {status}" in str(exc_info.value)


class TestRetryTransport:
    """Tests for the retry policy."""

    async def test_exhausted_retries_make_one_plus_retries_attempts(self) -> None:
        """Test retries=3 against a failing device makes 4 attempts."""
        inner = ScriptedTransport(KM200ServerError(500, "server error"))
        transport = _retry(inner, 3, UPDATE_RETRY_ON)

        with pytest.raises(KM200ServerError):
            await transport.exchange(Post("/update", b""))

        assert len(inner.requests) == 4

    async def test_zero_retries_make_one_attempt(self) -> None:
        """Test retries=0 disables retrying."""
        inner = ScriptedTransport(KM200ServerError(500, "server error"))
        transport = _retry(inner, 0)

        with pytest.raises(KM200ServerError):
            await transport.exchange(Get("/system"))

        assert len(inner.requests) == 1

    async def test_last_error_is_raised_unchanged(self) -> None:
        """Test exhaustion surfaces the final failure itself."""
        first = KM200ServerError(500, "first")
        last = KM200ServerError(500, "last")
        inner = ScriptedTransport(first, last)
        transport = _retry(inner, 1)

        with pytest.raises(KM200ServerError) as exc_info:
            await transport.exchange(Get("/system"))

        assert exc_info.value is last

    async def test_success_after_failures(self) -> None:
        """Test a later success is returned."""
        inner = ScriptedTransport(
            KM200ServerError(500, "server error"),
            KM200Timeout("timed out"),
            KM200ConnectionError("reset"),
            OK,
        )
        transport = _retry(inner, 3)

        assert await transport.exchange(Get("/system")) is OK
        assert len(inner.requests) == 4

    @pytest.mark.parametrize(
        "error",
        [
            KM200BadRequest(400, "bad"),
            KM200Forbidden(403, "forbidden"),
            KM200NotFound(404, "not found"),
            KM200Locked(423, "locked"),
            KM200ResponseError(599, "unknown"),
        ],
    )
    async def test_client_errors_are_not_retried(self, error: Exception) -> None:
        """Test errors outside the retry set fail on the first attempt."""
        inner = ScriptedTransport(error)
        transport = _retry(inner, 3)

        with pytest.raises(type(error)):
            await transport.exchange(Get("/system"))

        assert len(inner.requests) == 1

    @pytest.mark.parametrize(
        "error", [KM200Timeout("timed out"), KM200ConnectionError("reset")]
    )
    async def test_updates_do_not_retry_transport_errors(self, error: Exception) -> None:
        """Test a POST that may have reached the device is not repeated."""
        inner = ScriptedTransport(error, OK)
        transport = _retry(inner, 3, UPDATE_RETRY_ON)

        with pytest.raises(type(error)):
            await transport.exchange(Post("/update", b""))

        assert len(inner.requests) == 1

    @pytest.mark.parametrize(
        "error", [KM200Timeout("timed out"), KM200ConnectionError("reset")]
    )
    async def test_queries_retry_transport_errors(self, error: Exception) -> None:
        """Test a GET is repeated after network failures."""
        inner = ScriptedTransport(error, OK)
        transport = _retry(inner, 3, QUERY_RETRY_ON)

        assert await transport.exchange(Get("/system")) is OK
        assert len(inner.requests) == 2

    async def test_waits_between_attempts(self) -> None:
        """Test the delay is applied before each retry."""
        inner = ScriptedTransport(KM200ServerError(500, "server error"), OK)
        transport = RetryTransport(
            inner, 1, QUERY_RETRY_ON, delay_min=0.05, delay_max=0.05
        )

        await transport.exchange(Get("/system"))

        (_, first_end), (second_start, _) = inner.intervals
        assert second_start - first_end >= 0.04

    async def test_cancel_during_delay_stops_retrying(self) -> None:
        """Test cancellation while waiting aborts without another attempt."""
        inner = ScriptedTransport(KM200ServerError(500, "server error"))
        transport = RetryTransport(
            inner, 3, QUERY_RETRY_ON, delay_min=10.0, delay_max=10.0
        )

        task = asyncio.create_task(transport.exchange(Get("/system")))
        while not inner.requests:
            await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(inner.requests) == 1

    def test_negative_retries_raise(self) -> None:
        """Test a negative retry budget is rejected."""
        with pytest.raises(KM200ConfigurationError):
            RetryTransport(ScriptedTransport(OK), -1, QUERY_RETRY_ON)

    def test_invalid_delay_range_raises(self) -> None:
        """Test the minimum delay must not exceed the maximum."""
        with pytest.raises(KM200ConfigurationError):
            RetryTransport(
                ScriptedTransport(OK), 1, QUERY_RETRY_ON, delay_min=2.0, delay_max=1.0
            )


class TestSerializedTransport:
    """Tests for mutual exclusion."""

    async def test_concurrent_exchanges_do_not_overlap(self) -> None:
        """Test only one exchange is in flight at a time."""
        inner = ScriptedTransport(OK, delay=0.05)
        transport = SerializedTransport(inner)

        await asyncio.gather(
            transport.exchange(Get("/a")),
            transport.exchange(Get("/b")),
            transport.exchange(Get("/c")),
        )

        intervals = sorted(inner.intervals)
        assert len(intervals) == 3
        for (_, end), (start, _) in zip(intervals, intervals[1:]):
            assert start >= end

    async def test_lock_is_released_after_error(self) -> None:
        """Test a failing exchange does not block later callers."""
        inner = ScriptedTransport(KM200ServerError(500, "server error"), OK)
        transport = SerializedTransport(inner)

        with pytest.raises(KM200ServerError):
            await transport.exchange(Get("/system"))

        assert await asyncio.wait_for(transport.exchange(Get("/system")), 1.0) is OK

    async def test_cancel_while_waiting_for_lock(self) -> None:
        """Test a caller cancelled in the queue never reaches the device."""
        inner = ScriptedTransport(OK, delay=0.1)
        transport = SerializedTransport(inner)

        first = asyncio.create_task(transport.exchange(Get("/first")))
        while not inner.requests:
            await asyncio.sleep(0)
        second = asyncio.create_task(transport.exchange(Get("/second")))
        await asyncio.sleep(0)
        second.cancel()

        with pytest.raises(asyncio.CancelledError):
            await second
        assert await first is OK
        assert [request.path for request in inner.requests] == ["/first"]
