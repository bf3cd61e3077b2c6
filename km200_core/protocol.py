"""Request and response types shared by the KM200 transport layers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .errors import (
    KM200BadRequest,
    KM200Forbidden,
    KM200Locked,
    KM200NotFound,
    KM200ResponseError,
    KM200ServerError,
)

USER_AGENT = "TeleHeater/2.2.3"
FIRMWARE_PATH = "/gateway/firmware"


@dataclass(frozen=True)
class Get:
    """Read a capability."""

    path: str

    def __str__(self) -> str:
        return f"GET {self.path}"


@dataclass(frozen=True)
class Post:
    """Write an encrypted body to a capability."""

    path: str
    body: bytes

    def __str__(self) -> str:
        return f"POST {self.path}"


Request = Get | Post


@dataclass(frozen=True)
class Response:
    """Raw gateway response."""

    status: int
    body: bytes
    charset: str = "utf-8"


class Transport(Protocol):
    """A single operation exchanging one request for one response.

    Transports are layered by wrapping one implementation in another.
    """

    async def exchange(self, request: Request) -> Response: ...


_STATUS_ERRORS: dict[int, tuple[type[KM200ResponseError], str]] = {
    400: (KM200BadRequest, "was a bad request"),
    403: (KM200Forbidden, "is forbidden"),
    404: (KM200NotFound, "was not found"),
    423: (KM200Locked, "was locked"),
    500: (KM200ServerError, "resulted in a server error"),
}


def raise_for_status(request: Request, response: Response) -> Response:
    """Return a 2xx response or raise the error class for its status code."""
    status = response.status
    if 200 <= status <= 299:
        return response
    if status in _STATUS_ERRORS:
        error, reason = _STATUS_ERRORS[status]
        raise error(status, f"{request} {reason}")
    raise KM200ResponseError(status, f"{request} failed with response code {status}")
