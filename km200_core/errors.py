"""Client error types for KM200 gateway interactions."""

from __future__ import annotations


class KM200Error(Exception):
    """Base error for KM200 client failures."""


class KM200ConfigurationError(KM200Error, ValueError):
    """Invalid client configuration or call argument."""


class KM200TransportError(KM200Error):
    """Network level failure while talking to the gateway."""


class KM200Timeout(KM200TransportError):
    """Timeout while communicating with the gateway."""


class KM200ConnectionError(KM200TransportError):
    """Network connection to the gateway failed."""


class KM200ResponseError(KM200Error):
    """HTTP response error from the gateway.

    Raised as-is for status codes without a dedicated subclass.
    """

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status


class KM200BadRequest(KM200ResponseError):
    """The gateway rejected the request (400)."""


class KM200Forbidden(KM200ResponseError):
    """The capability is not accessible with these credentials (403)."""


class KM200NotFound(KM200ResponseError):
    """The capability does not exist (404)."""


class KM200Locked(KM200ResponseError):
    """The capability is locked (423)."""


class KM200ServerError(KM200ResponseError):
    """The gateway failed internally (500). Usually transient."""


class KM200CryptoError(KM200Error):
    """Encrypting, decrypting or verifying a message failed."""


class KM200TreeError(KM200Error):
    """The capability tree could not be explored consistently."""
