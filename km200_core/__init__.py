"""Protocol core for Buderus/Bosch KM200 heating gateways."""

__version__ = "0.1.0"

from .client import KM200Client
from .config import DEFAULT_RETRIES, DEFAULT_TIMEOUT, RETRY_DISABLED, KM200Config
from .crypto import KM200Credentials, KM200Crypto, derive_key
from .errors import (
    KM200BadRequest,
    KM200ConfigurationError,
    KM200ConnectionError,
    KM200CryptoError,
    KM200Error,
    KM200Forbidden,
    KM200Locked,
    KM200NotFound,
    KM200ResponseError,
    KM200ServerError,
    KM200Timeout,
    KM200TransportError,
    KM200TreeError,
)
from .protocol import FIRMWARE_PATH, USER_AGENT, Get, Post, Response
from .tree import EndpointKind, KM200Endpoint, KM200Tree, KM200TreeBuilder

__all__ = [
    "DEFAULT_RETRIES",
    "DEFAULT_TIMEOUT",
    "FIRMWARE_PATH",
    "RETRY_DISABLED",
    "USER_AGENT",
    "EndpointKind",
    "Get",
    "KM200BadRequest",
    "KM200Client",
    "KM200Config",
    "KM200ConfigurationError",
    "KM200ConnectionError",
    "KM200Credentials",
    "KM200Crypto",
    "KM200CryptoError",
    "KM200Endpoint",
    "KM200Error",
    "KM200Forbidden",
    "KM200Locked",
    "KM200NotFound",
    "KM200ResponseError",
    "KM200ServerError",
    "KM200Timeout",
    "KM200TransportError",
    "KM200Tree",
    "KM200TreeBuilder",
    "KM200TreeError",
    "Post",
    "Response",
    "__version__",
    "derive_key",
]
