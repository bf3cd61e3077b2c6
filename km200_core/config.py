"""Connection settings for a KM200 gateway."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from .errors import KM200ConfigurationError

DEFAULT_TIMEOUT = 5.0
DEFAULT_RETRIES = 3
RETRY_DISABLED = 0

ENV_PREFIX = "KM200_"


@dataclass(frozen=True)
class KM200Config:
    """Configuration for a KM200 client.

    Attributes:
        uri: Base URI of the gateway, e.g. "http://192.168.0.10"
        gateway_password: Password from the device's type sign
        private_password: Password chosen in the vendor app
        salt: Hex encoded device salt
        timeout: Per attempt timeout in seconds (default: 5.0)
        retries: Additional attempts after a retryable failure (default: 3,
            0 disables retrying)
    """

    uri: str
    gateway_password: str = field(repr=False)
    private_password: str = field(repr=False)
    salt: str = field(repr=False)
    timeout: float = DEFAULT_TIMEOUT
    retries: int = DEFAULT_RETRIES

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise KM200ConfigurationError("timeout must be positive")
        if self.retries < 0:
            raise KM200ConfigurationError("retries must not be negative")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> KM200Config:
        """Read the configuration from ``KM200_*`` environment variables.

        KM200_URI, KM200_GATEWAY_PASSWORD, KM200_PRIVATE_PASSWORD and
        KM200_SALT are required; KM200_TIMEOUT and KM200_RETRIES are optional.
        """
        env = os.environ if environ is None else environ

        def required(name: str) -> str:
            value = env.get(ENV_PREFIX + name)
            if not value:
                raise KM200ConfigurationError(f"{ENV_PREFIX}{name} is not set")
            return value

        try:
            timeout = float(env.get(ENV_PREFIX + "TIMEOUT", DEFAULT_TIMEOUT))
            retries = int(env.get(ENV_PREFIX + "RETRIES", DEFAULT_RETRIES))
        except ValueError as err:
            raise KM200ConfigurationError(
                f"{ENV_PREFIX}TIMEOUT or {ENV_PREFIX}RETRIES is malformed"
            ) from err

        return cls(
            uri=required("URI"),
            gateway_password=required("GATEWAY_PASSWORD"),
            private_password=required("PRIVATE_PASSWORD"),
            salt=required("SALT"),
            timeout=timeout,
            retries=retries,
        )
