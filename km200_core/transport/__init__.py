"""Transport layers for the KM200 client.

Each layer implements ``exchange(request) -> response`` and wraps another:

- http: one raw HTTP exchange via aiohttp
- checked: status code classification
- serialized: one exchange in flight per client
- retry: delayed retries for selected errors
"""

from .checked import CheckedTransport
from .http import KM200HttpTransport
from .retry import RetryTransport
from .serialized import SerializedTransport

__all__ = [
    "CheckedTransport",
    "KM200HttpTransport",
    "RetryTransport",
    "SerializedTransport",
]
