"""MalShare SDK — Python client for the MalShare malware repository API."""

from malshare_sdk.client import MalShareClient
from malshare_sdk.connector import BinaryField, MalShareConnector, TextField
from malshare_sdk.exceptions import (
    MalformedResponseError,
    MalShareError,
    NotFoundError,
    TransportError,
)
from malshare_sdk.models import (
    ApiLimit,
    BatchPolicy,
    HashTriple,
    Sample,
    SampleDetails,
    SearchResult,
)

__all__ = [
    "MalShareClient",
    "MalShareConnector",
    "AsyncMalShareClient",
    "AsyncMalShareConnector",
    "TextField",
    "BinaryField",
    "HashTriple",
    "SampleDetails",
    "SearchResult",
    "ApiLimit",
    "Sample",
    "BatchPolicy",
    "MalShareError",
    "TransportError",
    "MalformedResponseError",
    "NotFoundError",
]


def __getattr__(name: str) -> object:
    """Lazy-import the async client so ``httpx`` is optional at import time."""
    if name == "AsyncMalShareClient":
        from malshare_sdk.async_client import AsyncMalShareClient

        return AsyncMalShareClient
    if name == "AsyncMalShareConnector":
        from malshare_sdk.async_client import AsyncMalShareConnector

        return AsyncMalShareConnector
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
