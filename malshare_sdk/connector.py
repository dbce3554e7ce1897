"""HTTP transport for the MalShare API."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Sequence, Union
from urllib.parse import quote

import requests
import structlog

from malshare_sdk.exceptions import TransportError

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://malshare.com"

_API_KEY_RE = re.compile(r"(api_key=)[^&]*")


@dataclass(frozen=True, slots=True)
class TextField:
    """A plain-text multipart form field."""

    name: str
    value: str


@dataclass(frozen=True, slots=True)
class BinaryField:
    """A file part of a multipart form body."""

    name: str
    filename: str
    content: bytes = field(repr=False)
    content_type: str = "application/octet-stream"


MultipartField = Union[TextField, BinaryField]


def build_api_base(api_key: str, base_url: str = DEFAULT_BASE_URL) -> str:
    """Return the endpoint prefix to which an action name is appended."""
    return f"{base_url.rstrip('/')}/api.php?api_key={quote(api_key, safe='')}&action="


def redact(url: str) -> str:
    """Mask the API key in *url* so it can be logged or shown to users."""
    return _API_KEY_RE.sub(r"\1***", url)


def check_status(url: str, status_code: int) -> None:
    """Raise :class:`TransportError` unless *status_code* lies in ``[100, 399]``."""
    if status_code < 100 or status_code >= 400:
        raise TransportError(
            f"Status code error: the response of {redact(url)!r} returned {status_code}",
            url=url,
            status_code=status_code,
        )


def multipart_files(fields: Sequence[MultipartField]) -> list[tuple[str, tuple]]:
    """Translate ordered form fields into the ``files=`` list both HTTP libraries accept."""
    parts: list[tuple[str, tuple]] = []
    for item in fields:
        if isinstance(item, TextField):
            parts.append((item.name, (None, item.value.encode("utf-8"), "text/plain")))
        else:
            parts.append((item.name, (item.filename, item.content, item.content_type)))
    return parts


class MalShareConnector:
    """Performs single GET and multipart POST requests against the API endpoint.

    The connector validates the status code and returns the complete response
    body. It never looks at the content.

    Args:
        api_base: Endpoint prefix including the API key, as built by
            :func:`build_api_base`.
        timeout: Per-request timeout in seconds.
        session: Optional pre-configured :class:`requests.Session`. A session
            passed in is not closed by :meth:`close`.
    """

    def __init__(
        self,
        api_base: str,
        timeout: float = 60,
        session: requests.Session | None = None,
    ) -> None:
        self._api_base = api_base
        self._timeout = timeout
        self._owns_session = session is None
        self._session = session or requests.Session()

    def get(self, suffix: str) -> bytes:
        """Issue a GET for ``api_base + suffix`` and return the body."""
        url = self._api_base + suffix
        return self._send("GET", url)

    def post(self, suffix: str, fields: Sequence[MultipartField]) -> bytes:
        """Issue a multipart POST for ``api_base + suffix`` and return the body."""
        url = self._api_base + suffix
        return self._send("POST", url, files=multipart_files(fields))

    def close(self) -> None:
        """Close the underlying session if owned by this instance."""
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> MalShareConnector:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _send(self, method: str, url: str, **kwargs: object) -> bytes:
        try:
            resp = self._session.request(method, url, timeout=self._timeout, **kwargs)
            body = resp.content
        except requests.Timeout as exc:
            raise TransportError(f"Request to {redact(url)!r} timed out: {exc}", url=url) from exc
        except requests.ConnectionError as exc:
            raise TransportError(f"Cannot connect to {redact(url)!r}: {exc}", url=url) from exc
        except (requests.exceptions.ChunkedEncodingError, requests.exceptions.ContentDecodingError) as exc:
            raise TransportError(f"Reading the response of {redact(url)!r} failed: {exc}", url=url) from exc
        except requests.RequestException as exc:
            raise TransportError(f"Request to {redact(url)!r} failed: {exc}", url=url) from exc

        logger.debug(
            "malshare_response",
            method=method,
            url=redact(url),
            status_code=resp.status_code,
            size=len(body),
        )
        check_status(url, resp.status_code)
        return body
