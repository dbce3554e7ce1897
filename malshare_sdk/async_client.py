"""Asynchronous client for the MalShare API (requires ``httpx``)."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence, Union

import httpx
import structlog

from malshare_sdk import parsers
from malshare_sdk.batch import run_batch_async
from malshare_sdk.client import _param, download_url_fields, upload_fields, upload_targets
from malshare_sdk.connector import (
    DEFAULT_BASE_URL,
    MultipartField,
    build_api_base,
    check_status,
    multipart_files,
    redact,
)
from malshare_sdk.exceptions import TransportError
from malshare_sdk.models import ApiLimit, BatchPolicy, HashTriple, Sample, SampleDetails, SearchResult

logger = structlog.get_logger(__name__)


class AsyncMalShareConnector:
    """Asynchronous counterpart of :class:`~malshare_sdk.connector.MalShareConnector`.

    Args:
        api_base: Endpoint prefix including the API key.
        timeout: Per-request timeout in seconds.
        client: Optional pre-configured :class:`httpx.AsyncClient`. A client
            passed in is not closed by :meth:`close`.
    """

    def __init__(
        self,
        api_base: str,
        timeout: float = 60,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_base = api_base
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def get(self, suffix: str) -> bytes:
        return await self._send("GET", self._api_base + suffix)

    async def post(self, suffix: str, fields: Sequence[MultipartField]) -> bytes:
        return await self._send("POST", self._api_base + suffix, files=multipart_files(fields))

    async def close(self) -> None:
        """Close the underlying HTTP client if owned by this instance."""
        if self._owns_client:
            await self._client.aclose()

    async def _send(self, method: str, url: str, **kwargs: object) -> bytes:
        try:
            resp = await self._client.request(method, url, timeout=self._timeout, **kwargs)
        except httpx.TimeoutException as exc:
            raise TransportError(f"Request to {redact(url)!r} timed out: {exc}", url=url) from exc
        except httpx.ConnectError as exc:
            raise TransportError(f"Cannot connect to {redact(url)!r}: {exc}", url=url) from exc
        except (httpx.TransportError, httpx.DecodingError) as exc:
            raise TransportError(f"Reading the response of {redact(url)!r} failed: {exc}", url=url) from exc
        except httpx.RequestError as exc:
            raise TransportError(f"Request to {redact(url)!r} failed: {exc}", url=url) from exc

        logger.debug(
            "malshare_response",
            method=method,
            url=redact(url),
            status_code=resp.status_code,
            size=len(resp.content),
        )
        check_status(url, resp.status_code)
        return resp.content


class AsyncMalShareClient:
    """Asynchronous client for the MalShare API.

    Requires the ``httpx`` package (install with ``pip install malshare-sdk[async]``).
    Batch operations run their requests concurrently.

    Args:
        api_key: MalShare API key.
        base_url: Root URL of the MalShare site.
        timeout: Per-request timeout in seconds.
        client: Optional pre-configured :class:`httpx.AsyncClient`.
        connector: Optional ready-made :class:`AsyncMalShareConnector`.

    Example::

        async with AsyncMalShareClient("my-api-key") as client:
            samples = await client.get_files(hashes, policy=BatchPolicy.BEST_EFFORT)
    """

    def __init__(
        self,
        api_key: str = "",
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60,
        client: httpx.AsyncClient | None = None,
        connector: AsyncMalShareConnector | None = None,
    ) -> None:
        self._owns_connector = connector is None
        self._connector = connector or AsyncMalShareConnector(
            build_api_base(api_key, base_url),
            timeout=timeout,
            client=client,
        )

    async def get_list(self) -> list[HashTriple]:
        """List the hashes of samples added in the past 24 hours.

        Returns:
            One :class:`HashTriple` per non-empty response row.

        Raises:
            MalformedResponseError: If a row does not hold exactly three hashes.
            TransportError: If the request fails.
        """
        return parsers.parse_hash_list(await self._connector.get("getlistraw"))

    async def get_sources(self) -> list[str]:
        """List the sample sources of the past 24 hours, one entry per source.

        Raises:
            TransportError: If the request fails.
        """
        return parsers.parse_lines(await self._connector.get("getsourcesraw"))

    async def get_file(self, hash: str) -> Sample:
        """Download a sample by its MD5, SHA-1 or SHA-256 hash.

        Args:
            hash: Digest identifying the sample.

        Returns:
            A :class:`Sample`; ``found`` is ``False`` when MalShare does not
            hold the hash.

        Raises:
            TransportError: If the request fails.
        """
        return parsers.parse_sample(hash, await self._connector.get(f"getfile&hash={_param(hash)}"))

    async def get_file_details(self, hash: str) -> SampleDetails:
        """Retrieve the stored metadata of a sample.

        Args:
            hash: Digest identifying the sample.

        Returns:
            A :class:`SampleDetails`, or :meth:`SampleDetails.empty` for an
            unknown hash.

        Raises:
            MalformedResponseError: If the body is not a details object.
            TransportError: If the request fails.
        """
        return parsers.parse_file_details(await self._connector.get(f"details&hash={_param(hash)}"))

    async def get_recent_files_by_type(self, file_type: str) -> list[HashTriple]:
        """List hashes of samples of *file_type* added in the past 24 hours.

        Args:
            file_type: File-type label, e.g. ``"PE32"``.

        Raises:
            MalformedResponseError: If the body is not a JSON array of objects.
            TransportError: If the request fails.
        """
        return parsers.parse_hash_objects(await self._connector.get(f"type&type={_param(file_type)}"))

    async def search(self, query: str) -> list[SearchResult]:
        """Search sample hashes, sources and file names.

        Args:
            query: Free-text query; it is percent-encoded before sending.

        Returns:
            One :class:`SearchResult` per hit.

        Raises:
            MalformedResponseError: If a hit lacks a usable ``added`` time or
                has the wrong shape.
            TransportError: If the request fails.
        """
        return parsers.parse_search_results(await self._connector.get(f"search&query={_param(query)}"))

    async def get_recent_types(self) -> dict[str, int]:
        """Count the samples of each file type added in the past 24 hours.

        Raises:
            MalformedResponseError: If a count is not an integer.
            TransportError: If the request fails.
        """
        return parsers.parse_type_counts(await self._connector.get("gettypes"))

    async def get_api_key_limit(self) -> ApiLimit:
        """Retrieve the daily quota of the API key.

        Returns:
            An :class:`ApiLimit`; missing values are reported as ``0``.

        Raises:
            MalformedResponseError: If a value is not an integer.
            TransportError: If the request fails.
        """
        return parsers.parse_api_limit(await self._connector.get("getlimit"))

    async def get_download_task_status(self, guid: str) -> str:
        """Check a URL download task.

        Args:
            guid: Task GUID returned by :meth:`add_download_url`.

        Returns:
            The status reported by the server, or ``""``.

        Raises:
            MalformedResponseError: If ``status`` is not a scalar value.
            TransportError: If the request fails.
        """
        body = await self._connector.get(f"download_url_check&guid={_param(guid)}")
        return parsers.parse_task_status(body)

    async def upload(self, file_path: Union[str, Path]) -> None:
        """Upload a sample file, or every file directly inside a directory.

        Args:
            file_path: File or directory to upload.

        Raises:
            NotFoundError: If *file_path* does not exist. Nothing is sent.
            TransportError: If an upload request fails.
        """
        for path in upload_targets(file_path):
            await self.upload_bytes(path.read_bytes(), path.name)

    async def upload_bytes(self, data: bytes, filename: str = "file") -> None:
        """Upload in-memory sample content.

        Args:
            data: Raw sample content.
            filename: Filename sent with the upload.
        """
        await self._connector.post("upload", upload_fields(filename, data))

    async def add_download_url(self, url: str, recursive: bool = False) -> str:
        """Ask MalShare to download samples from *url*.

        Args:
            url: Location to fetch.
            recursive: Crawl the location recursively.

        Returns:
            The GUID of the download task.

        Raises:
            MalformedResponseError: If the response carries no GUID.
            TransportError: If the request fails.
        """
        return parsers.parse_guid(await self._connector.post("download_url", download_url_fields(url, recursive)))

    async def get_files(self, hashes: Iterable[str], *, policy: BatchPolicy) -> dict[str, Sample]:
        """Download several samples concurrently, keyed by the requested hash.

        Args:
            hashes: Digests to fetch.
            policy: What to do when one download fails.

        Raises:
            MalShareError: Under :attr:`BatchPolicy.FAIL_FAST`, the error of
                the first failing hash in input order.
        """
        return await run_batch_async("getfile", hashes, self.get_file, policy)

    async def get_download_task_statuses(self, guids: Iterable[str], *, policy: BatchPolicy) -> dict[str, str]:
        """Check several download tasks concurrently, keyed by GUID.

        Args:
            guids: Task GUIDs.
            policy: What to do when one check fails.
        """
        return await run_batch_async("download_url_check", guids, self.get_download_task_status, policy)

    async def add_download_urls(
        self,
        urls: Iterable[str],
        *,
        recursive: bool = False,
        policy: BatchPolicy,
    ) -> dict[str, str]:
        """Submit several URLs concurrently, returning the task GUID of each.

        Args:
            urls: Locations to fetch.
            recursive: Crawl every location recursively.
            policy: What to do when one submission fails.
        """
        return await run_batch_async(
            "download_url",
            urls,
            lambda url: self.add_download_url(url, recursive=recursive),
            policy,
        )

    async def close(self) -> None:
        """Close the underlying connector if owned by this instance."""
        if self._owns_connector:
            await self._connector.close()

    async def __aenter__(self) -> AsyncMalShareClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
