"""Synchronous client for the MalShare API."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Union
from urllib.parse import quote

import requests

from malshare_sdk import parsers
from malshare_sdk.batch import run_batch
from malshare_sdk.connector import (
    DEFAULT_BASE_URL,
    BinaryField,
    MalShareConnector,
    MultipartField,
    TextField,
    build_api_base,
)
from malshare_sdk.exceptions import NotFoundError
from malshare_sdk.models import ApiLimit, BatchPolicy, HashTriple, Sample, SampleDetails, SearchResult


def upload_targets(file_path: Union[str, Path]) -> list[Path]:
    """Resolve an upload argument into the files to send.

    A directory contributes its regular files, sorted by name; nested
    directories are not descended into.

    Raises:
        NotFoundError: If *file_path* does not exist or is neither a regular
            file nor a directory.
    """
    path = Path(file_path)
    if path.is_dir():
        return sorted(child for child in path.iterdir() if child.is_file())
    if not path.is_file():
        raise NotFoundError(f"File not found: {path}")
    return [path]


def upload_fields(filename: str, content: bytes) -> list[MultipartField]:
    return [
        TextField("upload", filename),
        BinaryField("file", filename, content),
    ]


def download_url_fields(url: str, recursive: bool) -> list[MultipartField]:
    return [
        TextField("url", url),
        TextField("recursive", "1" if recursive else "0"),
    ]


def _param(value: str) -> str:
    return quote(value, safe="")


class MalShareClient:
    """Synchronous client for the MalShare API.

    Args:
        api_key: MalShare API key.
        base_url: Root URL of the MalShare site.
        timeout: Per-request timeout in seconds.
        session: Optional pre-configured :class:`requests.Session` for
            proxies or custom headers.
        connector: Optional ready-made :class:`MalShareConnector`; when given,
            *api_key*, *base_url*, *timeout* and *session* are ignored.

    Example::

        with MalShareClient("my-api-key") as client:
            for triple in client.get_list():
                print(triple.sha256)
    """

    def __init__(
        self,
        api_key: str = "",
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60,
        session: requests.Session | None = None,
        connector: MalShareConnector | None = None,
    ) -> None:
        self._owns_connector = connector is None
        self._connector = connector or MalShareConnector(
            build_api_base(api_key, base_url),
            timeout=timeout,
            session=session,
        )

    def get_list(self) -> list[HashTriple]:
        """List the hashes of samples added in the past 24 hours.

        Raises:
            MalformedResponseError: If a row does not hold exactly three hashes.
            TransportError: If the request fails.
        """
        return parsers.parse_hash_list(self._connector.get("getlistraw"))

    def get_sources(self) -> list[str]:
        """List the sample sources of the past 24 hours, one entry per source.

        Raises:
            TransportError: If the request fails.
        """
        return parsers.parse_lines(self._connector.get("getsourcesraw"))

    def get_file(self, hash: str) -> Sample:
        """Download a sample by its MD5, SHA-1 or SHA-256 hash.

        Args:
            hash: Digest identifying the sample.

        Returns:
            A :class:`Sample`; ``found`` is ``False`` when MalShare does not
            hold the hash.

        Raises:
            TransportError: If the request fails.
        """
        return parsers.parse_sample(hash, self._connector.get(f"getfile&hash={_param(hash)}"))

    def get_file_details(self, hash: str) -> SampleDetails:
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
        return parsers.parse_file_details(self._connector.get(f"details&hash={_param(hash)}"))

    def get_recent_files_by_type(self, file_type: str) -> list[HashTriple]:
        """List hashes of samples of *file_type* added in the past 24 hours.

        Args:
            file_type: File-type label, e.g. ``"PE32"``.

        Raises:
            MalformedResponseError: If the body is not a JSON array of objects.
            TransportError: If the request fails.
        """
        return parsers.parse_hash_objects(self._connector.get(f"type&type={_param(file_type)}"))

    def search(self, query: str) -> list[SearchResult]:
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
        return parsers.parse_search_results(self._connector.get(f"search&query={_param(query)}"))

    def get_recent_types(self) -> dict[str, int]:
        """Count the samples of each file type added in the past 24 hours.

        Raises:
            MalformedResponseError: If a count is not an integer.
            TransportError: If the request fails.
        """
        return parsers.parse_type_counts(self._connector.get("gettypes"))

    def get_api_key_limit(self) -> ApiLimit:
        """Retrieve the daily quota of the API key.

        Returns:
            An :class:`ApiLimit`; missing values are reported as ``0``.

        Raises:
            MalformedResponseError: If a value is not an integer.
            TransportError: If the request fails.
        """
        return parsers.parse_api_limit(self._connector.get("getlimit"))

    def get_download_task_status(self, guid: str) -> str:
        """Check a URL download task.

        Args:
            guid: Task GUID returned by :meth:`add_download_url`.

        Returns:
            One of ``"missing"``, ``"pending"``, ``"processing"`` or
            ``"finished"`` as reported by the server, or ``""``.

        Raises:
            MalformedResponseError: If ``status`` is not a scalar value.
            TransportError: If the request fails.
        """
        return parsers.parse_task_status(self._connector.get(f"download_url_check&guid={_param(guid)}"))

    def upload(self, file_path: Union[str, Path]) -> None:
        """Upload a sample file, or every file directly inside a directory.

        Uploading temporarily raises the key's quota.

        Args:
            file_path: File or directory to upload.

        Raises:
            NotFoundError: If *file_path* does not exist. Nothing is sent.
            TransportError: If an upload request fails.
        """
        for path in upload_targets(file_path):
            self.upload_bytes(path.read_bytes(), path.name)

    def upload_bytes(self, data: bytes, filename: str = "file") -> None:
        """Upload in-memory sample content.

        Args:
            data: Raw sample content.
            filename: Filename sent with the upload.

        Raises:
            TransportError: If the request fails.
        """
        self._connector.post("upload", upload_fields(filename, data))

    def add_download_url(self, url: str, recursive: bool = False) -> str:
        """Ask MalShare to download samples from *url*.

        Args:
            url: Location to fetch.
            recursive: Crawl the location recursively.

        Returns:
            The GUID of the download task, for :meth:`get_download_task_status`.

        Raises:
            MalformedResponseError: If the response carries no GUID.
            TransportError: If the request fails.
        """
        return parsers.parse_guid(self._connector.post("download_url", download_url_fields(url, recursive)))

    # ------------------------------------------------------------------
    # Batch operations
    # ------------------------------------------------------------------

    def get_files(self, hashes: Iterable[str], *, policy: BatchPolicy) -> dict[str, Sample]:
        """Download several samples one after another, keyed by the requested hash.

        Args:
            hashes: Digests to fetch.
            policy: What to do when one download fails.

        Raises:
            MalShareError: Under :attr:`BatchPolicy.FAIL_FAST`, the first
                per-hash error.
        """
        return run_batch("getfile", hashes, self.get_file, policy)

    def get_download_task_statuses(self, guids: Iterable[str], *, policy: BatchPolicy) -> dict[str, str]:
        """Check several download tasks one after another, keyed by GUID.

        Args:
            guids: Task GUIDs.
            policy: What to do when one check fails.

        Raises:
            MalShareError: Under :attr:`BatchPolicy.FAIL_FAST`, the first
                per-task error.
        """
        return run_batch("download_url_check", guids, self.get_download_task_status, policy)

    def add_download_urls(
        self,
        urls: Iterable[str],
        *,
        recursive: bool = False,
        policy: BatchPolicy,
    ) -> dict[str, str]:
        """Submit several URLs, returning the task GUID of each.

        Args:
            urls: Locations to fetch.
            recursive: Crawl every location recursively.
            policy: What to do when one submission fails.
        """
        return run_batch(
            "download_url",
            urls,
            lambda url: self.add_download_url(url, recursive=recursive),
            policy,
        )

    def close(self) -> None:
        """Release the underlying connector if owned by this instance."""
        if self._owns_connector:
            self._connector.close()

    def __enter__(self) -> MalShareClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
