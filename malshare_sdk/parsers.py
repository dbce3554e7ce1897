"""Decoding of raw MalShare response bodies into SDK models.

Shared by :class:`~malshare_sdk.client.MalShareClient` and
:class:`~malshare_sdk.async_client.AsyncMalShareClient`. Every function takes
the complete response body and either returns a model or raises
:class:`~malshare_sdk.exceptions.MalformedResponseError`.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from malshare_sdk.exceptions import MalformedResponseError
from malshare_sdk.models import ApiLimit, HashTriple, Sample, SampleDetails, SearchResult

SAMPLE_NOT_FOUND_MARKER = b"sample not found"


def _text(body: bytes) -> str:
    return body.decode("utf-8", errors="replace")


def _rows(body: bytes) -> list[str]:
    return [row.strip() for row in _text(body).splitlines() if row.strip()]


def decode_json(action: str, body: bytes, expected: type) -> Any:
    """Parse *body* as JSON and check that the top-level value is *expected*."""
    try:
        data = json.loads(body)
    except ValueError as exc:
        raise MalformedResponseError(f"{action}: response is not valid JSON: {exc}", action=action) from exc
    if not isinstance(data, expected):
        raise MalformedResponseError(
            f"{action}: expected a JSON {expected.__name__}, got {type(data).__name__}",
            action=action,
        )
    return data


def _as_int(action: str, name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise MalformedResponseError(f"{action}: field {name!r} is not an integer", action=action, field=name)
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise MalformedResponseError(
            f"{action}: field {name!r} is not an integer: {value!r}",
            action=action,
            field=name,
        ) from exc


def _string_list(action: str, name: str, value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise MalformedResponseError(
            f"{action}: field {name!r} is not a list: {value!r}",
            action=action,
            field=name,
        )
    return tuple(str(item) for item in value)


def _scalar_text(action: str, obj: dict, name: str) -> str:
    value = obj.get(name)
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        raise MalformedResponseError(
            f"{action}: field {name!r} is not a string: {value!r}",
            action=action,
            field=name,
        )
    return str(value)


def _hash_triple(
    action: str, obj: dict, md5: str = "md5", sha1: str = "sha1", sha256: str = "sha256"
) -> HashTriple:
    return HashTriple(
        md5=_scalar_text(action, obj, md5),
        sha1=_scalar_text(action, obj, sha1),
        sha256=_scalar_text(action, obj, sha256),
    )


def _utc_timestamp(action: str, name: str, value: Any) -> datetime:
    seconds = _as_int(action, name, value)
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise MalformedResponseError(
            f"{action}: field {name!r} is not a valid timestamp: {value!r}",
            action=action,
            field=name,
        ) from exc


def parse_hash_list(body: bytes, action: str = "getlistraw") -> list[HashTriple]:
    """Decode ``md5 sha1 sha256`` rows, one sample per line. Blank lines are skipped.

    Columns are separated by exactly one space; a row with doubled spaces or
    tabs does not split into three columns and is rejected.
    """
    hashes = []
    for number, row in enumerate(_rows(body), start=1):
        columns = row.split(" ")
        if len(columns) != 3:
            raise MalformedResponseError(
                f"{action}: row {number} has {len(columns)} columns, expected 3: {row!r}",
                action=action,
                field=f"row {number}",
            )
        hashes.append(HashTriple(*columns))
    return hashes


def parse_lines(body: bytes) -> list[str]:
    """Decode one value per line. Blank lines, including a trailing one, are dropped."""
    return _rows(body)


def is_sample_not_found(body: bytes) -> bool:
    head = body.lstrip()[: len(SAMPLE_NOT_FOUND_MARKER)]
    return head.lower() == SAMPLE_NOT_FOUND_MARKER


def parse_sample(hash: str, body: bytes) -> Sample:
    if is_sample_not_found(body):
        return Sample.not_found(hash)
    return Sample(hash=hash, content=body)


def parse_file_details(body: bytes) -> SampleDetails:
    """Decode the ``details`` object.

    MalShare answers an unknown hash with an object lacking ``SOURCES``; that
    case maps to :meth:`SampleDetails.empty`.
    """
    data = decode_json("details", body, dict)
    sources = data.get("SOURCES")
    if sources is None:
        return SampleDetails.empty()
    return SampleDetails(
        hashes=_hash_triple("details", data, "MD5", "SHA1", "SHA256"),
        ssdeep=_scalar_text("details", data, "SSDEEP"),
        file_type=_scalar_text("details", data, "F_TYPE"),
        sources=_string_list("details", "SOURCES", sources),
    )


def parse_hash_objects(body: bytes, action: str = "type") -> list[HashTriple]:
    data = decode_json(action, body, list)
    return [_hash_triple(action, _object(action, item)) for item in data]


def _object(action: str, item: Any) -> dict:
    if not isinstance(item, dict):
        raise MalformedResponseError(
            f"{action}: expected a JSON object per element, got {type(item).__name__}",
            action=action,
        )
    return item


def normalize_yara_hits(value: Any) -> str:
    """Return the YARA-hit indicator as text; ``null`` in any form becomes ``""``."""
    if value is None:
        return ""
    if isinstance(value, str):
        return "" if value.strip().lower() == "null" else value
    return json.dumps(value, sort_keys=True)


def parse_search_results(body: bytes) -> list[SearchResult]:
    """Decode the ``search`` array.

    ``added`` is epoch seconds on the server's clock, which is UTC.
    """
    results = []
    for item in decode_json("search", body, list):
        obj = _object("search", item)
        if obj.get("added") is None:
            raise MalformedResponseError("search: result is missing 'added'", action="search", field="added")
        results.append(
            SearchResult(
                hashes=_hash_triple("search", obj),
                file_type=_scalar_text("search", obj, "type"),
                added=_utc_timestamp("search", "added", obj["added"]),
                source=_scalar_text("search", obj, "source"),
                yara_hits=normalize_yara_hits(obj.get("yarahits")),
                parent_files=_string_list("search", "parentfiles", obj.get("parentfiles")),
                sub_files=_string_list("search", "subfiles", obj.get("subfiles")),
            )
        )
    return results


def parse_type_counts(body: bytes) -> dict[str, int]:
    data = decode_json("gettypes", body, dict)
    return {label: _as_int("gettypes", label, count) for label, count in data.items()}


def parse_api_limit(body: bytes) -> ApiLimit:
    data = decode_json("getlimit", body, dict)
    return ApiLimit(
        limit=_as_int("getlimit", "LIMIT", data.get("LIMIT") or 0),
        remaining=_as_int("getlimit", "REMAINING", data.get("REMAINING") or 0),
    )


def parse_task_status(body: bytes) -> str:
    data = decode_json("download_url_check", body, dict)
    return _scalar_text("download_url_check", data, "status")


def parse_guid(body: bytes) -> str:
    data = decode_json("download_url", body, dict)
    guid = data.get("guid")
    if not guid:
        raise MalformedResponseError("download_url: response is missing 'guid'", action="download_url", field="guid")
    return str(guid)
