"""Data models for MalShare SDK responses."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True, slots=True)
class HashTriple:
    """One sample identified by three digests at once.

    An empty string marks a digest the server did not report.

    Attributes:
        md5: Hex-encoded MD5 digest.
        sha1: Hex-encoded SHA-1 digest.
        sha256: Hex-encoded SHA-256 digest.
    """

    md5: str
    sha1: str
    sha256: str


@dataclass(frozen=True, slots=True)
class SampleDetails:
    """Metadata stored for a single sample.

    Attributes:
        hashes: The sample's :class:`HashTriple`.
        ssdeep: Fuzzy-hash digest.
        file_type: File-type label assigned by MalShare (e.g. ``"PE32"``).
        sources: Source labels, in the order the server lists them.
        is_empty: ``True`` only for the "no such sample" record built by
            :meth:`empty`.
    """

    hashes: HashTriple
    ssdeep: str
    file_type: str
    sources: tuple[str, ...] = ()
    is_empty: bool = False

    @classmethod
    def empty(cls) -> SampleDetails:
        """Return the canonical record for a hash MalShare does not know."""
        return cls(
            hashes=HashTriple("", "", ""),
            ssdeep="",
            file_type="",
            sources=(),
            is_empty=True,
        )


@dataclass(frozen=True, slots=True)
class SearchResult:
    """A single hit returned by the ``search`` action.

    Attributes:
        hashes: The sample's :class:`HashTriple`.
        file_type: File-type label.
        added: Time the sample was added, timezone-aware UTC.
        source: Source label.
        yara_hits: YARA-hit indicator, ``""`` when the server reports none.
        parent_files: Identifiers of files this sample was extracted from.
        sub_files: Identifiers of files extracted from this sample.
    """

    hashes: HashTriple
    file_type: str
    added: datetime
    source: str
    yara_hits: str = ""
    parent_files: tuple[str, ...] = ()
    sub_files: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ApiLimit:
    """Daily request quota of an API key, as reported by the server.

    Attributes:
        limit: Total number of requests allowed per day.
        remaining: Requests left for today.
    """

    limit: int
    remaining: int


@dataclass(frozen=True, slots=True)
class Sample:
    """Downloaded content of one sample.

    A hash MalShare does not know yields ``found=False``; a sample that exists
    but is zero bytes long yields ``found=True`` with empty ``content``.

    Attributes:
        hash: The hash the sample was requested by.
        content: Raw file content.
        found: Whether the server returned the sample.
    """

    hash: str
    content: bytes = field(repr=False)
    found: bool = True

    @classmethod
    def not_found(cls, hash: str) -> Sample:
        return cls(hash=hash, content=b"", found=False)


class BatchPolicy(enum.Enum):
    """How batch operations treat a failing item."""

    #: Abort on the first failing item and return nothing.
    FAIL_FAST = "fail_fast"
    #: Skip failing items; their keys are absent from the result.
    BEST_EFFORT = "best_effort"
