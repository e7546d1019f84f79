"""HTTP byte-range header codec.

This module provides:
- ContentRange: parsed `Content-Range: bytes start-end/total` (upload side)
- ByteRange: parsed `Range: bytes=start-end` (download side)
- Formatting helpers for the response headers
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_CONTENT_RANGE_RE = re.compile(r"^bytes (\d+)-(\d+)/(\d+|\*)$")
_RANGE_RE = re.compile(r"^bytes=(\d*)-(\d*)$")


class MalformedRangeError(ValueError):
    """Raised when a range header is missing or cannot be parsed."""


class RangeNotSatisfiableError(Exception):
    """Raised when a requested range lies outside the stored bytes.

    Attributes:
        current_size: Stored length of the artifact when the check was made.
    """

    def __init__(self, current_size: int, message: str | None = None) -> None:
        self.current_size = current_size
        super().__init__(message or f"Range not satisfiable (size is {current_size})")


@dataclass(frozen=True)
class ContentRange:
    """Declared byte range of an uploaded chunk."""

    start: int
    end: int
    total: int | None

    @property
    def length(self) -> int:
        """Number of bytes the range declares."""
        return self.end - self.start + 1


@dataclass(frozen=True)
class ByteRange:
    """Requested download range.

    `start=None` denotes a suffix range (`bytes=-N`) with the suffix length
    stored in `end`. `end=None` means "through the last byte".
    """

    start: int | None
    end: int | None

    def resolve(self, total: int) -> tuple[int, int]:
        """Resolve against the artifact length to inclusive (start, end).

        Raises:
            RangeNotSatisfiableError: If the range falls outside [0, total).
        """
        if self.start is None:
            length = self.end or 0
            if length == 0 or total == 0:
                raise RangeNotSatisfiableError(total)
            return max(total - length, 0), total - 1

        end = self.end if self.end is not None else total - 1
        if self.start >= total or end >= total:
            raise RangeNotSatisfiableError(total)
        return self.start, end


def parse_content_range(header: str | None) -> ContentRange:
    """Parse an upload `Content-Range` header.

    Args:
        header: Raw header value, e.g. "bytes 0-1048575/2621440".

    Returns:
        Parsed ContentRange. `total` is None for "*".

    Raises:
        MalformedRangeError: If the header is absent or invalid.
    """
    if not header:
        raise MalformedRangeError("Content-Range header required")

    match = _CONTENT_RANGE_RE.match(header.strip())
    if not match:
        raise MalformedRangeError(f"Invalid Content-Range format: {header!r}")

    start = int(match.group(1))
    end = int(match.group(2))
    total = None if match.group(3) == "*" else int(match.group(3))

    if end < start:
        raise MalformedRangeError(f"Content-Range end before start: {header!r}")
    if total is not None and end >= total:
        raise MalformedRangeError(f"Content-Range end beyond total: {header!r}")
    return ContentRange(start=start, end=end, total=total)


def parse_range(header: str) -> ByteRange:
    """Parse a download `Range` header (single range only).

    Raises:
        MalformedRangeError: If the header is not a single `bytes=` range.
    """
    match = _RANGE_RE.match(header.strip())
    if not match or match.group(1) == match.group(2) == "":
        raise MalformedRangeError(f"Invalid Range format: {header!r}")

    if match.group(1) == "":
        return ByteRange(start=None, end=int(match.group(2)))

    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) else None
    if end is not None and end < start:
        raise MalformedRangeError(f"Range end before start: {header!r}")
    return ByteRange(start=start, end=end)


def format_content_range(start: int, end: int, total: int) -> str:
    """Format a satisfied `Content-Range` header value."""
    return f"bytes {start}-{end}/{total}"


def format_unsatisfied_range(current_size: int) -> str:
    """Format the `Content-Range` value sent with a 416 response."""
    return f"bytes */{current_size}"


def parse_unsatisfied_range(header: str | None) -> int | None:
    """Extract the size from a `bytes */N` header, or None if absent/invalid."""
    if not header or not header.startswith("bytes */"):
        return None
    value = header[len("bytes */"):]
    return int(value) if value.isdigit() else None
