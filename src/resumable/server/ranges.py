"""Full and byte-range reads of stored artifacts.

This module provides:
- ArtifactInfo: result of a size-only query
- ArtifactSlice: the bytes selected by a read, plus range metadata
- RangeServer: resolves download requests against stored artifacts
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from resumable.core.ranges import ByteRange, format_content_range
from resumable.server.storage import ArtifactStore


@dataclass(frozen=True)
class ArtifactInfo:
    """Stored size of an artifact."""

    name: str
    size: int


@dataclass
class ArtifactSlice:
    """Selected bytes of an artifact.

    Attributes:
        start: First byte served (inclusive).
        end: Last byte served (inclusive).
        total: Stored length at the moment the read was resolved.
        partial: True for a byte-range (206) representation.
        chunks: Iterator over the served bytes.
    """

    start: int
    end: int
    total: int
    partial: bool
    chunks: Iterator[bytes] = field(repr=False)

    @property
    def length(self) -> int:
        """Number of bytes served."""
        return self.end - self.start + 1

    @property
    def content_range(self) -> str:
        """Content-Range header value for a partial response."""
        return format_content_range(self.start, self.end, self.total)


class RangeServer:
    """Serves reads of stored artifacts.

    Every read resolves against a single length snapshot, so an append that
    lands while a response is streaming never changes what is served.
    """

    def __init__(self, store: ArtifactStore) -> None:
        self._store = store

    def info(self, name: str) -> ArtifactInfo:
        """Report the stored size of an artifact without reading it.

        Raises:
            ArtifactNotFoundError: If the artifact doesn't exist.
        """
        return ArtifactInfo(name=name, size=self._store.current_length(name))

    def read(self, name: str, byte_range: ByteRange | None = None) -> ArtifactSlice:
        """Read a whole artifact, or the requested byte range of it.

        Args:
            name: Artifact name.
            byte_range: Parsed Range header, or None for the full artifact.

        Returns:
            ArtifactSlice describing and streaming the selected bytes.

        Raises:
            ArtifactNotFoundError: If the artifact doesn't exist.
            RangeNotSatisfiableError: If the range exceeds the stored length.
        """
        total = self._store.current_length(name)

        if byte_range is None:
            if total == 0:
                return ArtifactSlice(0, -1, 0, partial=False, chunks=iter(()))
            return ArtifactSlice(
                start=0,
                end=total - 1,
                total=total,
                partial=False,
                chunks=self._store.read_range(name, 0, total - 1),
            )

        start, end = byte_range.resolve(total)
        return ArtifactSlice(
            start=start,
            end=end,
            total=total,
            partial=True,
            chunks=self._store.read_range(name, start, end),
        )

