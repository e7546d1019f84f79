"""Fixed-size chunk planning for resumable uploads.

This module provides:
- Chunk: an inclusive byte range of a source file
- ChunkPlan: lazy, restartable sequence of chunks from a resume offset
- read_chunk: read exactly one chunk's bytes from a file
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import BinaryIO

# Chunk size configuration (in bytes)
CHUNK_SIZE = 1 * 1024 * 1024   # 1 MB


@dataclass(frozen=True)
class Chunk:
    """Contiguous byte range [start, end] of a source file."""

    index: int
    start: int
    end: int

    @property
    def size(self) -> int:
        """Return the size of this chunk in bytes."""
        return self.end - self.start + 1

    def content_range(self, total: int) -> str:
        """Format the Content-Range header value for this chunk."""
        return f"bytes {self.start}-{self.end}/{total}"


class ChunkPlan:
    """Chunks covering [start, total) in ascending, contiguous order.

    The plan holds no iteration state: every call to iter() starts over
    from the resume offset, so a plan can be walked any number of times.
    """

    def __init__(self, start: int, total: int, chunk_size: int = CHUNK_SIZE) -> None:
        if start < 0:
            raise ValueError(f"Start offset must be >= 0, got {start}")
        if total < 0:
            raise ValueError(f"Total size must be >= 0, got {total}")
        if chunk_size <= 0:
            raise ValueError(f"Chunk size must be > 0, got {chunk_size}")
        self.start = start
        self.total = total
        self.chunk_size = chunk_size

    @property
    def remaining(self) -> int:
        """Bytes still to be transferred from the resume offset."""
        return max(self.total - self.start, 0)

    def __len__(self) -> int:
        return -(-self.remaining // self.chunk_size)

    def __iter__(self) -> Iterator[Chunk]:
        offset = self.start
        index = 0
        while offset < self.total:
            size = min(self.chunk_size, self.total - offset)
            yield Chunk(index=index, start=offset, end=offset + size - 1)
            offset += size
            index += 1

    def __repr__(self) -> str:
        return (
            f"ChunkPlan(start={self.start}, total={self.total}, "
            f"chunk_size={self.chunk_size})"
        )


def plan_chunks(start: int, total: int, chunk_size: int = CHUNK_SIZE) -> ChunkPlan:
    """Plan the chunks needed to move bytes [start, total) of a file.

    Args:
        start: Resume offset (bytes already stored on the server).
        total: Total size of the source file.
        chunk_size: Maximum chunk size in bytes.

    Returns:
        A ChunkPlan. Empty when start >= total.

    Raises:
        ValueError: If an argument is out of range.
    """
    return ChunkPlan(start, total, chunk_size)


def read_chunk(fileobj: BinaryIO, chunk: Chunk) -> bytes:
    """Read the bytes of a chunk from a seekable binary file.

    Raises:
        ValueError: If the file is shorter than the chunk expects.
    """
    fileobj.seek(chunk.start)
    data = fileobj.read(chunk.size)
    if len(data) != chunk.size:
        raise ValueError(
            f"Short read for chunk {chunk.index}: expected {chunk.size} bytes, "
            f"got {len(data)}"
        )
    return data
