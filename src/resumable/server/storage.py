"""Append-only artifact storage.

This module provides:
- Abstract interface for append-only artifact storage
- LocalFSStore for on-disk artifacts
- MemoryStore for testing
"""

from __future__ import annotations

import logging
import os
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO

logger = logging.getLogger(__name__)

# Block size for streaming reads
READ_BLOCK_SIZE = 64 * 1024


class StorageError(Exception):
    """Base exception for artifact storage errors."""


class ArtifactNotFoundError(StorageError):
    """Raised when an artifact is not found in storage."""


class InvalidArtifactNameError(StorageError):
    """Raised when an artifact name is unsafe to use as a storage key."""


class StorageFailureError(StorageError):
    """Raised when the underlying storage fails an I/O operation."""


class OffsetConflictError(StorageError):
    """Raised when a write does not start at the artifact's current length.

    Attributes:
        current_size: Stored length of the artifact when the check was made.
    """

    def __init__(self, name: str, offset: int, current_size: int) -> None:
        self.name = name
        self.offset = offset
        self.current_size = current_size
        super().__init__(
            f"Invalid chunk position for {name}: got offset {offset}, "
            f"stored size is {current_size}"
        )


def validate_name(name: str) -> str:
    """Check that an artifact name is a single, plain path component.

    Raises:
        InvalidArtifactNameError: If the name is empty, a dot entry, or
            contains a path separator or NUL byte.
    """
    if not name or name in (".", ".."):
        raise InvalidArtifactNameError(f"Invalid artifact name: {name!r}")
    if "/" in name or "\\" in name or "\x00" in name:
        raise InvalidArtifactNameError(f"Invalid artifact name: {name!r}")
    return name


class ArtifactStore(ABC):
    """Abstract interface for append-only artifact storage.

    Implementations only ever grow an artifact. A write is accepted only
    when it starts exactly at the current length, so the stored bytes are
    always a prefix of the file being uploaded.
    """

    @property
    @abstractmethod
    def location(self) -> str:
        """Return a human-readable description of where artifacts are stored."""

    @abstractmethod
    def exists(self, name: str) -> bool:
        """Check if an artifact exists in storage."""

    @abstractmethod
    def current_length(self, name: str) -> int:
        """Return the stored length of an artifact.

        Raises:
            ArtifactNotFoundError: If the artifact doesn't exist.
        """

    @abstractmethod
    def append_exactly_at(self, name: str, offset: int, data: bytes) -> int:
        """Append data to an artifact, creating it if needed.

        Args:
            name: Artifact name.
            offset: Position the data must land at (the current length).
            data: Bytes to append.

        Returns:
            New stored length.

        Raises:
            OffsetConflictError: If offset differs from the current length.
            StorageFailureError: If the write fails.
        """

    @abstractmethod
    def read_range(self, name: str, start: int, end: int) -> Iterator[bytes]:
        """Yield the bytes [start, end] (inclusive) of an artifact in blocks.

        Raises:
            ArtifactNotFoundError: If the artifact doesn't exist.
        """


class LocalFSStore(ArtifactStore):
    """Local filesystem storage, one file per artifact."""

    def __init__(self, base_path: Path | str) -> None:
        """Initialize local storage.

        Args:
            base_path: Base directory for artifacts.
        """
        self._base_path = Path(base_path).resolve()
        self._base_path.mkdir(parents=True, exist_ok=True)

    @property
    def location(self) -> str:
        """Return the local storage path."""
        return f"Local filesystem: {self._base_path}"

    def _artifact_path(self, name: str) -> Path:
        """Get the file path for an artifact, refusing escapes from the root."""
        path = (self._base_path / validate_name(name)).resolve()
        if path.parent != self._base_path:
            raise InvalidArtifactNameError(f"Invalid artifact name: {name!r}")
        return path

    def exists(self, name: str) -> bool:
        """Check if an artifact exists."""
        return self._artifact_path(name).is_file()

    def current_length(self, name: str) -> int:
        """Return the stored length of an artifact."""
        try:
            return self._artifact_path(name).stat().st_size
        except FileNotFoundError as e:
            raise ArtifactNotFoundError(f"Artifact not found: {name}") from e

    def append_exactly_at(self, name: str, offset: int, data: bytes) -> int:
        """Append data durably after checking the offset."""
        path = self._artifact_path(name)
        try:
            current = path.stat().st_size if path.exists() else 0
            if offset != current:
                raise OffsetConflictError(name, offset, current)
            with path.open("ab") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            logger.exception("Write error on %s", name)
            raise StorageFailureError(f"Upload failed: {name}") from e
        return current + len(data)

    def read_range(self, name: str, start: int, end: int) -> Iterator[bytes]:
        """Yield the requested bytes in READ_BLOCK_SIZE blocks."""
        path = self._artifact_path(name)
        try:
            f = path.open("rb")
        except FileNotFoundError as e:
            raise ArtifactNotFoundError(f"Artifact not found: {name}") from e
        return self._iter_file(f, start, end)

    @staticmethod
    def _iter_file(f: BinaryIO, start: int, end: int) -> Iterator[bytes]:
        with f:
            f.seek(start)
            remaining = end - start + 1
            while remaining > 0:
                block = f.read(min(READ_BLOCK_SIZE, remaining))
                if not block:
                    break
                remaining -= len(block)
                yield block


class MemoryStore(ArtifactStore):
    """In-memory storage for tests and ephemeral servers."""

    def __init__(self) -> None:
        self._artifacts: dict[str, bytearray] = {}
        self._lock = threading.Lock()

    @property
    def location(self) -> str:
        """Return the storage description."""
        return "In-memory"

    def exists(self, name: str) -> bool:
        """Check if an artifact exists."""
        with self._lock:
            return validate_name(name) in self._artifacts

    def current_length(self, name: str) -> int:
        """Return the stored length of an artifact."""
        with self._lock:
            buffer = self._artifacts.get(validate_name(name))
            if buffer is None:
                raise ArtifactNotFoundError(f"Artifact not found: {name}")
            return len(buffer)

    def append_exactly_at(self, name: str, offset: int, data: bytes) -> int:
        """Append data after checking the offset."""
        with self._lock:
            buffer = self._artifacts.get(validate_name(name))
            current = len(buffer) if buffer is not None else 0
            if offset != current:
                raise OffsetConflictError(name, offset, current)
            if buffer is None:
                buffer = self._artifacts[name] = bytearray()
            buffer.extend(data)
            return len(buffer)

    def read_range(self, name: str, start: int, end: int) -> Iterator[bytes]:
        """Yield a snapshot of the requested bytes in READ_BLOCK_SIZE blocks."""
        with self._lock:
            buffer = self._artifacts.get(validate_name(name))
            if buffer is None:
                raise ArtifactNotFoundError(f"Artifact not found: {name}")
            data = bytes(buffer[start : end + 1])
        return self._iter_blocks(data)

    @staticmethod
    def _iter_blocks(data: bytes) -> Iterator[bytes]:
        view = memoryview(data)
        for offset in range(0, len(data), READ_BLOCK_SIZE):
            yield bytes(view[offset : offset + READ_BLOCK_SIZE])


def create_store(config: dict[str, str | None]) -> ArtifactStore:
    """Factory function to create storage from configuration.

    Args:
        config: Storage configuration dict with keys:
            - type: "local" or "memory"
            - For local: local_path

    Returns:
        Configured ArtifactStore instance.

    Raises:
        ValueError: If storage type is unknown.
    """
    storage_type = config.get("type") or "local"

    if storage_type == "local":
        local_path = config.get("local_path") or "./uploads"
        return LocalFSStore(local_path)

    if storage_type == "memory":
        return MemoryStore()

    raise ValueError(f"Unknown storage type: {storage_type}")
