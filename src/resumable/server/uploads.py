"""Offset-validated chunk appends.

This module provides:
- UploadStore: validates declared chunk ranges against the stored size and
  appends accepted chunks, one writer at a time per artifact
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from resumable.core.ranges import ContentRange, MalformedRangeError
from resumable.server.leases import UploadLeases
from resumable.server.storage import (
    ArtifactNotFoundError,
    ArtifactStore,
    OffsetConflictError,
)

logger = logging.getLogger(__name__)


@dataclass
class _NameLock:
    """Lock for one artifact name and the number of appends holding or waiting on it."""

    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class UploadStore:
    """Append-only upload endpoint logic on top of an ArtifactStore.

    Appends to the same artifact are serialized with a per-name lock.
    Appends to different artifacts proceed independently.
    """

    def __init__(
        self,
        store: ArtifactStore,
        leases: UploadLeases | None = None,
    ) -> None:
        """Initialize the upload store.

        Args:
            store: Backing artifact storage.
            leases: Optional lease table rejecting concurrent sessions.
        """
        self._store = store
        self._leases = leases
        self._locks: dict[str, _NameLock] = {}
        self._locks_guard = threading.Lock()

    @property
    def store(self) -> ArtifactStore:
        """Backing artifact storage."""
        return self._store

    @property
    def locked_names(self) -> int:
        """Number of artifact names with an append in progress or waiting."""
        with self._locks_guard:
            return len(self._locks)

    @contextmanager
    def _locked(self, name: str) -> Iterator[None]:
        """Hold the append lock for name, dropping it once nobody needs it."""
        with self._locks_guard:
            entry = self._locks.get(name)
            if entry is None:
                entry = self._locks[name] = _NameLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[name]

    def stored_size(self, name: str) -> int:
        """Return how many bytes of name are durably stored.

        Raises:
            ArtifactNotFoundError: If nothing has been stored under name.
        """
        return self._store.current_length(name)

    def append(
        self,
        name: str,
        declared: ContentRange | None,
        payload: bytes,
        session_id: str | None = None,
    ) -> int:
        """Append one chunk to an artifact.

        Args:
            name: Artifact name.
            declared: Range parsed from the request's Content-Range header.
            payload: Chunk bytes.
            session_id: Upload session, checked against the lease table.

        Returns:
            Stored size after the append.

        Raises:
            MalformedRangeError: If the range is missing or the payload
                length does not match it.
            LeaseConflictError: If another session owns the artifact.
            OffsetConflictError: If the declared start is not the stored size.
            StorageFailureError: If the write fails.
        """
        if declared is None:
            raise MalformedRangeError("Content-Range header required")
        if len(payload) != declared.length:
            raise MalformedRangeError(
                f"Payload is {len(payload)} bytes but Content-Range declares "
                f"{declared.length}"
            )

        with self._locked(name):
            if self._leases is not None and session_id is not None:
                self._leases.acquire(name, session_id)

            try:
                current = self._store.current_length(name)
            except ArtifactNotFoundError:
                current = 0
            if declared.start != current:
                logger.warning(
                    f"Rejected chunk for {name}: start {declared.start}, "
                    f"stored size {current}"
                )
                raise OffsetConflictError(name, declared.start, current)

            new_size = self._store.append_exactly_at(name, declared.start, payload)

            if (
                self._leases is not None
                and session_id is not None
                and declared.total is not None
                and new_size >= declared.total
            ):
                self._leases.release(name, session_id)

        logger.debug(
            f"Appended {len(payload)} bytes to {name} "
            f"({new_size}/{declared.total if declared.total is not None else '*'})"
        )
        return new_size
