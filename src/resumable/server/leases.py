"""Per-artifact upload leases.

A lease records which upload session currently owns an artifact name.
While a lease is live, appends from any other session are rejected, so two
clients can never interleave chunks into the same artifact.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_LEASE_TTL = 300.0


class LeaseConflictError(Exception):
    """Raised when another session holds the lease for an artifact."""

    def __init__(self, name: str, holder: str) -> None:
        self.name = name
        self.holder = holder
        super().__init__(f"Upload of {name} is owned by another session")


@dataclass
class Lease:
    """Current owner of an artifact name."""

    session_id: str
    last_active: float


class UploadLeases:
    """Thread-safe table of upload leases keyed by artifact name."""

    def __init__(
        self,
        ttl: float = DEFAULT_LEASE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the lease table.

        Args:
            ttl: Seconds of inactivity after which a lease expires.
            clock: Monotonic time source (injectable for tests).
        """
        self._ttl = ttl
        self._clock = clock
        self._leases: dict[str, Lease] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> float:
        """Lease inactivity timeout in seconds."""
        return self._ttl

    def __len__(self) -> int:
        """Number of leases currently recorded, live or not yet purged."""
        with self._lock:
            return len(self._leases)

    def _expired(self, lease: Lease, now: float) -> bool:
        return now - lease.last_active >= self._ttl

    def _purge_expired(self, now: float) -> None:
        """Drop every expired lease. Caller holds self._lock."""
        for name in [n for n, lease in self._leases.items() if self._expired(lease, now)]:
            logger.debug(f"Lease on {name} expired")
            del self._leases[name]

    def acquire(self, name: str, session_id: str) -> None:
        """Take or refresh the lease on name for session_id.

        Raises:
            LeaseConflictError: If a different session holds a live lease.
        """
        now = self._clock()
        with self._lock:
            lease = self._leases.get(name)
            if lease is not None and self._expired(lease, now):
                if lease.session_id != session_id:
                    logger.info(f"Lease on {name} expired, handing over to new session")
                lease = None
            self._purge_expired(now)
            if lease is not None and lease.session_id != session_id:
                raise LeaseConflictError(name, lease.session_id)
            self._leases[name] = Lease(session_id=session_id, last_active=now)

    def release(self, name: str, session_id: str) -> bool:
        """Drop the lease on name if session_id holds it.

        Returns:
            True if a lease was released.
        """
        with self._lock:
            lease = self._leases.get(name)
            if lease is None or lease.session_id != session_id:
                return False
            del self._leases[name]
            return True

    def holder(self, name: str) -> str | None:
        """Return the session id holding a live lease on name, if any."""
        now = self._clock()
        with self._lock:
            lease = self._leases.get(name)
            if lease is None:
                return None
            if self._expired(lease, now):
                del self._leases[name]
                return None
            return lease.session_id
