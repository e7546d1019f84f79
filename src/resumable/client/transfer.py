"""Resumable chunked upload driver.

This module provides:
- TransferState: lifecycle of an upload session
- TransferSession: client-side state of one upload
- TransferProgress: progress snapshot passed to callbacks
- TransferClient: negotiates the resume offset and sends chunks in order
"""

from __future__ import annotations

import logging
import socket
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path

from resumable.client.api import HTTPClient
from resumable.client.cancel import CancelToken, TransferCancelledError
from resumable.client.negotiator import ResumeNegotiator
from resumable.core.chunking import plan_chunks, read_chunk

logger = logging.getLogger(__name__)


class TransferError(Exception):
    """The local file cannot be reconciled with the server artifact."""


class TransferState(Enum):
    """State of an upload session."""

    IDLE = auto()
    NEGOTIATING = auto()
    TRANSFERRING = auto()
    COMPLETED = auto()
    PAUSED = auto()
    FAILED = auto()


ACTIVE_STATES = (TransferState.NEGOTIATING, TransferState.TRANSFERRING)


@dataclass
class TransferProgress:
    """Progress of an upload, counted in acknowledged bytes only."""

    name: str
    total_size: int
    uploaded_size: int

    @property
    def percent(self) -> float:
        """Get progress percentage."""
        if self.total_size == 0:
            return 100.0
        return (self.uploaded_size / self.total_size) * 100


# Type alias for progress callback
ProgressCallback = Callable[[TransferProgress], None]


def session_id_for(path: Path, size: int) -> str:
    """Derive a stable upload session id for a local file.

    The same file on the same host always maps to the same id, so a
    restarted process can resume under the lease it held before.
    """
    key = f"{socket.gethostname()}:{path.resolve()}:{size}"
    return uuid.uuid5(uuid.NAMESPACE_URL, key).hex


@dataclass
class TransferSession:
    """Client-side state of a single upload.

    Attributes:
        name: Artifact name on the server.
        path: Local source file.
        total_size: Size of the source file.
        session_id: Id sent to the server for lease ownership.
        uploaded_size: Bytes the server has acknowledged.
        state: Current lifecycle state.
        token: The one live cancellation token for this session.
        error: Failure that moved the session to FAILED, if any.
    """

    name: str
    path: Path
    total_size: int
    session_id: str
    uploaded_size: int = 0
    state: TransferState = TransferState.IDLE
    token: CancelToken = field(default_factory=CancelToken)
    error: Exception | None = None

    @property
    def percent(self) -> float:
        """Get progress percentage."""
        return self.progress().percent

    def progress(self) -> TransferProgress:
        """Snapshot of acknowledged progress."""
        return TransferProgress(
            name=self.name,
            total_size=self.total_size,
            uploaded_size=self.uploaded_size,
        )


class TransferClient:
    """Uploads a file in chunks, one acknowledged chunk at a time.

    Chunks are sent strictly in byte order and chunk N+1 is only read once
    chunk N has been acknowledged. pause() may be called from any thread;
    it cancels the live token, which aborts the in-flight request body.
    A failed chunk is never retried here: call start() again, which
    re-negotiates the true offset with the server.
    """

    def __init__(
        self,
        client: HTTPClient,
        negotiator: ResumeNegotiator | None = None,
        chunk_size: int | None = None,
        progress_callback: ProgressCallback | None = None,
        use_session: bool = True,
    ) -> None:
        """Initialize the transfer client.

        Args:
            client: HTTP client for server communication.
            negotiator: Resume negotiator (defaults to one on client).
            chunk_size: Maximum chunk size (defaults to the client config).
            progress_callback: Optional callback after each acknowledged chunk.
            use_session: Send an Upload-Session header for lease ownership.
        """
        self._client = client
        self._negotiator = negotiator or ResumeNegotiator(client)
        self._chunk_size = chunk_size or client.config.chunk_size
        self._progress_callback = progress_callback
        self._use_session = use_session
        self._session: TransferSession | None = None
        self._lock = threading.Lock()

    @property
    def session(self) -> TransferSession | None:
        """The current (or most recent) upload session."""
        return self._session

    @property
    def state(self) -> TransferState:
        """State of the current session, IDLE if there is none."""
        if self._session is None:
            return TransferState.IDLE
        return self._session.state

    def _open_session(self, path: Path, name: str, total: int) -> tuple[TransferSession, CancelToken]:
        """Create or re-enter a session and hand it a fresh token.

        Any token issued earlier is cancelled so that a request still in
        flight under it can never be counted against the new attempt.
        """
        with self._lock:
            session = self._session
            if session is not None:
                session.token.cancel()
            if (
                session is None
                or session.name != name
                or session.path != path
                or session.total_size != total
            ):
                session = TransferSession(
                    name=name,
                    path=path,
                    total_size=total,
                    session_id=session_id_for(path, total),
                )
                self._session = session
            token = CancelToken()
            session.token = token
            session.error = None
            session.state = TransferState.NEGOTIATING
            return session, token

    def _set_state(
        self,
        session: TransferSession,
        token: CancelToken,
        state: TransferState,
        error: Exception | None = None,
    ) -> bool:
        """Update session state if token is still the live one."""
        with self._lock:
            if session.token is not token:
                return False
            session.state = state
            session.error = error
            return True

    def _report(self, session: TransferSession) -> None:
        if self._progress_callback:
            self._progress_callback(session.progress())

    def start(self, path: Path, name: str | None = None) -> TransferSession:
        """Upload path, resuming from whatever the server already holds.

        Args:
            path: Local file to upload.
            name: Artifact name on the server (defaults to the file name).

        Returns:
            The session, in COMPLETED or PAUSED state.

        Raises:
            TransferError: If the server holds more bytes than the file has.
            APIError: If a chunk is rejected (including OffsetConflictError).
            httpx.HTTPError: On network failure.
            OSError: If the local file cannot be read.
        """
        path = Path(path)
        name = name or path.name
        total = path.stat().st_size
        session, token = self._open_session(path, name, total)

        offset = self._negotiator.resume_offset(name)
        if offset > total:
            error = TransferError(
                f"Server holds {offset} bytes of {name} but {path} is only "
                f"{total} bytes"
            )
            self._set_state(session, token, TransferState.FAILED, error)
            raise error

        with self._lock:
            if session.token is token:
                session.uploaded_size = offset
        if not self._set_state(session, token, TransferState.TRANSFERRING):
            return session
        self._report(session)

        plan = plan_chunks(offset, total, self._chunk_size)
        if offset:
            logger.info(f"Resuming {name} at byte {offset}/{total}")
        else:
            logger.info(f"Uploading {name} ({total} bytes, {len(plan)} chunks)")

        try:
            with path.open("rb") as f:
                for chunk in plan:
                    token.raise_if_cancelled()
                    data = read_chunk(f, chunk)
                    self._client.upload_chunk(
                        name,
                        chunk,
                        data,
                        total,
                        cancel_token=token,
                        session_id=session.session_id if self._use_session else None,
                    )
                    with self._lock:
                        if session.token is not token:
                            raise TransferCancelledError("Transfer superseded")
                        session.uploaded_size = chunk.end + 1
                    logger.debug(
                        f"Chunk {chunk.index + 1}/{len(plan)} of {name} acknowledged "
                        f"({session.uploaded_size}/{total})"
                    )
                    self._report(session)
        except TransferCancelledError:
            if self._set_state(session, token, TransferState.PAUSED):
                logger.info(f"Upload paused: {name} at {session.uploaded_size}/{total}")
            return session
        except Exception as e:
            if self._set_state(session, token, TransferState.FAILED, e):
                logger.error(f"Upload failed: {name} at {session.uploaded_size}/{total}: {e}")
            raise

        self._set_state(session, token, TransferState.COMPLETED)
        logger.info(f"Uploaded {name}: {total} bytes")
        return session

    def pause(self) -> bool:
        """Cancel the in-flight chunk and stop the upload.

        Returns:
            True if an active upload was asked to pause.
        """
        with self._lock:
            session = self._session
            if session is None or session.state not in ACTIVE_STATES:
                return False
            session.token.cancel()
            logger.info(f"Pause requested for {session.name}")
            return True

    def status(self, path: Path, name: str | None = None) -> TransferProgress:
        """Report how much of path the server already holds, without uploading."""
        path = Path(path)
        name = name or path.name
        total = path.stat().st_size
        return TransferProgress(
            name=name,
            total_size=total,
            uploaded_size=min(self._negotiator.resume_offset(name), total),
        )
