"""Cancellation tokens for in-flight transfers.

This module provides:
- TransferCancelledError: raised when a token is cancelled mid-transfer
- CancelToken: thread-safe, one-shot cancellation flag
- iter_payload: request body generator that aborts on cancellation
"""

from __future__ import annotations

import threading
from collections.abc import Iterator

# Slice size used when streaming a chunk body
SEND_BLOCK_SIZE = 64 * 1024


class TransferCancelledError(Exception):
    """Raised when a transfer is paused or superseded.

    Cancellation is not a failure: nothing sent under a cancelled token
    is counted as stored.
    """


class CancelToken:
    """One-shot cancellation flag shared between a session and its requests.

    Once cancelled a token stays cancelled; resuming a transfer always
    issues a new token.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        """Whether cancel() has been called."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Cancel the token."""
        self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise TransferCancelledError if the token is cancelled."""
        if self._event.is_set():
            raise TransferCancelledError("Transfer cancelled")


def iter_payload(
    data: bytes,
    token: CancelToken,
    block_size: int = SEND_BLOCK_SIZE,
) -> Iterator[bytes]:
    """Yield data in blocks, aborting the request once token is cancelled.

    Raising from inside the request body stops the transport mid-send, so
    the server never receives a complete payload for a cancelled chunk.
    """
    view = memoryview(data)
    for offset in range(0, len(data), block_size):
        token.raise_if_cancelled()
        yield bytes(view[offset : offset + block_size])
    token.raise_if_cancelled()
