"""HTTP client for the resumable transfer server.

This module provides:
- HTTPClient: HTTP client for communicating with the server
- Upload operations (stored-size query, chunk append)
- Download operations (full and byte-range)
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from urllib.parse import quote

import httpx

from resumable.client.cancel import CancelToken, iter_payload
from resumable.core.chunking import Chunk
from resumable.core.config import ServerConfig
from resumable.core.headers import SESSION_HEADER
from resumable.core.ranges import parse_unsatisfied_range

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedRequestError(APIError):
    """The server rejected the request as malformed."""


class NotFoundError(APIError):
    """Artifact not found."""


class LeaseConflictError(APIError):
    """Another upload session owns the artifact."""


class OffsetConflictError(APIError):
    """Chunk start did not match the stored size.

    Attributes:
        current_size: Stored size reported by the server, if it sent one.
    """

    def __init__(self, message: str, current_size: int | None) -> None:
        super().__init__(message, 416)
        self.current_size = current_size


class RangeNotSatisfiableError(APIError):
    """Requested download range exceeds the stored size.

    Attributes:
        current_size: Stored size reported by the server, if it sent one.
    """

    def __init__(self, message: str, current_size: int | None) -> None:
        super().__init__(message, 416)
        self.current_size = current_size


class StorageFailureError(APIError):
    """The server failed to store or read the artifact."""


def escape_name(name: str) -> str:
    """Percent-encode an artifact name for use as a single path segment."""
    return quote(name, safe="")


def _detail(response: httpx.Response, default: str) -> str:
    """Extract an error message from a response body."""
    try:
        detail = response.json().get("detail", default)
    except ValueError:
        detail = response.text or default
    return str(detail)


class HTTPClient:
    """HTTP client for the resumable transfer server."""

    def __init__(
        self,
        config: ServerConfig,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Server connection configuration.
            http_client: Optional preconfigured httpx client (e.g. a
                FastAPI TestClient). When given, it is used as-is.
        """
        self._config = config
        self._client = http_client or httpx.Client(
            base_url=config.server_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
        )

    @property
    def config(self) -> ServerConfig:
        """Server connection configuration."""
        return self._config

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> HTTPClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code < 400:
            return response
        response.read()
        if response.status_code == 400:
            raise MalformedRequestError(_detail(response, "Bad request"), 400)
        if response.status_code == 404:
            raise NotFoundError("Resource not found", 404)
        if response.status_code == 409:
            raise LeaseConflictError(_detail(response, "Conflict"), 409)
        if response.status_code >= 500:
            raise StorageFailureError(
                _detail(response, "Server error"), response.status_code
            )
        raise APIError(_detail(response, "Unknown error"), response.status_code)

    # === Health check ===

    def health_check(self) -> bool:
        """Check if the server is healthy.

        Returns:
            True if server is healthy.
        """
        try:
            response = self._client.get("/health")
            return response.status_code == 200
        except httpx.RequestError:
            return False

    # === Upload operations ===

    def get_stored_size(self, name: str) -> int:
        """Query how many bytes of an artifact the server has stored.

        Args:
            name: Artifact name (unescaped).

        Returns:
            Stored size in bytes.

        Raises:
            NotFoundError: If the artifact doesn't exist.
            APIError: If the response carries no usable Content-Length.
        """
        response = self._handle_response(
            self._client.head(f"/upload/{escape_name(name)}")
        )
        value = response.headers.get("content-length", "")
        if not value.isdigit():
            raise APIError(f"Invalid Content-Length in size response: {value!r}")
        return int(value)

    def upload_chunk(
        self,
        name: str,
        chunk: Chunk,
        data: bytes,
        total: int,
        cancel_token: CancelToken | None = None,
        session_id: str | None = None,
    ) -> int:
        """Upload one chunk at its declared position.

        Args:
            name: Artifact name (unescaped).
            chunk: Planned chunk the data belongs to.
            data: Chunk bytes.
            total: Total size of the file being uploaded.
            cancel_token: Token that aborts the request body when cancelled.
            session_id: Upload session id for the server's lease check.

        Returns:
            Stored size reported by the server after the append.

        Raises:
            TransferCancelledError: If the token was cancelled before the
                server acknowledged the chunk.
            OffsetConflictError: If the chunk start is not the stored size.
        """
        headers = {
            "Content-Range": chunk.content_range(total),
            "Content-Type": "application/octet-stream",
            "Content-Length": str(len(data)),
        }
        if session_id:
            headers[SESSION_HEADER] = session_id

        content: bytes | Iterator[bytes] = data
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
            content = iter_payload(data, cancel_token)

        response = self._client.put(
            f"/upload/{escape_name(name)}",
            content=content,
            headers=headers,
        )
        if response.status_code == 416:
            current = parse_unsatisfied_range(response.headers.get("content-range"))
            raise OffsetConflictError(
                f"Invalid chunk position {chunk.start} for {name} "
                f"(server has {current})",
                current,
            )
        self._handle_response(response)
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        size = response.json().get("size")
        return int(size) if size is not None else chunk.end + 1

    # === Download operations ===

    def download(self, name: str, start: int | None = None, end: int | None = None) -> bytes:
        """Download an artifact, or a byte range of it.

        Args:
            name: Artifact name (unescaped).
            start: First byte to fetch; None for the whole artifact.
            end: Last byte to fetch (inclusive); None for "through the end".

        Returns:
            The downloaded bytes.

        Raises:
            NotFoundError: If the artifact doesn't exist.
            RangeNotSatisfiableError: If the range exceeds the stored size.
        """
        with self.stream_download(name, start, end) as response:
            return response.read()

    @contextmanager
    def stream_download(
        self,
        name: str,
        start: int | None = None,
        end: int | None = None,
    ) -> Iterator[httpx.Response]:
        """Open a streaming download response.

        Yields:
            The checked httpx response; iterate with iter_bytes().
        """
        headers = {}
        if start is not None:
            headers["Range"] = f"bytes={start}-{'' if end is None else end}"

        with self._client.stream(
            "GET", f"/download/{escape_name(name)}", headers=headers
        ) as response:
            if response.status_code == 416:
                current = parse_unsatisfied_range(
                    response.headers.get("content-range")
                )
                raise RangeNotSatisfiableError(
                    f"Range {headers.get('Range')} not satisfiable for {name} "
                    f"(server has {current})",
                    current,
                )
            yield self._handle_response(response)
