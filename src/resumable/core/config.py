"""Shared configuration classes for resumable.

This module defines configuration classes used by the client components.
"""

from __future__ import annotations

from dataclasses import dataclass

from resumable.core.chunking import CHUNK_SIZE


@dataclass
class ServerConfig:
    """Configuration for connecting to a transfer server.

    Used by the HTTP client (HTTPClient) and everything built on it
    (TransferClient, FileDownloader).

    Attributes:
        server_url: Base URL of the server (e.g., "http://localhost:8080").
        timeout: Request/connection timeout in seconds.
        chunk_size: Maximum upload chunk size in bytes.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    server_url: str
    timeout: float = 30.0
    chunk_size: int = CHUNK_SIZE
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize server URL and validate chunk size."""
        self.server_url = self.server_url.rstrip("/")
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be > 0, got {self.chunk_size}")

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS.

        Returns:
            True if server uses HTTPS.
        """
        return self.server_url.startswith("https://")
