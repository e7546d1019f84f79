"""Pytest fixtures for integration tests.

These run the real server under uvicorn in a background thread, backed by
an in-memory store, and talk to it over a loopback socket.
"""

from __future__ import annotations

import socket
import threading
import time
from collections.abc import Generator
from dataclasses import dataclass
from typing import Any

import httpx
import pytest
import uvicorn

from resumable.client.api import HTTPClient
from resumable.core.chunking import CHUNK_SIZE
from resumable.core.config import ServerConfig
from resumable.server.app import create_app
from resumable.server.storage import MemoryStore


class UvicornTestServer:
    """Uvicorn server running in a background thread for testing."""

    def __init__(self, app: Any, host: str = "127.0.0.1") -> None:
        self.app = app
        self.host = host
        self.port = 0
        self.server: uvicorn.Server | None = None
        self.thread: threading.Thread | None = None

    def start(self) -> int:
        """Start the server and return the port."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind((self.host, 0))
            self.port = s.getsockname()[1]

        config = uvicorn.Config(self.app, host=self.host, port=self.port, log_level="warning")
        self.server = uvicorn.Server(config)
        self.thread = threading.Thread(target=self.server.run, daemon=True)
        self.thread.start()
        self._wait_for_ready()
        return self.port

    def _wait_for_ready(self, timeout: float = 5.0) -> None:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            try:
                response = httpx.get(f"http://{self.host}:{self.port}/health")
                if response.status_code == 200:
                    return
            except httpx.TransportError:
                pass
            time.sleep(0.05)
        raise RuntimeError("Server failed to start in time")

    def stop(self) -> None:
        """Ask the server to exit and wait for its thread."""
        if self.server:
            self.server.should_exit = True
        if self.thread:
            self.thread.join(timeout=5.0)


@dataclass
class LiveServer:
    """A running server and the store behind it."""

    store: MemoryStore
    url: str

    def client(self, chunk_size: int = CHUNK_SIZE) -> HTTPClient:
        """Create an HTTPClient pointed at this server."""
        return HTTPClient(ServerConfig(server_url=self.url, chunk_size=chunk_size))


@pytest.fixture
def live_server() -> Generator[LiveServer, None, None]:
    """Start a server over an in-memory store."""
    store = MemoryStore()
    server = UvicornTestServer(create_app(store))
    port = server.start()

    yield LiveServer(store=store, url=f"http://127.0.0.1:{port}")

    server.stop()
