"""Shared pytest fixtures.

Servers run in-process: the FastAPI app is driven through TestClient, which
is an httpx.Client, so the real HTTPClient can talk to it unchanged.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from resumable.client.api import HTTPClient
from resumable.core.config import ServerConfig
from resumable.server.app import create_app
from resumable.server.storage import LocalFSStore

# Small chunks keep multi-chunk tests fast
TEST_CHUNK_SIZE = 4096


@pytest.fixture
def store(tmp_path: Path) -> LocalFSStore:
    """Create a test artifact store."""
    return LocalFSStore(tmp_path / "uploads")


@pytest.fixture
def app(store: LocalFSStore) -> FastAPI:
    """Create the server app around the test store."""
    return create_app(store)


@pytest.fixture
def test_client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Create a TestClient for the app."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def http_client(test_client: TestClient) -> HTTPClient:
    """Create an HTTPClient that talks to the in-process server."""
    config = ServerConfig(server_url="http://testserver", chunk_size=TEST_CHUNK_SIZE)
    return HTTPClient(config, http_client=test_client)


@pytest.fixture
def make_file(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a file of random bytes under tmp_path."""

    def _make(size: int, name: str = "data.bin") -> Path:
        path = tmp_path / "src" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(os.urandom(size))
        return path

    return _make
