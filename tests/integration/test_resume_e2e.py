"""End-to-end tests for interrupted and resumed transfers over HTTP."""

from __future__ import annotations

import os
from pathlib import Path

import httpx

from resumable.client.download import FileDownloader
from resumable.client.transfer import TransferClient, TransferProgress, TransferState
from resumable.core.chunking import CHUNK_SIZE

from tests.integration.conftest import LiveServer

FILE_SIZE = 2 * CHUNK_SIZE + CHUNK_SIZE // 2


def test_interrupted_upload_resumes(live_server: LiveServer, tmp_path: Path) -> None:
    """A 2.5 MiB upload paused after two chunks should finish with one more."""
    source = tmp_path / "video.bin"
    source.write_bytes(os.urandom(FILE_SIZE))

    with live_server.client() as client:
        transfer: TransferClient

        def pause_after_two(progress: TransferProgress) -> None:
            if progress.uploaded_size == 2 * CHUNK_SIZE:
                transfer.pause()

        transfer = TransferClient(client, progress_callback=pause_after_two)
        session = transfer.start(source)

        assert session.state == TransferState.PAUSED
        assert client.get_stored_size("video.bin") == 2097152

        sent: list[tuple[str, int]] = []
        original = client.upload_chunk

        def spy(name, chunk, data, total, **kwargs):  # type: ignore[no-untyped-def]
            sent.append((chunk.content_range(total), len(data)))
            return original(name, chunk, data, total, **kwargs)

        client.upload_chunk = spy  # type: ignore[method-assign]

        # A fresh client, as after a process restart
        session = TransferClient(client).start(source)

        assert session.state == TransferState.COMPLETED
        assert sent == [("bytes 2097152-2621439/2621440", 524288)]
        assert client.get_stored_size("video.bin") == FILE_SIZE
        assert client.download("video.bin") == source.read_bytes()


def test_range_download_over_http(live_server: LiveServer) -> None:
    """Range requests should return 206 with the requested slice."""
    data = bytes(range(256)) * 4
    live_server.store.append_exactly_at("a.bin", 0, data)

    response = httpx.get(
        f"{live_server.url}/download/a.bin", headers={"Range": "bytes=10-19"}
    )

    assert response.status_code == 206
    assert response.content == data[10:20]
    assert response.headers["content-range"] == "bytes 10-19/1024"
    assert response.headers["content-length"] == "10"

    response = httpx.get(
        f"{live_server.url}/download/a.bin", headers={"Range": "bytes=2000-"}
    )

    assert response.status_code == 416
    assert response.headers["content-range"] == "bytes */1024"


def test_interrupted_download_resumes(live_server: LiveServer, tmp_path: Path) -> None:
    """A download with a partial local copy should fetch only the rest."""
    data = os.urandom(200_000)
    live_server.store.append_exactly_at("b.bin", 0, data)
    dest = tmp_path / "b.bin"
    (tmp_path / "b.bin.part").write_bytes(data[:50_000])

    with live_server.client() as client:
        result = FileDownloader(client).download_file("b.bin", dest)

    assert result.resumed_from == 50_000
    assert dest.read_bytes() == data


def test_out_of_order_chunk_rejected(live_server: LiveServer) -> None:
    """A chunk that skips ahead should be refused with the stored size."""
    base = live_server.url
    httpx.put(
        f"{base}/upload/c.bin",
        content=b"x" * 400,
        headers={"Content-Range": "bytes 0-399/1000"},
    )

    response = httpx.put(
        f"{base}/upload/c.bin",
        content=b"y" * 100,
        headers={"Content-Range": "bytes 500-599/1000"},
    )

    assert response.status_code == 416
    assert response.headers["content-range"] == "bytes */400"
    assert live_server.store.current_length("c.bin") == 400
