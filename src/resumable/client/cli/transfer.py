"""Transfer commands for the resumable CLI.

Commands:
- upload: Upload a file, resuming from what the server already holds
- download: Download an artifact, resuming a partial local copy
- status: Show how much of a file the server already holds
"""

from __future__ import annotations

import sys
import threading
from collections.abc import Callable
from pathlib import Path

import click

from resumable.client.api import HTTPClient, NotFoundError
from resumable.client.cancel import CancelToken, TransferCancelledError
from resumable.client.download import DownloadError, DownloadResult, FileDownloader
from resumable.client.transfer import (
    TransferClient,
    TransferError,
    TransferProgress,
    TransferState,
)
from resumable.core.chunking import CHUNK_SIZE
from resumable.core.config import ServerConfig

DEFAULT_SERVER_URL = "http://localhost:8080"

server_option = click.option(
    "--server",
    "-s",
    "server_url",
    envvar="RESUMABLE_SERVER_URL",
    default=DEFAULT_SERVER_URL,
    show_default=True,
    help="Server base URL (env: RESUMABLE_SERVER_URL).",
)


def _print_progress(progress: TransferProgress) -> None:
    click.echo(
        f"\r{progress.name}: {progress.percent:5.1f}% "
        f"({progress.uploaded_size}/{progress.total_size} bytes)",
        nl=False,
    )


def _run_interruptible(target: threading.Thread, on_interrupt: Callable[[], None]) -> None:
    """Run target to completion, calling on_interrupt() on Ctrl-C."""
    target.start()
    try:
        while target.is_alive():
            target.join(0.2)
    except KeyboardInterrupt:
        on_interrupt()
        target.join()


@click.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--name", "-n", default=None, help="Artifact name on the server (default: file name).")
@click.option(
    "--chunk-size",
    type=click.IntRange(min=1),
    default=CHUNK_SIZE,
    show_default=True,
    help="Chunk size in bytes.",
)
@click.option("--no-progress", is_flag=True, help="Disable progress output.")
@server_option
def upload(
    file: Path,
    name: str | None,
    chunk_size: int,
    no_progress: bool,
    server_url: str,
) -> None:
    """Upload FILE, resuming from the last acknowledged byte.

    Press Ctrl-C to pause; run the same command again to resume.
    """
    config = ServerConfig(server_url=server_url, chunk_size=chunk_size)
    errors: list[Exception] = []

    with HTTPClient(config) as client:
        transfer = TransferClient(
            client,
            progress_callback=None if no_progress else _print_progress,
        )

        def run() -> None:
            try:
                transfer.start(file, name)
            except Exception as e:
                # Reported once the thread has joined
                errors.append(e)

        _run_interruptible(threading.Thread(target=run, daemon=True), transfer.pause)

    if not no_progress:
        click.echo()
    session = transfer.session
    error: Exception | None = errors[0] if errors else None
    if error is None and session is not None and session.state == TransferState.FAILED:
        error = session.error
    if session is None and error is None:
        error = TransferError("transfer did not start")
    if error is not None or session is None:
        click.echo(f"Error: upload failed: {error}", err=True)
        sys.exit(1)
    if session.state == TransferState.PAUSED:
        click.echo(
            f"Paused at {session.uploaded_size}/{session.total_size} bytes. "
            "Run the same command again to resume."
        )
        sys.exit(130)
    if session.state != TransferState.COMPLETED:
        click.echo(f"Error: upload stopped in state {session.state.name}", err=True)
        sys.exit(1)
    click.echo(f"Uploaded {session.name} ({session.total_size} bytes)")


@click.command()
@click.argument("name")
@click.argument("dest", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--no-progress", is_flag=True, help="Disable progress output.")
@server_option
def download(name: str, dest: Path, no_progress: bool, server_url: str) -> None:
    """Download artifact NAME to DEST, resuming a partial download."""
    config = ServerConfig(server_url=server_url)
    token = CancelToken()
    results: list[DownloadResult | Exception] = []

    with HTTPClient(config) as client:
        downloader = FileDownloader(
            client,
            progress_callback=None if no_progress else _print_progress,
        )

        def run() -> None:
            try:
                results.append(downloader.download_file(name, dest, cancel_token=token))
            except Exception as e:
                # Reported once the thread has joined
                results.append(e)

        _run_interruptible(threading.Thread(target=run, daemon=True), token.cancel)

    if not no_progress:
        click.echo()
    result: DownloadResult | Exception = (
        results[0] if results else DownloadError("download did not finish")
    )
    if isinstance(result, TransferCancelledError):
        click.echo("Download paused. Run the same command again to resume.")
        sys.exit(130)
    if isinstance(result, NotFoundError):
        click.echo(f"Error: {name} not found on server.", err=True)
        sys.exit(1)
    if isinstance(result, Exception):
        click.echo(f"Error: download failed: {result}", err=True)
        sys.exit(1)
    click.echo(f"Downloaded {name} to {dest}")


@click.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--name", "-n", default=None, help="Artifact name on the server (default: file name).")
@server_option
def status(file: Path, name: str | None, server_url: str) -> None:
    """Show how much of FILE the server already holds."""
    with HTTPClient(ServerConfig(server_url=server_url)) as client:
        progress = TransferClient(client).status(file, name)

    click.echo(f"Name:     {progress.name}")
    click.echo(f"Stored:   {progress.uploaded_size}/{progress.total_size} bytes")
    click.echo(f"Progress: {progress.percent:.1f}%")
    if progress.uploaded_size >= progress.total_size:
        click.echo("Status:   complete")
    else:
        click.echo("Status:   incomplete")
