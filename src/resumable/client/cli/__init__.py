"""Command-line interface for resumable transfers.

This module provides the main CLI entry point and assembles all commands.

Commands:
- upload: Upload a file in resumable chunks
- download: Download an artifact, resuming partial downloads
- status: Show how much of a file the server holds
- serve: Run the transfer server
"""

from __future__ import annotations

import logging

import click

from resumable.client.cli.server import serve
from resumable.client.cli.transfer import download, status, upload


@click.group()
@click.version_option(package_name="resumable-transfer")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Resumable chunked file transfer over HTTP."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# Transfer commands
cli.add_command(upload)
cli.add_command(download)
cli.add_command(status)

# Server command
cli.add_command(serve)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = ["cli", "main"]
