"""Server command for the resumable CLI.

Commands:
- serve: Run the transfer server with uvicorn
"""

from __future__ import annotations

from pathlib import Path

import click


@click.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Interface to bind.")
@click.option("--port", "-p", type=int, default=8080, show_default=True, help="Port to listen on.")
@click.option(
    "--storage-path",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="RESUMABLE_STORAGE_PATH",
    default=Path("uploads"),
    show_default=True,
    help="Directory for uploaded artifacts (env: RESUMABLE_STORAGE_PATH).",
)
@click.option(
    "--log-path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="RESUMABLE_LOG_PATH",
    default=Path("resumable-server.log"),
    show_default=True,
    help="Server log file (env: RESUMABLE_LOG_PATH).",
)
def serve(host: str, port: int, storage_path: Path, log_path: Path) -> None:
    """Run the transfer server.

    Artifacts are stored as plain files under --storage-path; interrupted
    uploads resume from whatever is already on disk.
    """
    import uvicorn

    from resumable.server.app import create_app, setup_logging
    from resumable.server.storage import LocalFSStore

    setup_logging(log_path)
    app = create_app(LocalFSStore(storage_path))
    click.echo(f"Server running at http://{host}:{port}")
    uvicorn.run(app, host=host, port=port)
