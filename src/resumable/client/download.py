"""Resumable download into a local file.

This module provides:
- DownloadResult: outcome of a completed download
- FileDownloader: fetches an artifact into `<dest>.part`, continuing from
  the partial file's length with a byte-range request, then renames it
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from resumable.client.api import HTTPClient, RangeNotSatisfiableError
from resumable.client.cancel import CancelToken
from resumable.client.transfer import ProgressCallback, TransferProgress
from resumable.core.ranges import ContentRange, MalformedRangeError, parse_content_range

logger = logging.getLogger(__name__)

PART_SUFFIX = ".part"


class DownloadError(Exception):
    """Failed to download an artifact."""


@dataclass
class DownloadResult:
    """Result of a file download operation."""

    name: str
    local_path: Path
    size: int
    resumed_from: int


class FileDownloader:
    """Downloads artifacts, resuming interrupted downloads."""

    def __init__(
        self,
        client: HTTPClient,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        """Initialize the downloader.

        Args:
            client: HTTP client for server communication.
            progress_callback: Optional callback for progress updates.
        """
        self._client = client
        self._progress_callback = progress_callback

    def download_file(
        self,
        name: str,
        local_path: Path,
        cancel_token: CancelToken | None = None,
    ) -> DownloadResult:
        """Download an artifact to local_path.

        Bytes are appended to `<local_path>.part`; if that file already
        exists the download continues from its length. The part file is
        renamed to local_path once the server has nothing more to send.

        Args:
            name: Artifact name on the server.
            local_path: Destination path.
            cancel_token: Optional token; cancelling leaves the part file
                in place for a later resume.

        Returns:
            DownloadResult with the final size.

        Raises:
            NotFoundError: If the artifact doesn't exist.
            DownloadError: If the server response does not line up with the
                partial file.
            TransferCancelledError: If cancel_token was cancelled.
        """
        local_path = Path(local_path)
        part_path = local_path.with_name(local_path.name + PART_SUFFIX)
        offset = part_path.stat().st_size if part_path.exists() else 0
        resumed_from = offset

        try:
            total = self._fetch(name, part_path, offset, cancel_token)
        except RangeNotSatisfiableError as e:
            if e.current_size is None:
                raise
            if e.current_size == offset:
                # Part file already holds every stored byte
                total = offset
            else:
                logger.warning(
                    f"Partial download of {name} is {offset} bytes but server "
                    f"has {e.current_size}, restarting"
                )
                part_path.unlink()
                resumed_from = 0
                total = self._fetch(name, part_path, 0, cancel_token)

        part_path.replace(local_path)
        logger.info(f"Downloaded {name} to {local_path} ({total} bytes)")
        return DownloadResult(
            name=name,
            local_path=local_path,
            size=total,
            resumed_from=resumed_from,
        )

    def _fetch(
        self,
        name: str,
        part_path: Path,
        offset: int,
        cancel_token: CancelToken | None,
    ) -> int:
        """Append bytes [offset, end] of name to part_path; return the total."""
        if offset:
            logger.info(f"Resuming download of {name} at byte {offset}")

        with self._client.stream_download(name, offset or None) as response:
            total = self._check_response(
                name,
                response.status_code,
                response.headers.get("content-range"),
                response.headers.get("content-length"),
                offset,
            )
            written = offset
            with part_path.open("ab") as f:
                for block in response.iter_bytes():
                    if cancel_token is not None:
                        cancel_token.raise_if_cancelled()
                    f.write(block)
                    written += len(block)
                    if self._progress_callback:
                        self._progress_callback(TransferProgress(
                            name=name,
                            total_size=total,
                            uploaded_size=written,
                        ))

        if written != total:
            raise DownloadError(
                f"Download of {name} ended at {written} bytes, expected {total}"
            )
        return total

    @staticmethod
    def _check_response(
        name: str,
        status_code: int,
        content_range: str | None,
        content_length: str | None,
        offset: int,
    ) -> int:
        """Validate the response against the offset; return the artifact size."""
        if offset == 0:
            if status_code != 200 or not content_length or not content_length.isdigit():
                raise DownloadError(f"Unexpected full download response for {name}")
            return int(content_length)

        if status_code != 206 or content_range is None:
            raise DownloadError(f"Server ignored range request for {name}")
        try:
            served: ContentRange = parse_content_range(content_range)
        except MalformedRangeError as e:
            raise DownloadError(f"Invalid Content-Range for {name}: {content_range}") from e
        if served.start != offset or served.total is None:
            raise DownloadError(
                f"Server sent bytes from {served.start} for {name}, expected {offset}"
            )
        return served.total
