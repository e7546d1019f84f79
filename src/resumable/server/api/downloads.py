"""Artifact download API routes with byte-range support."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import StreamingResponse

from resumable.core.ranges import (
    MalformedRangeError,
    RangeNotSatisfiableError,
    format_unsatisfied_range,
    parse_range,
)
from resumable.server.api.deps import get_ranges
from resumable.server.ranges import RangeServer
from resumable.server.storage import ArtifactNotFoundError, InvalidArtifactNameError

router = APIRouter(prefix="/download", tags=["download"])


def _range_not_satisfiable(current_size: int) -> Response:
    return Response(
        status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
        headers={"Content-Range": format_unsatisfied_range(current_size)},
    )


@router.get("/{name}")
def download_artifact(
    name: str,
    request: Request,
    ranges: RangeServer = Depends(get_ranges),
) -> Response:
    """Download an artifact, fully or as a single byte range."""
    try:
        size = ranges.info(name).size
    except (ArtifactNotFoundError, InvalidArtifactNameError) as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found",
        ) from e

    range_header = request.headers.get("range")
    try:
        byte_range = parse_range(range_header) if range_header else None
        artifact = ranges.read(name, byte_range)
    except MalformedRangeError:
        return _range_not_satisfiable(size)
    except RangeNotSatisfiableError as e:
        return _range_not_satisfiable(e.current_size)

    headers = {
        "Content-Length": str(artifact.length),
        "Accept-Ranges": "bytes",
    }
    if artifact.partial:
        headers["Content-Range"] = artifact.content_range
    return StreamingResponse(
        artifact.chunks,
        status_code=(
            status.HTTP_206_PARTIAL_CONTENT if artifact.partial else status.HTTP_200_OK
        ),
        headers=headers,
        media_type="application/octet-stream",
    )
