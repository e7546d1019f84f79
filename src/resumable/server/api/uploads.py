"""Resumable upload API routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from starlette.concurrency import run_in_threadpool

from resumable.core.headers import SESSION_HEADER
from resumable.core.ranges import (
    MalformedRangeError,
    format_unsatisfied_range,
    parse_content_range,
)
from resumable.server.api.deps import get_uploads
from resumable.server.leases import LeaseConflictError
from resumable.server.schemas import UploadResponse
from resumable.server.storage import (
    ArtifactNotFoundError,
    InvalidArtifactNameError,
    OffsetConflictError,
    StorageFailureError,
)
from resumable.server.uploads import UploadStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["upload"])


@router.put("/{name}", response_model=UploadResponse)
async def upload_chunk(
    name: str,
    request: Request,
    uploads: UploadStore = Depends(get_uploads),
) -> UploadResponse:
    """Append one chunk to an artifact.

    The chunk must start exactly at the artifact's stored size. On a
    mismatch the true size is returned in `Content-Range: bytes */N`.
    """
    try:
        declared = parse_content_range(request.headers.get("content-range"))
    except MalformedRangeError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e

    data = await request.body()
    session_id = request.headers.get(SESSION_HEADER)

    try:
        size = await run_in_threadpool(
            uploads.append, name, declared, data, session_id
        )
    except (MalformedRangeError, InvalidArtifactNameError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e
    except LeaseConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from e
    except OffsetConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
            detail="Invalid chunk position",
            headers={"Content-Range": format_unsatisfied_range(e.current_size)},
        ) from e
    except StorageFailureError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Upload failed",
        ) from e

    return UploadResponse(name=name, size=size)


@router.head("/{name}")
def upload_status(
    name: str,
    uploads: UploadStore = Depends(get_uploads),
) -> Response:
    """Report how many bytes of an artifact are stored."""
    try:
        size = uploads.stored_size(name)
    except (ArtifactNotFoundError, InvalidArtifactNameError):
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    return Response(
        status_code=status.HTTP_200_OK,
        headers={"Content-Length": str(size), "Accept-Ranges": "bytes"},
    )
