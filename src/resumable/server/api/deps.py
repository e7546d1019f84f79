"""FastAPI dependencies for API routes."""

from __future__ import annotations

from fastapi import Request

from resumable.server.ranges import RangeServer
from resumable.server.uploads import UploadStore


def get_uploads(request: Request) -> UploadStore:
    """Get upload store from app state."""
    uploads: UploadStore = request.app.state.uploads
    return uploads


def get_ranges(request: Request) -> RangeServer:
    """Get range server from app state."""
    ranges: RangeServer = request.app.state.ranges
    return ranges
