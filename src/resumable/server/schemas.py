"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Response for health check."""

    status: str


class UploadResponse(BaseModel):
    """Response for an accepted chunk."""

    name: str
    size: int
