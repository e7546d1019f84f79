"""Core module - Chunk planning, range headers, and configuration."""

from resumable.core.chunking import (
    CHUNK_SIZE,
    Chunk,
    ChunkPlan,
    plan_chunks,
    read_chunk,
)
from resumable.core.config import ServerConfig
from resumable.core.headers import SESSION_HEADER
from resumable.core.ranges import (
    ByteRange,
    ContentRange,
    MalformedRangeError,
    RangeNotSatisfiableError,
    format_content_range,
    format_unsatisfied_range,
    parse_content_range,
    parse_range,
    parse_unsatisfied_range,
)

__all__ = [
    # Chunking
    "CHUNK_SIZE",
    "Chunk",
    "ChunkPlan",
    "plan_chunks",
    "read_chunk",
    # Config
    "ServerConfig",
    # Headers
    "SESSION_HEADER",
    # Ranges
    "ByteRange",
    "ContentRange",
    "MalformedRangeError",
    "RangeNotSatisfiableError",
    "format_content_range",
    "format_unsatisfied_range",
    "parse_content_range",
    "parse_range",
    "parse_unsatisfied_range",
]
