"""Client module - HTTP client, resume negotiation, and transfers."""

from resumable.client.api import (
    APIError,
    HTTPClient,
    LeaseConflictError,
    MalformedRequestError,
    NotFoundError,
    OffsetConflictError,
    RangeNotSatisfiableError,
    StorageFailureError,
)
from resumable.client.cancel import CancelToken, TransferCancelledError
from resumable.client.download import DownloadError, DownloadResult, FileDownloader
from resumable.client.negotiator import ResumeNegotiator
from resumable.client.transfer import (
    TransferClient,
    TransferError,
    TransferProgress,
    TransferSession,
    TransferState,
)

__all__ = [
    # API
    "APIError",
    "HTTPClient",
    "LeaseConflictError",
    "MalformedRequestError",
    "NotFoundError",
    "OffsetConflictError",
    "RangeNotSatisfiableError",
    "StorageFailureError",
    # Cancellation
    "CancelToken",
    "TransferCancelledError",
    # Download
    "DownloadError",
    "DownloadResult",
    "FileDownloader",
    # Upload
    "ResumeNegotiator",
    "TransferClient",
    "TransferError",
    "TransferProgress",
    "TransferSession",
    "TransferState",
]
