"""s3buffered - stream incremental writes into S3 multipart uploads."""

from s3buffered.errors import (
    CancellationError,
    ConfigurationError,
    LockTimeoutError,
    RemoteError,
    SequenceError,
    UnsupportedOperationError,
    UploadError,
)
from s3buffered.models import MIN_PART_SIZE, InitiateRequest, UploadState
from s3buffered.mutex import AsyncMutex
from s3buffered.session import UploadSession
from s3buffered.stream import UploadStream

__version__ = "0.1.0"

__all__ = [
    "AsyncMutex",
    "CancellationError",
    "ConfigurationError",
    "InitiateRequest",
    "LockTimeoutError",
    "MIN_PART_SIZE",
    "RemoteError",
    "SequenceError",
    "UnsupportedOperationError",
    "UploadError",
    "UploadSession",
    "UploadState",
    "UploadStream",
]
