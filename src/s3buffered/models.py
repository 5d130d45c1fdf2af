"""Data model types for s3buffered.

These dataclasses mirror the request and response shapes of the S3
multipart upload protocol (initiate, upload part, complete, abort) as seen
by an UploadSession, independent of the client library that carries them.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

# Smallest size S3 accepts for any part other than the last one.
MIN_PART_SIZE = 5 * 1024 * 1024

# S3 part numbers run from 1 to 10000 inclusive.
MAX_PART_NUMBER = 10000


class UploadState(str, enum.Enum):
    """Lifecycle state of an upload session."""

    UNINITIATED = "uninitiated"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (UploadState.COMPLETED, UploadState.ABORTED)


@dataclass
class InitiateRequest:
    """Parameters for CreateMultipartUpload.

    Attributes:
        bucket: Target bucket name.
        key: Target object key.
        content_type: MIME type of the assembled object, if any.
        metadata: User metadata (x-amz-meta-*) for the assembled object.
        server_side_encryption: Requested SSE algorithm ("AES256", "aws:kms").
        sse_kms_key_id: KMS key id when server_side_encryption is "aws:kms".
        storage_class: S3 storage class, if not the bucket default.
        extra: Any further CreateMultipartUpload parameters, passed through.
    """

    bucket: str
    key: str
    content_type: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    server_side_encryption: str | None = None
    sse_kms_key_id: str | None = None
    storage_class: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_params(self) -> dict[str, Any]:
        """Render the request as botocore keyword arguments."""
        params: dict[str, Any] = {"Bucket": self.bucket, "Key": self.key}
        if self.content_type:
            params["ContentType"] = self.content_type
        if self.metadata:
            params["Metadata"] = dict(self.metadata)
        if self.server_side_encryption:
            params["ServerSideEncryption"] = self.server_side_encryption
        if self.sse_kms_key_id:
            params["SSEKMSKeyId"] = self.sse_kms_key_id
        if self.storage_class:
            params["StorageClass"] = self.storage_class
        params.update(self.extra)
        return params


@dataclass
class InitiateResponse:
    """Result of CreateMultipartUpload."""

    upload_id: str
    bucket: str
    key: str
    server_side_encryption: str | None = None

    @property
    def is_encrypted(self) -> bool:
        """True when the service will encrypt the assembled object."""
        return bool(self.server_side_encryption) and self.server_side_encryption != "None"


@dataclass
class PartResponse:
    """Result of UploadPart."""

    part_number: int
    etag: str


@dataclass(frozen=True)
class PartETag:
    """A (part number, ETag) pair as listed in CompleteMultipartUpload."""

    part_number: int
    etag: str

    def to_dict(self) -> dict[str, Any]:
        return {"PartNumber": self.part_number, "ETag": self.etag}


@dataclass
class CompleteResponse:
    """Result of CompleteMultipartUpload.

    Attributes:
        bucket: Bucket of the assembled object.
        key: Key of the assembled object.
        etag: Multipart ETag of the assembled object.
        location: URL of the object, when the service reports one.
        version_id: Version id, for versioned buckets.
    """

    bucket: str
    key: str
    etag: str = ""
    location: str = ""
    version_id: str | None = None


@dataclass
class AbortResponse:
    """Result of AbortMultipartUpload."""

    bucket: str
    key: str
    upload_id: str


@dataclass
class TransferProgress:
    """Progress of a single part transmission.

    Attributes:
        part_number: Part being transmitted.
        increment: Bytes transferred since the previous report.
        transferred: Bytes of this part transferred so far.
        total: Size of this part in bytes.
    """

    part_number: int
    increment: int
    transferred: int
    total: int

    @property
    def percent_done(self) -> int:
        if self.total <= 0:
            return 100
        return int(self.transferred * 100 / self.total)
