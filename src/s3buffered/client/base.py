"""Multipart upload client protocol for s3buffered."""

from typing import Callable, Protocol

from s3buffered.models import (
    AbortResponse,
    CompleteResponse,
    InitiateRequest,
    InitiateResponse,
    PartETag,
    PartResponse,
    TransferProgress,
)

ProgressCallback = Callable[[TransferProgress], None]


class MultipartClient(Protocol):
    """Protocol defining the remote side of a multipart upload.

    All clients (aiobotocore-backed, in-memory) implement this interface.
    Every call is a coroutine and may be cancelled by cancelling the task
    awaiting it. Failures are raised as RemoteError.
    """

    async def init(self) -> None:
        """Open connections or other resources held by the client."""
        ...

    async def close(self) -> None:
        """Release resources held by the client."""
        ...

    async def initiate(self, request: InitiateRequest) -> InitiateResponse:
        """Start a multipart upload.

        Args:
            request: Target bucket/key and object parameters.

        Returns:
            The upload id and the bucket/key it is bound to, plus the
            server-side encryption the service will apply, if any.
        """
        ...

    async def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        data: bytes,
        is_last_part: bool = False,
        progress: ProgressCallback | None = None,
    ) -> PartResponse:
        """Transmit one part.

        Args:
            bucket: The bucket name.
            key: The object key.
            upload_id: The multipart upload identifier.
            part_number: The sequential part number (1-based).
            data: The raw bytes of this part.
            is_last_part: Whether this is the final part of the upload.
            progress: Optional callback receiving transfer progress. Clients
                without a send hook (AWSMultipartClient) report the whole
                part once, after the service has acknowledged it.

        Returns:
            The part number and the ETag the service assigned to it.
        """
        ...

    async def complete(
        self, bucket: str, key: str, upload_id: str, parts: list[PartETag]
    ) -> CompleteResponse:
        """Assemble the listed parts into the final object.

        Args:
            bucket: The bucket name.
            key: The object key.
            upload_id: The multipart upload identifier.
            parts: Acknowledged parts in ascending part-number order.
        """
        ...

    async def abort(self, bucket: str, key: str, upload_id: str) -> AbortResponse:
        """Abandon the upload and discard its stored parts.

        Args:
            bucket: The bucket name.
            key: The object key.
            upload_id: The multipart upload identifier.
        """
        ...
