"""Buffered multipart upload session.

An UploadSession turns arbitrary incremental writes into an S3 multipart
upload:

    Uninitiated --(first initiate)--> Uploading --(complete)--> Completed
                                          |
                                          +------(abort)------> Aborted

The upload is initiated lazily by the first write. Each write is copied
into the buffer in chunks bounded by its capacity; whenever a copy leaves
at least the minimum send threshold buffered, the whole buffer goes out as
a part, so the capacity is also the largest part size. Closing the session
sends whatever is left as the final part and completes the upload, or
aborts it when cancellation was requested.

When the service encrypts the object, every non-final part withholds its
last byte and carries it into the next part, so the final part is never
empty (a requirement for encrypted multipart uploads of unknown length).

Every mutating operation runs under one AsyncMutex, so any number of tasks
may share a session; parts are still numbered and sent strictly in order.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from s3buffered import metrics
from s3buffered.buffer import PartBuffer
from s3buffered.client.base import MultipartClient
from s3buffered.config import UploadConfig, build_upload_config
from s3buffered.errors import (
    CancellationError,
    ConfigurationError,
    SequenceError,
    UnsupportedOperationError,
)
from s3buffered.events import UploadEvents
from s3buffered.models import (
    AbortResponse,
    CompleteResponse,
    InitiateRequest,
    InitiateResponse,
    PartETag,
    TransferProgress,
    UploadState,
)
from s3buffered.mutex import AsyncMutex

logger = logging.getLogger(__name__)


class UploadSession:
    """Write-only, forward-only stream onto an S3 multipart upload.

    Attributes:
        config: The validated buffering/locking parameters.
        events: Notifications fired during the upload lifecycle.
    """

    def __init__(
        self,
        client: MultipartClient,
        bucket: str | None = None,
        key: str | None = None,
        *,
        request: InitiateRequest | None = None,
        config: UploadConfig | None = None,
        buffer_capacity: int | None = None,
        min_send_threshold: int | None = None,
        lock_timeout: float | None = None,
        send_empty_final_part: bool | None = None,
    ) -> None:
        """Validate parameters and set up the buffer.

        Args:
            client: Remote side of the multipart protocol.
            bucket: Target bucket (together with ``key``).
            key: Target object key (together with ``bucket``).
            request: Prebuilt initiate request, instead of bucket/key.
            config: Base upload configuration; keyword overrides win.
            buffer_capacity: Maximum bytes buffered, and so the largest part.
            min_send_threshold: Size at which buffered bytes go out as a
                part; at least MIN_PART_SIZE.
            lock_timeout: Seconds an operation waits for the session lock.
            send_empty_final_part: Send a zero-byte final part when nothing
                is buffered at completion.

        Raises:
            ConfigurationError: If the target or sizing is invalid.
        """
        if request is None:
            if not bucket or not key:
                raise ConfigurationError(
                    "Either bucket and key or an InitiateRequest is required"
                )
            request = InitiateRequest(bucket=bucket, key=key)
        elif bucket is not None or key is not None:
            raise ConfigurationError("Pass either bucket and key or an InitiateRequest, not both")

        self.config = build_upload_config(
            config,
            buffer_capacity=buffer_capacity,
            min_send_threshold=min_send_threshold,
            lock_timeout=lock_timeout,
            send_empty_final_part=send_empty_final_part,
        )
        self.events = UploadEvents()

        self._client = client
        self._request = request
        self._buffer = PartBuffer(self.config.buffer_capacity)
        self._mutex = AsyncMutex(self.config.lock_timeout)

        self._state = UploadState.UNINITIATED
        self._is_encrypting = False
        self._cancelled = False
        self._closed = False

        self._part_number = 1
        self._part_etags: list[PartETag] = []
        self._bytes_uploaded = 0

        self._initiate_response: InitiateResponse | None = None
        self._complete_response: CompleteResponse | None = None
        self._abort_response: AbortResponse | None = None

    def __repr__(self) -> str:
        return (
            f"<UploadSession {self._request.bucket}/{self._request.key} "
            f"state={self._state.value} parts={len(self._part_etags)} "
            f"uploaded={self._bytes_uploaded}>"
        )

    # -- Status ---------------------------------------------------------------

    @property
    def state(self) -> UploadState:
        return self._state

    @property
    def is_encrypting(self) -> bool:
        """Whether the service reported server-side encryption at initiate."""
        return self._is_encrypting

    @property
    def is_cancellation_requested(self) -> bool:
        return self._cancelled

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def bucket(self) -> str:
        if self._initiate_response is not None:
            return self._initiate_response.bucket
        return self._request.bucket

    @property
    def key(self) -> str:
        if self._initiate_response is not None:
            return self._initiate_response.key
        return self._request.key

    @property
    def upload_id(self) -> str | None:
        if self._initiate_response is None:
            return None
        return self._initiate_response.upload_id

    @property
    def part_etags(self) -> tuple[PartETag, ...]:
        """Acknowledged parts, in transmission order."""
        return tuple(self._part_etags)

    @property
    def bytes_uploaded(self) -> int:
        return self._bytes_uploaded

    @property
    def length(self) -> int:
        """Bytes acknowledged by the service so far (not bytes buffered)."""
        return self._bytes_uploaded

    @property
    def buffered(self) -> int:
        """Bytes currently held in the buffer."""
        return len(self._buffer)

    @property
    def complete_response(self) -> CompleteResponse | None:
        return self._complete_response

    @property
    def abort_response(self) -> AbortResponse | None:
        return self._abort_response

    @property
    def _fill_mark(self) -> int:
        # buffered length that triggers a send; under encryption one extra
        # byte rides along and is withheld from the part
        return self.config.min_send_threshold + (1 if self._is_encrypting else 0)

    def _log_extra(self, **fields: Any) -> dict[str, Any]:
        extra: dict[str, Any] = {"bucket": self.bucket, "key": self.key, "upload_id": self.upload_id}
        extra.update(fields)
        return extra

    # -- Capabilities ---------------------------------------------------------

    def readable(self) -> bool:
        return False

    def seekable(self) -> bool:
        return False

    def writable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        raise UnsupportedOperationError("Read")

    def seek(self, offset: int, whence: int = 0) -> int:
        raise UnsupportedOperationError("Seek")

    def truncate(self, size: int | None = None) -> int:
        raise UnsupportedOperationError("SetLength")

    def tell(self) -> int:
        raise UnsupportedOperationError("Position")

    @property
    def position(self) -> int:
        raise UnsupportedOperationError("Position")

    @position.setter
    def position(self, value: int) -> None:
        raise UnsupportedOperationError("Position")

    # -- Public operations ----------------------------------------------------

    def cancel(self) -> None:
        """Request cancellation.

        Only sets the flag: in-flight work notices it when its remote call
        returns, later writes and flushes become no-ops, and close aborts
        the upload instead of completing it.
        """
        if not self._cancelled:
            self._cancelled = True
            logger.info("Upload cancellation requested", extra=self._log_extra())

    async def write(self, data: bytes | bytearray | memoryview) -> int:
        """Buffer ``data``, sending parts as the buffer fills.

        Returns:
            The number of bytes accepted; 0 once cancelled or aborted.

        Raises:
            SequenceError: If the upload has already completed or the
                session was closed.
            CancellationError: If cancellation was observed after a remote
                call made on behalf of this write.
            LockTimeoutError: If the session lock was not acquired in time.
        """
        view = memoryview(data).cast("B")
        try:
            return await self._mutex.call(lambda: self._write(view))
        except asyncio.CancelledError:
            self.cancel()
            raise

    async def flush(self) -> None:
        """Send the buffer as a part if it is large enough for a non-final part."""
        try:
            await self._mutex.run(self._flush_if_open)
        except asyncio.CancelledError:
            self.cancel()
            raise

    async def complete_upload(self) -> None:
        """Send the buffer as the final part and complete the upload.

        Does nothing unless the upload is in progress.

        Raises:
            CancellationError: If cancellation was requested; the caller
                should abort instead.
        """
        await self._mutex.run(self._complete)

    async def abort_upload(self) -> None:
        """Abort the upload, discarding anything still buffered.

        Does nothing unless the upload is in progress.
        """
        await self._mutex.run(self._abort)

    async def aclose(self) -> None:
        """Finish the upload exactly once.

        Aborts when cancellation was requested, otherwise completes (an
        upload that never saw a write is initiated first so the object is
        still created, empty). If completion fails the upload is aborted on
        a best-effort basis and the original error is raised.
        """
        if self._closed:
            return
        self._closed = True
        try:
            if self._cancelled:
                await self.abort_upload()
                return
            try:
                await self._mutex.run(self._finish)
            except (Exception, asyncio.CancelledError):
                await self._abort_after_failure()
                raise
        finally:
            self._buffer.release()

    async def __aenter__(self) -> "UploadSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.cancel()
        await self.aclose()

    # -- Internals (run with the mutex held) ------------------------------------

    async def _write(self, view: memoryview) -> int:
        if self._state is UploadState.COMPLETED:
            raise SequenceError()
        if self._cancelled or self._state is UploadState.ABORTED:
            return 0
        if self._closed:
            raise SequenceError("Upload stream is closed")

        if self._state is UploadState.UNINITIATED:
            await self._initiate()

        written = 0
        while written < len(view):
            written += self._buffer.extend(view[written:])
            if len(self._buffer) >= self._fill_mark:
                await self._flush()
                if len(self._buffer) >= self._fill_mark:
                    # flush declined to send
                    break
        return written

    async def _flush_if_open(self) -> None:
        if not self._closed:
            await self._flush()

    async def _initiate(self) -> None:
        response = await self._client.initiate(self._request)
        self._set_initiated(response)
        if self._cancelled:
            raise CancellationError("Upload cancelled while initiating")

    async def _flush(self, is_last_part: bool = False) -> None:
        has_data = len(self._buffer) > 0
        if (
            self._cancelled
            or self._state is not UploadState.UPLOADING
            or not (is_last_part or has_data)
        ):
            return

        reserve_last_byte = self._is_encrypting and not is_last_part
        data = self._buffer.part(withhold_last=reserve_last_byte)
        if is_last_part:
            if not data and not self.config.send_empty_final_part:
                return
        elif len(data) < self.config.min_send_threshold:
            return

        part_number = self._part_number
        progress = None
        if (
            has_data
            and self.events.has_listeners(UploadEvents.PART_UPLOADED)
            and self.events.has_listeners(UploadEvents.TRANSFER_PROGRESS)
        ):
            progress = self._forward_progress

        logger.debug(
            "Uploading part %d (%d bytes%s)",
            part_number,
            len(data),
            ", last" if is_last_part else "",
            extra=self._log_extra(part_number=part_number, size=len(data)),
        )
        response = await self._client.upload_part(
            self.bucket,
            self.key,
            self.upload_id,
            part_number,
            data,
            is_last_part,
            progress,
        )

        self._part_number += 1
        self._part_etags.append(PartETag(part_number=response.part_number, etag=response.etag))
        self._bytes_uploaded += len(data)
        self._buffer.reset(keep_last=reserve_last_byte)
        metrics.record_part(len(data))

        if has_data:
            self.events.emit(UploadEvents.PART_UPLOADED, self, response)
        if self._cancelled:
            raise CancellationError("Upload cancelled during part transmission")

    def _forward_progress(self, progress: TransferProgress) -> None:
        self.events.emit(UploadEvents.TRANSFER_PROGRESS, self, progress)

    async def _finish(self) -> None:
        if self._state is UploadState.UNINITIATED:
            await self._initiate()
        await self._complete()

    async def _complete(self) -> None:
        if self._state is not UploadState.UPLOADING:
            return
        if self._cancelled:
            raise CancellationError("Upload was cancelled; abort it instead of completing")

        await self._flush(is_last_part=True)

        parts = sorted(self._part_etags, key=lambda p: p.part_number)
        response = await self._client.complete(self.bucket, self.key, self.upload_id, parts)
        self._set_completed(response)

    async def _abort(self) -> None:
        if self._state is not UploadState.UPLOADING:
            return
        response = await self._client.abort(self.bucket, self.key, self.upload_id)
        self._set_aborted(response)

    async def _abort_after_failure(self) -> None:
        try:
            await self.abort_upload()
        except Exception:
            logger.warning(
                "Best-effort abort after failed completion did not succeed",
                exc_info=True,
                extra=self._log_extra(),
            )

    def _set_initiated(self, response: InitiateResponse) -> None:
        self._initiate_response = response
        self._state = UploadState.UPLOADING
        self._is_encrypting = response.is_encrypted
        if self._is_encrypting:
            self._buffer.reserve_residual_slot()
        metrics.record_outcome("initiated")
        logger.info(
            "Multipart upload initiated%s",
            " (encrypted)" if self._is_encrypting else "",
            extra=self._log_extra(),
        )
        self.events.emit(UploadEvents.INITIATED, self, response)

    def _set_completed(self, response: CompleteResponse) -> None:
        self._complete_response = response
        self._state = UploadState.COMPLETED
        metrics.record_outcome("completed")
        logger.info(
            "Multipart upload completed: %d parts, %d bytes",
            len(self._part_etags),
            self._bytes_uploaded,
            extra=self._log_extra(size=self._bytes_uploaded),
        )
        self.events.emit(UploadEvents.COMPLETED, self, response)

    def _set_aborted(self, response: AbortResponse) -> None:
        self._abort_response = response
        self._state = UploadState.ABORTED
        metrics.record_outcome("aborted")
        logger.info("Multipart upload aborted", extra=self._log_extra())
        self.events.emit(UploadEvents.ABORTED, self, response)
