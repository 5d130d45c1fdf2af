"""In-memory multipart upload client for s3buffered.

Implements the MultipartClient protocol against Python dictionaries and
applies the same validation rules S3 applies to multipart uploads: part
numbers in 1..10000, parts listed in ascending order with matching ETags,
every part but the last at least MIN_PART_SIZE bytes. Useful for tests and
for dry runs of a pipeline without touching a real bucket.
"""

import asyncio
import binascii
import hashlib
import logging
import uuid
from dataclasses import dataclass, field

from s3buffered.client.base import ProgressCallback
from s3buffered.errors import (
    EntityTooSmall,
    InvalidPart,
    InvalidPartOrder,
    NoSuchUpload,
    RemoteError,
)
from s3buffered.models import (
    MAX_PART_NUMBER,
    MIN_PART_SIZE,
    AbortResponse,
    CompleteResponse,
    InitiateRequest,
    InitiateResponse,
    PartETag,
    PartResponse,
    TransferProgress,
)

logger = logging.getLogger(__name__)

# Progress reporting granularity: 64 KB
_CHUNK_SIZE = 64 * 1024


@dataclass
class StoredObject:
    """An assembled object.

    Attributes:
        data: The object bytes.
        etag: Quoted multipart ETag ('"<md5 of part md5s>-<N>"').
        part_sizes: Sizes of the parts the object was assembled from.
        content_type: MIME type requested at initiate time.
        metadata: User metadata requested at initiate time.
        server_side_encryption: SSE algorithm applied, if any.
    """

    data: bytes
    etag: str
    part_sizes: list[int] = field(default_factory=list)
    content_type: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    server_side_encryption: str | None = None


@dataclass
class _Upload:
    request: InitiateRequest
    server_side_encryption: str | None
    parts: dict[int, tuple[bytes, str]] = field(default_factory=dict)


class MemoryMultipartClient:
    """Multipart client that keeps uploads and objects in memory.

    Attributes:
        min_part_size: Smallest size accepted for non-final parts.
        default_encryption: SSE algorithm applied when a request names none
            (mirrors a bucket default encryption setting).
        latency: Seconds every remote call sleeps before doing its work.
        calls: Log of every call made, as (operation, detail...) tuples.
        objects: Assembled objects keyed by (bucket, key).
    """

    def __init__(
        self,
        min_part_size: int = MIN_PART_SIZE,
        default_encryption: str | None = None,
        latency: float = 0.0,
    ) -> None:
        self.min_part_size = min_part_size
        self.default_encryption = default_encryption
        self.latency = latency
        self.calls: list[tuple] = []
        self.objects: dict[tuple[str, str], StoredObject] = {}
        self._uploads: dict[str, _Upload] = {}

    @property
    def active_uploads(self) -> list[str]:
        """Upload ids that have been initiated but not completed or aborted."""
        return list(self._uploads)

    def parts_of(self, upload_id: str) -> dict[int, bytes]:
        """Return the stored part bytes of an in-progress upload."""
        upload = self._get_upload(upload_id)
        return {pn: data for pn, (data, _) in sorted(upload.parts.items())}

    def get_object(self, bucket: str, key: str) -> StoredObject:
        """Return an assembled object.

        Raises:
            RemoteError: NoSuchKey if the object does not exist.
        """
        try:
            return self.objects[(bucket, key)]
        except KeyError:
            raise RemoteError("NoSuchKey", "The specified key does not exist.", 404) from None

    def _get_upload(self, upload_id: str) -> _Upload:
        upload = self._uploads.get(upload_id)
        if upload is None:
            raise NoSuchUpload(upload_id)
        return upload

    async def _delay(self) -> None:
        # always yield so concurrent callers interleave as they would over a network
        await asyncio.sleep(self.latency)

    async def init(self) -> None:
        logger.debug("Memory multipart client ready")

    async def close(self) -> None:
        self._uploads.clear()

    async def initiate(self, request: InitiateRequest) -> InitiateResponse:
        self.calls.append(("initiate", request.bucket, request.key))
        await self._delay()

        upload_id = uuid.uuid4().hex
        sse = request.server_side_encryption or self.default_encryption
        self._uploads[upload_id] = _Upload(request=request, server_side_encryption=sse)
        return InitiateResponse(
            upload_id=upload_id,
            bucket=request.bucket,
            key=request.key,
            server_side_encryption=sse,
        )

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
        self.calls.append(("upload_part", part_number, len(data), is_last_part))
        await self._delay()

        upload = self._get_upload(upload_id)
        if not 1 <= part_number <= MAX_PART_NUMBER:
            raise RemoteError(
                "InvalidArgument",
                f"Part number must be an integer between 1 and {MAX_PART_NUMBER}, inclusive",
                400,
            )

        if progress is not None:
            sent = 0
            while sent < len(data):
                step = min(_CHUNK_SIZE, len(data) - sent)
                sent += step
                progress(TransferProgress(part_number, step, sent, len(data)))

        etag = f'"{hashlib.md5(data).hexdigest()}"'
        upload.parts[part_number] = (bytes(data), etag)
        return PartResponse(part_number=part_number, etag=etag)

    async def complete(
        self, bucket: str, key: str, upload_id: str, parts: list[PartETag]
    ) -> CompleteResponse:
        self.calls.append(("complete", [p.part_number for p in parts]))
        await self._delay()

        upload = self._get_upload(upload_id)

        prev = 0
        for part in parts:
            if part.part_number <= prev:
                raise InvalidPartOrder()
            prev = part.part_number

        chunks: list[bytes] = []
        digests = b""
        for i, part in enumerate(parts):
            stored = upload.parts.get(part.part_number)
            if stored is None or stored[1].strip('"') != part.etag.strip('"'):
                raise InvalidPart()
            data, etag = stored
            if i < len(parts) - 1 and len(data) < self.min_part_size:
                raise EntityTooSmall(
                    f"Part {part.part_number} has size {len(data)} bytes, "
                    f"below the minimum of {self.min_part_size}."
                )
            chunks.append(data)
            digests += binascii.unhexlify(etag.strip('"'))

        composite = f'"{hashlib.md5(digests).hexdigest()}-{len(parts)}"'
        request = upload.request
        self.objects[(bucket, key)] = StoredObject(
            data=b"".join(chunks),
            etag=composite,
            part_sizes=[len(c) for c in chunks],
            content_type=request.content_type,
            metadata=dict(request.metadata),
            server_side_encryption=upload.server_side_encryption,
        )
        del self._uploads[upload_id]
        return CompleteResponse(
            bucket=bucket,
            key=key,
            etag=composite,
            location=f"memory://{bucket}/{key}",
        )

    async def abort(self, bucket: str, key: str, upload_id: str) -> AbortResponse:
        self.calls.append(("abort", upload_id))
        await self._delay()

        self._get_upload(upload_id)
        del self._uploads[upload_id]
        return AbortResponse(bucket=bucket, key=key, upload_id=upload_id)
