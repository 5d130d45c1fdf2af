"""AWS S3 multipart client for s3buffered.

Drives CreateMultipartUpload / UploadPart / CompleteMultipartUpload /
AbortMultipartUpload through aiobotocore. No retries happen here beyond
what botocore's own retry configuration performs.

Credentials are resolved via the standard AWS credential chain
(env vars, ~/.aws/credentials, IAM role, etc.) unless given explicitly.
"""

import logging

from aiobotocore.session import AioSession
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError

from s3buffered.client.base import ProgressCallback
from s3buffered.errors import NoSuchUpload, RemoteError
from s3buffered.models import (
    AbortResponse,
    CompleteResponse,
    InitiateRequest,
    InitiateResponse,
    PartETag,
    PartResponse,
    TransferProgress,
)

logger = logging.getLogger(__name__)


def _remote_error(exc: ClientError) -> RemoteError:
    """Translate a botocore ClientError into a RemoteError."""
    error = exc.response.get("Error", {})
    code = error.get("Code", "")
    message = error.get("Message", str(exc))
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 500)
    if code == "NoSuchUpload":
        return NoSuchUpload()
    return RemoteError(code=code or "Unknown", message=message, http_status=status)


class AWSMultipartClient:
    """Multipart client backed by an aiobotocore S3 client.

    Attributes:
        region: The AWS region.
        endpoint_url: Custom endpoint (MinIO, LocalStack, ...), empty for AWS.
        use_path_style: Use path-style addressing instead of virtual hosts.
    """

    def __init__(
        self,
        region: str = "us-east-1",
        endpoint_url: str = "",
        use_path_style: bool = False,
        access_key_id: str = "",
        secret_access_key: str = "",
    ) -> None:
        self.region = region
        self.endpoint_url = endpoint_url
        self.use_path_style = use_path_style
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self._session = AioSession()
        self._client = None
        self._client_ctx = None

    async def init(self) -> None:
        """Create the aiobotocore S3 client."""
        if self._client is not None:
            return

        client_kwargs: dict = {"region_name": self.region}
        if self.endpoint_url:
            client_kwargs["endpoint_url"] = self.endpoint_url
        if self.use_path_style:
            client_kwargs["config"] = BotoConfig(s3={"addressing_style": "path"})

        # Use explicit credentials if provided, otherwise fall back to chain
        if self.access_key_id and self.secret_access_key:
            session = AioSession()
            session.set_credentials(self.access_key_id, self.secret_access_key)
            self._session = session
        self._client_ctx = self._session.create_client("s3", **client_kwargs)
        self._client = await self._client_ctx.__aenter__()

        logger.info(
            "AWS multipart client initialized: region=%s endpoint=%s",
            self.region,
            self.endpoint_url or "default",
        )

    async def close(self) -> None:
        """Close the aiobotocore client session."""
        if self._client_ctx is not None:
            await self._client_ctx.__aexit__(None, None, None)
            self._client = None
            self._client_ctx = None

    async def initiate(self, request: InitiateRequest) -> InitiateResponse:
        try:
            resp = await self._client.create_multipart_upload(**request.to_params())
        except ClientError as e:
            raise _remote_error(e) from e
        return InitiateResponse(
            upload_id=resp["UploadId"],
            bucket=resp.get("Bucket", request.bucket),
            key=resp.get("Key", request.key),
            server_side_encryption=resp.get("ServerSideEncryption"),
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
        """Upload one part.

        botocore exposes no per-chunk send hook on the async client, so
        progress is reported once, after the part has been acknowledged.
        """
        try:
            resp = await self._client.upload_part(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                PartNumber=part_number,
                Body=data,
            )
        except ClientError as e:
            raise _remote_error(e) from e
        if progress is not None and data:
            progress(TransferProgress(part_number, len(data), len(data), len(data)))
        return PartResponse(part_number=part_number, etag=resp["ETag"])

    async def complete(
        self, bucket: str, key: str, upload_id: str, parts: list[PartETag]
    ) -> CompleteResponse:
        try:
            resp = await self._client.complete_multipart_upload(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": [p.to_dict() for p in parts]},
            )
        except ClientError as e:
            raise _remote_error(e) from e
        return CompleteResponse(
            bucket=resp.get("Bucket", bucket),
            key=resp.get("Key", key),
            etag=resp.get("ETag", ""),
            location=resp.get("Location", ""),
            version_id=resp.get("VersionId"),
        )

    async def abort(self, bucket: str, key: str, upload_id: str) -> AbortResponse:
        try:
            await self._client.abort_multipart_upload(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
            )
        except ClientError as e:
            raise _remote_error(e) from e
        return AbortResponse(bucket=bucket, key=key, upload_id=upload_id)
