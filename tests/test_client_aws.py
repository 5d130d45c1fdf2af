"""Unit tests for the AWS multipart client.

All tests use mocked aiobotocore, so no real AWS credentials or network
access are required. The mock S3 client is injected directly onto
client._client to bypass session creation.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from s3buffered.client import create_client
from s3buffered.client.aws import AWSMultipartClient
from s3buffered.client.memory import MemoryMultipartClient
from s3buffered.config import ClientConfig
from s3buffered.errors import ConfigurationError, NoSuchUpload, RemoteError
from s3buffered.models import InitiateRequest, PartETag


def _client_error(code: str, message: str = "error", status: int = 400) -> ClientError:
    """Create a botocore ClientError with the given error code."""
    return ClientError(
        {
            "Error": {"Code": code, "Message": message},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        "TestOperation",
    )


def _make_client(**kwargs) -> AWSMultipartClient:
    """Create an AWSMultipartClient with a mock S3 client (skip init)."""
    client = AWSMultipartClient(**kwargs)
    client._client = AsyncMock()
    client._client_ctx = AsyncMock()
    return client


class TestInit:
    """Tests for init() and close()."""

    async def test_init_creates_client(self):
        with patch("s3buffered.client.aws.AioSession") as mock_session_cls:
            mock_client = AsyncMock()
            mock_ctx = AsyncMock()
            mock_ctx.__aenter__ = AsyncMock(return_value=mock_client)
            mock_ctx.__aexit__ = AsyncMock(return_value=False)
            mock_session_cls.return_value.create_client.return_value = mock_ctx

            client = AWSMultipartClient(region="eu-west-1", endpoint_url="http://localhost:9000")
            await client.init()

            mock_session_cls.return_value.create_client.assert_called_once_with(
                "s3", region_name="eu-west-1", endpoint_url="http://localhost:9000"
            )
            assert client._client is mock_client
            await client.close()
            mock_ctx.__aexit__.assert_awaited_once()

    async def test_init_path_style(self):
        with patch("s3buffered.client.aws.AioSession") as mock_session_cls:
            mock_ctx = AsyncMock()
            mock_ctx.__aenter__ = AsyncMock(return_value=AsyncMock())
            mock_session_cls.return_value.create_client.return_value = mock_ctx

            client = AWSMultipartClient(use_path_style=True)
            await client.init()

            _, kwargs = mock_session_cls.return_value.create_client.call_args
            assert kwargs["config"].s3 == {"addressing_style": "path"}

    async def test_init_explicit_credentials(self):
        with patch("s3buffered.client.aws.AioSession") as mock_session_cls:
            mock_ctx = AsyncMock()
            mock_ctx.__aenter__ = AsyncMock(return_value=AsyncMock())
            mock_session_cls.return_value.create_client.return_value = mock_ctx

            client = AWSMultipartClient(access_key_id="AKID", secret_access_key="SECRET")
            await client.init()

            mock_session_cls.return_value.set_credentials.assert_called_once_with("AKID", "SECRET")

    async def test_close_noop_when_not_initialized(self):
        client = AWSMultipartClient()
        await client.close()


class TestInitiate:
    """Tests for initiate()."""

    async def test_passes_request_params(self):
        client = _make_client()
        client._client.create_multipart_upload = AsyncMock(
            return_value={"UploadId": "up-1", "Bucket": "b", "Key": "k"}
        )
        request = InitiateRequest(
            bucket="b",
            key="k",
            content_type="application/json",
            metadata={"owner": "etl"},
            storage_class="STANDARD_IA",
        )

        response = await client.initiate(request)

        client._client.create_multipart_upload.assert_awaited_once_with(
            Bucket="b",
            Key="k",
            ContentType="application/json",
            Metadata={"owner": "etl"},
            StorageClass="STANDARD_IA",
        )
        assert response.upload_id == "up-1"
        assert not response.is_encrypted

    async def test_reports_encryption(self):
        client = _make_client()
        client._client.create_multipart_upload = AsyncMock(
            return_value={"UploadId": "up-1", "ServerSideEncryption": "AES256"}
        )

        response = await client.initiate(InitiateRequest(bucket="b", key="k"))

        assert response.server_side_encryption == "AES256"
        assert response.is_encrypted
        assert response.bucket == "b"

    async def test_client_error(self):
        client = _make_client()
        client._client.create_multipart_upload = AsyncMock(
            side_effect=_client_error("AccessDenied", "Access Denied", 403)
        )

        with pytest.raises(RemoteError) as exc_info:
            await client.initiate(InitiateRequest(bucket="b", key="k"))
        assert exc_info.value.code == "AccessDenied"
        assert exc_info.value.http_status == 403


class TestUploadPart:
    """Tests for upload_part()."""

    async def test_returns_etag(self):
        client = _make_client()
        client._client.upload_part = AsyncMock(return_value={"ETag": '"abc"'})

        response = await client.upload_part("b", "k", "up-1", 3, b"data")

        client._client.upload_part.assert_awaited_once_with(
            Bucket="b", Key="k", UploadId="up-1", PartNumber=3, Body=b"data"
        )
        assert response.part_number == 3
        assert response.etag == '"abc"'

    async def test_progress_after_acknowledgement(self):
        client = _make_client()
        client._client.upload_part = AsyncMock(return_value={"ETag": '"abc"'})
        progress = MagicMock()

        await client.upload_part("b", "k", "up-1", 1, b"data", progress=progress)

        progress.assert_called_once()
        report = progress.call_args.args[0]
        assert (report.increment, report.transferred, report.total) == (4, 4, 4)

    async def test_no_progress_for_empty_part(self):
        client = _make_client()
        client._client.upload_part = AsyncMock(return_value={"ETag": '"d41d8cd9"'})
        progress = MagicMock()

        await client.upload_part("b", "k", "up-1", 1, b"", is_last_part=True, progress=progress)

        progress.assert_not_called()

    async def test_no_such_upload(self):
        client = _make_client()
        client._client.upload_part = AsyncMock(
            side_effect=_client_error("NoSuchUpload", "gone", 404)
        )

        with pytest.raises(NoSuchUpload) as exc_info:
            await client.upload_part("b", "k", "up-1", 1, b"data")
        assert exc_info.value.http_status == 404


class TestCompleteAndAbort:
    """Tests for complete() and abort()."""

    async def test_complete_sends_part_list(self):
        client = _make_client()
        client._client.complete_multipart_upload = AsyncMock(
            return_value={
                "Bucket": "b",
                "Key": "k",
                "ETag": '"xyz-2"',
                "Location": "https://b.s3.amazonaws.com/k",
            }
        )

        response = await client.complete(
            "b", "k", "up-1", [PartETag(1, '"e1"'), PartETag(2, '"e2"')]
        )

        client._client.complete_multipart_upload.assert_awaited_once_with(
            Bucket="b",
            Key="k",
            UploadId="up-1",
            MultipartUpload={
                "Parts": [
                    {"PartNumber": 1, "ETag": '"e1"'},
                    {"PartNumber": 2, "ETag": '"e2"'},
                ]
            },
        )
        assert response.etag == '"xyz-2"'
        assert response.location == "https://b.s3.amazonaws.com/k"
        assert response.version_id is None

    async def test_complete_entity_too_small(self):
        client = _make_client()
        client._client.complete_multipart_upload = AsyncMock(
            side_effect=_client_error("EntityTooSmall", "too small", 400)
        )

        with pytest.raises(RemoteError) as exc_info:
            await client.complete("b", "k", "up-1", [PartETag(1, '"e1"')])
        assert exc_info.value.code == "EntityTooSmall"

    async def test_abort(self):
        client = _make_client()
        client._client.abort_multipart_upload = AsyncMock(return_value={})

        response = await client.abort("b", "k", "up-1")

        client._client.abort_multipart_upload.assert_awaited_once_with(
            Bucket="b", Key="k", UploadId="up-1"
        )
        assert response.upload_id == "up-1"


class TestCreateClient:
    """Tests for the client factory."""

    def test_memory_backend(self):
        assert isinstance(create_client(ClientConfig(backend="memory")), MemoryMultipartClient)

    def test_aws_backend(self):
        with patch("s3buffered.client.aws.AioSession"):
            client = create_client(ClientConfig(backend="aws", region="ap-south-1"))
        assert isinstance(client, AWSMultipartClient)
        assert client.region == "ap-south-1"

    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError, match="Unknown client backend"):
            create_client(ClientConfig(backend="ftp"))
