"""Tests for the in-memory multipart client."""

import binascii
import hashlib

import pytest

from s3buffered.client.memory import MemoryMultipartClient
from s3buffered.errors import (
    EntityTooSmall,
    InvalidPart,
    InvalidPartOrder,
    NoSuchUpload,
    RemoteError,
)
from s3buffered.models import InitiateRequest, PartETag


async def _initiate(client, **kwargs) -> str:
    response = await client.initiate(InitiateRequest(bucket="b", key="k", **kwargs))
    return response.upload_id


class TestMemoryMultipartClient:
    """Protocol validation in the in-memory client."""

    async def test_round_trip(self):
        client = MemoryMultipartClient(min_part_size=4)
        upload_id = await _initiate(client, content_type="text/plain", metadata={"a": "1"})

        p1 = await client.upload_part("b", "k", upload_id, 1, b"abcd")
        p2 = await client.upload_part("b", "k", upload_id, 2, b"ef", is_last_part=True)
        response = await client.complete(
            "b", "k", upload_id, [PartETag(1, p1.etag), PartETag(2, p2.etag)]
        )

        obj = client.get_object("b", "k")
        assert obj.data == b"abcdef"
        assert obj.part_sizes == [4, 2]
        assert obj.content_type == "text/plain"
        assert obj.metadata == {"a": "1"}
        assert response.location == "memory://b/k"
        assert client.active_uploads == []

    async def test_composite_etag(self):
        client = MemoryMultipartClient(min_part_size=1)
        upload_id = await _initiate(client)
        p1 = await client.upload_part("b", "k", upload_id, 1, b"hello")
        p2 = await client.upload_part("b", "k", upload_id, 2, b"world")
        response = await client.complete(
            "b", "k", upload_id, [PartETag(1, p1.etag), PartETag(2, p2.etag)]
        )

        digests = hashlib.md5(b"hello").digest() + hashlib.md5(b"world").digest()
        assert response.etag == f'"{hashlib.md5(digests).hexdigest()}-2"'
        assert p1.etag == f'"{binascii.hexlify(hashlib.md5(b"hello").digest()).decode()}"'

    async def test_rejects_small_non_final_part(self):
        client = MemoryMultipartClient(min_part_size=4)
        upload_id = await _initiate(client)
        p1 = await client.upload_part("b", "k", upload_id, 1, b"ab")
        p2 = await client.upload_part("b", "k", upload_id, 2, b"cd")

        with pytest.raises(EntityTooSmall) as exc_info:
            await client.complete("b", "k", upload_id, [PartETag(1, p1.etag), PartETag(2, p2.etag)])
        assert exc_info.value.http_status == 400

    async def test_rejects_descending_parts(self):
        client = MemoryMultipartClient(min_part_size=1)
        upload_id = await _initiate(client)
        p1 = await client.upload_part("b", "k", upload_id, 1, b"a")
        p2 = await client.upload_part("b", "k", upload_id, 2, b"b")

        with pytest.raises(InvalidPartOrder):
            await client.complete("b", "k", upload_id, [PartETag(2, p2.etag), PartETag(1, p1.etag)])

    async def test_rejects_unknown_part(self):
        client = MemoryMultipartClient(min_part_size=1)
        upload_id = await _initiate(client)
        await client.upload_part("b", "k", upload_id, 1, b"a")

        with pytest.raises(InvalidPart):
            await client.complete("b", "k", upload_id, [PartETag(1, '"deadbeef"')])
        with pytest.raises(InvalidPart):
            await client.complete("b", "k", upload_id, [PartETag(3, '"deadbeef"')])

    @pytest.mark.parametrize("part_number", [0, 10001])
    async def test_rejects_part_number_out_of_range(self, part_number):
        client = MemoryMultipartClient()
        upload_id = await _initiate(client)
        with pytest.raises(RemoteError) as exc_info:
            await client.upload_part("b", "k", upload_id, part_number, b"a")
        assert exc_info.value.code == "InvalidArgument"

    async def test_complete_with_no_parts(self):
        client = MemoryMultipartClient()
        upload_id = await _initiate(client)
        response = await client.complete("b", "k", upload_id, [])

        assert client.get_object("b", "k").data == b""
        assert response.etag.endswith('-0"')

    async def test_reupload_replaces_part(self):
        client = MemoryMultipartClient(min_part_size=1)
        upload_id = await _initiate(client)
        await client.upload_part("b", "k", upload_id, 1, b"old")
        await client.upload_part("b", "k", upload_id, 1, b"new")
        assert client.parts_of(upload_id) == {1: b"new"}

    async def test_abort(self):
        client = MemoryMultipartClient()
        upload_id = await _initiate(client)
        response = await client.abort("b", "k", upload_id)

        assert response.upload_id == upload_id
        assert client.active_uploads == []
        with pytest.raises(NoSuchUpload):
            await client.abort("b", "k", upload_id)

    async def test_unknown_upload(self):
        client = MemoryMultipartClient()
        with pytest.raises(NoSuchUpload) as exc_info:
            await client.upload_part("b", "k", "missing", 1, b"a")
        assert exc_info.value.http_status == 404

    async def test_missing_object(self):
        client = MemoryMultipartClient()
        with pytest.raises(RemoteError, match="does not exist"):
            client.get_object("b", "missing")

    async def test_default_encryption(self):
        client = MemoryMultipartClient(default_encryption="AES256")
        response = await client.initiate(InitiateRequest(bucket="b", key="k"))
        assert response.server_side_encryption == "AES256"

        requested = await client.initiate(
            InitiateRequest(bucket="b", key="k2", server_side_encryption="aws:kms")
        )
        assert requested.server_side_encryption == "aws:kms"

    async def test_progress_reports(self):
        client = MemoryMultipartClient()
        upload_id = await _initiate(client)
        reports = []
        await client.upload_part(
            "b", "k", upload_id, 1, b"x" * (150 * 1024), progress=reports.append
        )

        assert [r.increment for r in reports] == [64 * 1024, 64 * 1024, 22 * 1024]
        assert reports[-1].transferred == reports[-1].total == 150 * 1024
