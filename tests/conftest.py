"""Shared pytest fixtures for s3buffered tests.

Session tests run against the in-memory multipart client, which applies
the same part-size and ordering rules as S3, so a session that violates
the protocol fails at completion exactly as it would against a bucket.
"""

import pytest

from s3buffered.client.memory import MemoryMultipartClient


@pytest.fixture
def client() -> MemoryMultipartClient:
    """A fresh in-memory multipart client without encryption."""
    return MemoryMultipartClient()


@pytest.fixture
def encrypted_client() -> MemoryMultipartClient:
    """A fresh in-memory client whose bucket encrypts by default (SSE-S3)."""
    return MemoryMultipartClient(default_encryption="AES256")
