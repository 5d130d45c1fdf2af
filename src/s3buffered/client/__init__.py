"""Multipart upload clients for s3buffered."""

from typing import TYPE_CHECKING

from s3buffered.client.base import MultipartClient, ProgressCallback
from s3buffered.client.memory import MemoryMultipartClient
from s3buffered.errors import ConfigurationError

if TYPE_CHECKING:
    from s3buffered.config import ClientConfig

__all__ = [
    "create_client",
    "MemoryMultipartClient",
    "MultipartClient",
    "ProgressCallback",
]


def create_client(config: "ClientConfig") -> MultipartClient:
    """Create a multipart client instance based on configuration.

    Args:
        config: The client configuration.

    Returns:
        A client implementing the MultipartClient protocol. It still needs
        ``await client.init()`` before use.

    Raises:
        ConfigurationError: If the backend is unknown.
    """
    backend = config.backend

    if backend == "memory":
        return MemoryMultipartClient()

    elif backend == "aws":
        from s3buffered.client.aws import AWSMultipartClient

        return AWSMultipartClient(
            region=config.region,
            endpoint_url=config.endpoint_url,
            use_path_style=config.use_path_style,
            access_key_id=config.access_key_id,
            secret_access_key=config.secret_access_key,
        )

    raise ConfigurationError(f"Unknown client backend: {backend!r}")
