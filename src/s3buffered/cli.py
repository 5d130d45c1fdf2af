"""CLI entry point for s3buffered.

Streams stdin (or a file) into an S3 object through an UploadSession:

    pg_dump mydb | s3buffered --bucket backups --key mydb.sql
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import BinaryIO

from s3buffered import metrics
from s3buffered.client import create_client
from s3buffered.config import S3BufferedConfig, build_upload_config, load_config
from s3buffered.errors import ConfigurationError, UploadError
from s3buffered.logging_config import configure_logging
from s3buffered.models import InitiateRequest
from s3buffered.session import UploadSession

logger = logging.getLogger("s3buffered")

# Read size for the source stream: 1 MiB
DEFAULT_CHUNK_SIZE = 1024 * 1024

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        prog="s3buffered",
        description="Stream data of unknown length into an S3 object via multipart upload",
    )
    parser.add_argument(
        "source",
        nargs="?",
        default="-",
        help="File to upload, or '-' for stdin (default: -)",
    )
    parser.add_argument("--bucket", required=True, help="Target bucket")
    parser.add_argument("--key", required=True, help="Target object key")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file",
    )
    parser.add_argument(
        "--endpoint-url",
        type=str,
        default=None,
        help="S3 endpoint URL (overrides config)",
    )
    parser.add_argument(
        "--region",
        type=str,
        default=None,
        help="AWS region (overrides config)",
    )
    parser.add_argument(
        "--part-size",
        type=int,
        default=None,
        help="Minimum part size in bytes; raises the buffer capacity to match if needed (overrides config, default: 5 MiB)",
    )
    parser.add_argument(
        "--buffer-capacity",
        type=int,
        default=None,
        help="Buffer capacity in bytes (overrides config, default: 15 MiB)",
    )
    parser.add_argument("--content-type", type=str, default=None, help="Object Content-Type")
    parser.add_argument(
        "--sse",
        type=str,
        default=None,
        choices=["AES256", "aws:kms"],
        help="Request server-side encryption",
    )
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=DEFAULT_CHUNK_SIZE,
        help="Bytes read from the source per write (default: 1 MiB)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config, default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        default=None,
        choices=["text", "json"],
        help="Log format: 'text' (human-readable) or 'json' (structured)",
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Expose Prometheus metrics on this port while uploading",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> S3BufferedConfig:
    """Load the config file, if any, and apply CLI overrides.

    Raises:
        ConfigurationError: If the overridden upload sizes are invalid.
    """
    config = load_config(args.config) if args.config is not None else S3BufferedConfig()

    if args.endpoint_url is not None:
        config.client.endpoint_url = args.endpoint_url
    if args.region is not None:
        config.client.region = args.region
    if args.part_size is not None or args.buffer_capacity is not None:
        capacity = args.buffer_capacity
        if capacity is None:
            # a larger part size alone grows the buffer with it
            capacity = max(config.upload.buffer_capacity, args.part_size)
        config.upload = build_upload_config(
            config.upload,
            min_send_threshold=args.part_size,
            buffer_capacity=capacity,
        )
    if args.log_level is not None:
        config.logging.level = args.log_level
    if args.log_format is not None:
        config.logging.format = args.log_format
    if args.metrics_port is not None:
        config.observability.metrics = True
        config.observability.metrics_port = args.metrics_port
    return config


async def upload(
    config: S3BufferedConfig,
    request: InitiateRequest,
    source: BinaryIO,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> UploadSession:
    """Copy ``source`` into the object described by ``request``.

    Cancelling the task running this coroutine aborts the upload.

    Returns:
        The finished session.
    """
    client = create_client(config.client)
    await client.init()
    try:
        session = UploadSession(client, request=request, config=config.upload)
        try:
            while True:
                chunk = await asyncio.to_thread(source.read, chunk_size)
                if not chunk:
                    break
                await session.write(chunk)
        except (Exception, asyncio.CancelledError):
            session.cancel()
            raise
        finally:
            await session.aclose()
        return session
    finally:
        await client.close()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the s3buffered CLI.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].

    Returns:
        Process exit status.
    """
    args = parse_args(argv)

    # Use a basic stderr logger for config-loading errors
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)

    try:
        config = build_config(args)
    except FileNotFoundError:
        logger.error("Config file not found: %s", args.config)
        return EXIT_FAILURE
    except ConfigurationError as exc:
        logger.error("Invalid configuration: %s", exc)
        return EXIT_FAILURE

    configure_logging(level=config.logging.level, fmt=config.logging.format)

    if config.observability.metrics:
        from prometheus_client import start_http_server

        metrics.init_metrics()
        if config.observability.metrics_port:
            start_http_server(config.observability.metrics_port)

    request = InitiateRequest(
        bucket=args.bucket,
        key=args.key,
        content_type=args.content_type,
        server_side_encryption=args.sse,
    )

    try:
        source = sys.stdin.buffer if args.source == "-" else open(args.source, "rb")
    except OSError as exc:
        logger.error("Cannot open source %s: %s", args.source, exc)
        return EXIT_FAILURE

    try:
        session = asyncio.run(upload(config, request, source, args.chunk_size))
    except KeyboardInterrupt:
        logger.warning("Interrupted, upload aborted: %s/%s", args.bucket, args.key)
        return EXIT_INTERRUPTED
    except UploadError as exc:
        logger.error("Upload failed [%s]: %s", exc.code, exc.message)
        return EXIT_FAILURE
    finally:
        if source is not sys.stdin.buffer:
            source.close()

    logger.info(
        "Uploaded %d bytes to s3://%s/%s in %d parts",
        session.bytes_uploaded,
        session.bucket,
        session.key,
        len(session.part_etags),
    )
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
