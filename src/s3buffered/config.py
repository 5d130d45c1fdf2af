"""Configuration loading and Pydantic models for s3buffered."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from s3buffered.errors import ConfigurationError
from s3buffered.models import MIN_PART_SIZE
from s3buffered.mutex import DEFAULT_LOCK_TIMEOUT

DEFAULT_MIN_SEND_THRESHOLD = MIN_PART_SIZE
DEFAULT_BUFFER_CAPACITY = MIN_PART_SIZE * 3


class UploadConfig(BaseModel):
    """Buffering and locking parameters of an upload session."""

    buffer_capacity: int = DEFAULT_BUFFER_CAPACITY
    min_send_threshold: int = DEFAULT_MIN_SEND_THRESHOLD
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    send_empty_final_part: bool = True

    @model_validator(mode="after")
    def _check_sizes(self) -> "UploadConfig":
        if self.min_send_threshold < MIN_PART_SIZE:
            raise ValueError(f"Minimum send threshold must be at least {MIN_PART_SIZE}")
        if self.buffer_capacity < self.min_send_threshold:
            raise ValueError("Buffer capacity must be at least the minimum send threshold")
        if self.lock_timeout <= 0:
            raise ValueError("Lock timeout must be greater than zero")
        return self


class ClientConfig(BaseModel):
    """Object storage client configuration."""

    backend: str = "aws"
    region: str = "us-east-1"
    endpoint_url: str = ""
    use_path_style: bool = False
    access_key_id: str = ""
    secret_access_key: str = ""


class LoggingConfig(BaseModel):
    """Log output configuration."""

    level: str = "INFO"
    format: str = "text"


class ObservabilityConfig(BaseModel):
    """Prometheus metrics configuration."""

    metrics: bool = False
    metrics_port: int = 0


class S3BufferedConfig(BaseModel):
    """Top-level s3buffered configuration."""

    upload: UploadConfig = Field(default_factory=UploadConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


def build_upload_config(base: UploadConfig | None = None, **overrides: Any) -> UploadConfig:
    """Create a validated UploadConfig from a base config and overrides.

    Overrides whose value is None are ignored.

    Raises:
        ConfigurationError: If the resulting parameters are invalid.
    """
    values = base.model_dump() if base is not None else {}
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return UploadConfig(**values)
    except ValidationError as exc:
        raise ConfigurationError(_first_message(exc)) from exc


def _first_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    msg = str(errors[0].get("msg", exc))
    # pydantic prefixes messages raised from validators
    return msg.removeprefix("Value error, ")


def _parse_upload(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the upload section from YAML data.

    ``upload.part_size`` maps to min_send_threshold.
    """
    if data is None:
        return {}
    return {
        "buffer_capacity": data.get("buffer_capacity", DEFAULT_BUFFER_CAPACITY),
        "min_send_threshold": data.get("part_size", DEFAULT_MIN_SEND_THRESHOLD),
        "lock_timeout": data.get("lock_timeout", DEFAULT_LOCK_TIMEOUT),
        "send_empty_final_part": data.get("send_empty_final_part", True),
    }


def _parse_client(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the client section from YAML data.

    Handles nested structure: client.aws.region -> region, etc.
    """
    if data is None:
        return {}
    result: dict[str, Any] = {"backend": data.get("backend", "aws")}
    aws_section = data.get("aws")
    if isinstance(aws_section, dict):
        result["region"] = aws_section.get("region", "us-east-1")
        result["endpoint_url"] = aws_section.get("endpoint_url", "")
        result["use_path_style"] = aws_section.get("use_path_style", False)
        result["access_key_id"] = aws_section.get("access_key_id", "")
        result["secret_access_key"] = aws_section.get("secret_access_key", "")
    return result


def _parse_logging(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the logging section from YAML data."""
    if data is None:
        return {}
    return {
        "level": data.get("level", "INFO"),
        "format": data.get("format", "text"),
    }


def _parse_observability(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the observability section from YAML data."""
    if data is None:
        return {}
    return {
        "metrics": data.get("metrics", False),
        "metrics_port": data.get("metrics_port", 0),
    }


def load_config(path: Path) -> S3BufferedConfig:
    """Load an S3BufferedConfig from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A fully populated S3BufferedConfig validated by Pydantic.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ConfigurationError: If a value fails validation.
    """
    with open(path, "r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    try:
        return S3BufferedConfig(
            upload=UploadConfig(**_parse_upload(raw.get("upload"))),
            client=ClientConfig(**_parse_client(raw.get("client"))),
            logging=LoggingConfig(**_parse_logging(raw.get("logging"))),
            observability=ObservabilityConfig(**_parse_observability(raw.get("observability"))),
        )
    except ValidationError as exc:
        raise ConfigurationError(_first_message(exc)) from exc
