"""Error definitions for s3buffered."""


class UploadError(Exception):
    """Base class for all buffered upload errors.

    Attributes:
        code: Short machine-readable error code (e.g. "SequenceError").
        message: Human-readable error description.
    """

    def __init__(self, code: str, message: str) -> None:
        """Initialize the upload error.

        Args:
            code: Error code.
            message: Error description.
        """
        super().__init__(message)
        self.code = code
        self.message = message


class ConfigurationError(UploadError):
    """Invalid construction parameters."""

    def __init__(self, message: str = "Invalid upload configuration") -> None:
        super().__init__(code="ConfigurationError", message=message)


class UnsupportedOperationError(UploadError):
    """The stream is write-only and forward-only."""

    def __init__(self, operation: str = "") -> None:
        message = (
            f"This stream type does not support {operation} operations"
            if operation
            else "This stream type does not support the requested operation"
        )
        super().__init__(code="UnsupportedOperation", message=message)
        self.operation = operation


class SequenceError(UploadError):
    """An operation was issued in a state that does not allow it."""

    def __init__(self, message: str = "S3 write has already been completed") -> None:
        super().__init__(code="SequenceError", message=message)


class CancellationError(UploadError):
    """Cancellation was observed around a remote call."""

    def __init__(self, message: str = "The upload was cancelled") -> None:
        super().__init__(code="Cancelled", message=message)


class LockTimeoutError(UploadError):
    """The session mutex could not be acquired within its timeout."""

    def __init__(self, timeout: float = 0.0) -> None:
        super().__init__(
            code="LockTimeout",
            message=f"Unable to lock context within {timeout:g}s",
        )
        self.timeout = timeout


# -- Remote (storage protocol) errors ------------------------------------------


class RemoteError(UploadError):
    """A failure reported by the object storage service.

    Attributes:
        code: The S3 error code string (e.g. "NoSuchUpload", "AccessDenied").
        message: Human-readable error description.
        http_status: The HTTP status code reported by the service.
    """

    def __init__(self, code: str, message: str, http_status: int = 500) -> None:
        super().__init__(code=code, message=message)
        self.http_status = http_status


class NoSuchUpload(RemoteError):
    """The specified multipart upload does not exist."""

    def __init__(self, upload_id: str = "") -> None:
        super().__init__(
            code="NoSuchUpload",
            message="The specified multipart upload does not exist.",
            http_status=404,
        )
        self.upload_id = upload_id


class InvalidPart(RemoteError):
    """One or more of the specified parts could not be found."""

    def __init__(
        self, message: str = "One or more of the specified parts could not be found."
    ) -> None:
        super().__init__(code="InvalidPart", message=message, http_status=400)


class InvalidPartOrder(RemoteError):
    """The list of parts was not in ascending order."""

    def __init__(self, message: str = "The list of parts was not in ascending order.") -> None:
        super().__init__(code="InvalidPartOrder", message=message, http_status=400)


class EntityTooSmall(RemoteError):
    """A non-final part is smaller than the minimum allowed part size."""

    def __init__(
        self, message: str = "Your proposed upload is smaller than the minimum allowed object size."
    ) -> None:
        super().__init__(code="EntityTooSmall", message=message, http_status=400)
