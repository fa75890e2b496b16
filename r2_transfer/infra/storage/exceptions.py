"""Storage-specific exceptions for R2 transfer operations.

Every error carries the operation, bucket and key it relates to in ``extra``
so a log line or response envelope can say exactly what failed.

Errors split into two families:

- terminal errors (``StorageFileNotFoundError``, ``StorageBucketNotFoundError``,
  ``StorageValidationError``, ``ConfigDecodeError``) which are never retried, and
- ``TransferError`` and its subclasses, which describe one failed attempt and
  are retried by the transfer client. ``TransferFailedError`` is raised once
  every attempt has failed.

Example:
    ```python
    from r2_transfer.infra.storage.exceptions import map_boto_error

    try:
        await s3.get_object(Bucket=bucket, Key=key)
    except ClientError as e:
        raise map_boto_error(e, operation="download", key=key, bucket=bucket) from e
    ```
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from r2_transfer.core.exceptions import AppException

if TYPE_CHECKING:
    from botocore.exceptions import ClientError


class StorageError(AppException):
    """Base exception for all storage-related errors.

    Attributes:
        code: Error code identifier for programmatic error handling.
        message: Human-readable error message.
        retryable: Whether the transfer client may run another attempt.
    """

    retryable = False

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 500,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        super().__init__(
            status_code=status_code,
            detail=message,
            type=code.lower().replace("_", "-"),
            extra=metadata or {},
        )


class StorageFileNotFoundError(StorageError):
    """Raised when a requested object does not exist in the bucket."""

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_NOT_FOUND",
            status_code=404,
            metadata=metadata,
        )


class StorageValidationError(StorageError):
    """Raised for malformed keys, filenames or requests.

    Validation happens before any network call, so this error never means a
    partial transfer took place.
    """

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_VALIDATION_ERROR",
            status_code=400,
            metadata=metadata,
        )


class ConfigDecodeError(StorageError):
    """Raised when the stored configuration object is not valid JSON."""

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="CONFIG_DECODE_ERROR",
            status_code=422,
            metadata=metadata,
        )


class StorageBucketNotFoundError(StorageError):
    """Raised when the configured bucket does not exist.

    Distinct from a missing object: this is a configuration problem and is
    never retried or treated as an empty store.
    """

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_BUCKET_NOT_FOUND",
            status_code=404,
            metadata=metadata,
        )


class TransferError(StorageError):
    """A single attempt of a network operation failed.

    Example:
        ```python
        raise TransferError(
            "Upload failed: connection reset",
            metadata={"bucket": bucket, "key": key},
        )
        ```
    """

    retryable = True

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
        code: str = "STORAGE_TRANSFER_ERROR",
        status_code: int = 502,
    ) -> None:
        super().__init__(
            message=message,
            code=code,
            status_code=status_code,
            metadata=metadata,
        )


class StoragePermissionError(TransferError):
    """Access was denied or the credentials were rejected."""

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            metadata=metadata,
            code="STORAGE_PERMISSION_DENIED",
            status_code=403,
        )


class StorageTimeoutError(TransferError):
    """The backend timed out or asked the client to slow down."""

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            metadata=metadata,
            code="STORAGE_TIMEOUT",
            status_code=504,
        )


class StorageQuotaExceededError(TransferError):
    """The account or bucket hit a storage limit."""

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            metadata=metadata,
            code="STORAGE_QUOTA_EXCEEDED",
            status_code=507,
        )


class StorageRequestRejectedError(TransferError):
    """The backend rejected a request as malformed (InvalidArgument, InvalidPart, ...)."""

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            metadata=metadata,
            code="STORAGE_REQUEST_REJECTED",
            status_code=400,
        )


class TransferFailedError(TransferError):
    """Every attempt of an operation failed.

    The message names the operation, the key, the bucket, the endpoint, the
    number of attempts and the last underlying error.
    """

    retryable = False

    def __init__(
        self,
        *,
        operation: str,
        bucket: str,
        endpoint: str,
        key: str,
        attempts: int,
        last_error: BaseException,
    ) -> None:
        self.operation = operation
        self.bucket = bucket
        self.endpoint = endpoint
        self.key = key
        self.attempts = attempts
        self.last_error = last_error
        reason = last_error.detail if isinstance(last_error, AppException) else str(last_error)
        super().__init__(
            message=(
                f'Failed to {operation} "{key}" in bucket "{bucket}" at endpoint "{endpoint}" '
                f"after {attempts} attempts: {reason}"
            ),
            metadata={
                "operation": operation,
                "bucket": bucket,
                "endpoint": endpoint,
                "key": key,
                "attempts": attempts,
                "last_error": reason,
            },
            code="STORAGE_TRANSFER_FAILED",
        )


NOT_FOUND_CODES = frozenset({"NoSuchKey", "NotFound", "404"})

BUCKET_NOT_FOUND_CODES = frozenset({"NoSuchBucket"})

PERMISSION_CODES = frozenset(
    {
        "AccessDenied",
        "ExpiredToken",
        "InvalidAccessKeyId",
        "SignatureDoesNotMatch",
        "InvalidToken",
        "403",
        "Forbidden",
    },
)

TIMEOUT_CODES = frozenset({"RequestTimeout", "RequestTimeTooSkewed", "SlowDown"})

QUOTA_CODES = frozenset({"QuotaExceeded", "TooManyBuckets", "AccountProblem"})

REJECTED_REQUEST_CODES = frozenset(
    {
        "InvalidRequest",
        "InvalidArgument",
        "MalformedXML",
        "InvalidBucketName",
        "KeyTooLongError",
        "MetadataTooLarge",
        "EntityTooSmall",
        "InvalidPart",
        "InvalidPartOrder",
    },
)


def map_boto_error(
    error: ClientError,
    operation: str,
    key: str | None = None,
    bucket: str | None = None,
) -> StorageError:
    """Map a botocore ``ClientError`` to the storage exception hierarchy.

    Mappings:
        - NoSuchKey, 404 -> StorageFileNotFoundError
        - NoSuchBucket -> StorageBucketNotFoundError
        - AccessDenied, InvalidAccessKeyId, ... -> StoragePermissionError
        - RequestTimeout, SlowDown -> StorageTimeoutError
        - QuotaExceeded -> StorageQuotaExceededError
        - InvalidArgument, MalformedXML, ... -> StorageRequestRejectedError
        - anything else -> TransferError
    """
    error_info = error.response.get("Error", {})
    error_code = str(error_info.get("Code", "Unknown"))
    error_message = error_info.get("Message") or str(error)

    metadata: dict[str, Any] = {
        "operation": operation,
        "error_code": error_code,
        "error": error_message,
    }
    if key:
        metadata["key"] = key
    if bucket or "BucketName" in error_info:
        metadata["bucket"] = bucket or error_info["BucketName"]

    if error_code in NOT_FOUND_CODES:
        return StorageFileNotFoundError(f"Object not found: {key}", metadata=metadata)

    if error_code in BUCKET_NOT_FOUND_CODES:
        bucket_name = metadata.get("bucket", "<unknown>")
        return StorageBucketNotFoundError(f"Bucket not found: {bucket_name}", metadata=metadata)

    if error_code in PERMISSION_CODES:
        return StoragePermissionError(
            f"{operation.capitalize()} failed: {error_message}",
            metadata=metadata,
        )

    if error_code in TIMEOUT_CODES:
        return StorageTimeoutError(
            f"{operation.capitalize()} timed out: {error_message}",
            metadata=metadata,
        )

    if error_code in QUOTA_CODES:
        return StorageQuotaExceededError(
            f"{operation.capitalize()} failed: {error_message}",
            metadata=metadata,
        )

    if error_code in REJECTED_REQUEST_CODES:
        return StorageRequestRejectedError(
            f"{operation.capitalize()} failed: {error_message}",
            metadata=metadata,
        )

    return TransferError(f"{operation.capitalize()} failed: {error_message}", metadata=metadata)


def map_transport_error(
    error: Exception,
    operation: str,
    key: str | None = None,
    bucket: str | None = None,
) -> TransferError:
    """Wrap a connection-level failure (botocore, OS, timeout) as a retryable error."""
    metadata: dict[str, Any] = {
        "operation": operation,
        "error_type": type(error).__name__,
        "error": str(error),
    }
    if key:
        metadata["key"] = key
    if bucket:
        metadata["bucket"] = bucket
    if isinstance(error, TimeoutError):
        return StorageTimeoutError(f"{operation.capitalize()} timed out: {error}", metadata=metadata)
    return TransferError(f"{operation.capitalize()} failed: {error}", metadata=metadata)
