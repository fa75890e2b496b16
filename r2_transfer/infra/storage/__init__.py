"""R2 object storage: transfer client, configuration store and URL codec."""

from __future__ import annotations

from .client import TransferClient
from .config_store import Absent, ConfigLookup, ConfigStore, Found
from .exceptions import (
    ConfigDecodeError,
    StorageBucketNotFoundError,
    StorageError,
    StorageFileNotFoundError,
    StoragePermissionError,
    StorageQuotaExceededError,
    StorageRequestRejectedError,
    StorageTimeoutError,
    StorageValidationError,
    TransferError,
    TransferFailedError,
    map_boto_error,
)
from .models import DeleteResult, ListPage, TransferRequest, TransferResult
from .progress import ProgressChannel, ProgressEvent
from .urls import PublicUrlCodec, validate_image_filename, validate_key

__all__ = [
    "Absent",
    "ConfigDecodeError",
    "ConfigLookup",
    "ConfigStore",
    "DeleteResult",
    "Found",
    "ListPage",
    "ProgressChannel",
    "ProgressEvent",
    "PublicUrlCodec",
    "StorageBucketNotFoundError",
    "StorageError",
    "StorageFileNotFoundError",
    "StoragePermissionError",
    "StorageQuotaExceededError",
    "StorageRequestRejectedError",
    "StorageTimeoutError",
    "StorageValidationError",
    "TransferClient",
    "TransferError",
    "TransferFailedError",
    "TransferRequest",
    "TransferResult",
    "map_boto_error",
    "validate_image_filename",
    "validate_key",
]
