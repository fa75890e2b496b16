"""Value objects passed to and returned from the transfer client."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .exceptions import StorageValidationError

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True, slots=True)
class TransferRequest:
    """One upload: the destination key plus the bytes or file to send.

    Attributes:
        key: Destination object key.
        payload: In-memory bytes or a path to a local file.
        content_type: MIME type stored with the object.
        max_attempts: Attempts before the upload is reported as failed.
    """

    key: str
    payload: bytes | Path
    content_type: str = DEFAULT_CONTENT_TYPE
    max_attempts: int = 3

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            msg = f"max_attempts must be >= 1, got {self.max_attempts}"
            raise StorageValidationError(msg, metadata={"key": self.key})
        if isinstance(self.payload, str):
            object.__setattr__(self, "payload", Path(self.payload))
        if isinstance(self.payload, bytearray | memoryview):
            object.__setattr__(self, "payload", bytes(self.payload))


@dataclass(frozen=True, slots=True)
class TransferResult:
    """Outcome of a successful upload."""

    key: str
    public_url: str
    size_bytes: int

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "url": self.public_url, "size": self.size_bytes}


@dataclass(frozen=True, slots=True)
class DeleteResult:
    """Per-key outcome of a batch delete."""

    key: str
    success: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"key": self.key, "success": self.success}
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True, slots=True)
class ListPage:
    """One page of a bucket listing."""

    keys: list[str] = field(default_factory=list)
    next_token: str | None = None

    @property
    def is_truncated(self) -> bool:
        return self.next_token is not None
