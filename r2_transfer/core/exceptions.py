"""Base exception classes for the transfer layer."""

from __future__ import annotations

from typing import Any


class AppException(Exception):
    """Base application exception.

    Every error raised by this package inherits from this class so callers
    can catch one type at the boundary and still inspect the details.

    Attributes:
        status_code: HTTP-style status code describing the failure class.
        detail: Human-readable error message.
        type: Machine-readable error identifier.
        title: Short, human-readable summary of the problem type.
        extra: Additional context (bucket, key, operation, ...).

    Example:
        raise AppException(
            status_code=404,
            detail="Object not found",
            type="object-not-found",
            extra={"key": "images/a.png"},
        )
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        type: str = "about:blank",
        title: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        self.type = type
        self.title = title or self._default_title(status_code)
        self.extra = extra or {}
        super().__init__(detail)

    @staticmethod
    def _default_title(status_code: int) -> str:
        titles = {
            400: "Bad Request",
            403: "Forbidden",
            404: "Not Found",
            422: "Unprocessable Entity",
            500: "Internal Server Error",
            502: "Bad Gateway",
            503: "Service Unavailable",
            504: "Gateway Timeout",
            507: "Insufficient Storage",
        }
        return titles.get(status_code, "Error")

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for logs and response envelopes."""
        return {
            "type": self.type,
            "title": self.title,
            "status": self.status_code,
            "detail": self.detail,
            **self.extra,
        }


class ConfigurationError(AppException):
    """Raised when required settings are missing or invalid.

    Example:
        raise ConfigurationError(missing_fields=["R2_BUCKET_NAME"])
    """

    def __init__(
        self,
        detail: str | None = None,
        missing_fields: list[str] | None = None,
    ) -> None:
        self.missing_fields = list(missing_fields or [])
        if detail is None:
            detail = "Missing required configuration: " + ", ".join(self.missing_fields)
        super().__init__(
            status_code=500,
            detail=detail,
            type="configuration-error",
            title="Configuration Error",
            extra={"missing_fields": self.missing_fields},
        )
