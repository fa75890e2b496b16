"""CLI utilities for running async operations and formatting output."""

from r2_transfer.cli.utils.async_runner import coro
from r2_transfer.cli.utils.formatters import (
    error,
    format_bytes,
    info,
    section,
    success,
    warning,
)

__all__ = [
    "coro",
    "error",
    "format_bytes",
    "info",
    "section",
    "success",
    "warning",
]
