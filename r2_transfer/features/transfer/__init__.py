"""Request handlers exposing the transfer client to a UI process."""

from __future__ import annotations

from .handlers import TransferHandlers

__all__ = ["TransferHandlers"]
