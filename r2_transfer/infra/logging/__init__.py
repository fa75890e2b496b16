from __future__ import annotations

from .config import configure_logging, register_secret, setup_logging
from .formatters import JSONFormatter, SecretMaskingFilter

__all__ = [
    "JSONFormatter",
    "SecretMaskingFilter",
    "configure_logging",
    "register_secret",
    "setup_logging",
]
