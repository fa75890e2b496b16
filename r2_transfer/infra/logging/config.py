"""Logging setup built on ``logging.config.dictConfig``.

All handlers attach to the root logger; module loggers created with
``logging.getLogger(__name__)`` propagate up.
"""

from __future__ import annotations

from collections.abc import Iterable
import logging
import logging.config
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .formatters import SecretMaskingFilter

if TYPE_CHECKING:
    from r2_transfer.core.settings.logs import LoggingSettings

logger = logging.getLogger(__name__)

_LOGGING_INITIALIZED = False

PLAIN_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# Shared with dictConfig so secrets registered later (e.g. after settings are
# resolved) are masked by handlers that already exist.
secret_filter = SecretMaskingFilter()


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **configure_kwargs: Any,
) -> None:
    """Ensure logging is configured once across entrypoints.

    Args:
        log_settings: Optional logging settings instance. If omitted, settings
            are loaded via get_logging_settings().
        force: Reconfigure logging even if it was already initialized.
        **configure_kwargs: Explicit overrides for configure_logging().
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    settings_obj = log_settings
    if settings_obj is None:
        from r2_transfer.core.settings import get_logging_settings

        settings_obj = get_logging_settings()

    log_config = {**settings_obj.to_logging_kwargs(), **configure_kwargs}
    configure_logging(**log_config)
    _LOGGING_INITIALIZED = True


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    console_enabled: bool = True,
    file_path: str | Path | None = None,
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
    service_name: str = "r2-transfer",
    quiet_libraries: Iterable[str] = (),
    capture_warnings: bool = True,
    secrets: Iterable[str] = (),
) -> None:
    """Configure the root logger.

    Args:
        log_level: Root logger level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_logs: Use JSONL on the console instead of plain text.
        console_enabled: Enable the stderr handler.
        file_path: Path to a rotating JSONL log file. None disables file logging.
        file_max_bytes: Maximum log file size before rotation.
        file_backup_count: Number of rotated log files to keep.
        service_name: Static ``service`` field in JSON records.
        quiet_libraries: Loggers capped at WARNING (botocore is chatty at DEBUG).
        capture_warnings: Forward Python warnings to logging.
        secrets: Values replaced with a mask wherever they appear in a record.

    Example:
        from r2_transfer.core.settings import get_logging_settings
        configure_logging(**get_logging_settings().to_logging_kwargs())
    """
    if capture_warnings:
        logging.captureWarnings(True)

    for secret in secrets:
        secret_filter.add_secret(secret)

    path = Path(file_path) if file_path else None
    if path:
        path.parent.mkdir(parents=True, exist_ok=True)

    handlers: dict[str, dict[str, Any]] = {}
    if console_enabled:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
            "formatter": "json" if json_logs else "plain",
            "filters": ["secrets"],
        }
    if path:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str(path),
            "maxBytes": file_max_bytes,
            "backupCount": file_backup_count,
            "encoding": "utf-8",
            "formatter": "json",
            "filters": ["secrets"],
        }

    logging_config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "r2_transfer.infra.logging.formatters.JSONFormatter",
                "static": {"service": service_name},
            },
            "plain": {"format": PLAIN_FORMAT},
        },
        "filters": {"secrets": {"()": lambda: secret_filter}},
        "handlers": handlers,
        "loggers": {name: {"level": "WARNING"} for name in quiet_libraries},
        "root": {
            "level": log_level.upper(),
            "handlers": list(handlers),
        },
    }
    logging.config.dictConfig(logging_config)
    logger.debug(
        "Logging configured",
        extra={"log_level": log_level, "json_logs": json_logs, "file_path": str(path) if path else None},
    )


def register_secret(secret: str) -> None:
    """Mask ``secret`` in every record emitted through configured handlers."""
    secret_filter.add_secret(secret)
