"""Pydantic Settings v2 configuration.

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. YAML/conf.d files (optional, local/dev)
    3. Environment variables
    4. .env file
    5. secrets_dir
"""

from __future__ import annotations

from .loader import get_logging_settings, get_r2_settings
from .logs import LoggingSettings
from .storage import R2Settings, StorageConfig, mask_access_key, resolve_storage_config

__all__ = [
    "LoggingSettings",
    "R2Settings",
    "StorageConfig",
    "get_logging_settings",
    "get_r2_settings",
    "mask_access_key",
    "resolve_storage_config",
]
