"""Settings loaders.

Logging settings are process-wide and cached. Storage settings are not: each
call reads the environment again so tests and long-lived processes can build
independent clients.

Testing:
    get_logging_settings.cache_clear()
"""

from __future__ import annotations

from functools import lru_cache

from .logs import LoggingSettings
from .storage import R2Settings


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


def get_r2_settings() -> R2Settings:
    """Load R2 settings from the environment (uncached)."""
    return R2Settings()
