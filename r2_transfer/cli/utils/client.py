"""Client construction shared by CLI commands."""

import sys

from r2_transfer.core.exceptions import ConfigurationError
from r2_transfer.infra.storage import TransferClient

from .formatters import error, info


def build_client() -> TransferClient:
    """Create a client from the environment, exiting with a hint when misconfigured."""
    try:
        return TransferClient.from_settings()
    except ConfigurationError as e:
        error(str(e))
        info("Set the missing variables in the environment or in .env (R2_* or VITE_R2_* names)")
        sys.exit(1)
