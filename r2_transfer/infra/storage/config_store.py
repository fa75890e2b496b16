"""Persist one JSON configuration document as an object in the bucket.

A missing object is the normal state before the first save, so reads return
``Absent`` (or ``None`` from ``load_config``) rather than raising.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from typing import TYPE_CHECKING, Any

from .exceptions import ConfigDecodeError, StorageFileNotFoundError

if TYPE_CHECKING:
    from .client import TransferClient
    from .models import TransferResult

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_KEY = "portfolio-config.json"
CONFIG_CONTENT_TYPE = "application/json"


@dataclass(frozen=True, slots=True)
class Found:
    document: Any


@dataclass(frozen=True, slots=True)
class Absent:
    pass


ConfigLookup = Found | Absent


class ConfigStore:
    """Save and load a JSON document stored under ``key``."""

    def __init__(self, client: TransferClient, key: str = DEFAULT_CONFIG_KEY) -> None:
        self.client = client
        self.key = key

    async def save_config(self, document: Any) -> TransferResult:
        """Serialize ``document`` (2-space indented JSON) and upload it."""
        payload = json.dumps(document, indent=2, ensure_ascii=False).encode("utf-8")
        result = await self.client.upload_bytes(self.key, payload, content_type=CONFIG_CONTENT_TYPE)
        logger.info("Configuration saved", extra={"key": self.key, "size_bytes": result.size_bytes})
        return result

    async def fetch(self) -> ConfigLookup:
        """Read the stored document.

        Raises:
            ConfigDecodeError: The object exists but is not valid JSON.
        """
        try:
            raw = await self.client.download(self.key)
        except StorageFileNotFoundError:
            logger.info("No stored configuration found", extra={"key": self.key})
            return Absent()

        try:
            document = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            msg = f"Stored configuration {self.key!r} is not valid JSON: {e}"
            raise ConfigDecodeError(msg, metadata={"key": self.key, "size_bytes": len(raw)}) from e

        logger.debug("Configuration loaded", extra={"key": self.key, "size_bytes": len(raw)})
        return Found(document)

    async def load_config(self) -> Any | None:
        """Return the stored document, or None when nothing has been saved yet."""
        match await self.fetch():
            case Found(document):
                return document
            case _:
                return None
