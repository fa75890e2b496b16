"""Envelope-returning handlers for a front end that cannot catch exceptions.

Every handler returns ``{"success": True, ...}`` or
``{"success": False, "error": "<message>"}`` and never raises. The transfer
client is created on first use, so a missing credential surfaces as an error
envelope instead of failing at startup.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from r2_transfer.infra.storage import ConfigStore, ProgressChannel, TransferClient
from r2_transfer.infra.storage.models import DEFAULT_CONTENT_TYPE

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from r2_transfer.core.settings.storage import R2Settings

logger = logging.getLogger(__name__)

Envelope = dict[str, Any]


def _failure(action: str, error: Exception) -> Envelope:
    logger.error("R2 %s error: %s", action, error, extra={"action": action, "error_type": type(error).__name__})
    return {"success": False, "error": str(error) or f"{action.capitalize()} failed"}


class TransferHandlers:
    """Handler set bound to one lazily created ``TransferClient``.

    Args:
        client_factory: Builds the client on first use.
        settings: Used by the default factory and for the config key.
        progress: Channel upload progress is published on.
    """

    def __init__(
        self,
        client_factory: Callable[[], TransferClient] | None = None,
        *,
        settings: R2Settings | None = None,
        progress: ProgressChannel | None = None,
    ) -> None:
        self._settings = settings
        self._client_factory = client_factory or (lambda: TransferClient.from_settings(self._settings))
        self._client: TransferClient | None = None
        self._store: ConfigStore | None = None
        self.progress = progress or ProgressChannel()

    def get_client(self) -> TransferClient:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    def get_store(self) -> ConfigStore:
        if self._store is None:
            key = self._settings.config_key if self._settings is not None else None
            client = self.get_client()
            self._store = ConfigStore(client, key) if key else ConfigStore(client)
        return self._store

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()

    async def upload_file(self, file_path: str | Path, key: str, content_type: str | None = None) -> Envelope:
        try:
            result = await self.get_client().upload_path(file_path, key, content_type or DEFAULT_CONTENT_TYPE)
        except Exception as e:
            return _failure("upload", e)
        return {"success": True, "url": result.public_url, "size": result.size_bytes}

    async def upload_file_with_progress(
        self,
        file_path: str | Path,
        key: str,
        content_type: str | None = None,
    ) -> Envelope:
        """Upload and publish ``{"key", "progress"}`` events on ``self.progress``."""

        try:
            client = self.get_client()
            result = await client.upload_path(
                file_path,
                key,
                content_type or DEFAULT_CONTENT_TYPE,
                on_progress=self.progress.callback(),
            )
        except Exception as e:
            return _failure("upload with progress", e)
        finally:
            self.progress.finish(key)
        return {"success": True, "url": result.public_url, "size": result.size_bytes}

    async def upload_config(self, config: Any) -> Envelope:
        try:
            await self.get_store().save_config(config)
        except Exception as e:
            return _failure("config upload", e)
        return {"success": True}

    async def download_config(self) -> Envelope:
        try:
            config = await self.get_store().load_config()
        except Exception as e:
            return _failure("config download", e)
        return {"success": True, "config": config}

    async def delete_file(self, key: str) -> Envelope:
        try:
            await self.get_client().delete(key)
        except Exception as e:
            return _failure("delete", e)
        return {"success": True}

    async def delete_files(self, keys: Iterable[str]) -> Envelope:
        try:
            results = await self.get_client().delete_many(keys)
        except Exception as e:
            return _failure("batch delete", e)
        return {"success": True, "results": [r.to_dict() for r in results]}

    async def list_files(self, prefix: str | None = None) -> Envelope:
        try:
            files = await self.get_client().list_files(prefix)
        except Exception as e:
            return _failure("list", e)
        return {"success": True, "files": files}

    async def test_connection(self) -> Envelope:
        try:
            connected = await self.get_client().test_connection()
        except Exception as e:
            return _failure("connection test", e)
        return {"success": True, "connected": connected}
