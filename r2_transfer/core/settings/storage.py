"""Cloudflare R2 connection settings.

Environment variables use the R2_ prefix. The ``VITE_R2_*`` names used by the
desktop front end are accepted as well, so one ``.env`` file can serve both.
Example: R2_ACCOUNT_ID="0123abcd"
         R2_BUCKET_NAME="portfolio"

``R2Settings`` only collects raw values. ``resolve_storage_config`` turns them
into the immutable ``StorageConfig`` the transfer client is built from, and is
the single place where missing credentials are reported.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from r2_transfer.core.exceptions import ConfigurationError

from .yaml_sources import create_storage_yaml_source

logger = logging.getLogger(__name__)

MIB = 1024 * 1024
R2_ENDPOINT_TEMPLATE = "https://{account_id}.r2.cloudflarestorage.com"
R2_REGION = "auto"


def _aliases(name: str) -> AliasChoices:
    return AliasChoices(f"R2_{name}", f"VITE_R2_{name}")


class R2Settings(BaseSettings):
    """Raw R2 settings loaded from init kwargs, YAML, the environment or ``.env``."""

    # ──────────────────────────────────────────────────────────────
    # Credentials and bucket
    # ──────────────────────────────────────────────────────────────

    access_key_id: str | None = Field(
        default=None,
        validation_alias=_aliases("ACCESS_KEY_ID"),
        description="R2 API token access key id",
    )

    secret_access_key: SecretStr | None = Field(
        default=None,
        validation_alias=_aliases("SECRET_ACCESS_KEY"),
        description="R2 API token secret",
    )

    account_id: str | None = Field(
        default=None,
        validation_alias=_aliases("ACCOUNT_ID"),
        description="Cloudflare account id, used to build the endpoint URL",
    )

    bucket_name: str | None = Field(
        default=None,
        validation_alias=_aliases("BUCKET_NAME"),
        description="Bucket every operation targets",
    )

    public_url: str | None = Field(
        default=None,
        validation_alias=_aliases("PUBLIC_URL"),
        description="Public base URL objects are served from (r2.dev or a custom domain)",
    )

    config_key: str = Field(
        default="portfolio-config.json",
        validation_alias=AliasChoices("R2_CONFIG_KEY", "CONFIG_FILENAME"),
        description="Object key of the stored JSON configuration document",
    )

    # ──────────────────────────────────────────────────────────────
    # Transfer tuning
    # ──────────────────────────────────────────────────────────────

    part_size_bytes: int = Field(
        default=10 * MIB,
        ge=5 * MIB,
        description="Multipart part size; S3 rejects parts under 5 MiB except the last",
    )

    queue_size: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Maximum number of parts in flight for one upload",
    )

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per operation before giving up",
    )

    delete_concurrency: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Concurrent deletes in a batch delete",
    )

    connect_timeout: int = Field(
        default=10,
        ge=1,
        le=300,
        description="Connection timeout in seconds",
    )

    read_timeout: int = Field(
        default=60,
        ge=1,
        le=600,
        description="Socket read timeout in seconds",
    )

    max_pool_connections: int = Field(
        default=10,
        ge=1,
        le=200,
        description="Maximum number of connections in the connection pool",
    )

    model_config = SettingsConfigDict(
        env_prefix="R2_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        populate_by_name=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Customize settings source precedence: init > yaml > env > dotenv > secrets."""
        return (
            init_settings,
            create_storage_yaml_source(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    def get_boto3_config(self) -> dict[str, Any]:
        """Return keyword arguments for ``botocore.config.Config``."""
        return {
            "connect_timeout": self.connect_timeout,
            "read_timeout": self.read_timeout,
            "max_pool_connections": self.max_pool_connections,
        }


def mask_access_key(access_key_id: str) -> str:
    """Show only the first 8 characters of an access key id."""
    return f"{access_key_id[:8]}..."


class StorageConfig(BaseModel):
    """Resolved, immutable connection parameters for one bucket.

    ``repr()`` and ``describe()`` never reveal credentials.
    """

    model_config = ConfigDict(frozen=True)

    access_key_id: str
    secret_access_key: SecretStr
    endpoint_url: str
    region: str = R2_REGION
    bucket_name: str
    public_base_url: str

    @property
    def masked_access_key(self) -> str:
        return mask_access_key(self.access_key_id)

    def describe(self) -> dict[str, str]:
        """Loggable summary with the credentials masked."""
        return {
            "access_key_id": self.masked_access_key,
            "secret_access_key": "**********",
            "endpoint_url": self.endpoint_url,
            "region": self.region,
            "bucket_name": self.bucket_name,
            "public_base_url": self.public_base_url,
        }

    def __repr__(self) -> str:
        fields = ", ".join(f"{name}={value!r}" for name, value in self.describe().items())
        return f"{type(self).__name__}({fields})"

    __str__ = __repr__

    def client_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``aioboto3.Session().client("s3", ...)``."""
        return {
            "endpoint_url": self.endpoint_url,
            "region_name": self.region,
            "aws_access_key_id": self.access_key_id,
            "aws_secret_access_key": self.secret_access_key.get_secret_value(),
        }


_REQUIRED_FIELDS = {
    "access_key_id": "R2_ACCESS_KEY_ID",
    "secret_access_key": "R2_SECRET_ACCESS_KEY",
    "public_url": "R2_PUBLIC_URL",
    "account_id": "R2_ACCOUNT_ID",
    "bucket_name": "R2_BUCKET_NAME",
}


def _is_blank(value: str | SecretStr | None) -> bool:
    if value is None:
        return True
    if isinstance(value, SecretStr):
        value = value.get_secret_value()
    return not value.strip()


def resolve_storage_config(settings: R2Settings | None = None) -> StorageConfig:
    """Build a ``StorageConfig`` from settings, failing fast on missing values.

    Args:
        settings: Pre-built settings. When omitted a fresh ``R2Settings`` is
            read from the environment. Nothing is cached between calls.

    Raises:
        ConfigurationError: One or more required values are absent or empty;
            ``missing_fields`` lists all of them by environment variable name.
    """
    if settings is None:
        settings = R2Settings()

    missing = [env_name for field, env_name in _REQUIRED_FIELDS.items() if _is_blank(getattr(settings, field))]
    if missing:
        logger.error(
            "R2 configuration incomplete",
            extra={"missing_fields": missing},
        )
        raise ConfigurationError(missing_fields=missing)

    config = StorageConfig(
        access_key_id=str(settings.access_key_id).strip(),
        secret_access_key=settings.secret_access_key,
        endpoint_url=R2_ENDPOINT_TEMPLATE.format(account_id=str(settings.account_id).strip()),
        region=R2_REGION,
        bucket_name=str(settings.bucket_name).strip(),
        public_base_url=str(settings.public_url).strip().rstrip("/"),
    )
    logger.info("R2 configuration resolved", extra=config.describe())
    return config
