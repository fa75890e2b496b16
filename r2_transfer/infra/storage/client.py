"""Async transfer client for one Cloudflare R2 bucket.

Every network operation runs through the same retry policy: a failed attempt
is retried after 2s, 4s, ... until ``max_attempts`` is reached, then a single
``TransferFailedError`` describes the whole operation. Missing objects and
invalid keys fail immediately.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
import time
from typing import TYPE_CHECKING, Any, TypeVar

import aioboto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from r2_transfer.core.settings.storage import R2Settings, StorageConfig, resolve_storage_config
from r2_transfer.infra.logging import register_secret
from r2_transfer.utils.retry import RetryError, RetryStrategy, retry_call

from .exceptions import (
    StorageError,
    StorageValidationError,
    TransferError,
    TransferFailedError,
    map_boto_error,
    map_transport_error,
)
from .metrics import record_batch_operation, record_operation_error, record_operation_success
from .models import DEFAULT_CONTENT_TYPE, DeleteResult, ListPage, TransferRequest, TransferResult
from .multipart import DEFAULT_PART_SIZE, DEFAULT_QUEUE_SIZE, upload_object
from .progress import ProgressChannel, ProgressEvent
from .urls import PublicUrlCodec, validate_key

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
    from types import TracebackType

logger = logging.getLogger(__name__)

R = TypeVar("R")

MAX_LIST_KEYS = 1000
CONNECTION_TEST_KEY = "test/connection-test.txt"
CONNECTION_TEST_BODY = b"R2 connection test"


class _MonotonicProgress:
    """Forward progress events without ever going backwards.

    A retried upload restarts from byte zero; its early events are held back
    until they pass the furthest point already reported.
    """

    def __init__(self, *sinks: Callable[[ProgressEvent], None] | None) -> None:
        self._sinks = [sink for sink in sinks if sink is not None]
        self._high_water = -1

    def __bool__(self) -> bool:
        return bool(self._sinks)

    def __call__(self, event: ProgressEvent) -> None:
        if event.bytes_transferred < self._high_water:
            return
        self._high_water = event.bytes_transferred
        for sink in self._sinks:
            sink(event)


class TransferClient:
    """Upload, download, list and delete objects in one R2 bucket.

    Example:
        >>> config = resolve_storage_config()
        >>> async with TransferClient(config) as client:
        ...     result = await client.upload_bytes("notes/a.txt", b"hello", content_type="text/plain")
        ...     data = await client.download("notes/a.txt")
    """

    def __init__(
        self,
        config: StorageConfig,
        *,
        part_size: int = DEFAULT_PART_SIZE,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        max_attempts: int = 3,
        delete_concurrency: int = 10,
        boto_config: dict[str, Any] | None = None,
        s3_client: Any = None,
        session: aioboto3.Session | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        progress: ProgressChannel | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Resolved connection parameters.
            part_size: Multipart part size in bytes.
            queue_size: Parts in flight per upload.
            max_attempts: Default attempts per operation.
            delete_concurrency: Concurrent deletes in ``delete_many``.
            boto_config: Extra ``botocore.config.Config`` arguments (timeouts, pool size).
            s3_client: Pre-built S3 client; the caller keeps ownership of it.
            session: aioboto3 session used when no ``s3_client`` is given.
            sleep: Coroutine used for backoff waits.
            progress: Channel receiving every upload's progress events.
        """
        if max_attempts < 1:
            msg = f"max_attempts must be >= 1, got {max_attempts}"
            raise StorageValidationError(msg)
        self.config = config
        self.codec = PublicUrlCodec(config.public_base_url)
        self.part_size = part_size
        self.queue_size = queue_size
        self.max_attempts = max_attempts
        self.delete_concurrency = delete_concurrency
        self.progress = progress
        self._boto_config = boto_config or {}
        self._sleep = sleep
        self._session = session
        self._client = s3_client
        self._client_context: Any = None
        self._client_lock = asyncio.Lock()
        register_secret(config.secret_access_key.get_secret_value())

    @classmethod
    def from_settings(cls, settings: R2Settings | None = None, **kwargs: Any) -> TransferClient:
        """Build a client from ``R2Settings`` (read from the environment when omitted).

        Raises:
            ConfigurationError: A required setting is missing.
        """
        settings = settings or R2Settings()
        config = resolve_storage_config(settings)
        options: dict[str, Any] = {
            "part_size": settings.part_size_bytes,
            "queue_size": settings.queue_size,
            "max_attempts": settings.max_attempts,
            "delete_concurrency": settings.delete_concurrency,
            "boto_config": settings.get_boto3_config(),
        }
        options.update(kwargs)
        return cls(config, **options)

    def __repr__(self) -> str:
        return f"TransferClient(bucket={self.config.bucket_name!r}, endpoint={self.config.endpoint_url!r})"

    # ──────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────

    async def __aenter__(self) -> TransferClient:
        await self.ensure_client()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def is_ready(self) -> bool:
        return self._client is not None

    async def ensure_client(self) -> Any:
        """Return the S3 client, creating it on first use."""
        if self._client is not None:
            return self._client

        async with self._client_lock:
            if self._client is None:
                boto_config = Config(
                    signature_version="s3v4",
                    # Retries are handled by this client, not botocore.
                    retries={"total_max_attempts": 1, "mode": "standard"},
                    **self._boto_config,
                )
                session = self._session or aioboto3.Session()
                self._client_context = session.client(
                    "s3",
                    **self.config.client_kwargs(),
                    config=boto_config,
                )
                self._client = await self._client_context.__aenter__()
                logger.info("R2 client initialized", extra=self.config.describe())
        return self._client

    async def close(self) -> None:
        """Close the S3 client if this instance created it."""
        if self._client_context is not None:
            try:
                await self._client_context.__aexit__(None, None, None)
            except Exception as e:
                logger.warning("Error closing R2 client: %s", e)
            finally:
                self._client = None
                self._client_context = None

    # ──────────────────────────────────────────────────────────────
    # Retry plumbing
    # ──────────────────────────────────────────────────────────────

    def _context(self, operation: str, key: str | None = None) -> dict[str, Any]:
        context: dict[str, Any] = {"operation": operation, "bucket": self.config.bucket_name}
        if key is not None:
            context["key"] = key
        return context

    def _check_key(self, key: str, operation: str) -> str:
        if not validate_key(key) or key.startswith("/"):
            msg = f"Invalid object key: {key!r}"
            raise StorageValidationError(msg, metadata=self._context(operation, key))
        return key

    async def _attempt(self, operation: str, key: str | None, call: Callable[[Any], Awaitable[R]]) -> R:
        """Run one attempt, translating botocore failures into storage errors."""
        try:
            s3 = await self.ensure_client()
            return await call(s3)
        except ClientError as e:
            raise map_boto_error(e, operation=operation, key=key, bucket=self.config.bucket_name) from e
        except (BotoCoreError, OSError) as e:
            raise map_transport_error(e, operation=operation, key=key, bucket=self.config.bucket_name) from e

    async def _run(
        self,
        operation: str,
        key: str | None,
        call: Callable[[Any], Awaitable[R]],
        max_attempts: int | None = None,
    ) -> R:
        """Run ``call`` with retries and metrics; raise ``TransferFailedError`` on exhaustion."""
        strategy = RetryStrategy(
            max_attempts=max_attempts or self.max_attempts,
            exceptions=(TransferError,),
            retry_if=lambda e: getattr(e, "retryable", False),
        )
        started = time.perf_counter()
        try:
            return await retry_call(
                lambda: self._attempt(operation, key, call),
                strategy,
                operation=operation,
                sleep=self._sleep,
            )
        except RetryError as e:
            error = TransferFailedError(
                operation=operation,
                bucket=self.config.bucket_name,
                endpoint=self.config.endpoint_url,
                key=key or "*",
                attempts=e.attempts,
                last_error=e.last_exception,
            )
            record_operation_error(operation, type(error).__name__, time.perf_counter() - started)
            logger.error(error.detail, extra=error.extra)
            raise error from e.last_exception
        except StorageError as e:
            record_operation_error(operation, type(e).__name__, time.perf_counter() - started)
            raise

    # ──────────────────────────────────────────────────────────────
    # Uploads
    # ──────────────────────────────────────────────────────────────

    def public_url(self, key: str) -> str:
        return self.codec.to_url(key)

    async def upload(
        self,
        request: TransferRequest,
        on_progress: Callable[[ProgressEvent], None] | None = None,
    ) -> TransferResult:
        """Upload bytes or a local file, multipart when larger than one part.

        Args:
            request: Destination key, payload and options.
            on_progress: Called with cumulative progress after each part.

        Returns:
            The key, its public URL and the number of bytes stored.

        Raises:
            StorageValidationError: Invalid key or missing local file.
            TransferFailedError: Every attempt failed.
        """
        key = self._check_key(request.key, "upload")
        payload = request.payload
        if isinstance(payload, Path) and not payload.is_file():
            msg = f"Local file not found: {payload}"
            raise StorageValidationError(msg, metadata={**self._context("upload", key), "path": str(payload)})
        public_url = self.codec.to_url(key)

        emit = _MonotonicProgress(on_progress, self.progress.publish if self.progress else None)
        started = time.perf_counter()

        async def attempt(s3: Any) -> int:
            return await upload_object(
                s3,
                bucket=self.config.bucket_name,
                key=key,
                payload=payload,
                content_type=request.content_type,
                part_size=self.part_size,
                queue_size=self.queue_size,
                on_progress=emit if emit else None,
            )

        try:
            size = await self._run("upload", key, attempt, max_attempts=request.max_attempts)
        finally:
            if self.progress is not None:
                self.progress.finish(key)

        record_operation_success("upload", time.perf_counter() - started, size_bytes=size)
        logger.info(
            "Object uploaded",
            extra={**self._context("upload", key), "size_bytes": size, "content_type": request.content_type},
        )
        return TransferResult(key=key, public_url=public_url, size_bytes=size)

    async def upload_bytes(
        self,
        key: str,
        data: bytes,
        content_type: str = DEFAULT_CONTENT_TYPE,
        *,
        max_attempts: int | None = None,
        on_progress: Callable[[ProgressEvent], None] | None = None,
    ) -> TransferResult:
        request = TransferRequest(
            key=key,
            payload=data,
            content_type=content_type,
            max_attempts=max_attempts or self.max_attempts,
        )
        return await self.upload(request, on_progress=on_progress)

    async def upload_path(
        self,
        path: str | Path,
        key: str,
        content_type: str = DEFAULT_CONTENT_TYPE,
        *,
        max_attempts: int | None = None,
        on_progress: Callable[[ProgressEvent], None] | None = None,
    ) -> TransferResult:
        request = TransferRequest(
            key=key,
            payload=Path(path),
            content_type=content_type,
            max_attempts=max_attempts or self.max_attempts,
        )
        return await self.upload(request, on_progress=on_progress)

    # ──────────────────────────────────────────────────────────────
    # Downloads, deletes, listings
    # ──────────────────────────────────────────────────────────────

    async def download(self, key: str) -> bytes:
        """Return the object's bytes.

        Raises:
            StorageFileNotFoundError: The object does not exist.
            TransferFailedError: Every attempt failed.
        """
        key = self._check_key(key, "download")
        started = time.perf_counter()

        async def attempt(s3: Any) -> bytes:
            response = await s3.get_object(Bucket=self.config.bucket_name, Key=key)
            data = await response["Body"].read()
            return bytes(data)

        data = await self._run("download", key, attempt)
        record_operation_success("download", time.perf_counter() - started, size_bytes=len(data))
        logger.info("Object downloaded", extra={**self._context("download", key), "size_bytes": len(data)})
        return data

    async def exists(self, key: str) -> bool:
        key = self._check_key(key, "head")

        async def attempt(s3: Any) -> bool:
            try:
                await s3.head_object(Bucket=self.config.bucket_name, Key=key)
            except ClientError as e:
                if str(e.response.get("Error", {}).get("Code")) in {"404", "NoSuchKey", "NotFound"}:
                    return False
                raise
            return True

        return await self._run("head", key, attempt)

    async def delete(self, key: str, *, missing_ok: bool = False) -> None:
        """Delete one object.

        S3 reports success for missing keys, so unless ``missing_ok`` is set
        the object is checked first and a missing key raises.

        Raises:
            StorageFileNotFoundError: The object does not exist and ``missing_ok`` is False.
            TransferFailedError: Every attempt failed.
        """
        key = self._check_key(key, "delete")
        started = time.perf_counter()

        async def attempt(s3: Any) -> None:
            if not missing_ok:
                await s3.head_object(Bucket=self.config.bucket_name, Key=key)
            await s3.delete_object(Bucket=self.config.bucket_name, Key=key)

        await self._run("delete", key, attempt)
        record_operation_success("delete", time.perf_counter() - started)
        logger.info("Object deleted", extra=self._context("delete", key))

    async def delete_many(self, keys: Iterable[str], *, missing_ok: bool = False) -> list[DeleteResult]:
        """Delete several objects; one failure never stops the others.

        Returns:
            One ``DeleteResult`` per key, in input order.
        """
        keys = list(keys)
        semaphore = asyncio.Semaphore(self.delete_concurrency)

        async def delete_one(key: str) -> DeleteResult:
            async with semaphore:
                try:
                    await self.delete(key, missing_ok=missing_ok)
                except StorageError as e:
                    logger.warning(
                        "Failed to delete object in batch",
                        extra={**self._context("delete", key), "error": e.detail},
                    )
                    return DeleteResult(key=key, success=False, error=e.detail)
                return DeleteResult(key=key, success=True)

        outcomes = await asyncio.gather(*(delete_one(key) for key in keys), return_exceptions=True)

        results: list[DeleteResult] = []
        for key, outcome in zip(keys, outcomes, strict=True):
            if isinstance(outcome, DeleteResult):
                results.append(outcome)
            else:
                logger.error("Unexpected error deleting %s: %s", key, outcome)
                results.append(DeleteResult(key=key, success=False, error=str(outcome)))

        failed = sum(1 for r in results if not r.success)
        record_batch_operation("delete", len(results), failed)
        logger.info(
            "Batch deletion completed: %s/%s deleted",
            len(results) - failed,
            len(results),
            extra={"total": len(results), "failed": failed, "bucket": self.config.bucket_name},
        )
        return results

    async def list_page(
        self,
        prefix: str | None = None,
        continuation_token: str | None = None,
        max_keys: int = MAX_LIST_KEYS,
    ) -> ListPage:
        """Fetch one page of keys (at most ``max_keys``, capped at 1000)."""
        params: dict[str, Any] = {
            "Bucket": self.config.bucket_name,
            "MaxKeys": min(max_keys, MAX_LIST_KEYS),
        }
        if prefix:
            params["Prefix"] = prefix
        if continuation_token:
            params["ContinuationToken"] = continuation_token

        async def attempt(s3: Any) -> ListPage:
            response = await s3.list_objects_v2(**params)
            keys = [obj["Key"] for obj in response.get("Contents", [])]
            next_token = response.get("NextContinuationToken") if response.get("IsTruncated") else None
            return ListPage(keys=keys, next_token=next_token)

        started = time.perf_counter()
        page = await self._run("list", prefix, attempt)
        record_operation_success("list", time.perf_counter() - started)
        logger.debug(
            "Listed objects",
            extra={**self._context("list"), "prefix": prefix, "count": len(page.keys)},
        )
        return page

    async def list_files(self, prefix: str | None = None) -> list[str]:
        """Keys under ``prefix`` from the first page only (up to 1000)."""
        page = await self.list_page(prefix)
        return page.keys

    async def iter_keys(self, prefix: str | None = None) -> AsyncIterator[str]:
        """Yield every key under ``prefix``, following continuation tokens."""
        token: str | None = None
        while True:
            page = await self.list_page(prefix, token)
            for key in page.keys:
                yield key
            if not page.is_truncated:
                return
            token = page.next_token

    # ──────────────────────────────────────────────────────────────
    # Diagnostics
    # ──────────────────────────────────────────────────────────────

    async def test_connection(self) -> bool:
        """Upload a small probe object; True when it succeeds. Never raises."""
        try:
            await self.upload_bytes(CONNECTION_TEST_KEY, CONNECTION_TEST_BODY, content_type="text/plain")
        except Exception as e:
            logger.error(
                "R2 connection test failed",
                extra={**self._context("test_connection", CONNECTION_TEST_KEY), "error": str(e)},
            )
            return False
        logger.info("R2 connection test succeeded", extra=self._context("test_connection"))
        return True
