"""Pytest configuration and shared fixtures.

Organization:
    - Environment Fixtures: isolate tests from real R2 credentials and .env files
    - Storage Fixtures: an in-memory S3 client and a TransferClient bound to it
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any

from botocore.exceptions import ClientError
from pydantic import SecretStr
import pytest

from r2_transfer.core.settings import StorageConfig
from r2_transfer.infra.storage import TransferClient

R2_ENV_NAMES = (
    "ACCESS_KEY_ID",
    "SECRET_ACCESS_KEY",
    "ACCOUNT_ID",
    "BUCKET_NAME",
    "PUBLIC_URL",
    "CONFIG_KEY",
)


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Run every test in an empty directory with no R2 variables set."""
    for name in R2_ENV_NAMES:
        monkeypatch.delenv(f"R2_{name}", raising=False)
        monkeypatch.delenv(f"VITE_R2_{name}", raising=False)
    monkeypatch.delenv("CONFIG_FILENAME", raising=False)
    monkeypatch.delenv("R2_CONFIG_DIR", raising=False)
    monkeypatch.chdir(tmp_path)


# ============================================================================
# Storage Fixtures
# ============================================================================


def client_error(code: str, operation: str = "GetObject", status: int = 400, message: str | None = None) -> ClientError:
    """Build a botocore ClientError the way the S3 client raises it."""
    return ClientError(
        {
            "Error": {"Code": code, "Message": message or code},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class FakeBody:
    def __init__(self, data: bytes) -> None:
        self._data = data

    async def read(self) -> bytes:
        return self._data


class FakeS3:
    """In-memory stand-in for an aiobotocore S3 client.

    Queue failures per method with ``fail("put_object", error, ...)``; each
    queued exception is raised by one call, in order.
    """

    def __init__(self) -> None:
        self.objects: dict[str, dict[str, Any]] = {}
        self.uploads: dict[str, dict[str, Any]] = {}
        self.aborted: list[str] = []
        self.calls: list[str] = []
        self.failures: dict[str, list[BaseException]] = defaultdict(list)
        self.list_requests: list[dict[str, Any]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._upload_counter = 0

    def fail(self, method: str, *errors: BaseException) -> None:
        self.failures[method].extend(errors)

    def count(self, method: str) -> int:
        return self.calls.count(method)

    def _enter(self, method: str) -> None:
        self.calls.append(method)
        if self.failures[method]:
            raise self.failures[method].pop(0)

    async def put_object(self, *, Bucket, Key, Body, ContentType=None, ContentLength=None, Metadata=None):
        self._enter("put_object")
        self.objects[Key] = {"Body": bytes(Body), "ContentType": ContentType, "Metadata": Metadata or {}}
        return {"ETag": '"etag"'}

    async def get_object(self, *, Bucket, Key):
        self._enter("get_object")
        if Key not in self.objects:
            raise client_error("NoSuchKey", "GetObject", 404, "The specified key does not exist.")
        return {"Body": FakeBody(self.objects[Key]["Body"])}

    async def head_object(self, *, Bucket, Key):
        self._enter("head_object")
        if Key not in self.objects:
            raise client_error("404", "HeadObject", 404, "Not Found")
        return {"ContentLength": len(self.objects[Key]["Body"])}

    async def delete_object(self, *, Bucket, Key):
        self._enter("delete_object")
        self.objects.pop(Key, None)
        return {}

    async def list_objects_v2(self, *, Bucket, MaxKeys=1000, Prefix="", ContinuationToken=None):
        self._enter("list_objects_v2")
        self.list_requests.append({"MaxKeys": MaxKeys, "Prefix": Prefix, "ContinuationToken": ContinuationToken})
        keys = sorted(k for k in self.objects if k.startswith(Prefix))
        start = int(ContinuationToken or 0)
        page = keys[start : start + MaxKeys]
        truncated = start + MaxKeys < len(keys)
        response: dict[str, Any] = {
            "Contents": [{"Key": k, "Size": len(self.objects[k]["Body"])} for k in page],
            "KeyCount": len(page),
            "IsTruncated": truncated,
        }
        if truncated:
            response["NextContinuationToken"] = str(start + MaxKeys)
        return response

    async def create_multipart_upload(self, *, Bucket, Key, ContentType=None, Metadata=None):
        self._enter("create_multipart_upload")
        self._upload_counter += 1
        upload_id = f"upload-{self._upload_counter}"
        self.uploads[upload_id] = {"Key": Key, "parts": {}, "ContentType": ContentType, "Metadata": Metadata or {}}
        return {"UploadId": upload_id}

    async def upload_part(self, *, Bucket, Key, UploadId, PartNumber, Body, ContentLength=None):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            self._enter("upload_part")
        finally:
            self.in_flight -= 1
        self.uploads[UploadId]["parts"][PartNumber] = bytes(Body)
        return {"ETag": f'"etag-{PartNumber}"'}

    async def complete_multipart_upload(self, *, Bucket, Key, UploadId, MultipartUpload):
        self._enter("complete_multipart_upload")
        upload = self.uploads.pop(UploadId)
        numbers = [part["PartNumber"] for part in MultipartUpload["Parts"]]
        assert numbers == sorted(numbers)
        body = b"".join(upload["parts"][n] for n in numbers)
        self.objects[Key] = {"Body": body, "ContentType": upload["ContentType"], "Metadata": upload["Metadata"]}
        return {"ETag": '"etag-final"'}

    async def abort_multipart_upload(self, *, Bucket, Key, UploadId):
        self._enter("abort_multipart_upload")
        self.aborted.append(UploadId)
        self.uploads.pop(UploadId, None)
        return {}


@pytest.fixture
def storage_config() -> StorageConfig:
    return StorageConfig(
        access_key_id="AKIAEXAMPLEKEY123",
        secret_access_key=SecretStr("super-secret-value"),
        endpoint_url="https://acct123.r2.cloudflarestorage.com",
        bucket_name="portfolio",
        public_base_url="https://pub-abc.r2.dev",
    )


@pytest.fixture
def fake_s3() -> FakeS3:
    return FakeS3()


@pytest.fixture
def sleeps() -> list[float]:
    """Backoff delays requested by the client under test, in order."""
    return []


@pytest.fixture
def transfer_client(storage_config: StorageConfig, fake_s3: FakeS3, sleeps: list[float]) -> TransferClient:
    async def record_sleep(delay: float) -> None:
        sleeps.append(delay)

    return TransferClient(
        storage_config,
        s3_client=fake_s3,
        sleep=record_sleep,
        part_size=8,
        queue_size=4,
    )


@pytest.fixture
def make_client_error():
    """Factory fixture for botocore ClientErrors."""
    return client_error
