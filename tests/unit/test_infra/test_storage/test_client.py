"""Unit tests for TransferClient against an in-memory S3 client."""

from __future__ import annotations

import pytest

from r2_transfer.infra.storage import (
    ProgressChannel,
    StorageFileNotFoundError,
    StorageRequestRejectedError,
    StorageValidationError,
    TransferClient,
    TransferFailedError,
    TransferRequest,
)
from r2_transfer.infra.storage.client import CONNECTION_TEST_KEY


@pytest.mark.unit
class TestUpload:
    """Test suite for uploads."""

    @pytest.mark.asyncio
    async def test_upload_bytes_returns_public_url(self, transfer_client, fake_s3):
        result = await transfer_client.upload_bytes("images/my photo.png", b"png", content_type="image/png")

        assert result.key == "images/my photo.png"
        assert result.public_url == "https://pub-abc.r2.dev/images%2Fmy%20photo.png"
        assert result.size_bytes == 3
        assert fake_s3.objects["images/my photo.png"]["ContentType"] == "image/png"
        assert result.to_dict() == {"key": result.key, "url": result.public_url, "size": 3}

    @pytest.mark.asyncio
    async def test_upload_path(self, transfer_client, fake_s3, tmp_path):
        source = tmp_path / "large.bin"
        source.write_bytes(b"abcdefgh" * 5)

        result = await transfer_client.upload_path(source, "backups/large.bin")

        assert result.size_bytes == 40
        assert fake_s3.objects["backups/large.bin"]["Body"] == b"abcdefgh" * 5
        assert fake_s3.count("upload_part") == 5

    @pytest.mark.asyncio
    async def test_missing_local_file_fails_before_any_call(self, transfer_client, fake_s3, tmp_path):
        with pytest.raises(StorageValidationError):
            await transfer_client.upload_path(tmp_path / "nope.bin", "nope.bin")
        assert fake_s3.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["", "bad|name.png", "/leading.png", "a" * 256, "CON"])
    async def test_invalid_keys_are_rejected_without_network(self, transfer_client, fake_s3, key):
        with pytest.raises(StorageValidationError):
            await transfer_client.upload_bytes(key, b"data")
        assert fake_s3.calls == []

    @pytest.mark.asyncio
    async def test_transient_failures_back_off_exponentially(self, transfer_client, fake_s3, sleeps, make_client_error):
        error = make_client_error("InternalError", "PutObject", 500)
        fake_s3.fail("put_object", error, error)

        result = await transfer_client.upload_bytes("a.txt", b"hello")

        assert result.size_bytes == 5
        assert sleeps == [2.0, 4.0]
        assert fake_s3.count("put_object") == 3

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_one_aggregated_error(
        self,
        transfer_client,
        fake_s3,
        sleeps,
        make_client_error,
    ):
        error = make_client_error("InternalError", "PutObject", 500, "We encountered an internal error")
        fake_s3.fail("put_object", error, error, error)

        with pytest.raises(TransferFailedError) as exc_info:
            await transfer_client.upload_bytes("docs/a.txt", b"hello")

        failure = exc_info.value
        assert failure.attempts == 3
        assert failure.bucket == "portfolio"
        assert failure.key == "docs/a.txt"
        assert failure.endpoint == "https://acct123.r2.cloudflarestorage.com"
        assert "internal error" in str(failure)
        assert sleeps == [2.0, 4.0]
        assert failure.__cause__ is failure.last_error

    @pytest.mark.asyncio
    async def test_request_max_attempts_overrides_default(self, transfer_client, fake_s3, sleeps, make_client_error):
        fake_s3.fail("put_object", make_client_error("InternalError", "PutObject", 500))

        with pytest.raises(TransferFailedError) as exc_info:
            await transfer_client.upload(TransferRequest(key="a.txt", payload=b"x", max_attempts=1))

        assert exc_info.value.attempts == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_failed_multipart_attempt_is_retried_from_scratch(
        self,
        transfer_client,
        fake_s3,
        sleeps,
        make_client_error,
    ):
        fake_s3.fail("upload_part", make_client_error("InternalError", "UploadPart", 500))
        payload = bytes(range(64))
        events = []

        result = await transfer_client.upload_bytes("big.bin", payload, on_progress=events.append)

        assert result.size_bytes == 64
        assert fake_s3.objects["big.bin"]["Body"] == payload
        assert fake_s3.aborted == ["upload-1"]
        assert fake_s3.count("create_multipart_upload") == 2
        assert sleeps == [2.0]
        transferred = [e.bytes_transferred for e in events]
        assert transferred == sorted(transferred)
        assert transferred[-1] == 64

    @pytest.mark.asyncio
    async def test_progress_is_held_back_after_a_late_failure(
        self,
        transfer_client,
        fake_s3,
        sleeps,
        make_client_error,
    ):
        fake_s3.fail(
            "complete_multipart_upload",
            make_client_error("InternalError", "CompleteMultipartUpload", 500),
        )
        events = []

        result = await transfer_client.upload_bytes("big.bin", bytes(64), on_progress=events.append)

        assert result.size_bytes == 64
        assert fake_s3.aborted == ["upload-1"]
        assert sleeps == [2.0]
        assert [e.bytes_transferred for e in events] == [8, 16, 24, 32, 40, 48, 56, 64, 64]
        assert fake_s3.count("upload_part") == 16

    @pytest.mark.asyncio
    async def test_backend_rejections_are_retried_then_aggregated(
        self,
        transfer_client,
        fake_s3,
        sleeps,
        make_client_error,
    ):
        rejected = make_client_error("InvalidArgument", "PutObject", 400)
        fake_s3.fail("put_object", rejected, rejected, rejected)

        with pytest.raises(TransferFailedError) as exc_info:
            await transfer_client.upload_bytes("a.txt", b"hello")

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, StorageRequestRejectedError)
        assert fake_s3.count("put_object") == 3
        assert sleeps == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_progress_channel_receives_events_and_closes(self, storage_config, fake_s3):
        channel = ProgressChannel()
        client = TransferClient(storage_config, s3_client=fake_s3, part_size=8, progress=channel)
        events = channel.subscribe("big.bin")

        await client.upload_bytes("big.bin", b"x" * 24)

        assert [e.percentage async for e in events] == [33, 67, 100]


@pytest.mark.unit
class TestDownload:
    """Test suite for downloads."""

    @pytest.mark.asyncio
    async def test_download_returns_bytes(self, transfer_client, fake_s3):
        fake_s3.objects["a.txt"] = {"Body": b"hello"}
        assert await transfer_client.download("a.txt") == b"hello"

    @pytest.mark.asyncio
    async def test_missing_object_is_not_retried(self, transfer_client, fake_s3, sleeps):
        with pytest.raises(StorageFileNotFoundError):
            await transfer_client.download("missing.txt")
        assert fake_s3.count("get_object") == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_connection_errors_are_retried(self, transfer_client, fake_s3, sleeps):
        fake_s3.objects["a.txt"] = {"Body": b"hello"}
        fake_s3.fail("get_object", ConnectionResetError("reset by peer"))

        assert await transfer_client.download("a.txt") == b"hello"
        assert sleeps == [2.0]


@pytest.mark.unit
class TestDelete:
    """Test suite for single and batch deletes."""

    @pytest.mark.asyncio
    async def test_delete_removes_object(self, transfer_client, fake_s3):
        fake_s3.objects["a.txt"] = {"Body": b"x"}
        await transfer_client.delete("a.txt")
        assert "a.txt" not in fake_s3.objects

    @pytest.mark.asyncio
    async def test_delete_missing_raises_unless_missing_ok(self, transfer_client, fake_s3):
        with pytest.raises(StorageFileNotFoundError):
            await transfer_client.delete("missing.txt")
        assert fake_s3.count("delete_object") == 0

        await transfer_client.delete("missing.txt", missing_ok=True)
        assert fake_s3.count("delete_object") == 1

    @pytest.mark.asyncio
    async def test_delete_many_reports_each_key_in_order(self, transfer_client, fake_s3):
        fake_s3.objects["k1"] = {"Body": b"1"}
        fake_s3.objects["k3"] = {"Body": b"3"}

        results = await transfer_client.delete_many(["k1", "k2", "k3"])

        assert [(r.key, r.success) for r in results] == [("k1", True), ("k2", False), ("k3", True)]
        assert "k2" in results[1].error
        assert fake_s3.objects == {}

    @pytest.mark.asyncio
    async def test_delete_many_empty(self, transfer_client, fake_s3):
        assert await transfer_client.delete_many([]) == []
        assert fake_s3.calls == []


@pytest.mark.unit
class TestListing:
    """Test suite for listings."""

    @pytest.mark.asyncio
    async def test_list_files_requests_at_most_1000_keys(self, transfer_client, fake_s3):
        for name in ("images/a.png", "images/b.png", "docs/c.txt"):
            fake_s3.objects[name] = {"Body": b""}

        assert await transfer_client.list_files("images/") == ["images/a.png", "images/b.png"]
        assert fake_s3.list_requests[0]["MaxKeys"] == 1000
        assert fake_s3.list_requests[0]["Prefix"] == "images/"

    @pytest.mark.asyncio
    async def test_list_files_returns_first_page_only(self, transfer_client, fake_s3):
        for index in range(1005):
            fake_s3.objects[f"k{index:04d}"] = {"Body": b""}

        keys = await transfer_client.list_files()
        assert len(keys) == 1000
        assert fake_s3.count("list_objects_v2") == 1

    @pytest.mark.asyncio
    async def test_iter_keys_follows_continuation_tokens(self, transfer_client, fake_s3):
        for index in range(1005):
            fake_s3.objects[f"k{index:04d}"] = {"Body": b""}

        keys = [key async for key in transfer_client.iter_keys()]
        assert len(keys) == 1005
        assert fake_s3.list_requests[1]["ContinuationToken"] == "1000"

    @pytest.mark.asyncio
    async def test_empty_bucket(self, transfer_client):
        assert await transfer_client.list_files() == []


@pytest.mark.unit
class TestConnection:
    """Test suite for test_connection and lifecycle."""

    @pytest.mark.asyncio
    async def test_connection_succeeds(self, transfer_client, fake_s3):
        assert await transfer_client.test_connection() is True
        assert fake_s3.objects[CONNECTION_TEST_KEY]["Body"] == b"R2 connection test"

    @pytest.mark.asyncio
    async def test_connection_failure_returns_false(self, transfer_client, fake_s3, make_client_error):
        fake_s3.fail("put_object", make_client_error("AccessDenied", "PutObject", 403))
        fake_s3.fail("put_object", make_client_error("AccessDenied", "PutObject", 403))
        fake_s3.fail("put_object", make_client_error("AccessDenied", "PutObject", 403))

        assert await transfer_client.test_connection() is False

    def test_repr_hides_credentials(self, transfer_client):
        assert "super-secret-value" not in repr(transfer_client)
        assert "super-secret-value" not in repr(transfer_client.config)

    def test_rejects_zero_attempts(self, storage_config):
        with pytest.raises(StorageValidationError):
            TransferClient(storage_config, max_attempts=0)

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self, transfer_client):
        async with transfer_client as client:
            assert client.is_ready
        assert transfer_client.is_ready


@pytest.mark.unit
class TestExists:
    """Test suite for exists."""

    @pytest.mark.asyncio
    async def test_exists(self, transfer_client, fake_s3):
        fake_s3.objects["a.txt"] = {"Body": b"x"}
        assert await transfer_client.exists("a.txt") is True
        assert await transfer_client.exists("b.txt") is False

    @pytest.mark.asyncio
    async def test_exists_retries_server_errors(self, transfer_client, fake_s3, sleeps, make_client_error):
        fake_s3.objects["a.txt"] = {"Body": b"x"}
        fake_s3.fail("head_object", make_client_error("InternalError", "HeadObject", 500))

        assert await transfer_client.exists("a.txt") is True
        assert sleeps == [2.0]
