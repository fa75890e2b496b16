"""Single-attempt object upload, multipart when the payload spans several parts.

Nothing here retries or maps errors: botocore exceptions propagate to the
caller, which owns the retry loop. A failed or cancelled multipart upload is
aborted before the exception leaves ``upload_object``, so the next attempt
starts from byte zero with a new upload id.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .progress import ProgressEvent

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

MIB = 1024 * 1024
DEFAULT_PART_SIZE = 10 * MIB
DEFAULT_QUEUE_SIZE = 4


def payload_size(payload: bytes | Path) -> int:
    if isinstance(payload, Path):
        return payload.stat().st_size
    return len(payload)


def part_ranges(size: int, part_size: int) -> list[tuple[int, int, int]]:
    """Split ``size`` bytes into ``(part_number, offset, length)`` triples.

    Part numbers start at 1; only the last part may be shorter than ``part_size``.
    """
    return [
        (number, offset, min(part_size, size - offset))
        for number, offset in enumerate(range(0, size, part_size), start=1)
    ]


def _read_file_range(path: Path, offset: int, length: int) -> bytes:
    with path.open("rb") as fh:
        fh.seek(offset)
        return fh.read(length)


async def read_part(payload: bytes | Path, offset: int, length: int) -> bytes:
    if isinstance(payload, Path):
        return await asyncio.to_thread(_read_file_range, payload, offset, length)
    return payload[offset : offset + length]


def upload_metadata() -> dict[str, str]:
    return {"upload-timestamp": datetime.now(UTC).isoformat()}


async def upload_object(
    s3: Any,
    *,
    bucket: str,
    key: str,
    payload: bytes | Path,
    content_type: str,
    part_size: int = DEFAULT_PART_SIZE,
    queue_size: int = DEFAULT_QUEUE_SIZE,
    on_progress: Callable[[ProgressEvent], None] | None = None,
) -> int:
    """Upload ``payload`` to ``bucket/key`` once and return its size in bytes.

    Payloads smaller than ``part_size`` go out in one ``put_object`` call.
    Larger payloads use the multipart API with at most ``queue_size`` parts
    in flight; file payloads are read part by part so no more than
    ``queue_size`` parts are held in memory.

    ``on_progress`` receives a cumulative ``ProgressEvent`` after each part
    (or once for a single put). Events from one call never go backwards and
    the last one reports the full size.
    """
    size = payload_size(payload)
    metadata = upload_metadata()

    if size < part_size:
        body = await read_part(payload, 0, size)
        await s3.put_object(
            Bucket=bucket,
            Key=key,
            Body=body,
            ContentType=content_type,
            ContentLength=size,
            Metadata=metadata,
        )
        if on_progress is not None:
            on_progress(ProgressEvent(key=key, bytes_transferred=size, total_bytes=size))
        return size

    response = await s3.create_multipart_upload(
        Bucket=bucket,
        Key=key,
        ContentType=content_type,
        Metadata=metadata,
    )
    upload_id = response["UploadId"]
    ranges = part_ranges(size, part_size)
    logger.debug(
        "Multipart upload started",
        extra={"key": key, "bucket": bucket, "upload_id": upload_id, "parts": len(ranges)},
    )

    semaphore = asyncio.Semaphore(queue_size)
    transferred = 0

    async def send_part(part_number: int, offset: int, length: int) -> dict[str, Any]:
        nonlocal transferred
        async with semaphore:
            body = await read_part(payload, offset, length)
            result = await s3.upload_part(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                PartNumber=part_number,
                Body=body,
                ContentLength=length,
            )
        # No await between the increment and the event, so events stay ordered.
        transferred += length
        if on_progress is not None:
            on_progress(ProgressEvent(key=key, bytes_transferred=transferred, total_bytes=size))
        return {"PartNumber": part_number, "ETag": result["ETag"]}

    tasks = [asyncio.create_task(send_part(*part)) for part in ranges]
    try:
        parts = await asyncio.gather(*tasks)
        await s3.complete_multipart_upload(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={"Parts": sorted(parts, key=lambda p: p["PartNumber"])},
        )
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await abort_upload(s3, bucket=bucket, key=key, upload_id=upload_id)
        raise

    logger.debug(
        "Multipart upload completed",
        extra={"key": key, "bucket": bucket, "upload_id": upload_id, "size_bytes": size},
    )
    return size


async def abort_upload(s3: Any, *, bucket: str, key: str, upload_id: str) -> None:
    """Abandon a multipart upload; failures are logged, not raised."""
    try:
        await s3.abort_multipart_upload(Bucket=bucket, Key=key, UploadId=upload_id)
    except Exception as e:
        logger.warning(
            "Failed to abort multipart upload",
            extra={"key": key, "bucket": bucket, "upload_id": upload_id, "error": str(e)},
        )
    else:
        logger.info(
            "Multipart upload aborted",
            extra={"key": key, "bucket": bucket, "upload_id": upload_id},
        )
