"""Object commands: upload, download, delete, list, url, test-connection."""

import mimetypes
from pathlib import Path
import sys

import click

from r2_transfer.cli.utils import coro, error, format_bytes, info, section, success, warning
from r2_transfer.cli.utils.client import build_client
from r2_transfer.core.exceptions import AppException
from r2_transfer.core.settings import get_r2_settings, resolve_storage_config
from r2_transfer.infra.storage import ProgressEvent, PublicUrlCodec


def _guess_content_type(path: Path) -> str:
    content_type, _ = mimetypes.guess_type(path.name)
    return content_type or "application/octet-stream"


@click.command(name="upload")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("key", required=False)
@click.option("--content-type", help="MIME type (guessed from the file name by default)")
@click.option("--attempts", type=click.IntRange(min=1), default=None, help="Attempts before giving up")
@coro
async def upload(path: Path, key: str | None, content_type: str | None, attempts: int | None) -> None:
    """Upload a local file.

    KEY defaults to the file name.

    \b
    Examples:
        r2-transfer upload photo.jpg
        r2-transfer upload photo.jpg images/2024/photo.jpg --content-type image/jpeg
    """
    key = key or path.name
    content_type = content_type or _guess_content_type(path)

    def show_progress(event: ProgressEvent) -> None:
        click.echo(f"\r  {event.percentage:3d}% ({format_bytes(event.bytes_transferred)})", nl=False)

    info(f"Uploading {path} -> {key} ({content_type})")
    async with build_client() as client:
        try:
            result = await client.upload_path(
                path,
                key,
                content_type,
                max_attempts=attempts,
                on_progress=show_progress,
            )
        except AppException as e:
            click.echo()
            error(f"Upload failed: {e}")
            sys.exit(1)

    click.echo()
    success(f"Uploaded {format_bytes(result.size_bytes)}")
    click.echo(result.public_url)


@click.command(name="download")
@click.argument("key")
@click.argument("destination", required=False, type=click.Path(dir_okay=False, path_type=Path))
@coro
async def download(key: str, destination: Path | None) -> None:
    """Download an object to DESTINATION (or stdout with '-')."""
    async with build_client() as client:
        try:
            data = await client.download(key)
        except AppException as e:
            error(f"Download failed: {e}")
            sys.exit(1)

    if destination is None or str(destination) == "-":
        click.echo(data, nl=False)
        return
    destination.write_bytes(data)
    success(f"Saved {format_bytes(len(data))} to {destination}")


@click.command(name="delete")
@click.argument("keys", nargs=-1, required=True)
@click.option("--missing-ok", is_flag=True, help="Do not fail for keys that do not exist")
@coro
async def delete(keys: tuple[str, ...], missing_ok: bool) -> None:
    """Delete one or more objects."""
    async with build_client() as client:
        results = await client.delete_many(keys, missing_ok=missing_ok)

    failed = [r for r in results if not r.success]
    for result in results:
        if result.success:
            success(f"Deleted {result.key}")
        else:
            error(f"{result.key}: {result.error}")
    if failed:
        sys.exit(1)


@click.command(name="list")
@click.argument("prefix", default="")
@click.option("--all", "list_all", is_flag=True, help="Follow continuation tokens past the first 1000 keys")
@coro
async def list_objects(prefix: str, list_all: bool) -> None:
    """List object keys, optionally under PREFIX.

    \b
    Examples:
        r2-transfer list
        r2-transfer list images/ --all
    """
    async with build_client() as client:
        try:
            if list_all:
                keys = [key async for key in client.iter_keys(prefix or None)]
            else:
                keys = await client.list_files(prefix or None)
        except AppException as e:
            error(f"List failed: {e}")
            sys.exit(1)

    if not keys:
        warning(f"No objects found with prefix: '{prefix}'")
        return
    for key in keys:
        click.echo(key)
    success(f"{len(keys)} objects")


@click.command(name="url")
@click.argument("names", nargs=-1, required=True)
@click.option("--images", is_flag=True, help="Only accept image file names")
@click.option("--reverse", is_flag=True, help="Treat NAMES as URLs and print their keys")
def url(names: tuple[str, ...], images: bool, reverse: bool) -> None:
    """Print public URLs for object keys (or keys for URLs with --reverse)."""
    public_url = get_r2_settings().public_url
    if not public_url:
        error("R2_PUBLIC_URL is not set")
        sys.exit(1)
    codec = PublicUrlCodec(public_url)

    status = 0
    for name in names:
        if reverse:
            value = codec.from_url(name, image_only=images)
        else:
            value = codec.safe_image_url(name) if images else codec.safe_to_url(name)
        if value is None:
            error(f"Invalid: {name}")
            status = 1
        else:
            click.echo(value)
    sys.exit(status)


@click.command(name="test-connection")
@coro
async def test_connection() -> None:
    """Upload a small probe object to check credentials and bucket access."""
    async with build_client() as client:
        connected = await client.test_connection()
    if connected:
        success("Connected to R2")
    else:
        error("Connection test failed (see log output for details)")
        sys.exit(1)


@click.command(name="info")
def info_cmd() -> None:
    """Show the resolved R2 configuration with credentials masked."""
    settings = get_r2_settings()
    try:
        config = resolve_storage_config(settings)
    except AppException as e:
        error(str(e))
        sys.exit(1)

    section("R2 Configuration")
    for name, value in config.describe().items():
        click.echo(f"{name + ':':<20} {value}")
    click.echo(f"{'config_key:':<20} {settings.config_key}")
    click.echo(f"{'part_size:':<20} {format_bytes(settings.part_size_bytes)}")
    click.echo(f"{'queue_size:':<20} {settings.queue_size}")
    click.echo(f"{'max_attempts:':<20} {settings.max_attempts}")
