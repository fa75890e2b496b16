"""Commands for the stored JSON configuration document."""

import json
from pathlib import Path
import sys

import click

from r2_transfer.cli.utils import coro, error, success, warning
from r2_transfer.cli.utils.client import build_client
from r2_transfer.core.exceptions import AppException
from r2_transfer.core.settings import get_r2_settings
from r2_transfer.infra.storage import ConfigStore


@click.group(name="config")
def config() -> None:
    """Read and write the stored configuration document."""


@config.command(name="show")
@coro
async def show() -> None:
    """Print the stored configuration as JSON."""
    key = get_r2_settings().config_key
    async with build_client() as client:
        try:
            document = await ConfigStore(client, key).load_config()
        except AppException as e:
            error(f"Failed to load configuration: {e}")
            sys.exit(1)

    if document is None:
        warning(f"No configuration stored at '{key}'")
        return
    click.echo(json.dumps(document, indent=2, ensure_ascii=False))


@config.command(name="push")
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@coro
async def push(source: Path) -> None:
    """Upload a local JSON file as the stored configuration."""
    try:
        document = json.loads(source.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        error(f"{source} is not valid JSON: {e}")
        sys.exit(1)

    key = get_r2_settings().config_key
    async with build_client() as client:
        try:
            result = await ConfigStore(client, key).save_config(document)
        except AppException as e:
            error(f"Failed to save configuration: {e}")
            sys.exit(1)
    success(f"Configuration saved to '{result.key}' ({result.size_bytes} bytes)")
