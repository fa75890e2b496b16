"""Main CLI entry point for r2-transfer."""

import click

from r2_transfer import __version__
from r2_transfer.cli.commands import config, objects
from r2_transfer.infra.logging.config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="r2-transfer")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """r2-transfer - move files and configuration in and out of a Cloudflare R2 bucket.

    \b
    Commands:
      upload           Upload a local file (multipart above 10 MiB)
      download         Download an object
      delete           Delete one or more objects
      list             List object keys
      url              Map keys to public URLs and back
      test-connection  Check credentials and bucket access
      info             Show the resolved configuration
      config           Read/write the stored configuration document

    \b
    Configuration comes from R2_* (or VITE_R2_*) environment variables or .env.
    """
    ctx.ensure_object(dict)


cli.add_command(objects.upload)
cli.add_command(objects.download)
cli.add_command(objects.delete)
cli.add_command(objects.list_objects)
cli.add_command(objects.url)
cli.add_command(objects.test_connection)
cli.add_command(objects.info_cmd)
cli.add_command(config.config)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()
