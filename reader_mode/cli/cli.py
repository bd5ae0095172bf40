"""Main CLI entry point for the reader pipeline."""

import sys

import click

from reader_mode.config import load_settings
from reader_mode.logging_config import configure_application_logging

from .commands import documents, records
from .config import Config


@click.group()
@click.version_option(version="0.1.0")
@click.pass_context
def main(ctx: click.Context):
    """Reader Mode - extract, convert and manage reader documents."""
    settings = Config.load().apply(load_settings())
    configure_application_logging(settings, console_stream=sys.stderr)
    ctx.obj = settings


# Document commands
main.add_command(documents.extract)
main.add_command(documents.convert_text, name="convert-text")
main.add_command(documents.snippet)

# Record commands
main.add_command(records.list_records, name="records")
main.add_command(records.invalidate)


if __name__ == "__main__":
    main()
