"""Content record commands for the reader-mode CLI."""

import asyncio

import click
from rich.console import Console

from reader_mode.config import ReaderSettings
from reader_mode.repositories.content_record_repository import ContentRecordRepository
from reader_mode.repositories.database import Database
from reader_mode.services.content_store import SQLiteContentStore
from reader_mode.services.reader_content import title_for_display
from reader_mode.services.reader_dates import relative_or_absolute_date_string
from reader_mode.services.reconciliation import ReaderModeReconciler

console = Console()


def open_store(settings: ReaderSettings) -> SQLiteContentStore:
    database = Database(settings.db_path)
    database.initialize()
    return SQLiteContentStore(ContentRecordRepository(database))


@click.command()
@click.argument("url")
@click.pass_obj
def list_records(settings: ReaderSettings, url: str):
    """List stored records that share URL."""
    store = open_store(settings)
    found = asyncio.run(store.load_all_records_sharing_url(url))

    if not found:
        console.print(f"[yellow]No records for[/yellow] {url}")
        return

    console.print(f"\n[bold]{len(found)} record(s)[/bold]")
    for record in found:
        flags = []
        if record.is_reader_mode_by_default:
            flags.append("reader")
        if record.rss_contains_full_content:
            flags.append("full-content")
        if record.has_html:
            flags.append("cached")
        console.print(
            f"  - {record.compound_key} ({record.kind}) {title_for_display(record)}"
            f" {', '.join(flags) or 'no flags'}",
            markup=False,
        )
        console.print(f"    updated {relative_or_absolute_date_string(record.updated_at)}")


@click.command()
@click.argument("key")
@click.option("--reason", default="manual invalidation", help="Reason recorded in the logs")
@click.pass_obj
def invalidate(settings: ReaderSettings, key: str, reason: str):
    """Drop cached reader content for the record with compound KEY."""
    store = open_store(settings)
    record = asyncio.run(store.get_record(key))

    if record is None:
        console.print(f"[red]No record with key:[/red] {key}")
        raise click.exceptions.Exit(1)

    reconciler = ReaderModeReconciler(store=store)
    asyncio.run(reconciler.invalidate_cache(record, record.url, reason))
    console.print(f"[green]Invalidated cached content:[/green] {key}")
