"""Document commands for the reader-mode CLI."""

import asyncio
from pathlib import Path

import click
from rich.console import Console

from reader_mode.config import ReaderSettings
from reader_mode.repositories.content_record_repository import ContentRecord
from reader_mode.services.content_store import ContentStore
from reader_mode.services.html_utils import convert_plain_text_to_html
from reader_mode.services.readability_extractor import (
    ExtractionSuccess,
    ExtractionUnavailable,
    ReadabilityExtractor,
)
from reader_mode.services.reader_content import ReaderContentLoader
from reader_mode.services.reader_dates import format_publication_date
from reader_mode.services.reader_document import assemble_reader_document, render_reader_document
from reader_mode.services.reconciliation import ReaderModeReconciler, apply_reader_mode_defaults

from .records import open_store

console = Console()


@click.command()
@click.argument("url")
@click.option(
    "--html-file",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Saved HTML of the page at URL",
)
@click.option("--min-length", type=int, default=None, help="Minimum extracted text length")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the reader document here instead of stdout",
)
@click.option("--save", is_flag=True, help="Cache the reader document in the record for URL")
@click.pass_obj
def extract(
    settings: ReaderSettings,
    url: str,
    html_file: Path,
    min_length: int | None,
    output: Path | None,
    save: bool,
):
    """Build the reader document for URL from a saved page."""
    html = html_file.read_text(encoding="utf-8", errors="replace")
    extractor = ReadabilityExtractor(extra_excluded_domains=settings.excluded_domains_extra)
    result = extractor.extract(
        html,
        url,
        meaningful_content_min_length=(
            min_length if min_length is not None else settings.meaningful_content_min_length
        ),
    )

    if not isinstance(result, ExtractionSuccess):
        label = "unavailable" if isinstance(result, ExtractionUnavailable) else "failed"
        console.print(f"[yellow]Reader mode {label}:[/yellow] {result.reason}")
        raise click.exceptions.Exit(1)

    reader_html = assemble_reader_document(result, url)
    document = render_reader_document(
        reader_html,
        url,
        font_size_px=settings.default_font_size_px,
        publication_date_text=format_publication_date(result.published_time),
        is_cache_warmer=settings.is_cache_warmer,
        light_theme=settings.light_theme,
        dark_theme=settings.dark_theme,
    )

    if output is None:
        click.echo(document)
    else:
        output.write_text(document, encoding="utf-8")
        console.print(f"[green]Wrote reader document:[/green] {output}")

    if save:
        store = open_store(settings)
        record = asyncio.run(save_reader_content(store, url, reader_html, result.title))
        if record is None:
            console.print(f"[yellow]No record can be stored for[/yellow] {url}")
            raise click.exceptions.Exit(1)
        console.print(f"[green]Saved reader content:[/green] {record.compound_key}")


async def save_reader_content(
    store: ContentStore,
    url: str,
    reader_html: str,
    title: str,
) -> ContentRecord | None:
    """Find or create the record for URL and mark it reader-ready, like a rendered load does."""
    record = await ReaderContentLoader(store=store).load(url)
    if record is None:
        return None
    primary = await store.write_transaction(
        record.compound_key,
        lambda current: apply_reader_mode_defaults(
            current,
            url=record.url,
            extracted_html=reader_html,
            fallback_title=title,
        ),
    )
    await ReaderModeReconciler(store=store).propagate_reader_mode_defaults(
        record.url,
        primary.compound_key,
        reader_html,
        title,
    )
    return primary


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--raw", is_flag=True, help="Treat the input as plain text even if it looks like HTML")
def convert_text(path: Path, raw: bool):
    """Convert a plain-text file to reader paragraphs."""
    text = path.read_text(encoding="utf-8", errors="replace")
    click.echo(convert_plain_text_to_html(text, force_raw=raw))


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def snippet(settings: ReaderSettings, path: Path):
    """Store pasted text from PATH as a snippet record."""
    text = path.read_text(encoding="utf-8", errors="replace")
    if not text.strip():
        console.print("[yellow]Nothing to store; the file is empty[/yellow]")
        raise click.exceptions.Exit(1)

    loader = ReaderContentLoader(store=open_store(settings))
    record = asyncio.run(loader.load_text(text))
    console.print(f"[green]Stored snippet:[/green] {record.compound_key}")
    click.echo(record.url)
