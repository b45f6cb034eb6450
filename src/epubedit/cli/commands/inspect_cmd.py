# ABOUTME: The `epubedit inspect` command for viewing EPUB metadata.
# ABOUTME: Falls back to a title taken from the file name when the book cannot be read.

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from epubedit.formats.epub import extract
from epubedit.metadata import EpubMetadata, title_from_filename

console = Console()


def _value(text: str | None, missing: str) -> str:
    return escape(text) if text else f"[dim]{missing}[/dim]"


def _metadata_table(path: Path, meta: EpubMetadata) -> Table:
    table = Table(title=str(path.name), show_header=False, pad_edge=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("Title", _value(meta.title, "unknown"))
    table.add_row("Author", _value(meta.author, "unknown"))
    table.add_row("Publisher", _value(meta.publisher, "unknown"))
    table.add_row("Language", _value(meta.language, "unknown"))
    table.add_row("Identifier", _value(meta.identifier, "none"))
    table.add_row("Description", _value(meta.description, "none"))
    if meta.has_cover:
        table.add_row("Cover", f"yes ({meta.cover.media_type}, {len(meta.cover.data)} bytes)")
    else:
        table.add_row("Cover", "no")
    return table


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--cover-out",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the cover image to this file.",
)
def inspect(path: Path, cover_out: Path | None) -> None:
    """Show metadata extracted from an EPUB file."""
    meta = extract(path)
    if meta is None:
        console.print(
            "[yellow]Could not read metadata; showing the title from the file name.[/yellow]"
        )
        meta = EpubMetadata(title=title_from_filename(path))

    console.print(_metadata_table(path, meta))

    if cover_out is None:
        return
    if not meta.has_cover:
        console.print("[yellow]No cover image found.[/yellow]")
        return
    try:
        cover_out.write_bytes(meta.cover.data)
    except OSError as exc:
        console.print(f"[red]Error:[/red] Could not write cover: {exc}")
        raise SystemExit(1) from exc
    console.print(f"Cover written to [bold]{cover_out}[/bold]")
