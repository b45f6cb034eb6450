# ABOUTME: The `epubedit rename` command for naming a file after its metadata.
# ABOUTME: Produces Title-Author.epub and appends _1, _2, ... when the name is taken.

from pathlib import Path

import click
from rich.console import Console

from epubedit.formats.epub import extract
from epubedit.metadata import rename_from_metadata

console = Console()


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def rename(path: Path) -> None:
    """Rename an EPUB file to Title-Author.epub."""
    meta = extract(path)
    if meta is None:
        console.print(f"[red]Error:[/red] Could not read metadata from {path.name}")
        raise SystemExit(1)

    try:
        new_path = rename_from_metadata(path, meta)
    except OSError as exc:
        console.print(f"[red]Error:[/red] Rename failed: {exc}")
        raise SystemExit(1) from exc

    if new_path == path:
        console.print(f"[dim]Already named {path.name}[/dim]")
    else:
        console.print(f"Renamed to [bold]{new_path.name}[/bold]")
