# ABOUTME: The `epubedit edit` command for rewriting one EPUB's metadata and cover.
# ABOUTME: Writes in place only with --overwrite; otherwise to the path given by -o.

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from epubedit.cli.options import (
    build_edit_request,
    field_options,
    from_filename_option,
    overwrite_option,
    tmp_dir_option,
    verify_option,
)
from epubedit.core.replace import ReplaceCoordinator, ReplaceResult
from epubedit.errors import ConflictError, EpubEditError, FatalError

console = Console()


def _print_result(result: ReplaceResult) -> None:
    console.print(f"[green]Updated:[/green] {result.destination}")

    if result.verified_fields:
        table = Table(show_header=True, pad_edge=False)
        table.add_column("Field", style="bold")
        table.add_column("Value")
        table.add_column("Verified")
        for check in result.verified_fields:
            mark = "[green]ok[/green]" if check.passed else "[red]mismatch[/red]"
            table.add_row(check.field, escape(check.actual or ""), mark)
        console.print(table)

    swap = result.patch.cover
    if swap is not None:
        console.print(
            f"Cover now at [bold]{swap.new_href}[/bold] "
            f"[dim](previous image kept as {swap.legacy_id})[/dim]"
        )
    if result.patch.cover_skipped:
        console.print(
            "[yellow]No cover reference found in the book; cover left unchanged.[/yellow]"
        )


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@field_options
@from_filename_option
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the result here instead of replacing PATH.",
)
@overwrite_option
@verify_option
@tmp_dir_option
def edit(
    path: Path,
    title: str | None,
    author: str | None,
    publisher: str | None,
    language: str | None,
    identifier: str | None,
    description: str | None,
    cover_path: Path | None,
    from_filename: bool,
    output: Path | None,
    overwrite: bool,
    verify: bool,
    tmp_dir: Path | None,
) -> None:
    """Edit metadata fields and the cover of an EPUB file."""
    edits = build_edit_request(
        path,
        {
            "title": title,
            "author": author,
            "publisher": publisher,
            "language": language,
            "identifier": identifier,
            "description": description,
        },
        cover_path,
        from_filename,
    )
    coordinator = ReplaceCoordinator(overwrite=overwrite, tmp_dir=tmp_dir, verify=verify)

    try:
        result = coordinator.run(path, edits, output=output)
    except FatalError as exc:
        console.print(f"[bold red]Fatal:[/bold red] {exc}")
        raise SystemExit(1) from exc
    except EpubEditError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        if isinstance(exc, ConflictError):
            console.print("[dim]Pass --overwrite to replace it, or choose another -o.[/dim]")
        raise SystemExit(1) from exc

    _print_result(result)
