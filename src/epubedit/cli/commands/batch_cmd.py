# ABOUTME: The `epubedit batch` command for applying the same edits to many EPUBs.
# ABOUTME: Runs rewrites one at a time with a progress bar and reports every failure.

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeRemainingColumn,
)

from epubedit.cli.options import (
    build_edit_request,
    field_options,
    from_filename_option,
    overwrite_option,
    tmp_dir_option,
    verify_option,
)
from epubedit.core.batch import BatchItem, BatchResult, run_batch
from epubedit.core.replace import ReplaceCoordinator
from epubedit.errors import EpubEditError

console = Console()


def _find_epubs(paths: tuple[Path, ...]) -> list[Path]:
    """Expand directories into the .epub files beneath them, keeping order."""
    found: list[Path] = []
    for path in paths:
        if path.is_dir():
            found.extend(sorted(path.rglob("*.epub")))
        else:
            found.append(path)
    return found


def _make_progress(console: Console) -> Progress:
    """Create a Rich progress bar for batch processing."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeRemainingColumn(),
        console=console,
    )


def _print_summary(result: BatchResult) -> None:
    parts = []
    if result.succeeded:
        parts.append(f"[green]{len(result.succeeded)} updated[/green]")
    if result.failures:
        parts.append(f"[red]{len(result.failures)} failed[/red]")
    console.print(", ".join(parts) or "Nothing processed")

    if result.failures:
        console.print(f"\n[yellow]{len(result.failures)} file(s) could not be updated:[/yellow]")
        for failure in result.failures:
            state = "unchanged" if failure.unchanged else "[bold red]modified[/bold red]"
            console.print(
                f"  [dim]{escape(failure.path.name)}:[/dim] {escape(str(failure.error))} "
                f"[dim]({failure.error.kind}, {state})[/dim]"
            )


@click.command()
@click.argument(
    "paths",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, path_type=Path),
)
@field_options
@from_filename_option
@click.option(
    "-o",
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Write results into this directory instead of replacing the originals.",
)
@overwrite_option
@verify_option
@tmp_dir_option
def batch(
    paths: tuple[Path, ...],
    title: str | None,
    author: str | None,
    publisher: str | None,
    language: str | None,
    identifier: str | None,
    description: str | None,
    cover_path: Path | None,
    from_filename: bool,
    output_dir: Path | None,
    overwrite: bool,
    verify: bool,
    tmp_dir: Path | None,
) -> None:
    """Apply the same edits to every EPUB in PATHS (directories are searched)."""
    epubs = _find_epubs(paths)
    if not epubs:
        console.print("[yellow]No EPUB files found.[/yellow]")
        return

    fields = {
        "title": title,
        "author": author,
        "publisher": publisher,
        "language": language,
        "identifier": identifier,
        "description": description,
    }
    items = []
    for epub_path in epubs:
        output = output_dir / epub_path.name if output_dir is not None else None
        items.append(BatchItem(
            path=epub_path,
            edits=build_edit_request(epub_path, fields, cover_path, from_filename),
            output=output,
        ))

    if output_dir is not None:
        output_dir.mkdir(parents=True, exist_ok=True)

    console.print(f"Found [bold]{len(items)}[/bold] EPUB file(s)\n")
    coordinator = ReplaceCoordinator(overwrite=overwrite, tmp_dir=tmp_dir, verify=verify)

    with _make_progress(console) as progress:
        task_id = progress.add_task("Updating", total=len(items))

        def on_progress(
            item: BatchItem, index: int, total: int, error: EpubEditError | None
        ) -> None:
            progress.update(task_id, description=item.path.name)
            progress.advance(task_id)

        result = run_batch(items, coordinator, on_progress=on_progress)

    _print_summary(result)
    if not result.ok:
        raise SystemExit(1)
