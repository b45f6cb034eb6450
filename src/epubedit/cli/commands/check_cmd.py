# ABOUTME: The `epubedit check` command for validating an EPUB's container layout.
# ABOUTME: Reports mimetype ordering and compression problems that break strict readers.

from pathlib import Path

import click
from rich.console import Console

from epubedit.formats.ocf import check_layout

console = Console()


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def check(path: Path) -> None:
    """Check that an EPUB's zip layout follows the container rules."""
    problems = check_layout(path)
    if not problems:
        console.print(f"[green]OK:[/green] {path.name}")
        return

    console.print(f"[red]{len(problems)} problem(s)[/red] in {path.name}:")
    for problem in problems:
        console.print(f"  - {problem}")
    raise SystemExit(1)
