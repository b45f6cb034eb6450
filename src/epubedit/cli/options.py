# ABOUTME: Shared Click options for epubedit commands.
# ABOUTME: Field edit flags, rewrite safety switches, and the EditRequest builder they feed.

from collections.abc import Callable
from pathlib import Path

import click

from epubedit.metadata import EditRequest, metadata_from_filename

FIELD_HELP = {
    "title": "New title.",
    "author": "New author (dc:creator).",
    "publisher": "New publisher.",
    "language": "New language code, e.g. en or zh-CN.",
    "identifier": "New identifier, e.g. an ISBN or UUID.",
    "description": "New description.",
}


def field_options(func: Callable) -> Callable:
    """Add --title, --author, ... and --cover to a command."""
    func = click.option(
        "--cover",
        "cover_path",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        default=None,
        help="Replacement cover image.",
    )(func)
    for name in reversed(FIELD_HELP):
        func = click.option(f"--{name}", default=None, help=FIELD_HELP[name])(func)
    return func


from_filename_option = click.option(
    "--from-filename",
    is_flag=True,
    default=False,
    help="Take title and author from a 'Title-Author.epub' file name when not given.",
)

overwrite_option = click.option(
    "--overwrite/--no-overwrite",
    default=False,
    help="Allow replacing an existing file (required for in-place edits).",
)

verify_option = click.option(
    "--verify/--no-verify",
    default=True,
    help="Read the rewritten book back before it replaces anything (default: on).",
)

tmp_dir_option = click.option(
    "--tmp-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="EPUBEDIT_TMPDIR",
    default=None,
    help="Directory for temporary files (default: system temp, env EPUBEDIT_TMPDIR).",
)


def build_edit_request(
    path: Path,
    fields: dict[str, str | None],
    cover_path: Path | None,
    from_filename: bool,
) -> EditRequest:
    """Combine explicit field options with values parsed from the file name.

    Explicit options always win over the file name.
    """
    values = dict(fields)
    if from_filename:
        title, author = metadata_from_filename(path)
        if not values.get("title"):
            values["title"] = title
        if not values.get("author"):
            values["author"] = author
    return EditRequest(**values, cover_path=cover_path)
