"""Command-line interface for refcycle.

Provides commands for listing labels and for running a scripted reference
session against a .tex file from the terminal.
"""

import logging
from pathlib import Path
from typing import Annotated

import typer

from . import __version__
from .config import RefCycleConfig, load_config
from .document import Direction, TextDocument
from .overlays import EchoSink
from .results import Outcome
from .scanner import AnchorScanner
from .session import ReferenceSession

app = typer.Typer(
    name="refcycle",
    help="Insert LaTeX references by cycling through nearby labels.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"refcycle version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", help="Log debug output.")] = False,
) -> None:
    """Insert LaTeX references by cycling through nearby labels."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")


@app.command()
def labels(
    file: Annotated[Path, typer.Argument(help="Path to the .tex file")],
    context: Annotated[
        bool, typer.Option("--context", "-c", help="Show the lines around each label")
    ] = False,
) -> None:
    """List the labels a reference can point at, in document order."""
    try:
        doc = TextDocument.from_file(file)
        scanner = AnchorScanner(doc, show_context=context)
        count = 0
        for anchor in scanner.iter_anchors():
            line, column = doc.line_column(anchor.match_start)
            typer.echo(f"{line}:{column} {anchor.identifier}")
            if context:
                typer.echo(anchor.context.replace("%%", "%").strip("\n") + "\n")
            count += 1
        typer.echo(f"{count} labels", err=True)
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def insert(
    file: Annotated[Path, typer.Argument(help="Path to the .tex file")],
    line: Annotated[int, typer.Option("--line", "-l", help="Cursor line (1-based)")],
    column: Annotated[int, typer.Option("--column", "-C", help="Cursor column (0-based)")] = 0,
    direction: Annotated[
        str | None,
        typer.Option("--direction", "-d", help="Initial direction: 'next' or 'previous'"),
    ] = None,
    keys: Annotated[
        str,
        typer.Option("--keys", "-k", help="Space-separated keys, e.g. 'C-s C-s RET'"),
    ] = "",
    only_label: Annotated[
        bool, typer.Option("--only-label", help="Insert the bare label identifier")
    ] = False,
    config_file: Annotated[
        Path | None, typer.Option("--config", help="YAML configuration file")
    ] = None,
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Output file path")] = None,
) -> None:
    """Insert a reference at a position by replaying keys."""
    directions = {"next": Direction.FORWARD, "previous": Direction.BACKWARD}
    if direction is not None and direction not in directions:
        typer.echo("Error: --direction must be 'next' or 'previous'", err=True)
        raise typer.Exit(1)

    try:
        config = load_config(config_file) if config_file else RefCycleConfig()
        doc = TextDocument.from_file(file)
        origin = doc.position_of(line, column)
        session = ReferenceSession(doc, sink=EchoSink(), config=config)
        result = session.run(
            origin=origin,
            direction=directions.get(direction) if direction else None,
            only_identifier=only_label,
            keys=keys.split(),
        )
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if result.outcome is Outcome.NAVIGATED:
        if result.anchor is None:
            typer.echo("No label found; document left unchanged")
            return
        cursor_line, cursor_column = doc.line_column(result.cursor)
        typer.echo(f"Label '{result.identifier}' is at {cursor_line}:{cursor_column}")
        return

    output_path = output or file
    doc.save(output_path)
    typer.echo(f"Inserted {result.inserted_text!r} and saved to {output_path}")


if __name__ == "__main__":
    app()
