"""
Root Typer application for the hashcol CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from hashcol.cli.commands import list_algorithms, render
from hashcol.cli.config import app as config_app

app = Typer(
    name="hashcol",
    help="hashcol — database-computed hash columns for SQLAlchemy and Alembic.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from hashcol import __version__

        typer.echo(f"hashcol {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """hashcol CLI — inspect algorithms, preview DDL, show configuration."""
    from hashcol.core.logging import configure_logging

    configure_logging(json_format=False)


# ── Sub-command registration ─────────────────────────────────────────────

app.command("algorithms")(list_algorithms)
app.command("render")(render)
app.add_typer(config_app, name="config", help="Configuration management.")
