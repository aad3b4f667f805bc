"""
CLI layer for hashcol.

Provides a Typer application whose commands delegate to ``hashcol.core``.
This package handles only terminal transport: argument parsing, coloured
output, and table formatting.

Entry point::

    hashcol --help
"""

from hashcol.cli.app import app

__all__ = ["app"]
