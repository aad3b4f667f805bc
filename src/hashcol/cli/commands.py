"""
CLI: ``hashcol algorithms`` and ``hashcol render``.

Thin terminal transport over :mod:`hashcol.core`; every rule lives in the
engine, so ``render`` fails exactly where a model declaration would.
"""

from __future__ import annotations

import typer

from hashcol.cli.utils import console, fail, print_json, print_table
from hashcol.core.algorithms import all_algorithms, recommended_sql_type
from hashcol.core.descriptor import RawHashDeclaration, normalize
from hashcol.core.dialect import get_dialect
from hashcol.core.errors import HashColError
from hashcol.core.settings import get_settings


def list_algorithms(
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """List supported hash algorithms with digest width and SQL type."""
    rows = [
        {
            "algorithm": info.algorithm.value,
            "width": info.width,
            "bits": info.bits,
            "sql_type": recommended_sql_type(info.algorithm),
            "secure": info.secure,
        }
        for info in all_algorithms()
    ]
    if as_json:
        print_json(rows)
        return
    print_table(rows, title="Hash algorithms")


def render(
    algorithm: str = typer.Argument(..., help="Algorithm token, e.g. SHA2_256"),
    sources: list[str] = typer.Argument(..., help="Source columns, in hash order"),
    column: str = typer.Option("hash", "--column", "-c", help="Target column name"),
    dialect: str | None = typer.Option(  # noqa: UP007
        None, "--dialect", "-d", help="SQL dialect (default: HASHCOL_DIALECT)"
    ),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Render storage type and computed expression for a declaration."""
    try:
        descriptor = normalize(
            RawHashDeclaration(column, bytes, algorithm, sources),
            insecure_policy=get_settings().insecure_algorithm_policy,
        )
    except HashColError as exc:
        fail(exc)

    try:
        renderer = get_dialect(dialect)
    except ValueError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc

    result = {
        "column": descriptor.target_column,
        "algorithm": descriptor.algorithm.value,
        "source_columns": list(descriptor.source_columns),
        "storage_type": str(renderer.storage_type(descriptor)),
        "expression": renderer.computed_column_sql(descriptor),
        "secure": descriptor.is_secure,
    }
    if as_json:
        print_json(result)
        return

    # Plain echo so long expressions are never wrapped
    typer.echo(
        f"{renderer.delimit_identifier(descriptor.target_column)} "
        f"{result['storage_type']} AS {result['expression']}"
    )
    if not descriptor.is_secure:
        console.print(
            f"[yellow]Warning:[/yellow] {descriptor.algorithm.value} is not "
            "collision resistant; prefer SHA2_256 or SHA2_512."
        )
