"""Previous-state readers for the Alembic adapter.

The engine keeps nothing between runs; what a column *used to be* comes from
whatever the host already has.  With Alembic autogenerate that is the live
database: the column definition is reflected and its computed SQL parsed
back into a descriptor, then re-encoded as the annotation triplet so the
resolver sees the same shape on both sides.

A reader is any callable ``(context, schema, table, column) -> annotations``;
pass your own to :func:`~hashcol.migrations.rewriter.computed_hash_rewriter`
if the previous state lives elsewhere (a snapshot file, a test fixture...).
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from sqlalchemy import Column, MetaData, inspect

from hashcol.core import annotations as bridge
from hashcol.core.dialect import HashDialect, get_dialect
from hashcol.core.errors import HashColError
from hashcol.core.logging import get_logger

logger = get_logger(__name__)

SnapshotReader = Callable[[Any, "str | None", str, str], "Mapping[str, Any] | None"]


def annotations_from_computed(
    sqltext: str | None,
    column: str,
    *,
    table: str | None = None,
    dialect: HashDialect | None = None,
) -> dict[str, Any] | None:
    """Annotation triplet for a computed-column definition, or ``None`` when
    the definition is not a computed hash."""
    if not sqltext:
        return None
    try:
        descriptor = (dialect or get_dialect()).parse_computed_sql(sqltext, column)
    except HashColError as exc:
        raise exc.with_context(table=table, column=column)
    if descriptor is None:
        return None
    return bridge.encode(descriptor)


def reflect_annotations(
    context: Any,
    schema: str | None,
    table: str,
    column: str,
) -> dict[str, Any] | None:
    """Read the previous state of ``table.column`` from the live database."""
    connection = getattr(context, "connection", None)
    if connection is None:
        logger.warning(
            "computed_hash.snapshot_unavailable",
            table=table,
            column=column,
            reason="no database connection (offline mode)",
        )
        return None

    qualified = f"{schema}.{table}" if schema else table
    for reflected in inspect(connection).get_columns(table, schema=schema):
        if reflected["name"] != column:
            continue
        computed = reflected.get("computed") or {}
        return annotations_from_computed(computed.get("sqltext"), column, table=qualified)
    return None


def target_column(context: Any, schema: str | None, table: str, column: str) -> Column | None:
    """The model-side column Alembic is diffing against, if any."""
    opts = getattr(context, "opts", None) or {}
    metadata = opts.get("target_metadata")
    if metadata is None:
        return None
    key = f"{schema}.{table}" if schema else table
    for candidate in metadata if isinstance(metadata, (list, tuple)) else [metadata]:
        if not isinstance(candidate, MetaData):
            continue
        found = candidate.tables.get(key)
        if found is not None and column in found.c:
            return found.c[column]
    return None


__all__ = [
    "SnapshotReader",
    "annotations_from_computed",
    "reflect_annotations",
    "target_column",
]
