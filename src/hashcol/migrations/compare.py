"""Autogenerate comparison for computed-hash columns.

Alembic only warns when a computed expression differs and never emits an
operation for it, so a reordered source list or a removed hash declaration
would otherwise produce an empty migration.  The comparator registered here
runs for every column that exists both in the database and in the model:

* database side: the reflected ``Computed`` text parsed back into the
  annotation triplet, or the result of a custom reader passed as the
  ``computed_hash_snapshot`` option of ``context.configure``
* model side: ``Column.info``

When the two descriptors differ, both annotation states are recorded on the
``AlterColumnOp`` as ``existing_computed_hash`` / ``modify_computed_hash``.
Alembic keeps any alter carrying a ``modify_*`` entry and swaps each
``existing_*``/``modify_*`` pair when it builds the downgrade, and
:func:`~hashcol.migrations.rewriter.computed_hash_rewriter` turns the op into
a drop and re-add.

Registered when :mod:`hashcol.migrations` is imported.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from alembic.autogenerate import comparators
from alembic.operations import ops
from sqlalchemy import Column

from hashcol.core import annotations as bridge
from hashcol.core.logging import get_logger
from hashcol.core.transitions import OperationKind, classify
from hashcol.migrations.snapshot import annotations_from_computed

logger = get_logger(__name__)

EXISTING_KEY = "existing_computed_hash"
MODIFY_KEY = "modify_computed_hash"
SNAPSHOT_OPTION = "computed_hash_snapshot"


def database_annotations(
    autogen_context: Any,
    schema: str | None,
    table: str,
    column: str,
    conn_col: Column,
) -> Mapping[str, Any] | None:
    """Annotation state of the live column, as seen during autogenerate."""
    reader = (getattr(autogen_context, "opts", None) or {}).get(SNAPSHOT_OPTION)
    if reader is not None:
        return reader(autogen_context.migration_context, schema, table, column)
    computed = conn_col.computed
    if computed is None:
        return None
    qualified = f"{schema}.{table}" if schema else table
    return annotations_from_computed(str(computed.sqltext), column, table=qualified)


def carried_annotations(
    op: ops.AlterColumnOp,
) -> tuple[Mapping[str, Any], Mapping[str, Any]] | None:
    """``(old, new)`` annotation states recorded on ``op``, if any."""
    if MODIFY_KEY not in op.kw:
        return None
    return op.kw.get(EXISTING_KEY) or {}, op.kw.get(MODIFY_KEY) or {}


def discard_carried(op: ops.AlterColumnOp) -> None:
    op.kw.pop(EXISTING_KEY, None)
    op.kw.pop(MODIFY_KEY, None)


@comparators.dispatch_for("column")
def compare_computed_hash(
    autogen_context: Any,
    alter_column_op: ops.AlterColumnOp,
    schema: str | None,
    tname: str,
    cname: str,
    conn_col: Column,
    metadata_col: Column,
) -> None:
    qualified = f"{schema}.{tname}" if schema else tname
    old_annotations = dict(
        database_annotations(autogen_context, schema, tname, cname, conn_col) or {}
    )
    new_annotations = dict(metadata_col.info)
    old = bridge.decode(old_annotations, cname, table=qualified)
    new = bridge.decode(new_annotations, cname, table=qualified)
    if old == new:
        return None

    alter_column_op.kw[EXISTING_KEY] = old_annotations
    alter_column_op.kw[MODIFY_KEY] = new_annotations
    if alter_column_op.existing_type is None:
        alter_column_op.existing_type = conn_col.type
    if alter_column_op.existing_nullable is None:
        alter_column_op.existing_nullable = conn_col.nullable
    logger.info(
        "computed_hash.change_detected",
        table=qualified,
        column=cname,
        transition=classify(OperationKind.ALTER_COLUMN, old, new).value,
    )
    return None


__all__ = [
    "EXISTING_KEY",
    "MODIFY_KEY",
    "SNAPSHOT_OPTION",
    "carried_annotations",
    "compare_computed_hash",
    "database_annotations",
    "discard_carried",
]
