"""Alembic autogenerate adapter.

Hooks the transition resolver into ``process_revision_directives``::

    # alembic/env.py
    from hashcol.migrations import computed_hash_rewriter

    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        process_revision_directives=computed_hash_rewriter(),
    )

What happens per operation:

* ``AddColumnOp``     -- CREATE rebuilds the column as ``BINARY(n)`` with a
  persisted ``Computed`` rendered from its annotations.
* ``AlterColumnOp``   -- SQL Server cannot alter a computed column in place,
  so ALTER_DEFINITION, CONVERT_TO_COMPUTED and CONVERT_TO_PLAIN become a
  ``DropColumnOp`` followed by an ``AddColumnOp``.  A type-only alter that
  proposes exactly the storage type already in place is dropped.
* ``DropColumnOp``    -- passed through (annotations leave with the column).
* ``CreateTableOp``   -- tracked columns are checked and re-rendered if the
  table was built outside the front ends.

Alters found by the comparator in :mod:`hashcol.migrations.compare` carry
both annotation states with them.  For any other alter the previous state of
a column comes from a snapshot reader (by default the reflected live column,
see :mod:`hashcol.migrations.snapshot`) and the new state from ``Column.info``
in ``target_metadata``; upgrade and downgrade halves of a script are rewritten
with their sides swapped.

Any engine error aborts revision generation.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from alembic.autogenerate.rewriter import Rewriter
from alembic.operations import ops
from sqlalchemy import Column, Computed, LargeBinary
from sqlalchemy.types import TypeEngine

from hashcol.core import annotations as bridge
from hashcol.core.dialect import HashDialect, TypeSpec, get_dialect
from hashcol.core.logging import LogContext, get_logger
from hashcol.core.transitions import (
    ColumnPayload,
    OperationKind,
    Resolution,
    SchemaOperation,
    Transition,
    render_payload,
    resolve,
)
from hashcol.migrations.compare import carried_annotations, discard_carried
from hashcol.migrations.snapshot import SnapshotReader, reflect_annotations, target_column
from hashcol.orm.columns import storage_type, type_string

logger = get_logger(__name__)


# =========================================================================
# Column helpers
# =========================================================================


def _computed_column(
    name: str,
    payload: ColumnPayload,
    *,
    nullable: bool | None,
    info: Mapping[str, Any] | None,
    comment: str | None = None,
) -> Column:
    return Column(
        name,
        storage_type(payload.column_type),
        Computed(payload.computed_sql, persisted=payload.persisted),
        nullable=True if nullable is None else nullable,
        comment=comment,
        info=dict(info or {}),
    )


def _plain_column(
    name: str,
    type_: TypeEngine | None,
    *,
    nullable: bool | None,
    info: Mapping[str, Any] | None = None,
) -> Column:
    return Column(
        name,
        type_ if type_ is not None else LargeBinary(),
        nullable=True if nullable is None else nullable,
        info=dict(info or {}),
    )


def _computed_sql(column: Column) -> str | None:
    computed = column.computed
    return str(computed.sqltext) if computed is not None else None


def _only_type_change(op: ops.AlterColumnOp) -> bool:
    return (
        op.modify_type is not None
        and op.modify_nullable is None
        and op.modify_server_default is False
        and op.modify_comment is False
        and op.modify_name is None
    )


def _restores_storage_type(
    op: ops.AlterColumnOp,
    annotations: Mapping[str, Any] | None,
    dialect: HashDialect | None,
) -> bool:
    # Downgrade twin of a suppressed alter: reverts to the rendered type
    table = f"{op.schema}.{op.table_name}" if op.schema else op.table_name
    descriptor = bridge.decode(annotations, op.column_name, table=table)
    if descriptor is None or not _only_type_change(op):
        return False
    existing = TypeSpec.parse(type_string(op.existing_type) or "")
    return existing == (dialect or get_dialect()).storage_type(descriptor)


# =========================================================================
# Per-operation rewrites
# =========================================================================


def rewrite_add_column(
    op: ops.AddColumnOp, *, dialect: HashDialect | None = None
) -> ops.AddColumnOp:
    """Render type and ``Computed`` for an added tracked column."""
    column = op.column
    operation = SchemaOperation(
        kind=OperationKind.ADD_COLUMN,
        table=op.table_name,
        column=column.name,
        new_annotations=column.info,
        payload=ColumnPayload(
            column_type=type_string(column.type),
            computed_sql=_computed_sql(column),
            persisted=bool(column.computed is not None and column.computed.persisted),
        ),
        schema=op.schema,
    )
    resolution = resolve(operation, dialect=dialect)
    if resolution.transition is not Transition.CREATE:
        return op

    rebuilt = _computed_column(
        column.name,
        resolution.operation.payload,
        nullable=column.nullable,
        info={**bridge.strip(column.info), **bridge.encode(resolution.new)},
        comment=column.comment,
    )
    return ops.AddColumnOp(op.table_name, rebuilt, schema=op.schema, **getattr(op, "kw", {}))


def rewrite_alter_column(
    op: ops.AlterColumnOp,
    *,
    old_annotations: Mapping[str, Any] | None,
    new_annotations: Mapping[str, Any] | None,
    declared_type: TypeEngine | None = None,
    nullable: bool | None = None,
    dialect: HashDialect | None = None,
) -> ops.AlterColumnOp | list[ops.MigrateOperation]:
    """Resolve an alter; returns the op itself, ``[]`` or ``[drop, add]``.

    ``declared_type`` is the type the new declaration names explicitly, used
    when Alembic did not propose a type change of its own.
    """
    explicit = op.modify_type if op.modify_type is not None else declared_type
    operation = SchemaOperation(
        kind=OperationKind.ALTER_COLUMN,
        table=op.table_name,
        column=op.column_name,
        old_annotations=old_annotations,
        new_annotations=new_annotations,
        payload=ColumnPayload(column_type=type_string(explicit)),
        schema=op.schema,
    )
    resolution = resolve(operation, dialect=dialect)

    if resolution.transition is Transition.NOOP:
        if resolution.suppress and _only_type_change(op):
            logger.debug(
                "computed_hash.alter_suppressed",
                table=operation.qualified_table,
                column=op.column_name,
                proposed=type_string(op.modify_type),
            )
            return []
        return op

    if nullable is None:
        nullable = op.modify_nullable if op.modify_nullable is not None else op.existing_nullable
    before = _previous_column(op, resolution, dialect)
    after = _next_column(op, resolution, explicit, nullable, new_annotations)
    logger.info(
        "computed_hash.column_rebuilt",
        table=operation.qualified_table,
        column=op.column_name,
        transition=resolution.transition.value,
    )
    return [
        ops.DropColumnOp.from_column_and_tablename(op.schema, op.table_name, before),
        ops.AddColumnOp.from_column_and_tablename(op.schema, op.table_name, after),
    ]


def _previous_column(
    op: ops.AlterColumnOp, resolution: Resolution, dialect: HashDialect | None
) -> Column:
    # Used to render the reverse (re-add) of the drop
    if resolution.old is None:
        return _plain_column(op.column_name, op.existing_type, nullable=op.existing_nullable)
    payload = render_payload(
        resolution.old, table=resolution.operation.qualified_table, dialect=dialect
    )
    return _computed_column(
        op.column_name,
        payload,
        nullable=op.existing_nullable,
        info=bridge.encode(resolution.old),
    )


def _next_column(
    op: ops.AlterColumnOp,
    resolution: Resolution,
    explicit: TypeEngine | None,
    nullable: bool | None,
    new_annotations: Mapping[str, Any] | None,
) -> Column:
    payload = resolution.operation.payload
    if resolution.new is None:
        type_ = explicit if type_string(explicit) else storage_type(payload.column_type)
        return _plain_column(
            op.column_name, type_, nullable=nullable, info=bridge.strip(new_annotations)
        )
    return _computed_column(
        op.column_name,
        payload,
        nullable=nullable,
        info={**bridge.strip(new_annotations), **bridge.encode(resolution.new)},
    )


def rewrite_drop_column(
    op: ops.DropColumnOp,
    *,
    old_annotations: Mapping[str, Any] | None,
    dialect: HashDialect | None = None,
) -> ops.DropColumnOp:
    """Validate the outgoing state; the drop itself is left unchanged."""
    resolve(
        SchemaOperation(
            kind=OperationKind.DROP_COLUMN,
            table=op.table_name,
            column=op.column_name,
            old_annotations=old_annotations,
            schema=op.schema,
        ),
        dialect=dialect,
    )
    return op


def rewrite_create_table(
    op: ops.CreateTableOp, *, dialect: HashDialect | None = None
) -> ops.CreateTableOp:
    """Check tracked columns of a new table, re-rendering any that are out
    of step with their annotations."""
    for index, column in enumerate(op.columns):
        if not isinstance(column, Column) or not bridge.is_tracked(column.info):
            continue
        resolution = resolve(
            SchemaOperation(
                kind=OperationKind.ADD_COLUMN,
                table=op.table_name,
                column=column.name,
                new_annotations=column.info,
                payload=ColumnPayload(column_type=type_string(column.type)),
                schema=op.schema,
            ),
            dialect=dialect,
        )
        payload = resolution.operation.payload
        in_step = (
            _computed_sql(column) == payload.computed_sql
            and type_string(column.type) == payload.column_type
            and bool(column.computed.persisted)
        )
        if in_step:
            continue
        op.columns[index] = _computed_column(
            column.name,
            payload,
            nullable=column.nullable,
            info=column.info,
            comment=column.comment,
        )
        logger.info(
            "computed_hash.column_rendered",
            table=resolution.operation.qualified_table,
            column=column.name,
        )
    return op


# =========================================================================
# Rewriter
# =========================================================================


def _rewrite_container(
    container: ops.OpContainer,
    context: Any,
    reader: SnapshotReader,
    dialect: HashDialect | None,
    *,
    upgrade: bool,
) -> None:
    rewritten: list[ops.MigrateOperation] = []
    for op in container.ops:
        if isinstance(op, ops.OpContainer):
            _rewrite_container(op, context, reader, dialect, upgrade=upgrade)
            rewritten.append(op)
        elif isinstance(op, ops.AddColumnOp):
            rewritten.append(rewrite_add_column(op, dialect=dialect))
        elif isinstance(op, ops.AlterColumnOp):
            result = _rewrite_alter(op, context, reader, dialect, upgrade=upgrade)
            rewritten.extend(result if isinstance(result, list) else [result])
        elif isinstance(op, ops.DropColumnOp):
            old = reader(context, op.schema, op.table_name, op.column_name) if upgrade else None
            rewritten.append(rewrite_drop_column(op, old_annotations=old, dialect=dialect))
        elif isinstance(op, ops.CreateTableOp):
            rewritten.append(rewrite_create_table(op, dialect=dialect))
        else:
            rewritten.append(op)
    container.ops[:] = rewritten


def _rewrite_alter(
    op: ops.AlterColumnOp,
    context: Any,
    reader: SnapshotReader,
    dialect: HashDialect | None,
    *,
    upgrade: bool,
) -> ops.AlterColumnOp | list[ops.MigrateOperation]:
    model = target_column(context, op.schema, op.table_name, op.column_name)
    carried = carried_annotations(op)
    if carried is not None:
        # Recorded by the autogenerate comparator, already swapped for downgrades
        discard_carried(op)
        old_annotations, new_annotations = carried
        result = rewrite_alter_column(
            op,
            old_annotations=old_annotations,
            new_annotations=new_annotations,
            declared_type=model.type if upgrade and model is not None else None,
            nullable=model.nullable if upgrade and model is not None else None,
            dialect=dialect,
        )
        if result is op and not op.has_changes():
            return []
        return result

    snapshot = reader(context, op.schema, op.table_name, op.column_name)
    model_info = model.info if model is not None else None
    if upgrade:
        return rewrite_alter_column(
            op,
            old_annotations=snapshot,
            new_annotations=model_info,
            declared_type=model.type if model is not None else None,
            nullable=model.nullable if model is not None else None,
            dialect=dialect,
        )
    # Downgrade runs from the model state back to what the database has now
    result = rewrite_alter_column(
        op,
        old_annotations=model_info,
        new_annotations=snapshot,
        dialect=dialect,
    )
    if result is op and _restores_storage_type(op, snapshot, dialect):
        return []
    return result


def computed_hash_rewriter(
    snapshot: SnapshotReader | None = None,
    *,
    dialect: HashDialect | None = None,
) -> Rewriter:
    """Build a ``Rewriter`` for ``process_revision_directives``.

    Args:
        snapshot: previous-state reader; defaults to reflecting the live column.
        dialect: rendering dialect; defaults to the ``HASHCOL_DIALECT`` setting.

    The result can be chained with other rewriters via ``Rewriter.chain``.
    """
    reader = snapshot or reflect_annotations
    writer = Rewriter()

    @writer.rewrites(ops.MigrationScript)
    def _migration_script(context: Any, revision: Any, script: ops.MigrationScript):
        with LogContext(revision=script.rev_id):
            for upgrade_ops in script.upgrade_ops_list:
                _rewrite_container(upgrade_ops, context, reader, dialect, upgrade=True)
            for downgrade_ops in script.downgrade_ops_list:
                _rewrite_container(downgrade_ops, context, reader, dialect, upgrade=False)
        return script

    return writer


__all__ = [
    "computed_hash_rewriter",
    "rewrite_add_column",
    "rewrite_alter_column",
    "rewrite_drop_column",
    "rewrite_create_table",
]
