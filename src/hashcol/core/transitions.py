"""
Lifecycle transitions for computed-hash columns.

Given the schema operation a host migration framework produced for a column,
together with the column's annotation state before and after the change,
:func:`resolve` decides which transition applies and returns a rewritten copy
of the operation whose payload (storage type, computed SQL, persisted flag)
is derived entirely from the new descriptor.

Transition table::

    old        new        operation      transition
    ─────────  ─────────  ─────────────  ────────────────────
    none       d          add_column     CREATE
    none       d          alter_column   CONVERT_TO_COMPUTED
    d1         d2 (≠ d1)  add / alter    ALTER_DEFINITION
    d          d          add / alter    NOOP (maybe suppressed)
    d          none       alter_column   CONVERT_TO_PLAIN
    d / none   any        drop_column    DROP / NOOP
    none       none       any            NOOP (untracked column)

Width and expression are always re-derived together from the new descriptor,
never patched field by field.  A malformed annotation state or an explicit
storage type that cannot hold the digest is fatal: emitting inconsistent DDL
is worse than aborting migration generation.

The resolver is a pure function; it keeps no state between calls and never
mutates the operation it is given.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from hashcol.core import annotations as bridge
from hashcol.core.descriptor import ComputedHashDescriptor
from hashcol.core.dialect import HashDialect, TypeSpec, get_dialect
from hashcol.core.errors import IncompatibleStorageTypeError
from hashcol.core.logging import get_logger

logger = get_logger(__name__)


class OperationKind(str, Enum):
    """Coarse operation kinds a host migration framework emits per column."""

    ADD_COLUMN = "add_column"
    ALTER_COLUMN = "alter_column"
    DROP_COLUMN = "drop_column"


class Transition(str, Enum):
    """What has to happen to a column for old and new state to agree."""

    CREATE = "create"
    ALTER_DEFINITION = "alter_definition"
    CONVERT_TO_PLAIN = "convert_to_plain"
    CONVERT_TO_COMPUTED = "convert_to_computed"
    DROP = "drop"
    NOOP = "noop"


@dataclass(frozen=True)
class ColumnPayload:
    """The part of a column operation this engine may rewrite."""

    column_type: str | None = None
    computed_sql: str | None = None
    persisted: bool = False


@dataclass(frozen=True)
class SchemaOperation:
    """Host-neutral view of one column operation."""

    kind: OperationKind
    table: str
    column: str
    old_annotations: Mapping[str, Any] | None = None
    new_annotations: Mapping[str, Any] | None = None
    payload: ColumnPayload = field(default_factory=ColumnPayload)
    schema: str | None = None

    @property
    def qualified_table(self) -> str:
        return f"{self.schema}.{self.table}" if self.schema else self.table


@dataclass(frozen=True)
class Resolution:
    """Outcome of :func:`resolve`."""

    transition: Transition
    operation: SchemaOperation
    old: ComputedHashDescriptor | None = None
    new: ComputedHashDescriptor | None = None
    # True when the host proposed a change that is already in place
    suppress: bool = False

    @property
    def changed(self) -> bool:
        return self.transition not in (Transition.NOOP, Transition.DROP)


def classify(
    kind: OperationKind,
    old: ComputedHashDescriptor | None,
    new: ComputedHashDescriptor | None,
) -> Transition:
    """Pick the transition for an (old, new) descriptor pair."""
    if kind is OperationKind.DROP_COLUMN:
        return Transition.DROP if old is not None or new is not None else Transition.NOOP
    if old is None and new is None:
        return Transition.NOOP
    if old is None:
        if kind is OperationKind.ADD_COLUMN:
            return Transition.CREATE
        return Transition.CONVERT_TO_COMPUTED
    if new is None:
        # An added column has no previous definition to convert
        if kind is OperationKind.ADD_COLUMN:
            return Transition.NOOP
        return Transition.CONVERT_TO_PLAIN
    if old == new:
        return Transition.NOOP
    return Transition.ALTER_DEFINITION


def render_payload(
    descriptor: ComputedHashDescriptor,
    requested_type: str | None = None,
    *,
    table: str | None = None,
    dialect: HashDialect | None = None,
) -> ColumnPayload:
    """Payload for a computed column, guarding any explicit storage type.

    Raises:
        IncompatibleStorageTypeError: ``requested_type`` cannot hold the digest.
    """
    dialect = dialect or get_dialect()
    storage = dialect.storage_type(descriptor)
    if requested_type is not None and not storage.is_compatible(requested_type):
        raise IncompatibleStorageTypeError(
            requested_type,
            str(storage),
            table=table,
            column=descriptor.target_column,
        ).with_context(algorithm=descriptor.algorithm.value, expected_width=storage.length)
    return ColumnPayload(
        column_type=str(storage),
        computed_sql=dialect.hash_call(descriptor),
        persisted=True,
    )


def _is_spurious(
    operation: SchemaOperation, descriptor: ComputedHashDescriptor, dialect: HashDialect
) -> bool:
    requested = operation.payload.column_type
    if operation.kind is not OperationKind.ALTER_COLUMN or requested is None:
        return False
    return TypeSpec.parse(requested) == dialect.storage_type(descriptor)


def resolve(
    operation: SchemaOperation,
    *,
    dialect: HashDialect | None = None,
) -> Resolution:
    """Decide the transition for ``operation`` and return its rewritten copy.

    Raises:
        MalformedAnnotationStateError: annotation state is inconsistent
        IncompatibleStorageTypeError: explicit type cannot hold the digest
        ValidationError subclasses: decoded annotations break a rule
    """
    dialect = dialect or get_dialect()
    table = operation.qualified_table
    old = bridge.decode(operation.old_annotations, operation.column, table=table)
    new = bridge.decode(operation.new_annotations, operation.column, table=table)
    transition = classify(operation.kind, old, new)

    rewritten = operation
    suppress = False

    if transition in (
        Transition.CREATE,
        Transition.CONVERT_TO_COMPUTED,
        Transition.ALTER_DEFINITION,
    ):
        payload = render_payload(
            new, operation.payload.column_type, table=table, dialect=dialect
        )
        rewritten = replace(operation, payload=payload)
    elif transition is Transition.CONVERT_TO_PLAIN:
        column_type = operation.payload.column_type or str(dialect.storage_type(old))
        rewritten = replace(
            operation,
            payload=ColumnPayload(column_type=column_type, computed_sql=None, persisted=False),
        )
    elif transition is Transition.NOOP and new is not None:
        suppress = _is_spurious(operation, new, dialect)

    logger.debug(
        "computed_hash.resolved",
        table=table,
        column=operation.column,
        operation=operation.kind.value,
        transition=transition.value,
        suppress=suppress,
    )
    return Resolution(transition, rewritten, old=old, new=new, suppress=suppress)


__all__ = [
    "OperationKind",
    "Transition",
    "ColumnPayload",
    "SchemaOperation",
    "Resolution",
    "classify",
    "render_payload",
    "resolve",
]
