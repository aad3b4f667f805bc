"""SQLAlchemy front ends for computed-hash columns.

Two declaration styles, one pipeline.  Both collect a
:class:`~hashcol.core.descriptor.RawHashDeclaration`, run it through
:func:`~hashcol.core.descriptor.normalize`, and materialize the result with
:func:`build_column`, so a column declared either way is byte-identical.

Attribute style (declarative classes deriving from :class:`ComputedHashMixin`)::

    class Document(HashColBase):
        __tablename__ = "documents"

        id: Mapped[int] = mapped_column(primary_key=True)
        title: Mapped[str]
        content: Mapped[str]
        content_hash: Mapped[bytes] = computed_hash("SHA2_256", "title", "content")

Builder style (Core tables)::

    has_computed_hash(documents, "content_hash", HashAlgorithm.SHA2_256, "title", "content")

When both styles touch the same column, the last writer wins.

Tags:
    hashcol, orm, sqlalchemy, computed-column, front-end
"""

from __future__ import annotations

import inspect
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import BINARY, VARBINARY, Column, Computed, LargeBinary, MetaData, Table
from sqlalchemy.dialects import mssql
from sqlalchemy.exc import CompileError
from sqlalchemy.orm import MappedColumn, QueryableAttribute, mapped_column
from sqlalchemy.sql.elements import ColumnClause
from sqlalchemy.types import NullType, TypeEngine

from hashcol.core import annotations as bridge
from hashcol.core.algorithms import HashAlgorithm
from hashcol.core.descriptor import ComputedHashDescriptor, RawHashDeclaration, normalize
from hashcol.core.dialect import HashDialect, TypeSpec
from hashcol.core.logging import get_logger
from hashcol.core.settings import InsecurePolicy, get_settings
from hashcol.core.transitions import render_payload

logger = get_logger(__name__)


# =========================================================================
# Type helpers
# =========================================================================


def type_string(type_: TypeEngine | type[TypeEngine] | None) -> str | None:
    """SQL Server spelling of an explicitly chosen column type.

    ``None``, ``NullType`` and a bare ``LargeBinary`` (what SQLAlchemy uses
    for ``bytes`` when nothing more specific is given) count as "not set".
    """
    if type_ is None:
        return None
    if isinstance(type_, type):
        type_ = type_()
    if isinstance(type_, NullType):
        return None
    if isinstance(type_, BINARY):
        return str(TypeSpec("BINARY", type_.length))
    if isinstance(type_, VARBINARY):
        return str(TypeSpec("VARBINARY", type_.length))
    if isinstance(type_, LargeBinary):
        return None
    try:
        return str(type_.compile(dialect=mssql.dialect()))
    except CompileError:
        return type(type_).__name__.upper()


def storage_type(spec: str) -> BINARY:
    """SQLAlchemy type for a rendered ``BINARY(n)`` spec."""
    parsed = TypeSpec.parse(spec)
    return BINARY(parsed.length if parsed else None)


def source_name(source: Any, keys: dict[int, str] | None = None) -> Any:
    """Column name for a source given as a ``Column``, a ``mapped_column``
    or a mapped attribute such as ``Document.title``.

    ``keys`` maps ``id()`` of class-body ``mapped_column`` objects to their
    attribute names, for columns whose name is not assigned yet.  Anything
    unrecognized is returned as is and rejected by :func:`normalize`.
    """
    if isinstance(source, str):
        return source
    if isinstance(source, MappedColumn):
        if source.column.name:
            return source.column.name
        return (keys or {}).get(id(source), source)
    if isinstance(source, QueryableAttribute):
        source = source.expression
    if isinstance(source, ColumnClause) and source.name:
        return source.name
    return source


def _configured_policy(policy: InsecurePolicy | str | None) -> InsecurePolicy | str:
    return get_settings().insecure_algorithm_policy if policy is None else policy


# =========================================================================
# Column construction
# =========================================================================


def _column_args(
    descriptor: ComputedHashDescriptor,
    requested_type: str | None,
    table: str | None,
    dialect: HashDialect | None,
    info: dict[str, Any] | None,
) -> tuple[tuple[Any, ...], dict[str, Any]]:
    payload = render_payload(descriptor, requested_type, table=table, dialect=dialect)
    args = (
        descriptor.target_column,
        storage_type(payload.column_type),
        Computed(payload.computed_sql, persisted=payload.persisted),
    )
    merged = {**bridge.strip(info), **bridge.encode(descriptor)}
    return args, {"info": merged}


def build_column(
    descriptor: ComputedHashDescriptor,
    *,
    type_: TypeEngine | type[TypeEngine] | None = None,
    table: str | None = None,
    dialect: HashDialect | None = None,
    info: dict[str, Any] | None = None,
    **column_kwargs: Any,
) -> Column:
    """A Core ``Column`` for ``descriptor``: ``BINARY(n)``, persisted
    ``Computed`` and the annotation triplet in ``info``."""
    args, kwargs = _column_args(descriptor, type_string(type_), table, dialect, info)
    return Column(*args, **kwargs, **column_kwargs)


def build_mapped_column(
    descriptor: ComputedHashDescriptor,
    *,
    type_: TypeEngine | type[TypeEngine] | None = None,
    table: str | None = None,
    dialect: HashDialect | None = None,
    info: dict[str, Any] | None = None,
    **column_kwargs: Any,
) -> Any:
    """Same as :func:`build_column`, as a declarative ``mapped_column``."""
    args, kwargs = _column_args(descriptor, type_string(type_), table, dialect, info)
    return mapped_column(*args, **kwargs, **column_kwargs)


# =========================================================================
# Attribute style
# =========================================================================


@dataclass(frozen=True)
class ComputedHash:
    """Placeholder left on a class body until :class:`ComputedHashMixin`
    replaces it with a real column."""

    algorithm: HashAlgorithm | str
    source_columns: tuple[Any, ...]
    name: str | None = None
    column_kwargs: dict[str, Any] = field(default_factory=dict)


def computed_hash(
    algorithm: HashAlgorithm | str,
    *source_columns: Any,
    name: str | None = None,
    **column_kwargs: Any,
) -> Any:
    """Declare a ``Mapped[bytes]`` attribute as a computed hash.

    ``column_kwargs`` are passed on to ``mapped_column`` (``nullable``,
    ``index``, ``comment``, ``info``, an explicit ``type_``...).  Sources are
    column names, or ``mapped_column`` attributes declared earlier in the
    same class body.
    """
    return ComputedHash(algorithm, tuple(source_columns), name, dict(column_kwargs))


def _tablename(cls: type) -> str | None:
    tablename = cls.__dict__.get("__tablename__")
    return tablename if isinstance(tablename, str) else None


class ComputedHashMixin:
    """Declarative mixin that materializes :func:`computed_hash` markers.

    Runs before SQLAlchemy's own ``__init_subclass__``, so the mapper only
    ever sees finished columns.  Markers must sit on the mapped class itself.
    """

    def __init_subclass__(cls, **kwargs: Any) -> None:
        markers = {
            key: value for key, value in cls.__dict__.items() if isinstance(value, ComputedHash)
        }
        if markers:
            annotations = inspect.get_annotations(cls)
            table = _tablename(cls)
            keys = {
                id(value): key
                for key, value in cls.__dict__.items()
                if isinstance(value, MappedColumn)
            }
            policy = _configured_policy(None)
            for key, marker in markers.items():
                column_kwargs = dict(marker.column_kwargs)
                raw = RawHashDeclaration(
                    target_column=marker.name or key,
                    target_type=annotations.get(key, column_kwargs.get("type_")),
                    algorithm=marker.algorithm,
                    source_columns=[source_name(s, keys) for s in marker.source_columns],
                )
                descriptor = normalize(raw, table=table, insecure_policy=policy)
                setattr(
                    cls,
                    key,
                    build_mapped_column(descriptor, table=table, **column_kwargs),
                )
                logger.debug(
                    "computed_hash.declared",
                    style="attribute",
                    model=cls.__name__,
                    table=table,
                    column=descriptor.target_column,
                )
        super().__init_subclass__(**kwargs)


# =========================================================================
# Builder style
# =========================================================================


def has_computed_hash(
    table: Table,
    column_name: str,
    algorithm: HashAlgorithm | str,
    *source_columns: Any,
    type_: TypeEngine | type[TypeEngine] | None = None,
    dialect: HashDialect | None = None,
    insecure_policy: InsecurePolicy | str | None = None,
    **column_kwargs: Any,
) -> Column:
    """Configure ``table.c[column_name]`` as a computed hash.

    Sources are column names or column objects (``table.c.title``,
    ``Document.title``).  A missing column is created as a byte column; an
    existing one must be binary and is replaced, keeping its ``nullable``,
    ``comment`` and foreign ``info`` entries.  A mapper built before the
    replacement keeps pointing at the previous ``Column`` object.  Returns
    the new column.
    """
    existing = table.c.get(column_name)
    target_type = existing.type if existing is not None else bytes
    raw = RawHashDeclaration(
        column_name, target_type, algorithm, [source_name(s) for s in source_columns]
    )
    descriptor = normalize(
        raw, table=table.fullname, insecure_policy=_configured_policy(insecure_policy)
    )

    info = dict(column_kwargs.pop("info", None) or {})
    if existing is not None:
        if bridge.is_tracked(existing.info):
            logger.info(
                "computed_hash.overridden",
                table=table.fullname,
                column=column_name,
                previous=existing.info.get(bridge.ALGORITHM),
                algorithm=descriptor.algorithm.value,
            )
        column_kwargs.setdefault("nullable", existing.nullable)
        column_kwargs.setdefault("comment", existing.comment)
        info = {**existing.info, **info}

    column = build_column(
        descriptor,
        type_=type_,
        table=table.fullname,
        dialect=dialect,
        info=info,
        **column_kwargs,
    )
    table.append_column(column, replace_existing=True)
    logger.debug(
        "computed_hash.declared",
        style="builder",
        table=table.fullname,
        column=column_name,
    )
    return column


# =========================================================================
# Reading back
# =========================================================================


def descriptor_for(column: Column, *, table: str | None = None) -> ComputedHashDescriptor | None:
    """Decode the annotation triplet stored on ``column``."""
    if table is None and isinstance(getattr(column, "table", None), Table):
        table = column.table.fullname
    return bridge.decode(column.info, column.name, table=table)


def iter_computed_hashes(
    metadata: MetaData,
) -> Iterator[tuple[Table, Column, ComputedHashDescriptor]]:
    """Every tracked column in ``metadata``, in dependency order of tables."""
    for table in metadata.sorted_tables:
        for column in table.columns:
            descriptor = descriptor_for(column, table=table.fullname)
            if descriptor is not None:
                yield table, column, descriptor


__all__ = [
    "ComputedHash",
    "ComputedHashMixin",
    "computed_hash",
    "has_computed_hash",
    "build_column",
    "build_mapped_column",
    "descriptor_for",
    "iter_computed_hashes",
    "type_string",
    "storage_type",
    "source_name",
]
