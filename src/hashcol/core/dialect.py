"""SQL rendering of computed-hash descriptors.

Provides a ``HashDialect`` protocol and the SQL Server implementation that
turns a :class:`~hashcol.core.descriptor.ComputedHashDescriptor` into

* a fixed-width storage type, ``BINARY(n)`` with ``n`` the digest width, and
* a generated-column expression::

      HASHBYTES('SHA2_256', ISNULL(CONVERT(NVARCHAR(MAX), [Title]), N'')
          + '|' + ISNULL(CONVERT(NVARCHAR(MAX), [Content]), N'')) PERSISTED

Rendering is pure and deterministic: the same descriptor always yields a
byte-identical string, which keeps re-running autogenerate free of spurious
diffs.  Every source is NULL-coalesced on its own, so one NULL source does not
null the whole digest, and sources appear in declared order.

Known limitation: values are joined with a literal ``'|'``.  If a source
value itself contains ``|`` two different tuples can concatenate to the same
text (``('a|b', 'c')`` vs ``('a', 'b|c')``) and therefore hash equal.  No
escaping is applied; existing digests depend on this exact form.

The protocol also carries :meth:`HashDialect.parse_computed_sql`, the reverse
mapping used to recover a descriptor from a reflected column definition.

Examples:
    >>> from hashcol.core.dialect import get_dialect
    >>> d = get_dialect("mssql")
    >>> d.delimit_identifier("Title")
    '[Title]'
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from hashcol.core.algorithms import lookup, width_of
from hashcol.core.descriptor import ComputedHashDescriptor, validate
from hashcol.core.errors import MalformedAnnotationStateError, UnknownAlgorithmError

# Literal placed between converted source values
VALUE_DELIMITER = "'|'"


@dataclass(frozen=True)
class TypeSpec:
    """A SQL type name with an optional length, e.g. ``BINARY(32)``."""

    name: str
    length: int | None = None

    def __str__(self) -> str:
        if self.length is None:
            return self.name
        return f"{self.name}({self.length})"

    _PATTERN = re.compile(r"^\s*(\w+)\s*(?:\(\s*(\d+)\s*\))?\s*$")

    @classmethod
    def parse(cls, text: str) -> TypeSpec | None:
        """Parse ``NAME`` or ``NAME(n)``; ``None`` for anything else."""
        match = cls._PATTERN.match(text)
        if not match:
            return None
        name, length = match.groups()
        return cls(name.upper(), int(length) if length else None)

    def is_compatible(self, declared: str) -> bool:
        """Whether an explicit column type can hold this type's values.

        ``BINARY`` with no length, or with exactly this length, is accepted;
        anything else (``VARBINARY``, other widths, non-binary types) is not.
        """
        other = TypeSpec.parse(declared)
        if other is None or other.name != self.name:
            return False
        return other.length is None or other.length == self.length


@runtime_checkable
class HashDialect(Protocol):
    """Computed-hash rendering contract."""

    @property
    def name(self) -> str:
        """Dialect name (e.g. ``'mssql'``)."""
        ...

    def delimit_identifier(self, identifier: str) -> str:
        """Quote a column identifier."""
        ...

    def storage_type(self, descriptor: ComputedHashDescriptor) -> TypeSpec:
        """Fixed-width binary type sized to the digest."""
        ...

    def hash_call(self, descriptor: ComputedHashDescriptor) -> str:
        """The bare hashing expression, without persistence markers."""
        ...

    def computed_column_sql(self, descriptor: ComputedHashDescriptor) -> str:
        """The full generated-column fragment, marked stored/persisted."""
        ...

    def parse_computed_sql(
        self, sqltext: str, target_column: str
    ) -> ComputedHashDescriptor | None:
        """Recover a descriptor from a rendered or reflected definition."""
        ...


class SQLServerHashDialect:
    """SQL Server dialect built on ``HASHBYTES`` and ``PERSISTED`` columns."""

    _HASHBYTES_RE = re.compile(r"hashbytes\s*\(\s*N?'([^']*)'", re.IGNORECASE)
    _SOURCE_RE = re.compile(
        r"convert\s*\(\s*\[?nvarchar\]?\s*\(\s*max\s*\)\s*,\s*"
        r"(\[(?:[^\]]|\]\])+\]|[A-Za-z_@#][\w@#$]*)\s*\)",
        re.IGNORECASE,
    )

    @property
    def name(self) -> str:
        return "mssql"

    # -- Identifiers -------------------------------------------------------

    def delimit_identifier(self, identifier: str) -> str:
        return "[" + identifier.replace("]", "]]") + "]"

    def _undelimit(self, token: str) -> str:
        if token.startswith("[") and token.endswith("]"):
            return token[1:-1].replace("]]", "]")
        return token

    # -- Rendering ---------------------------------------------------------

    def storage_type(self, descriptor: ComputedHashDescriptor) -> TypeSpec:
        return TypeSpec("BINARY", width_of(descriptor.algorithm))

    def _converted(self, source: str) -> str:
        return f"ISNULL(CONVERT(NVARCHAR(MAX), {self.delimit_identifier(source)}), N'')"

    def hash_call(self, descriptor: ComputedHashDescriptor) -> str:
        joined = f" + {VALUE_DELIMITER} + ".join(
            self._converted(source) for source in descriptor.source_columns
        )
        return f"HASHBYTES('{descriptor.algorithm.value}', {joined})"

    def computed_column_sql(self, descriptor: ComputedHashDescriptor) -> str:
        return f"{self.hash_call(descriptor)} PERSISTED"

    # -- Reverse -----------------------------------------------------------

    def parse_computed_sql(
        self, sqltext: str, target_column: str
    ) -> ComputedHashDescriptor | None:
        """Accepts the rendered form and SQL Server's catalog form, e.g.
        ``(hashbytes('SHA2_256',isnull(CONVERT([nvarchar](max),[Title]),N'')))``.
        """
        match = self._HASHBYTES_RE.search(sqltext)
        if match is None:
            return None
        try:
            algorithm = lookup(match.group(1))
        except UnknownAlgorithmError as exc:
            raise exc.with_context(column=target_column)

        sources = tuple(
            self._undelimit(token) for token in self._SOURCE_RE.findall(sqltext, match.end())
        )
        if not sources:
            raise MalformedAnnotationStateError(
                f"no source columns recognised in computed SQL {sqltext!r}",
                column=target_column,
            )
        return validate(ComputedHashDescriptor(target_column, algorithm, sources))


# =========================================================================
# Registry / Factory
# =========================================================================

# Pre-instantiated singletons (dialects are stateless)
_DIALECTS: dict[str, HashDialect] = {
    "mssql": SQLServerHashDialect(),
    "sqlserver": SQLServerHashDialect(),  # alias
}


def get_dialect(name: str | None = None) -> HashDialect:
    """Get a dialect by name; ``None`` uses the ``HASHCOL_DIALECT`` setting.

    Raises:
        ValueError: If ``name`` is not recognised.
    """
    if name is None:
        from hashcol.core.settings import get_settings

        name = get_settings().dialect
    key = name.lower()
    if key not in _DIALECTS:
        raise ValueError(
            f"Unknown dialect '{name}'. Supported: {sorted(set(_DIALECTS) - {'sqlserver'})}"
        )
    return _DIALECTS[key]


def register_dialect(name: str, dialect: HashDialect) -> None:
    """Register a custom dialect implementation (e.g. a test double)."""
    _DIALECTS[name.lower()] = dialect


# =========================================================================
# Module-level shortcuts
# =========================================================================


def render_storage_type(
    descriptor: ComputedHashDescriptor, dialect: HashDialect | None = None
) -> TypeSpec:
    return (dialect or get_dialect()).storage_type(descriptor)


def render_hash_call(
    descriptor: ComputedHashDescriptor, dialect: HashDialect | None = None
) -> str:
    return (dialect or get_dialect()).hash_call(descriptor)


def render_expression(
    descriptor: ComputedHashDescriptor, dialect: HashDialect | None = None
) -> str:
    """Full generated-column fragment, ending in ``PERSISTED``."""
    return (dialect or get_dialect()).computed_column_sql(descriptor)


def parse_computed_sql(
    sqltext: str, target_column: str, dialect: HashDialect | None = None
) -> ComputedHashDescriptor | None:
    return (dialect or get_dialect()).parse_computed_sql(sqltext, target_column)


__all__ = [
    "VALUE_DELIMITER",
    "TypeSpec",
    "HashDialect",
    "SQLServerHashDialect",
    "get_dialect",
    "register_dialect",
    "render_storage_type",
    "render_hash_call",
    "render_expression",
    "parse_computed_sql",
]
