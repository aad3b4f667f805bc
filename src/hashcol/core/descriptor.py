"""
Computed-hash descriptors: normalization and validation.

A :class:`ComputedHashDescriptor` is the canonical form of "this binary column
equals HASHBYTES(algorithm, sources...)".  Front ends collect a
:class:`RawHashDeclaration` (free-form algorithm token, ordered source names,
the declared target type) and hand it to :func:`normalize`, which is the only
way a descriptor is created from user input.  :func:`validate` applies the
same rules to a descriptor that was re-materialized from annotation state.

Manifesto:
    - **One entry point:** attribute-style and builder-style declarations
      both call :func:`normalize`, so behaviour cannot diverge
    - **Order is data:** sources are kept exactly as declared, never sorted
    - **Derived, not stored:** width and security come from the registry on
      every access, so changing the algorithm changes them atomically
    - **Idempotent validation:** validating a valid descriptor returns it

Examples:
    >>> raw = RawHashDeclaration("content_hash", bytes, "sha2_256", ["title", "content"])
    >>> d = normalize(raw)
    >>> d.algorithm, d.source_columns, d.storage_width
    (<HashAlgorithm.SHA2_256: 'SHA2_256'>, ('title', 'content'), 32)
    >>> validate(d) is d
    True

Tags:
    descriptor, normalization, validation, hashcol
"""

from __future__ import annotations

import re
import types
import typing
import warnings
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import BINARY, VARBINARY, LargeBinary
from sqlalchemy.orm import Mapped

from hashcol.core.algorithms import HashAlgorithm, is_secure, lookup, width_of
from hashcol.core.errors import (
    DuplicateSourceError,
    EmptySourceListError,
    InsecureAlgorithmError,
    InsecureHashAlgorithmWarning,
    InvalidSourceColumnError,
    InvalidTargetTypeError,
    ValidationError,
)
from hashcol.core.logging import get_logger
from hashcol.core.settings import InsecurePolicy

logger = get_logger(__name__)

# Separator of the serialized source list; names containing it cannot round-trip
SOURCE_LIST_DELIMITER = ","

_PY_BYTE_TYPES = (bytes, bytearray, memoryview)
_SA_BYTE_TYPES = (LargeBinary, BINARY, VARBINARY)
_BYTE_TYPE_NAMES = frozenset(
    {"bytes", "bytearray", "memoryview", "LargeBinary", "BINARY", "VARBINARY"}
)
_WRAPPER_RE = re.compile(r"^(?:[\w]+\.)*(Mapped|Optional|Annotated|Union)\[(.*)\]$", re.DOTALL)

_UNSET: Any = object()


@dataclass(frozen=True)
class RawHashDeclaration:
    """What a front end collected, before any checking."""

    target_column: str
    target_type: Any
    algorithm: HashAlgorithm | str
    source_columns: Sequence[str] = field(default_factory=tuple)


@dataclass(frozen=True)
class ComputedHashDescriptor:
    """Canonical (target, algorithm, ordered sources) triple."""

    target_column: str
    algorithm: HashAlgorithm
    source_columns: tuple[str, ...]

    @property
    def storage_width(self) -> int:
        return width_of(self.algorithm)

    @property
    def is_secure(self) -> bool:
        return is_secure(self.algorithm)

    def __str__(self) -> str:
        sources = ", ".join(self.source_columns)
        return f"{self.target_column} = {self.algorithm.value}({sources})"


# =========================================================================
# Target type check
# =========================================================================


def _split_top_level(text: str, separator: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for char in text:
        if char in "[(":
            depth += 1
        elif char in "])":
            depth -= 1
        if char == separator and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    parts.append("".join(current).strip())
    return parts


def _is_byte_annotation_text(text: str) -> bool:
    text = text.strip().strip("'\"")
    union = [part for part in _split_top_level(text, "|") if part != "None"]
    if len(union) != 1:
        return False
    text = union[0]

    match = _WRAPPER_RE.match(text)
    if match:
        wrapper, inner = match.groups()
        args = _split_top_level(inner, ",")
        if wrapper == "Annotated":
            args = args[:1]
        elif wrapper == "Union":
            args = [arg for arg in args if arg != "None"]
        return len(args) == 1 and _is_byte_annotation_text(args[0])

    name = text.split("(", 1)[0].rsplit(".", 1)[-1]
    return name in _BYTE_TYPE_NAMES


def is_byte_sequence_type(declared: Any) -> bool:
    """Whether a declared type denotes a byte sequence.

    Understands Python byte types, SQLAlchemy binary types (classes or
    instances), ``Mapped``/``Optional``/``Annotated``/``X | None`` wrappers and
    the same spelled as postponed annotation strings.
    """
    if declared is None:
        return False
    if isinstance(declared, str):
        return _is_byte_annotation_text(declared)
    if isinstance(declared, type):
        return issubclass(declared, _PY_BYTE_TYPES + _SA_BYTE_TYPES)
    if isinstance(declared, _SA_BYTE_TYPES):
        return True

    origin = typing.get_origin(declared)
    if origin is None:
        return False
    args = typing.get_args(declared)
    if origin is typing.Annotated:
        return is_byte_sequence_type(args[0])
    if origin is Mapped or origin in (typing.Union, types.UnionType):
        args = tuple(arg for arg in args if arg is not type(None))
        return len(args) == 1 and is_byte_sequence_type(args[0])
    return False


# =========================================================================
# Rules
# =========================================================================


def _check_target_name(target_column: Any, table: str | None) -> str:
    if not isinstance(target_column, str) or not target_column.strip():
        raise ValidationError(
            f"Target column name must be a non-blank string, got {target_column!r}",
            field="target_column",
            value=target_column,
            table=table,
        )
    return target_column


def _check_sources(
    source_columns: Iterable[str] | str | None,
    target_column: str,
    table: str | None,
) -> tuple[str, ...]:
    if source_columns is None:
        sources: tuple[str, ...] = ()
    elif isinstance(source_columns, str):
        sources = (source_columns,)
    else:
        sources = tuple(source_columns)

    if not sources:
        raise EmptySourceListError(table=table, column=target_column)

    for source in sources:
        if not isinstance(source, str) or not source.strip():
            raise InvalidSourceColumnError(
                source, "must be a non-blank string", table=table, column=target_column
            )
        if SOURCE_LIST_DELIMITER in source:
            raise InvalidSourceColumnError(
                source,
                f"must not contain the list delimiter {SOURCE_LIST_DELIMITER!r}",
                table=table,
                column=target_column,
            )
        if source == target_column:
            raise InvalidSourceColumnError(
                source, "a column cannot hash itself", table=table, column=target_column
            )

    counts = Counter(sources)
    duplicates = [name for name in dict.fromkeys(sources) if counts[name] > 1]
    if duplicates:
        raise DuplicateSourceError(duplicates, table=table, column=target_column)
    return sources


def _check_algorithm(token: Any, target_column: str, table: str | None) -> HashAlgorithm:
    try:
        return lookup(token)
    except ValidationError as exc:
        raise exc.with_context(table=table, column=target_column)


def _apply_insecure_policy(
    descriptor: ComputedHashDescriptor,
    policy: InsecurePolicy,
    table: str | None,
) -> None:
    if descriptor.is_secure or policy is InsecurePolicy.ALLOW:
        return
    if policy is InsecurePolicy.ERROR:
        raise InsecureAlgorithmError(
            descriptor.algorithm, table=table, column=descriptor.target_column
        )
    logger.warning(
        "computed_hash.insecure_algorithm",
        table=table,
        column=descriptor.target_column,
        algorithm=descriptor.algorithm.value,
    )
    qualified = f"{table}.{descriptor.target_column}" if table else descriptor.target_column
    warnings.warn(
        f"{qualified}: hash algorithm {descriptor.algorithm.value} is not "
        "cryptographically secure; prefer SHA2_256 or SHA2_512",
        InsecureHashAlgorithmWarning,
        stacklevel=3,
    )


# =========================================================================
# Public API
# =========================================================================


def normalize(
    raw: RawHashDeclaration,
    *,
    table: str | None = None,
    insecure_policy: InsecurePolicy | str = InsecurePolicy.WARN,
) -> ComputedHashDescriptor:
    """Turn a raw declaration into a validated descriptor.

    Pure: the insecure-algorithm policy is an argument. Front ends resolve it
    from ``HASHCOL_INSECURE_ALGORITHM_POLICY`` before calling.

    Raises:
        InvalidTargetTypeError: target is not a byte sequence
        UnknownAlgorithmError: algorithm token not in the registry
        EmptySourceListError: no source columns
        InvalidSourceColumnError: blank, delimiter-bearing or self source
        DuplicateSourceError: a source listed twice
        InsecureAlgorithmError: legacy algorithm under the ``error`` policy
    """
    target_column = _check_target_name(raw.target_column, table)
    if not is_byte_sequence_type(raw.target_type):
        raise InvalidTargetTypeError(raw.target_type, table=table, column=target_column)

    algorithm = _check_algorithm(raw.algorithm, target_column, table)
    sources = _check_sources(raw.source_columns, target_column, table)
    descriptor = ComputedHashDescriptor(target_column, algorithm, sources)

    _apply_insecure_policy(descriptor, InsecurePolicy(insecure_policy), table)

    logger.debug(
        "computed_hash.normalized",
        table=table,
        column=target_column,
        algorithm=algorithm.value,
        sources=list(sources),
    )
    return descriptor


def validate(
    descriptor: ComputedHashDescriptor,
    *,
    target_type: Any = _UNSET,
    table: str | None = None,
) -> ComputedHashDescriptor:
    """Re-check a descriptor built outside :func:`normalize`.

    Returns the descriptor itself when valid; the target type is checked only
    when one is supplied (annotation state does not record it).
    """
    target_column = _check_target_name(descriptor.target_column, table)
    if target_type is not _UNSET and not is_byte_sequence_type(target_type):
        raise InvalidTargetTypeError(target_type, table=table, column=target_column)
    algorithm = _check_algorithm(descriptor.algorithm, target_column, table)
    if algorithm is not descriptor.algorithm:
        raise ValidationError(
            f"Descriptor algorithm must be a HashAlgorithm member, got {descriptor.algorithm!r}",
            field="algorithm",
            value=descriptor.algorithm,
            table=table,
            column=target_column,
        )
    sources = _check_sources(descriptor.source_columns, target_column, table)
    if sources != descriptor.source_columns:
        raise ValidationError(
            "Descriptor source columns must be a tuple of names",
            field="source_columns",
            value=descriptor.source_columns,
            table=table,
            column=target_column,
        )
    return descriptor


__all__ = [
    "SOURCE_LIST_DELIMITER",
    "RawHashDeclaration",
    "ComputedHashDescriptor",
    "is_byte_sequence_type",
    "normalize",
    "validate",
]
