"""
Annotation bridge: the three key/value entries that describe a computed hash.

This triplet is the only channel between declared intent (the model) and the
schema operations produced at migration time.  Front ends write it through
:func:`encode`; the resolver and the migration adapter read it through
:func:`decode`, which always re-validates, so hand-edited or externally
mutated metadata is caught before any SQL is emitted.

With SQLAlchemy the triplet lives in ``Column.info``::

    {
        "hashcol:is_computed_hash": True,
        "hashcol:algorithm": "SHA2_256",
        "hashcol:source_columns": "title,content",
    }
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from hashcol.core.algorithms import lookup
from hashcol.core.descriptor import (
    SOURCE_LIST_DELIMITER,
    ComputedHashDescriptor,
    validate,
)
from hashcol.core.errors import MalformedAnnotationStateError, UnknownAlgorithmError
from hashcol.core.logging import get_logger

logger = get_logger(__name__)

PREFIX = "hashcol:"
IS_COMPUTED_HASH = PREFIX + "is_computed_hash"
ALGORITHM = PREFIX + "algorithm"
SOURCE_COLUMNS = PREFIX + "source_columns"

ANNOTATION_KEYS = (IS_COMPUTED_HASH, ALGORITHM, SOURCE_COLUMNS)


def encode(descriptor: ComputedHashDescriptor) -> dict[str, Any]:
    """Serialize a descriptor into the annotation triplet."""
    return {
        IS_COMPUTED_HASH: True,
        ALGORITHM: descriptor.algorithm.value,
        SOURCE_COLUMNS: SOURCE_LIST_DELIMITER.join(descriptor.source_columns),
    }


def is_tracked(annotations: Mapping[str, Any] | None) -> bool:
    """Whether annotations claim a computed hash (flag exactly ``True``)."""
    return bool(annotations) and annotations.get(IS_COMPUTED_HASH) is True


def decode(
    annotations: Mapping[str, Any] | None,
    target_column: str,
    *,
    table: str | None = None,
) -> ComputedHashDescriptor | None:
    """Re-materialize a descriptor from annotation state.

    Returns ``None`` when the flag is absent or ``False``.

    Raises:
        MalformedAnnotationStateError: flag is not a bool, or a ``True``
            flag comes without a usable algorithm / source string
        UnknownAlgorithmError, DuplicateSourceError, ...: the decoded values
            break a declaration rule
    """
    if not annotations:
        return None

    flag = annotations.get(IS_COMPUTED_HASH)
    if flag is None or flag is False:
        stale = [key for key in (ALGORITHM, SOURCE_COLUMNS) if key in annotations]
        if stale:
            logger.debug(
                "computed_hash.stale_annotations",
                table=table,
                column=target_column,
                keys=stale,
            )
        return None
    if flag is not True:
        raise MalformedAnnotationStateError(
            f"{IS_COMPUTED_HASH} must be a bool, got {flag!r}",
            table=table,
            column=target_column,
        )

    algorithm = annotations.get(ALGORITHM)
    if not isinstance(algorithm, str) or not algorithm.strip():
        raise MalformedAnnotationStateError(
            f"{ALGORITHM} is missing or blank",
            table=table,
            column=target_column,
        )
    raw_sources = annotations.get(SOURCE_COLUMNS)
    if not isinstance(raw_sources, str) or not raw_sources.strip():
        raise MalformedAnnotationStateError(
            f"{SOURCE_COLUMNS} is missing or blank",
            table=table,
            column=target_column,
        )

    try:
        resolved = lookup(algorithm)
    except UnknownAlgorithmError as exc:
        raise exc.with_context(table=table, column=target_column)

    descriptor = ComputedHashDescriptor(
        target_column=target_column,
        algorithm=resolved,
        source_columns=tuple(raw_sources.split(SOURCE_LIST_DELIMITER)),
    )
    return validate(descriptor, table=table)


def strip(annotations: Mapping[str, Any] | None) -> dict[str, Any]:
    """Copy of ``annotations`` without the triplet."""
    if not annotations:
        return {}
    return {key: value for key, value in annotations.items() if key not in ANNOTATION_KEYS}


__all__ = [
    "PREFIX",
    "IS_COMPUTED_HASH",
    "ALGORITHM",
    "SOURCE_COLUMNS",
    "ANNOTATION_KEYS",
    "encode",
    "decode",
    "is_tracked",
    "strip",
]
