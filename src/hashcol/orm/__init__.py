"""SQLAlchemy 2.0 front ends for hashcol.

Modules
-------
base        HashColBase (declarative base with ComputedHashMixin)
columns     computed_hash() marker, has_computed_hash() builder, readers

Tags:
    hashcol, orm, sqlalchemy, declarative
"""

from __future__ import annotations

from hashcol.orm.base import HashColBase
from hashcol.orm.columns import (
    ComputedHash,
    ComputedHashMixin,
    build_column,
    build_mapped_column,
    computed_hash,
    descriptor_for,
    has_computed_hash,
    iter_computed_hashes,
    source_name,
    storage_type,
    type_string,
)

__all__ = [
    "HashColBase",
    "ComputedHash",
    "ComputedHashMixin",
    "build_column",
    "build_mapped_column",
    "computed_hash",
    "descriptor_for",
    "has_computed_hash",
    "iter_computed_hashes",
    "source_name",
    "storage_type",
    "type_string",
]
