"""Alembic integration for computed-hash columns.

Modules
-------
compare     autogenerate comparator (registered on import)
rewriter    computed_hash_rewriter() for process_revision_directives
snapshot    previous-state readers (reflection + computed SQL parsing)
"""

from hashcol.migrations.compare import SNAPSHOT_OPTION, compare_computed_hash
from hashcol.migrations.rewriter import (
    computed_hash_rewriter,
    rewrite_add_column,
    rewrite_alter_column,
    rewrite_create_table,
    rewrite_drop_column,
)
from hashcol.migrations.snapshot import (
    SnapshotReader,
    annotations_from_computed,
    reflect_annotations,
    target_column,
)

__all__ = [
    "SNAPSHOT_OPTION",
    "compare_computed_hash",
    "computed_hash_rewriter",
    "rewrite_add_column",
    "rewrite_alter_column",
    "rewrite_create_table",
    "rewrite_drop_column",
    "SnapshotReader",
    "annotations_from_computed",
    "reflect_annotations",
    "target_column",
]
