"""hashcol core -- the computed-hash descriptor lifecycle engine.

Manifesto:
    A binary column whose value must equal a hash of sibling columns is best
    computed by the database itself.  The hard part is keeping the
    declaration, the generated SQL, the storage width and the migration
    operations in sync as the declaration changes over time.  ``hashcol.core``
    owns exactly that, with no dependency on how the model is declared or
    how migrations are diffed.

Architecture::

    algorithms.py    Closed registry: algorithm -> width, security
    descriptor.py    RawHashDeclaration -> normalize() -> ComputedHashDescriptor
    annotations.py   Three-entry key/value bridge (encode / decode)
    dialect.py       SQL Server rendering: BINARY(n) + HASHBYTES(...) PERSISTED
    transitions.py   (old, new) -> Transition + rewritten SchemaOperation
    errors.py        Typed failures with column context
    logging.py       structlog configuration
    settings.py      pydantic-settings configuration
"""

from hashcol.core.algorithms import (
    AlgorithmInfo,
    HashAlgorithm,
    all_algorithms,
    is_secure,
    lookup,
    recommended_sql_type,
    width_of,
)
from hashcol.core.annotations import decode, encode
from hashcol.core.descriptor import (
    ComputedHashDescriptor,
    RawHashDeclaration,
    is_byte_sequence_type,
    normalize,
    validate,
)
from hashcol.core.dialect import (
    HashDialect,
    SQLServerHashDialect,
    TypeSpec,
    get_dialect,
    parse_computed_sql,
    render_expression,
    render_hash_call,
    render_storage_type,
)
from hashcol.core.errors import (
    DuplicateSourceError,
    EmptySourceListError,
    HashColError,
    IncompatibleStorageTypeError,
    InsecureAlgorithmError,
    InsecureHashAlgorithmWarning,
    InvalidSourceColumnError,
    InvalidTargetTypeError,
    MalformedAnnotationStateError,
    UnknownAlgorithmError,
)
from hashcol.core.transitions import (
    ColumnPayload,
    OperationKind,
    Resolution,
    SchemaOperation,
    Transition,
    resolve,
)

__all__ = [
    "AlgorithmInfo",
    "HashAlgorithm",
    "all_algorithms",
    "is_secure",
    "lookup",
    "recommended_sql_type",
    "width_of",
    "decode",
    "encode",
    "ComputedHashDescriptor",
    "RawHashDeclaration",
    "is_byte_sequence_type",
    "normalize",
    "validate",
    "HashDialect",
    "SQLServerHashDialect",
    "TypeSpec",
    "get_dialect",
    "parse_computed_sql",
    "render_expression",
    "render_hash_call",
    "render_storage_type",
    "DuplicateSourceError",
    "EmptySourceListError",
    "HashColError",
    "IncompatibleStorageTypeError",
    "InsecureAlgorithmError",
    "InsecureHashAlgorithmWarning",
    "InvalidSourceColumnError",
    "InvalidTargetTypeError",
    "MalformedAnnotationStateError",
    "UnknownAlgorithmError",
    "ColumnPayload",
    "OperationKind",
    "Resolution",
    "SchemaOperation",
    "Transition",
    "resolve",
]
