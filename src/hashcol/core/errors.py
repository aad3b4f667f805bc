"""
Structured error types for computed-hash column configuration.

Every failure the engine can raise is a model-definition defect: an unknown
algorithm, an empty or duplicated source list, a non-binary target, a storage
type that cannot hold the digest, or annotation metadata that was edited by
hand into an inconsistent state. None of them is transient, so none is
retryable. They are raised synchronously while the model is built or while a
migration is generated, and they carry the fully qualified column name so the
user sees an actionable message at design time instead of a database error at
deploy time.

Manifesto:
    - **Typed Error Hierarchy:** One class per violated rule
    - **Rich Context:** Errors carry table, column, algorithm and rule
    - **Fail Fast:** No partial success, no deferred failures
    - **Error Chaining:** Preserve the original exception as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                        HashColError                          │
        │            (category, context, cause, to_dict)               │
        ├─────────────────────────────────────────────────────────────┤
        │                                                              │
        │  ValidationError                  SchemaError                │
        │  (VALIDATION)                     (SCHEMA)                   │
        │       │                                │                     │
        │  UnknownAlgorithmError            IncompatibleStorageType    │
        │  EmptySourceListError             MalformedAnnotationState   │
        │  DuplicateSourceError                                        │
        │  InvalidSourceColumnError                                    │
        │  InvalidTargetTypeError                                      │
        │  InsecureAlgorithmError                                      │
        └─────────────────────────────────────────────────────────────┘

Examples:
    >>> error = UnknownAlgorithmError("SHA9000")
    >>> error.with_context(table="documents", column="content_hash")
    UnknownAlgorithmError(...)
    >>> error.context.qualified_column
    'documents.content_hash'

Guardrails:
    ❌ DON'T: Catch these and emit SQL anyway
    ✅ DO: Let them propagate to the model builder / migration generator

Tags:
    error-handling, exception-hierarchy, error-context, hashcol, validation
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and reporting."""

    VALIDATION = "VALIDATION"  # Declaration rules (algorithm, sources, target)
    SCHEMA = "SCHEMA"  # Storage type, annotation metadata
    INTERNAL = "INTERNAL"  # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to every error.

    Only non-None fields are serialized by :meth:`to_dict`, so a context
    built for a normalization failure (no table yet) stays compact.

    Attributes:
        table: Table owning the column, when known
        column: Target column name
        algorithm: Algorithm token involved in the failure
        rule: Short name of the violated rule (e.g. ``"non_empty_sources"``)
        metadata: Additional key-value pairs
    """

    table: str | None = None
    column: str | None = None
    algorithm: str | None = None
    rule: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def qualified_column(self) -> str | None:
        """``table.column`` (or just the column) when a column is known."""
        if self.column is None:
            return None
        if self.table:
            return f"{self.table}.{self.column}"
        return self.column

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["table", "column", "algorithm", "rule"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class HashColError(Exception):
    """
    Base exception for all hashcol errors.

    Subclasses set ``default_category`` and ``rule``; the constructor accepts
    ``table``/``column`` shortcuts so call sites can attach the column
    identity without building an :class:`ErrorContext` by hand. When a
    column is known, the message is prefixed with its qualified name.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    rule: str | None = None
    # Configuration defects never fix themselves
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        table: str | None = None,
        column: str | None = None,
        cause: Exception | None = None,
    ):
        self.detail = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        if table is not None:
            self.context.table = table
        if column is not None:
            self.context.column = column
        if self.context.rule is None:
            self.context.rule = self.rule
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause
        super().__init__(self.message)

    @property
    def message(self) -> str:
        qualified = self.context.qualified_column
        if qualified:
            return f"{qualified}: {self.detail}"
        return self.detail

    def __str__(self) -> str:
        return self.message

    def with_context(self, **kwargs: Any) -> HashColError:
        """
        Add context to this error (fluent API).

        Usage:
            raise EmptySourceListError().with_context(
                table="documents", column="content_hash"
            )
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        self.args = (self.message,)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(HashColError):
    """
    A raw declaration or descriptor breaks a declaration rule.

    Never retryable - the model definition must be fixed.
    """

    default_category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


class UnknownAlgorithmError(ValidationError):
    """Algorithm token does not name a registered hash algorithm."""

    rule = "known_algorithm"

    def __init__(self, token: Any, **kwargs: Any):
        self.token = token
        from hashcol.core.algorithms import HashAlgorithm

        supported = ", ".join(member.value for member in HashAlgorithm)
        super().__init__(
            f"Unknown or unsupported hash algorithm: {token!r}. Supported: {supported}",
            field="algorithm",
            value=token,
            **kwargs,
        )
        self.context.algorithm = str(token)


class EmptySourceListError(ValidationError):
    """A computed hash needs at least one source column."""

    rule = "non_empty_sources"

    def __init__(self, **kwargs: Any):
        super().__init__(
            "A computed hash column must have at least one source column",
            field="source_columns",
            **kwargs,
        )


class DuplicateSourceError(ValidationError):
    """The same source column is listed more than once."""

    rule = "unique_sources"

    def __init__(self, duplicates: Iterable[str], **kwargs: Any):
        self.duplicates = tuple(duplicates)
        names = ", ".join(self.duplicates)
        super().__init__(
            f"Source columns must be unique; duplicated: {names}",
            field="source_columns",
            value=list(self.duplicates),
            **kwargs,
        )


class InvalidSourceColumnError(ValidationError):
    """A source column name is blank, unencodable, or self-referencing."""

    rule = "valid_source_name"

    def __init__(self, source: Any, reason: str, **kwargs: Any):
        self.source = source
        self.reason = reason
        super().__init__(
            f"Invalid source column {source!r}: {reason}",
            field="source_columns",
            value=source,
            **kwargs,
        )


class InvalidTargetTypeError(ValidationError):
    """The target column is not declared as a byte sequence."""

    rule = "binary_target"

    def __init__(self, declared_type: Any, **kwargs: Any):
        self.declared_type = declared_type
        super().__init__(
            "A computed hash can only be applied to a byte-sequence column. "
            f"Found type: {describe_type(declared_type)}",
            field="target_type",
            value=declared_type,
            **kwargs,
        )


class InsecureAlgorithmError(ValidationError):
    """A legacy algorithm was used while the insecure policy is ``error``."""

    rule = "secure_algorithm"

    def __init__(self, algorithm: Any, **kwargs: Any):
        super().__init__(
            f"Hash algorithm {str(algorithm)!r} is not cryptographically secure "
            "and insecure_algorithm_policy is 'error'",
            field="algorithm",
            value=algorithm,
            **kwargs,
        )
        self.context.algorithm = str(algorithm)


# =============================================================================
# SCHEMA ERRORS
# =============================================================================


class SchemaError(HashColError):
    """Schema metadata or a schema operation is inconsistent."""

    default_category = ErrorCategory.SCHEMA


class IncompatibleStorageTypeError(SchemaError):
    """An explicit column type cannot hold the digest of the algorithm."""

    rule = "binary_storage"

    def __init__(self, found: str, expected: str, **kwargs: Any):
        self.found = found
        self.expected = expected
        super().__init__(
            f"Computed hash columns must use {expected} storage. Found: {found}",
            **kwargs,
        )


class MalformedAnnotationStateError(SchemaError):
    """Annotation entries on a column are missing, mistyped, or contradictory."""

    rule = "well_formed_annotations"

    def __init__(self, reason: str, **kwargs: Any):
        self.reason = reason
        super().__init__(f"Malformed computed hash annotations: {reason}", **kwargs)


# =============================================================================
# WARNINGS
# =============================================================================


class InsecureHashAlgorithmWarning(UserWarning):
    """A legacy (16/20-byte) algorithm was declared; it still works."""


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def describe_type(declared_type: Any) -> str:
    """Readable name for a declared type (class, instance, or annotation text)."""
    if isinstance(declared_type, str):
        return declared_type
    if declared_type is None:
        return "None"
    if isinstance(declared_type, type):
        return declared_type.__name__
    name = getattr(declared_type, "__name__", None)
    if name and not hasattr(declared_type, "__origin__"):
        return name
    text = repr(declared_type)
    return text.replace("typing.", "")


__all__ = [
    # Category enum
    "ErrorCategory",
    # Context
    "ErrorContext",
    # Base
    "HashColError",
    # Validation
    "ValidationError",
    "UnknownAlgorithmError",
    "EmptySourceListError",
    "DuplicateSourceError",
    "InvalidSourceColumnError",
    "InvalidTargetTypeError",
    "InsecureAlgorithmError",
    # Schema
    "SchemaError",
    "IncompatibleStorageTypeError",
    "MalformedAnnotationStateError",
    # Warnings
    "InsecureHashAlgorithmWarning",
    # Utilities
    "describe_type",
]
