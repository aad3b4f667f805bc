"""Tests for hashcol.core.errors module."""

import pytest

from hashcol.core.errors import (
    DuplicateSourceError,
    EmptySourceListError,
    ErrorCategory,
    ErrorContext,
    HashColError,
    IncompatibleStorageTypeError,
    InsecureAlgorithmError,
    InsecureHashAlgorithmWarning,
    InvalidSourceColumnError,
    InvalidTargetTypeError,
    MalformedAnnotationStateError,
    SchemaError,
    UnknownAlgorithmError,
    ValidationError,
    describe_type,
)


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_create_empty_context(self):
        ctx = ErrorContext()
        assert ctx.table is None
        assert ctx.column is None
        assert ctx.metadata == {}
        assert ctx.qualified_column is None

    def test_qualified_column(self):
        assert ErrorContext(column="H").qualified_column == "H"
        assert ErrorContext(table="t", column="H").qualified_column == "t.H"

    def test_to_dict_excludes_none(self):
        ctx = ErrorContext(column="H", metadata={"expected_width": 32})
        assert ctx.to_dict() == {"column": "H", "expected_width": 32}


class TestHashColError:
    """Test base HashColError."""

    def test_message_without_column(self):
        err = HashColError("boom")
        assert str(err) == "boom"
        assert err.category == ErrorCategory.INTERNAL
        assert err.retryable is False

    def test_message_prefixed_with_column(self):
        err = HashColError("boom", table="documents", column="ContentHash")
        assert str(err) == "documents.ContentHash: boom"
        assert err.detail == "boom"

    def test_with_context_updates_message(self):
        err = EmptySourceListError().with_context(table="documents", column="H")
        assert err.message.startswith("documents.H: ")
        assert err.args == (err.message,)

    def test_with_context_extra_keys_go_to_metadata(self):
        err = HashColError("boom").with_context(expected_width=64)
        assert err.context.metadata == {"expected_width": 64}

    def test_cause(self):
        cause = ValueError("inner")
        err = HashColError("outer", cause=cause)
        assert err.__cause__ is cause
        assert err.to_dict()["cause"] == "inner"

    def test_to_dict(self):
        err = DuplicateSourceError(["A"], column="H")
        d = err.to_dict()
        assert d["error_type"] == "DuplicateSourceError"
        assert d["category"] == "VALIDATION"
        assert d["context"]["rule"] == "unique_sources"
        assert d["field"] == "source_columns"

    def test_repr(self):
        assert "VALIDATION" in repr(EmptySourceListError())


class TestHierarchy:
    @pytest.mark.parametrize(
        "error",
        [
            UnknownAlgorithmError("X"),
            EmptySourceListError(),
            DuplicateSourceError(["A"]),
            InvalidSourceColumnError("", "blank"),
            InvalidTargetTypeError(str),
            InsecureAlgorithmError("MD5"),
        ],
    )
    def test_validation_errors(self, error):
        assert isinstance(error, ValidationError)
        assert error.category == ErrorCategory.VALIDATION
        assert error.context.rule == type(error).rule

    @pytest.mark.parametrize(
        "error",
        [
            IncompatibleStorageTypeError("VARBINARY(MAX)", "BINARY(32)"),
            MalformedAnnotationStateError("flag is not a bool"),
        ],
    )
    def test_schema_errors(self, error):
        assert isinstance(error, SchemaError)
        assert error.category == ErrorCategory.SCHEMA

    def test_unknown_algorithm_names_token(self):
        err = UnknownAlgorithmError("SHA9000")
        assert "SHA9000" in err.message
        assert err.token == "SHA9000"
        assert err.context.algorithm == "SHA9000"

    def test_invalid_target_type_message(self):
        assert "Found type: str" in InvalidTargetTypeError(str).message

    def test_incompatible_storage_message(self):
        err = IncompatibleStorageTypeError("VARBINARY(MAX)", "BINARY(32)")
        assert "BINARY(32)" in err.message
        assert "VARBINARY(MAX)" in err.message

    def test_warning_is_user_warning(self):
        assert issubclass(InsecureHashAlgorithmWarning, UserWarning)


class TestHelpers:
    def test_describe_type(self):
        assert describe_type(bytes) == "bytes"
        assert describe_type("Mapped[str]") == "Mapped[str]"
        assert describe_type(None) == "None"

    def test_categories(self):
        assert {c.value for c in ErrorCategory} == {"VALIDATION", "SCHEMA", "INTERNAL"}
