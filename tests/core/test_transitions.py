"""Tests for hashcol.core.transitions — the lifecycle resolver.

Covers:
- classify() over every (kind, old, new) combination
- Worked scenarios: create, algorithm change, removal, bad declarations
- No-op law and spurious-alter suppression
- Storage type guard and malformed annotation state
"""

from __future__ import annotations

import pytest

from hashcol.core.algorithms import HashAlgorithm, width_of
from hashcol.core.annotations import ALGORITHM, IS_COMPUTED_HASH, SOURCE_COLUMNS, encode
from hashcol.core.descriptor import ComputedHashDescriptor, RawHashDeclaration, normalize
from hashcol.core.errors import (
    DuplicateSourceError,
    EmptySourceListError,
    IncompatibleStorageTypeError,
    MalformedAnnotationStateError,
    UnknownAlgorithmError,
)
from hashcol.core.transitions import (
    ColumnPayload,
    OperationKind,
    SchemaOperation,
    Transition,
    classify,
    render_payload,
    resolve,
)

ADD = OperationKind.ADD_COLUMN
ALTER = OperationKind.ALTER_COLUMN
DROP = OperationKind.DROP_COLUMN


def op(kind=ALTER, old=None, new=None, column_type=None, **payload):
    return SchemaOperation(
        kind=kind,
        table="Documents",
        column="ContentHash",
        old_annotations=old,
        new_annotations=new,
        payload=ColumnPayload(column_type=column_type, **payload),
    )


# =========================================================================
# classify
# =========================================================================


class TestClassify:
    def test_table(self, sha256_descriptor, sha512_descriptor):
        d1, d2 = sha512_descriptor, sha256_descriptor
        assert classify(ADD, None, d1) is Transition.CREATE
        assert classify(ALTER, None, d1) is Transition.CONVERT_TO_COMPUTED
        assert classify(ALTER, d1, d2) is Transition.ALTER_DEFINITION
        assert classify(ADD, d1, d2) is Transition.ALTER_DEFINITION
        assert classify(ALTER, d1, d1) is Transition.NOOP
        assert classify(ALTER, d1, None) is Transition.CONVERT_TO_PLAIN
        assert classify(ADD, d1, None) is Transition.NOOP
        assert classify(ALTER, None, None) is Transition.NOOP
        assert classify(DROP, d1, None) is Transition.DROP
        assert classify(DROP, None, None) is Transition.NOOP

    def test_source_order_matters(self):
        ab = ComputedHashDescriptor("H", HashAlgorithm.SHA2_256, ("A", "B"))
        ba = ComputedHashDescriptor("H", HashAlgorithm.SHA2_256, ("B", "A"))
        assert classify(ALTER, ab, ba) is Transition.ALTER_DEFINITION


# =========================================================================
# Worked scenarios
# =========================================================================


class TestScenarios:
    def test_create(self):
        d = normalize(RawHashDeclaration("ContentHash", bytes, "SHA2_256", ["Title", "Content"]))
        resolution = resolve(op(ADD, None, encode(d)))

        assert resolution.transition is Transition.CREATE
        payload = resolution.operation.payload
        assert payload.column_type == "BINARY(32)"
        assert "HASHBYTES('SHA2_256', " in payload.computed_sql
        assert payload.computed_sql.index("[Title]") < payload.computed_sql.index("[Content]")
        assert payload.persisted is True

    def test_algorithm_change(self, sha512_annotations, sha256_annotations):
        resolution = resolve(op(ALTER, sha512_annotations, sha256_annotations))

        assert resolution.transition is Transition.ALTER_DEFINITION
        assert resolution.old.storage_width == 64
        assert resolution.operation.payload.column_type == "BINARY(32)"
        assert "'SHA2_256'" in resolution.operation.payload.computed_sql

    def test_remove_declaration(self, sha256_annotations):
        resolution = resolve(op(ALTER, sha256_annotations, None))

        assert resolution.transition is Transition.CONVERT_TO_PLAIN
        payload = resolution.operation.payload
        assert payload.computed_sql is None
        assert payload.persisted is False
        assert payload.column_type == "BINARY(32)"

    def test_remove_declaration_with_new_type(self, sha256_annotations):
        resolution = resolve(op(ALTER, sha256_annotations, None, column_type="VARBINARY(MAX)"))
        assert resolution.operation.payload.column_type == "VARBINARY(MAX)"

    def test_unknown_algorithm(self):
        with pytest.raises(UnknownAlgorithmError, match="SHA9000"):
            normalize(RawHashDeclaration("ContentHash", bytes, "SHA9000", ["Title"]))

    def test_empty_sources(self):
        with pytest.raises(EmptySourceListError):
            normalize(RawHashDeclaration("ContentHash", bytes, "SHA2_256", []))

    def test_convert_to_computed(self, sha256_annotations):
        resolution = resolve(op(ALTER, None, sha256_annotations))
        assert resolution.transition is Transition.CONVERT_TO_COMPUTED
        assert resolution.operation.payload.computed_sql.startswith("HASHBYTES(")

    def test_drop(self, sha256_annotations):
        operation = op(DROP, sha256_annotations, None)
        resolution = resolve(operation)
        assert resolution.transition is Transition.DROP
        assert resolution.operation is operation


# =========================================================================
# Laws
# =========================================================================


class TestNoOp:
    @pytest.mark.parametrize("algorithm", list(HashAlgorithm))
    def test_same_descriptor_leaves_operation_alone(self, algorithm):
        annotations = encode(ComputedHashDescriptor("ContentHash", algorithm, ("A", "B")))
        operation = op(ALTER, annotations, dict(annotations), computed_sql="x")
        resolution = resolve(operation)
        assert resolution.transition is Transition.NOOP
        assert resolution.operation is operation
        assert resolution.changed is False

    def test_untracked_column(self):
        operation = op(ALTER, {"doc": "x"}, None, column_type="NVARCHAR(50)")
        resolution = resolve(operation)
        assert resolution.transition is Transition.NOOP
        assert resolution.suppress is False

    def test_spurious_type_alter_is_suppressed(self, sha256_annotations):
        resolution = resolve(
            op(ALTER, sha256_annotations, sha256_annotations, column_type="BINARY(32)")
        )
        assert resolution.transition is Transition.NOOP
        assert resolution.suppress is True

    def test_real_type_alter_is_not_suppressed(self, sha256_annotations):
        resolution = resolve(
            op(ALTER, sha256_annotations, sha256_annotations, column_type="VARBINARY(32)")
        )
        assert resolution.suppress is False

    def test_input_not_mutated(self, sha512_annotations, sha256_annotations):
        operation = op(ALTER, sha512_annotations, sha256_annotations)
        resolve(operation)
        assert operation.payload == ColumnPayload()


class TestWidthAgreement:
    @pytest.mark.parametrize("algorithm", list(HashAlgorithm))
    def test_type_and_call_agree(self, algorithm):
        d = ComputedHashDescriptor("H", algorithm, ("A",))
        payload = render_payload(d)
        assert payload.column_type == f"BINARY({width_of(algorithm)})"
        assert f"HASHBYTES('{algorithm.value}'" in payload.computed_sql


# =========================================================================
# Failures
# =========================================================================


class TestGuards:
    def test_incompatible_explicit_type(self, sha256_annotations):
        with pytest.raises(IncompatibleStorageTypeError) as exc_info:
            resolve(op(ADD, None, sha256_annotations, column_type="VARBINARY(MAX)"))
        err = exc_info.value
        assert "BINARY(32)" in err.message
        assert err.context.qualified_column == "Documents.ContentHash"
        assert err.context.metadata["expected_width"] == 32

    def test_wrong_width(self, sha256_annotations):
        with pytest.raises(IncompatibleStorageTypeError):
            resolve(op(ALTER, None, sha256_annotations, column_type="BINARY(64)"))

    def test_bare_binary_is_accepted(self, sha256_annotations):
        resolution = resolve(op(ADD, None, sha256_annotations, column_type="BINARY"))
        assert resolution.operation.payload.column_type == "BINARY(32)"

    def test_malformed_new_state(self):
        bad = {IS_COMPUTED_HASH: True, ALGORITHM: "SHA2_256", SOURCE_COLUMNS: ""}
        with pytest.raises(MalformedAnnotationStateError) as exc_info:
            resolve(op(ADD, None, bad))
        assert exc_info.value.context.qualified_column == "Documents.ContentHash"

    def test_malformed_old_state(self, sha256_annotations):
        with pytest.raises(MalformedAnnotationStateError):
            resolve(op(ALTER, {IS_COMPUTED_HASH: "yes"}, sha256_annotations))

    def test_schema_qualified_table(self, sha256_annotations):
        operation = SchemaOperation(
            kind=ADD,
            table="Documents",
            column="ContentHash",
            new_annotations={**sha256_annotations, SOURCE_COLUMNS: "A,A"},
            schema="dbo",
        )
        with pytest.raises(DuplicateSourceError) as exc_info:
            resolve(operation)
        assert exc_info.value.context.table == "dbo.Documents"
