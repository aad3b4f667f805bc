"""Tests for the computed-hash SQL rendering layer."""

from __future__ import annotations

import pytest

from hashcol.core.algorithms import HashAlgorithm
from hashcol.core.descriptor import ComputedHashDescriptor
from hashcol.core.dialect import (
    HashDialect,
    SQLServerHashDialect,
    TypeSpec,
    get_dialect,
    parse_computed_sql,
    register_dialect,
    render_expression,
    render_hash_call,
    render_storage_type,
)
from hashcol.core.errors import MalformedAnnotationStateError, UnknownAlgorithmError


# =========================================================================
# Fixtures
# =========================================================================


@pytest.fixture
def mssql() -> SQLServerHashDialect:
    return SQLServerHashDialect()


def descriptor(algorithm=HashAlgorithm.SHA2_256, sources=("Title", "Content"), target="ContentHash"):
    return ComputedHashDescriptor(target, algorithm, tuple(sources))


# =========================================================================
# Registry
# =========================================================================


class TestRegistry:
    def test_protocol(self, mssql):
        assert isinstance(mssql, HashDialect)

    def test_get_by_name(self):
        assert get_dialect("mssql").name == "mssql"
        assert get_dialect("SQLServer").name == "mssql"

    def test_default_from_settings(self):
        assert get_dialect().name == "mssql"

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown dialect"):
            get_dialect("oracle")

    def test_unknown_from_settings(self, monkeypatch):
        monkeypatch.setenv("HASHCOL_DIALECT", "db2")
        with pytest.raises(ValueError):
            get_dialect()

    def test_register(self):
        class Shouting(SQLServerHashDialect):
            @property
            def name(self) -> str:
                return "shouting"

        register_dialect("Shouting", Shouting())
        assert get_dialect("shouting").name == "shouting"


# =========================================================================
# Rendering
# =========================================================================


class TestStorageType:
    @pytest.mark.parametrize(
        ("algorithm", "rendered"),
        [
            (HashAlgorithm.MD5, "BINARY(16)"),
            (HashAlgorithm.SHA1, "BINARY(20)"),
            (HashAlgorithm.SHA2_256, "BINARY(32)"),
            (HashAlgorithm.SHA2_512, "BINARY(64)"),
        ],
    )
    def test_width_follows_algorithm(self, mssql, algorithm, rendered):
        assert str(mssql.storage_type(descriptor(algorithm))) == rendered

    def test_module_shortcut(self):
        assert render_storage_type(descriptor()) == TypeSpec("BINARY", 32)


class TestExpression:
    def test_two_sources(self, mssql):
        assert mssql.computed_column_sql(descriptor()) == (
            "HASHBYTES('SHA2_256', "
            "ISNULL(CONVERT(NVARCHAR(MAX), [Title]), N'') + '|' + "
            "ISNULL(CONVERT(NVARCHAR(MAX), [Content]), N'')) PERSISTED"
        )

    def test_single_source_has_no_delimiter(self, mssql):
        sql = mssql.hash_call(descriptor(HashAlgorithm.MD5, ["Email"]))
        assert sql == "HASHBYTES('MD5', ISNULL(CONVERT(NVARCHAR(MAX), [Email]), N''))"

    def test_order_sensitive(self, mssql):
        ab = mssql.hash_call(descriptor(sources=["A", "B"]))
        ba = mssql.hash_call(descriptor(sources=["B", "A"]))
        assert ab != ba
        assert ab.index("[A]") < ab.index("[B]")
        assert ba.index("[B]") < ba.index("[A]")

    def test_each_source_coalesced(self, mssql):
        sql = mssql.hash_call(descriptor(sources=["A", "B", "C"]))
        assert sql.count("ISNULL(") == 3
        assert sql.count(" + '|' + ") == 2

    def test_deterministic(self, mssql):
        assert mssql.computed_column_sql(descriptor()) == mssql.computed_column_sql(descriptor())

    def test_identifier_quoting(self, mssql):
        assert mssql.delimit_identifier("Odd]Name") == "[Odd]]Name]"
        assert "[First Name]" in mssql.hash_call(descriptor(sources=["First Name"]))

    def test_module_shortcuts(self):
        d = descriptor()
        assert render_expression(d) == render_hash_call(d) + " PERSISTED"

    def test_algorithm_change_changes_width_and_call_together(self, mssql):
        old, new = descriptor(HashAlgorithm.SHA2_256), descriptor(HashAlgorithm.SHA2_512)
        assert mssql.storage_type(old).length == 32
        assert mssql.storage_type(new).length == 64
        assert "'SHA2_512'" in mssql.hash_call(new)


# =========================================================================
# TypeSpec
# =========================================================================


class TestTypeSpec:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("BINARY(32)", TypeSpec("BINARY", 32)),
            ("binary ( 64 )", TypeSpec("BINARY", 64)),
            ("BINARY", TypeSpec("BINARY", None)),
            ("varbinary(max)", None),
            ("", None),
        ],
    )
    def test_parse(self, text, expected):
        assert TypeSpec.parse(text) == expected

    @pytest.mark.parametrize(
        ("declared", "ok"),
        [
            ("BINARY(32)", True),
            ("binary(32)", True),
            ("BINARY", True),
            ("BINARY(64)", False),
            ("VARBINARY(32)", False),
            ("NVARCHAR(32)", False),
            ("VARBINARY(max)", False),
        ],
    )
    def test_is_compatible(self, declared, ok):
        assert TypeSpec("BINARY", 32).is_compatible(declared) is ok


# =========================================================================
# Reverse parsing
# =========================================================================


class TestParseComputedSql:
    def test_rendered_form(self, mssql):
        d = descriptor()
        assert mssql.parse_computed_sql(mssql.computed_column_sql(d), "ContentHash") == d

    def test_catalog_form(self, mssql):
        sqltext = (
            "(hashbytes('SHA2_512',isnull(CONVERT([nvarchar](max),[Title]),N'')"
            "+'|')+isnull(CONVERT([nvarchar](max),[Content]),N''))"
        )
        assert mssql.parse_computed_sql(sqltext, "ContentHash") == descriptor(
            HashAlgorithm.SHA2_512
        )

    def test_bracket_escapes(self, mssql):
        d = descriptor(sources=["Odd]Name", "B"])
        assert mssql.parse_computed_sql(mssql.hash_call(d), "ContentHash") == d

    def test_not_a_hash(self, mssql):
        assert mssql.parse_computed_sql("([Price]*[Quantity])", "Total") is None

    def test_unknown_algorithm(self, mssql):
        with pytest.raises(UnknownAlgorithmError):
            mssql.parse_computed_sql("HASHBYTES('SHA3_256', [A])", "H")

    def test_no_sources(self, mssql):
        with pytest.raises(MalformedAnnotationStateError):
            mssql.parse_computed_sql("HASHBYTES('MD5', [A])", "H")

    def test_module_shortcut(self):
        d = descriptor()
        assert parse_computed_sql(render_expression(d), "ContentHash") == d
