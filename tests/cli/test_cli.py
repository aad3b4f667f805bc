"""Tests for the hashcol CLI — algorithms, render, config show, --version."""

from __future__ import annotations

import json
import logging

import pytest
import structlog
from typer.testing import CliRunner

from hashcol import __version__
from hashcol.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Keep log lines out of command output."""

    def _configure(*args, **kwargs):
        structlog.configure(
            wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL)
        )

    monkeypatch.setattr("hashcol.core.logging.configure_logging", _configure)


class TestRoot:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"hashcol {__version__}" in result.stdout

    def test_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "algorithms" in result.stdout
        assert "render" in result.stdout


class TestAlgorithms:
    def test_json(self):
        result = runner.invoke(app, ["algorithms", "--json"])
        assert result.exit_code == 0
        rows = json.loads(result.stdout)
        by_name = {row["algorithm"]: row for row in rows}
        assert by_name["SHA2_256"] == {
            "algorithm": "SHA2_256",
            "width": 32,
            "bits": 256,
            "sql_type": "BINARY(32)",
            "secure": True,
        }
        assert by_name["MD5"]["secure"] is False
        assert len(rows) == 7

    def test_table(self):
        result = runner.invoke(app, ["algorithms"])
        assert result.exit_code == 0
        assert "SHA2_512" in result.stdout
        assert "BINARY(64)" in result.stdout


class TestRender:
    def test_plain(self):
        result = runner.invoke(app, ["render", "sha2_256", "Title", "Content", "--column", "ContentHash"])
        assert result.exit_code == 0
        assert result.stdout.startswith("[ContentHash] BINARY(32) AS HASHBYTES('SHA2_256', ")
        assert "PERSISTED" in result.stdout

    def test_json(self):
        result = runner.invoke(app, ["render", "SHA2_512", "A", "B", "--json"])
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["column"] == "hash"
        assert payload["source_columns"] == ["A", "B"]
        assert payload["storage_type"] == "BINARY(64)"
        assert payload["expression"].endswith(" PERSISTED")
        assert payload["secure"] is True

    def test_insecure_algorithm_notice(self):
        with pytest.warns(Warning):
            result = runner.invoke(app, ["render", "MD5", "Email"])
        assert result.exit_code == 0
        assert "BINARY(16)" in result.stdout
        assert "not" in result.stdout

    def test_unknown_algorithm(self):
        result = runner.invoke(app, ["render", "SHA9000", "A"])
        assert result.exit_code == 1

    def test_duplicate_sources(self):
        result = runner.invoke(app, ["render", "SHA2_256", "A", "A"])
        assert result.exit_code == 1

    def test_policy_error(self, monkeypatch):
        monkeypatch.setenv("HASHCOL_INSECURE_ALGORITHM_POLICY", "error")
        result = runner.invoke(app, ["render", "SHA1", "A"])
        assert result.exit_code == 1

    def test_unknown_dialect(self):
        result = runner.invoke(app, ["render", "SHA2_256", "A", "--dialect", "oracle"])
        assert result.exit_code == 1


class TestConfigShow:
    def test_json(self):
        result = runner.invoke(app, ["config", "show", "--format", "json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["insecure_algorithm_policy"] == "warn"
        assert data["dialect"] == "mssql"

    def test_env(self, monkeypatch):
        monkeypatch.setenv("HASHCOL_LOG_LEVEL", "debug")
        result = runner.invoke(app, ["config", "show", "--format", "env"])
        assert result.exit_code == 0
        assert "HASHCOL_LOG_LEVEL=DEBUG" in result.stdout
        assert "HASHCOL_DIALECT=mssql" in result.stdout

    def test_table(self):
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert "dialect" in result.stdout
        assert "mssql" in result.stdout

    def test_unknown_format(self):
        result = runner.invoke(app, ["config", "show", "--format", "xml"])
        assert result.exit_code == 1
