"""
Shared pytest fixtures for hashcol tests.

This module provides:
- Settings isolation (no HASHCOL_* variables, no stray .env, fresh cache)
- structlog reset between tests
- Sample descriptors used across the core, orm and migrations suites

Usage:
    Fixtures are auto-discovered by pytest. Use them as function arguments.
"""

from __future__ import annotations

import os

import pytest
import structlog

from hashcol.core.algorithms import HashAlgorithm
from hashcol.core.annotations import encode
from hashcol.core.descriptor import ComputedHashDescriptor
from hashcol.core.settings import clear_settings_cache


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Run every test against default settings."""
    for key in list(os.environ):
        if key.startswith("HASHCOL_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


# =============================================================================
# Sample descriptors
# =============================================================================


@pytest.fixture
def sha256_descriptor() -> ComputedHashDescriptor:
    return ComputedHashDescriptor("ContentHash", HashAlgorithm.SHA2_256, ("Title", "Content"))


@pytest.fixture
def sha512_descriptor() -> ComputedHashDescriptor:
    return ComputedHashDescriptor("ContentHash", HashAlgorithm.SHA2_512, ("Title", "Content"))


@pytest.fixture
def sha256_annotations(sha256_descriptor) -> dict:
    return encode(sha256_descriptor)


@pytest.fixture
def sha512_annotations(sha512_descriptor) -> dict:
    return encode(sha512_descriptor)
