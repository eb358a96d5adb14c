"""Shared test fixtures for the drive-bridge test suite."""

from __future__ import annotations

import pytest


@pytest.fixture
def test_file_id() -> str:
    return "abc123"
