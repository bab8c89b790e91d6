"""Pytest configuration and shared fixtures.

This module provides shared test fixtures for all negotiate tests:
- clean_settings: isolates tests from NEGOTIATE_* environment variables
- formats: the xml/html format definitions used throughout the middleware tests

ASGI helper apps live in negotiate/tests/asgi_utils.py.
"""

from __future__ import annotations

from typing import Any

import pytest

from negotiate.core.config import get_settings

_NEGOTIATE_ENV_VARS = (
    "NEGOTIATE_TRACE",
    "NEGOTIATE_LOG_LEVEL",
    "NEGOTIATE_LOG_JSON",
    "NEGOTIATE_LOG_FILE_PATH",
    "NEGOTIATE_LOG_FILE_MAX_BYTES",
    "NEGOTIATE_LOG_FILE_BACKUP_COUNT",
)


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Clear NEGOTIATE_* variables and the cached settings around each test."""
    for name in _NEGOTIATE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def formats() -> dict[str, Any]:
    """Return the xml/html format definitions."""
    return {
        "xml": {"type": "application/xml", "charset": "utf-8"},
        "html": {"type": "text/html", "language": "en"},
    }
