"""Configuration file for pytest containing fixtures and configuration.

This module provides fixtures that can be used across multiple test files:
- isolated_env: strips PIPECTL_* variables so config tests are deterministic
"""

import pytest


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove pipectl environment overrides for every test."""
    for name in (
        "PIPECTL_CONFIG_PATH",
        "PIPECTL_AUTH_TOKEN",
        "PIPECTL_LOG_LEVEL",
        "PIPECTL_LOG_FORMAT",
        "PIPECTL_LOG_FILE",
        "PIPECTL_LOG_COLOR",
    ):
        monkeypatch.delenv(name, raising=False)
