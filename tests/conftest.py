"""Pytest configuration and fixtures.

Provides environment isolation, logging setup and a few opt-in fixtures.
Fixtures in the isolation section are autouse.
"""

from __future__ import annotations

from contextlib import suppress
import logging
import os
from typing import Any

import pytest

from chainplan import ExecutionPlan, Settings
from tests.helpers import RecordingHandler

# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "dotenv.load_dotenv", lambda *_args, **_kwargs: False, raising=False
        )


@pytest.fixture(autouse=True)
def isolate_chainplan_env(monkeypatch, tmp_path):
    """Clear CHAINPLAN_* variables and point config at an empty project file."""
    for key in list(os.environ.keys()):
        if key.startswith("CHAINPLAN_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("CHAINPLAN_PYPROJECT_PATH", str(tmp_path / "missing.toml"))


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("asyncio").setLevel(logging.WARNING)


# =============================================================================
# Shared fixtures (opt-in)
# =============================================================================


@pytest.fixture
def plan() -> ExecutionPlan[Any, Any]:
    """An empty plan with default settings."""
    return ExecutionPlan(Settings())


@pytest.fixture
def journal() -> list[str]:
    return []


@pytest.fixture
def make_handler(journal):
    """Factory for RecordingHandlers sharing the test's journal."""

    def _make(name: str) -> RecordingHandler:
        return RecordingHandler(name, journal)

    return _make
