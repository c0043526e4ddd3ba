"""
Pytest configuration for console tests.

Why: Force AnyIO to use the asyncio backend; the console core runs on a
single asyncio loop and schedules reference lookups with asyncio tasks.
"""
import os
import sys
from pathlib import Path

import pytest

# Ensure the package root and test helpers are importable without installation
REPO_ROOT = Path(__file__).resolve().parents[2]
TESTS_DIR = REPO_ROOT / "console" / "tests"
for p in (str(REPO_ROOT), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

from console.config import ConsoleSettings  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(tmp_path: Path) -> ConsoleSettings:
    """Settings isolated from the developer environment and any `.env` file."""
    return ConsoleSettings(
        _env_file=None,
        environment="dev",
        api_base_url="http://api.test/api",
        session_file=tmp_path / "session.json",
    )


@pytest.fixture(autouse=True)
def _clear_console_env(monkeypatch: pytest.MonkeyPatch):
    """Drop CONSOLE_* variables so settings always start from defaults."""
    for key in list(os.environ):
        if key.startswith("CONSOLE_"):
            monkeypatch.delenv(key, raising=False)
    yield
