"""
Shared test configuration.
It asserts expected behavior and guards against regressions in the corresponding component.
These tests are executed by `pytest` locally and in CI and should remain deterministic.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

TEST_ENV_DEFAULTS = {
    "PROJECT_NAME": "fleetops-test",
    "ENV": "test",
    "LOG_LEVEL": "INFO",
    "MONGODB_URI": "mongodb://localhost:27017",
    "MONGODB_DATABASE": "fleetops_test",
    "API_HOST": "0.0.0.0",
    "API_PORT": "8000",
    "JWT_SECRET": "test-secret",
    "API_AUTH_ENABLED": "false",
    "API_RATE_LIMIT_ENABLED": "false",
}

# The app module builds its config at import time, before fixtures run.
for _key, _value in TEST_ENV_DEFAULTS.items():
    os.environ.setdefault(_key, _value)


@pytest.fixture(autouse=True)
def base_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure required environment variables are present during tests."""

    for key, value in TEST_ENV_DEFAULTS.items():
        if os.getenv(key) is None:
            monkeypatch.setenv(key, value)
