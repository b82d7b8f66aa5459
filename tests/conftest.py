"""Shared fixtures for persistlog tests."""

import tempfile
from pathlib import Path

import pytest

from persistlog.utils.config import reset_config


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def log_path(temp_dir):
    """Path to a log file that does not exist yet."""
    return temp_dir / "log.dat"


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Isolate tests from environment overrides and cached configuration."""
    for name in ("PLOG_PATH", "PLOG_STREAMING_RECOVERY", "LOG_LEVEL", "LOG_FORMAT"):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()
