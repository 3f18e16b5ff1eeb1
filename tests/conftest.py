"""
Pytest configuration and fixtures for botmaid tests.
"""

import logging
import os
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
from typer.testing import CliRunner

from botmaid.platforms.adapters.mock import MockAdapter


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def botmaid_home(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Provide an isolated ~/.botmaid and working directory.

    BOTMAID_* overrides from the real environment are removed so only what
    the test sets is applied.
    """
    for key in list(os.environ):
        if key.startswith("BOTMAID_"):
            monkeypatch.delenv(key)

    home = temp_dir / ".botmaid"
    home.mkdir()
    monkeypatch.setenv("BOTMAID_HOME", str(home))

    workdir = temp_dir / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)

    yield home


@pytest.fixture
def sample_config() -> dict:
    """Provide a sample configuration dictionary."""
    return {
        "general": {"log_level": "DEBUG"},
        "platforms": {
            "enable": True,
            "cli": {"enable": True, "bot_id": "maid"},
            "telegram": {
                "enable": True,
                "bot_token": "${TEST_TELEGRAM_TOKEN}",
                "poll_timeout": 30,
            },
            "onebot": {
                "enable": True,
                "host": "10.0.0.2",
                "schema": "segments",
                "access_token": "s3cret",
            },
        },
    }


@pytest.fixture
def mock_adapter() -> MockAdapter:
    """Provide a mock platform adapter."""
    return MockAdapter()


@pytest.fixture(autouse=True)
def reset_botmaid_logger() -> Generator[None, None, None]:
    """Undo CLI log setup so caplog keeps seeing botmaid records."""
    yield
    root_logger = logging.getLogger("botmaid")
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    root_logger.setLevel(logging.NOTSET)
    root_logger.propagate = True
