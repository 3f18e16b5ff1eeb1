"""
Unit tests for CLI commands.
"""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import yaml
from typer.testing import CliRunner

from botmaid import __version__
from botmaid.cli.app import app
from botmaid.cli.commands.config import mask_secrets
from botmaid.platforms.adapters.cli import CLIAdapter
from botmaid.platforms.handlers import EchoHandler


def _config_file(directory: Path, data: dict) -> Path:
    path = directory / "bot.yaml"
    path.write_text(yaml.dump(data), encoding="utf-8")
    return path


def test_version(cli_runner: CliRunner) -> None:
    """Test --version flag."""
    result = cli_runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_help(cli_runner: CliRunner) -> None:
    """Test --help flag."""
    result = cli_runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "botmaid" in result.stdout
    assert "config" in result.stdout
    assert "platforms" in result.stdout


def test_mask_secrets() -> None:
    """Test that tokens are masked unless they are environment references."""
    masked = mask_secrets(
        {
            "telegram": {"bot_token": "123:abc", "poll_timeout": 60},
            "onebot": {"access_token": "${ONEBOT_TOKEN}", "schema": "raw"},
            "cli": {"bot_token": ""},
        }
    )

    assert masked["telegram"] == {"bot_token": "********", "poll_timeout": 60}
    assert masked["onebot"]["access_token"] == "${ONEBOT_TOKEN}"
    assert masked["cli"]["bot_token"] == ""


class TestConfigCommands:
    """Tests for the config command group."""

    def test_show_masks_secrets(self, cli_runner: CliRunner, botmaid_home, temp_dir, sample_config) -> None:
        """Test that config show never prints a literal token."""
        path = _config_file(temp_dir, sample_config)

        result = cli_runner.invoke(app, ["config", "show", "platforms.onebot", "--config", str(path)])

        assert result.exit_code == 0
        assert "s3cret" not in result.stdout
        assert "********" in result.stdout

    def test_show_json(self, cli_runner: CliRunner, botmaid_home) -> None:
        """Test JSON output of a section."""
        result = cli_runner.invoke(app, ["config", "show", "general", "--json"])
        assert result.exit_code == 0
        assert "log_level" in result.stdout

    def test_show_unknown_section(self, cli_runner: CliRunner, botmaid_home) -> None:
        """Test that an unknown section is an error."""
        result = cli_runner.invoke(app, ["config", "show", "nope"])
        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_path(self, cli_runner: CliRunner, botmaid_home) -> None:
        """Test listing configuration sources."""
        result = cli_runner.invoke(app, ["config", "path"])
        assert result.exit_code == 0
        assert "global" in result.stdout
        assert "project" in result.stdout

    def test_validate_file(self, cli_runner: CliRunner, botmaid_home, temp_dir, sample_config) -> None:
        """Test validating a single file."""
        path = _config_file(temp_dir, sample_config)
        result = cli_runner.invoke(app, ["config", "validate", "--file", str(path)])
        assert result.exit_code == 0
        assert "Valid" in result.stdout

    def test_validate_invalid_file(self, cli_runner: CliRunner, botmaid_home, temp_dir) -> None:
        """Test that schema errors are reported with their location."""
        path = _config_file(temp_dir, {"platforms": {"onebot": {"schema": "xml"}}})
        result = cli_runner.invoke(app, ["config", "validate", "--file", str(path)])
        assert result.exit_code == 1
        assert "schema" in result.stdout


class TestPlatformsCommands:
    """Tests for the platforms command group."""

    def test_list(self, cli_runner: CliRunner, botmaid_home, temp_dir, sample_config) -> None:
        """Test the platform table."""
        path = _config_file(temp_dir, sample_config)
        result = cli_runner.invoke(app, ["platforms", "list", "--config", str(path)])
        assert result.exit_code == 0
        assert "Telegram" in result.stdout
        assert "OneBot" in result.stdout
        assert "Enabled" in result.stdout

    def test_status_without_platforms(self, cli_runner: CliRunner, botmaid_home) -> None:
        """Test status when nothing is enabled."""
        result = cli_runner.invoke(app, ["platforms", "status"])
        assert result.exit_code == 0
        assert "No platforms configured" in result.stdout

    def test_start_without_platforms(self, cli_runner: CliRunner, botmaid_home) -> None:
        """Test that start refuses to run with nothing enabled."""
        result = cli_runner.invoke(app, ["platforms", "start"])
        assert result.exit_code == 1
        assert "No platforms configured" in result.stdout

    def test_start_onebot_without_schema(self, cli_runner: CliRunner, botmaid_home, temp_dir) -> None:
        """Test that OneBot without a wire schema is a configuration error."""
        path = _config_file(temp_dir, {"platforms": {"onebot": {"enable": True}}})
        result = cli_runner.invoke(app, ["platforms", "start", "--config", str(path)])
        assert result.exit_code == 1
        assert "schema" in result.stdout

    def test_start_unknown_platform(self, cli_runner: CliRunner, botmaid_home) -> None:
        """Test that an unknown --platform is rejected."""
        result = cli_runner.invoke(app, ["platforms", "start", "--platform", "irc"])
        assert result.exit_code == 1
        assert "irc" in result.stdout

    def test_start_bad_handler(self, cli_runner: CliRunner, botmaid_home, temp_dir) -> None:
        """Test that an unusable --handler is reported before anything starts."""
        path = _config_file(temp_dir, {"platforms": {"cli": {"enable": True}}})
        result = cli_runner.invoke(
            app, ["platforms", "start", "--config", str(path), "--handler", "no_colon"]
        )
        assert result.exit_code == 1
        assert "Cannot load handler" in result.stdout

    def test_start_runs_router(self, cli_runner: CliRunner, botmaid_home, temp_dir) -> None:
        """Test that start hands the built adapters and the echo handler to the router."""
        path = _config_file(temp_dir, {"platforms": {"cli": {"enable": True, "bot_id": "maid"}}})
        serve = AsyncMock()

        with patch("botmaid.cli.commands.platforms._serve", serve):
            result = cli_runner.invoke(app, ["platforms", "start", "--config", str(path)])

        assert result.exit_code == 0
        serve.assert_awaited_once()
        adapters, handler = serve.await_args.args
        assert [type(a) for a in adapters] == [CLIAdapter]
        assert isinstance(handler, EchoHandler)
