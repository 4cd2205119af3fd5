"""Tests for hcloud_config.cli."""

from __future__ import annotations

from typer.testing import CliRunner

from hcloud_config import __version__
from hcloud_config.cli import app, main

runner = CliRunner()


class TestHelp:
    def test_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("create-server-config", "create-service-config", "create-proxy-config"):
            assert command in result.output

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_server_config_options(self):
        result = runner.invoke(app, ["create-server-config", "--help"])
        assert "--destroy-on-errors" in result.output
        assert "--no-mask" in result.output


class TestCommands:
    def test_server_config_dry_run(self, project, monkeypatch):
        monkeypatch.chdir(project)
        result = runner.invoke(app, ["create-server-config", "--dry-run"])
        assert result.exit_code == 0, result.output
        assert (project / "dist" / "hcloud_provider.tf").is_file()

    def test_custom_output(self, project, monkeypatch):
        monkeypatch.chdir(project)
        result = runner.invoke(app, ["create-server-config", "--dry-run", "-o", "build"])
        assert result.exit_code == 0, result.output
        assert (project / "build" / "hcloud_server_db-1.tf").is_file()

    def test_missing_config_exits_with_failure(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(app, ["create-server-config", "--dry-run"])
        assert result.exit_code == 1
        assert "does not exist" in " ".join(result.output.split())

    def test_service_config_without_state(self, project, monkeypatch):
        monkeypatch.chdir(project)
        result = runner.invoke(app, ["create-service-config", "--dry-run"])
        assert result.exit_code == 1

    def test_main_returns_exit_code(self, project, monkeypatch):
        monkeypatch.chdir(project)
        monkeypatch.setattr("sys.argv", ["hcloud-config", "create-server-config", "--dry-run"])
        assert main() == 0
