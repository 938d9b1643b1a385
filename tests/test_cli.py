"""Test CLI commands."""

from pathlib import Path

import pytest
from click.testing import CliRunner

from devmigrate.cli import cli, snapshot_categories


@pytest.fixture
def cli_runner() -> CliRunner:
    """Return a CLI runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def no_tools(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every command on a machine with no external tools on PATH."""
    empty = tmp_path / "empty_bin"
    empty.mkdir()
    monkeypatch.setenv("PATH", str(empty))
    monkeypatch.setenv("SHELL", "/bin/bash")


def snapshots_in(home: Path) -> list:
    return sorted(home.glob("mac_migration_backup_*"))


def test_backup(cli_runner: CliRunner, populated_home: Path) -> None:
    """Test backup command."""
    result = cli_runner.invoke(cli, ["backup"])
    assert result.exit_code == 0
    assert "Backup created at" in result.output

    (snapshot,) = snapshots_in(populated_home)
    assert (snapshot / ".vimrc").read_text() == "set number\n"
    assert (snapshot / "restore.sh").exists()
    assert (snapshot / "README.md").exists()


def test_backup_succeeds_on_empty_home(cli_runner: CliRunner, home: Path) -> None:
    """Nothing to capture is not an error."""
    result = cli_runner.invoke(cli, ["backup"])
    assert result.exit_code == 0
    (snapshot,) = snapshots_in(home)
    assert "Skipping" in (snapshot / "migration.log").read_text()


def test_backup_with_bad_config(
    cli_runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("DEVMIGRATE_CONFIG", str(tmp_path / "missing.yaml"))
    result = cli_runner.invoke(cli, ["backup"])
    assert result.exit_code != 0
    assert "Error" in result.output


def test_list_without_snapshots(cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(cli, ["list"])
    assert result.exit_code == 0
    assert "No snapshots found" in result.output


def test_log_file_option(cli_runner: CliRunner, tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "debug.log"
    result = cli_runner.invoke(cli, ["--debug", "--log-file", str(log_file), "list"])
    assert result.exit_code == 0
    assert "Logging initialized (debug=True)" in log_file.read_text()


def test_list_command(cli_runner: CliRunner, populated_home: Path) -> None:
    """Test list command."""
    result = cli_runner.invoke(cli, ["backup"])
    assert result.exit_code == 0

    result = cli_runner.invoke(cli, ["list"])
    assert result.exit_code == 0
    assert "Available Snapshots" in result.output


def test_snapshot_categories(snapshot: Path) -> None:
    (snapshot / ".vimrc").write_text("")
    (snapshot / "python").mkdir()
    assert snapshot_categories(snapshot) == ["Vim configuration", "Python configuration"]


def test_restore_exit(cli_runner: CliRunner, snapshot: Path, home: Path) -> None:
    (snapshot / ".vimrc").write_text("set number\n")
    result = cli_runner.invoke(cli, ["restore", str(snapshot)], input="0\n")
    assert result.exit_code == 0
    assert "What would you like to restore?" in result.output
    assert not (home / ".vimrc").exists()


def test_restore_one_category(cli_runner: CliRunner, snapshot: Path, home: Path) -> None:
    (snapshot / ".vimrc").write_text("set number\n")
    result = cli_runner.invoke(cli, ["restore", str(snapshot)], input="4\n")
    assert result.exit_code == 0
    assert "Restore Summary" in result.output
    assert (home / ".vimrc").read_text() == "set number\n"


def test_restore_defaults_to_current_directory(
    cli_runner: CliRunner, snapshot: Path, home: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    (snapshot / ".gitconfig").write_text("[user]\n")
    monkeypatch.chdir(snapshot)
    result = cli_runner.invoke(cli, ["restore"], input="5\n")
    assert result.exit_code == 0
    assert (home / ".gitconfig").read_text() == "[user]\n"


def test_restore_not_a_snapshot(cli_runner: CliRunner, tmp_path: Path) -> None:
    """Test restore command on a directory without a snapshot."""
    result = cli_runner.invoke(cli, ["restore", str(tmp_path)])
    assert result.exit_code == 1
    assert "Error" in result.output
