"""Tests for the snapshot log and run outcomes."""

import re
from pathlib import Path

from devmigrate.core.logging import MigrationLog
from devmigrate.core.manifest import Category
from devmigrate.core.outcome import Outcome, RunSummary, Status

LINE = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} - (INFO|WARNING|ERROR) - .+$")


def test_log_line_format(tmp_path: Path) -> None:
    path = tmp_path / "migration.log"
    with MigrationLog(path) as log:
        log.info("Backing up Vim configuration")
        log.skip("/Users/me/.vimrc", "does not exist")
        log.error("Failed to export Brewfile")

    lines = path.read_text().splitlines()
    assert len(lines) == 3
    assert all(LINE.match(line) for line in lines)
    assert lines[0].endswith(" - INFO - Backing up Vim configuration")
    assert lines[1].endswith(" - WARNING - Skipping /Users/me/.vimrc: does not exist")
    assert lines[2].endswith(" - ERROR - Failed to export Brewfile")
    assert log.lines == [
        "INFO - Backing up Vim configuration",
        "WARNING - Skipping /Users/me/.vimrc: does not exist",
        "ERROR - Failed to export Brewfile",
    ]


def test_log_appends(tmp_path: Path) -> None:
    """A restore run appends to the log the backup wrote."""
    path = tmp_path / "migration.log"
    with MigrationLog(path) as log:
        log.info("backup")
    with MigrationLog(path) as log:
        log.info("restore")

    lines = path.read_text().splitlines()
    assert [line.rsplit(" - ", 1)[1] for line in lines] == ["backup", "restore"]


def test_logs_do_not_share_files(tmp_path: Path) -> None:
    first = MigrationLog(tmp_path / "a" / "migration.log")
    second = MigrationLog(tmp_path / "b" / "migration.log")
    first.info("only in a")
    second.info("only in b")
    first.close()
    second.close()

    assert "only in b" not in (tmp_path / "a" / "migration.log").read_text()
    assert "only in a" not in (tmp_path / "b" / "migration.log").read_text()


def test_run_summary_groups_by_category() -> None:
    summary = RunSummary()
    summary.add(Outcome.failed(Category.RUNTIME, "pip3 packages", "exit 1"))
    summary.add(Outcome.captured(Category.SHELL, ".bashrc"))
    summary.add(Outcome.skipped(Category.SHELL, ".zshrc", "does not exist"))

    assert list(summary.by_category()) == [Category.SHELL, Category.RUNTIME]
    assert [o.subject for o in summary.skipped] == [".zshrc"]
    assert summary.has_failures
    assert not summary.failed[0].ok
    assert summary.captured[0].ok
    assert summary.failed[0].status is Status.FAILED
