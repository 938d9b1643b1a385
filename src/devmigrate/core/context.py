"""Execution context shared by capture and restore routines."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict

from .commands import CommandRunner
from .config import Config
from .logging import MigrationLog
from .prompts import ConsoleDecisions, DecisionProvider

SNAPSHOT_LOG_NAME = "migration.log"


@dataclass
class MigrationContext:
    """Everything a capture or restore routine may touch.

    Attributes:
        home: Home directory of the operator on this machine.
        snapshot: Snapshot directory being written or read.
        config: Active configuration.
        log: The snapshot's log.
        runner: Runs external commands.
        decisions: Answers interactive questions.
        env: Environment variables, used for ``$SHELL``.
    """

    home: Path
    snapshot: Path
    config: Config
    log: MigrationLog
    runner: CommandRunner = field(default_factory=CommandRunner)
    decisions: DecisionProvider = field(default_factory=ConsoleDecisions)
    env: Dict[str, str] = field(default_factory=lambda: dict(os.environ))

    def home_path(self, relative: str) -> Path:
        return self.home / relative

    def snapshot_path(self, relative: str) -> Path:
        return self.snapshot / relative
