"""External command execution for devmigrate."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence

from .errors import CommandFailure, MissingSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Result of a finished command."""

    command: Sequence[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Runs external commands on behalf of the executors.

    Commands run synchronously with no timeout. Output is either captured,
    redirected to a file, or left attached to the terminal so the operator
    can follow long installs.

    Attributes:
        env: Environment passed to child processes. ``PATH`` in it decides
            which executables are available.
    """

    def __init__(self, env: Optional[Mapping[str, str]] = None) -> None:
        self.env = dict(os.environ if env is None else env)

    def which(self, name: str) -> Optional[str]:
        """Return the full path of ``name`` if it is on ``PATH``."""
        return shutil.which(name, path=self.env.get("PATH"))

    def available(self, name: str) -> bool:
        return self.which(name) is not None

    def run(
        self,
        args: Sequence[str],
        stdout_path: Optional[Path] = None,
        merge_stderr: bool = False,
        capture: bool = True,
        check: bool = True,
        cwd: Optional[Path] = None,
    ) -> CommandResult:
        """Run a command.

        Args:
            args: Command and arguments.
            stdout_path: Write standard output to this file.
            merge_stderr: Send standard error to the same place as standard output.
            capture: Capture output instead of letting it reach the terminal.
                Ignored when ``stdout_path`` is given.
            check: Raise :class:`CommandFailure` on a non-zero exit status.
            cwd: Working directory for the command.

        Returns:
            The command result. ``stdout`` is empty when output went to a file
            or to the terminal.

        Raises:
            MissingSource: The executable is not on ``PATH``.
            CommandFailure: The command failed and ``check`` is set.
        """
        args = list(args)
        if self.which(args[0]) is None:
            raise MissingSource(args[0])

        logger.debug("Running: %s", " ".join(args))
        stderr_target = subprocess.STDOUT if merge_stderr else subprocess.PIPE
        try:
            if stdout_path is not None:
                stdout_path.parent.mkdir(parents=True, exist_ok=True)
                with open(stdout_path, "w") as out:
                    completed = subprocess.run(
                        args,
                        stdout=out,
                        stderr=stderr_target,
                        text=True,
                        env=self.env,
                        cwd=cwd,
                    )
            elif capture:
                completed = subprocess.run(
                    args,
                    stdout=subprocess.PIPE,
                    stderr=stderr_target,
                    text=True,
                    env=self.env,
                    cwd=cwd,
                )
            else:
                completed = subprocess.run(args, env=self.env, cwd=cwd)
        except OSError as e:
            raise CommandFailure(args, -1, str(e)) from e

        result = CommandResult(
            args,
            completed.returncode,
            (completed.stdout or "") if capture and stdout_path is None else "",
            completed.stderr or "",
        )
        if check and not result.ok:
            raise CommandFailure(args, result.returncode, result.stderr)
        return result
