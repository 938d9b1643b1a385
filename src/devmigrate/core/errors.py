"""Error kinds raised by devmigrate.

Only two kinds describe capture and restore problems: a missing source
(file, directory or executable) and a failed external command. Both are
converted to outcomes by the executors and never end the run.
"""

from pathlib import Path
from typing import Optional, Sequence


class MigrationError(Exception):
    """Base class for devmigrate errors."""


class MissingSource(MigrationError):
    """A file, directory or executable the manifest expects is not present."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"{path} does not exist")


class CommandFailure(MigrationError):
    """An external command returned a non-zero exit status."""

    def __init__(
        self, command: Sequence[str], returncode: int, stderr: Optional[str] = None
    ) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        message = f"Command '{' '.join(self.command)}' failed with exit status {returncode}"
        if self.stderr:
            message = f"{message}: {self.stderr}"
        super().__init__(message)


class InvalidSnapshot(MigrationError):
    """The directory given to the restore executor is not a snapshot."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"{path} is not a migration snapshot: {reason}")


class ConfigError(MigrationError, ValueError):
    """The configuration is malformed."""
