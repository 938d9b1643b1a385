"""Logging configuration for devmigrate.

Two kinds of output are configured here:

- console logging for the whole package, through ``rich``, set up once by
  :func:`setup_logging`;
- the snapshot log, ``migration.log``, written by :class:`MigrationLog`.
  It is the only audit trail of a backup or restore run: one timestamped
  line per action, appended, never rewritten.

Example:
    ```python
    from devmigrate.core.logging import MigrationLog, setup_logging

    setup_logging(debug=True)

    with MigrationLog(snapshot / "migration.log") as log:
        log.info("Backing up Vim configuration")
        log.skip("/Users/me/.vimrc", "does not exist")
    ```
"""

import itertools
import logging
import sys
from pathlib import Path
from types import TracebackType
from typing import List, Optional, Type

from rich.console import Console
from rich.logging import RichHandler

# Create console for rich output
console = Console()

SNAPSHOT_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
SNAPSHOT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEBUG_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_log_ids = itertools.count()


def setup_logging(debug: bool = False, log_file: Optional[str] = None) -> None:
    """Set up logging configuration.

    Console output uses rich formatting, file output uses a plain format.

    Args:
        debug: Whether to enable debug logging (default: False).
        log_file: Optional path to a debug log file, in addition to the
            console. The path is expanded to handle ~ for home directory.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    # Remove existing handlers
    root_logger.handlers.clear()

    console_handler = RichHandler(
        console=console,
        show_path=debug,
        enable_link_path=debug,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=debug,
    )
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(logging.DEBUG)  # Always log debug to file
        file_handler.setFormatter(logging.Formatter(DEBUG_LOG_FORMAT))
        root_logger.addHandler(file_handler)

    logger = logging.getLogger(__name__)
    logger.debug("Logging initialized (debug=%s)", debug)
    if log_file:
        logger.debug("Log file: %s", log_file)

    def handle_exception(
        exc_type: Type[BaseException],
        exc_value: BaseException,
        exc_traceback: Optional[TracebackType],
    ) -> None:
        """Handle uncaught exceptions by logging them."""
        if issubclass(exc_type, KeyboardInterrupt):
            # Don't log keyboard interrupt
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return

        logger.critical(
            "Uncaught exception",
            exc_info=(exc_type, exc_value, exc_traceback),
        )

    sys.excepthook = handle_exception


class MigrationLog:
    """Append-only, timestamped log inside a snapshot.

    Each instance owns a private logger with a file handler on ``path``.
    Records also propagate to the ``devmigrate`` logger, so they reach the
    console once :func:`setup_logging` has run.

    Attributes:
        path: The log file.
        lines: Messages written through this instance, with their level
            name, in order.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.lines: List[str] = []
        self.path.parent.mkdir(parents=True, exist_ok=True)

        self._logger = logging.getLogger(f"devmigrate.snapshot.{next(_log_ids)}")
        self._logger.setLevel(logging.DEBUG)
        self._handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        self._handler.setFormatter(
            logging.Formatter(SNAPSHOT_LOG_FORMAT, datefmt=SNAPSHOT_DATE_FORMAT)
        )
        self._logger.addHandler(self._handler)

    def __enter__(self) -> "MigrationLog":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        self.close()

    def _write(self, level: int, message: str) -> None:
        self.lines.append(f"{logging.getLevelName(level)} - {message}")
        self._logger.log(level, message)

    def info(self, message: str) -> None:
        self._write(logging.INFO, message)

    def warning(self, message: str) -> None:
        self._write(logging.WARNING, message)

    def error(self, message: str) -> None:
        self._write(logging.ERROR, message)

    def skip(self, subject: str, reason: str) -> None:
        """Record a skipped item. Skips are warnings, never errors."""
        self._write(logging.WARNING, f"Skipping {subject}: {reason}")

    def close(self) -> None:
        self._handler.close()
        self._logger.removeHandler(self._handler)
