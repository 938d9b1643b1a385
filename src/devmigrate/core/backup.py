"""Backup functionality for a development environment.

This module captures the manifest into a fresh, timestamped snapshot
directory. Every entry is captured independently: a missing file or a
missing executable is logged and skipped, a failing command is logged and
reported, and the run always carries on to the next entry. A partial
backup is still a useful backup.
"""

from __future__ import annotations

import logging
import re
import shutil
import stat
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from rich.console import Console

from . import artifacts
from .commands import CommandRunner
from .config import Config
from .context import SNAPSHOT_LOG_NAME, MigrationContext
from .environments import (
    environments_to_export,
    find_python_aliases,
    find_virtualenvs,
    is_safe_env_name,
    parse_conda_env_list,
)
from .errors import CommandFailure, MigrationError, MissingSource
from .logging import MigrationLog
from .manifest import CaptureMethod, Category, ManifestEntry, build_manifest, entries_for
from .outcome import Outcome, RunSummary

logger = logging.getLogger(__name__)

SNAPSHOT_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

PRIVATE_KEY_MARKER = re.compile(rb"-----(BEGIN|END) [A-Z0-9 ]*PRIVATE KEY-----")
SSH_SNAPSHOT_DIR = ".ssh"


@dataclass
class BackupResult:
    """A finished backup run."""

    snapshot: Path
    summary: RunSummary


def capture_entry(entry: ManifestEntry, ctx: MigrationContext) -> Outcome:
    """Capture one manifest entry into the snapshot."""
    if entry.sensitive:
        return _capture_listing(entry, ctx)
    if entry.capture is CaptureMethod.EXPORT:
        return _capture_export(entry, ctx)
    return _capture_copy(entry, ctx)


def _capture_copy(entry: ManifestEntry, ctx: MigrationContext) -> Outcome:
    source = ctx.home_path(entry.source)
    if not source.exists():
        ctx.log.skip(str(source), "does not exist")
        return Outcome.skipped(entry.category, entry.source, "does not exist")

    destination = ctx.snapshot_path(entry.snapshot_path)
    ctx.log.info(f"Backing up {source}")
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        if source.is_dir():
            shutil.copytree(source, destination, symlinks=True)
        else:
            shutil.copy2(source, destination)
    except OSError as e:
        ctx.log.error(f"Error backing up {source}: {e}")
        return Outcome.failed(entry.category, entry.source, str(e))

    if _inside_ssh_dir(entry.snapshot_path):
        offending = find_private_keys(destination)
        if offending:
            _remove(destination)
            reason = f"contains private key material ({', '.join(p.name for p in offending)})"
            ctx.log.error(f"Refusing to keep {source} in the snapshot: {reason}")
            return Outcome.failed(entry.category, entry.source, reason)

    return Outcome.captured(entry.category, entry.source)


def _capture_export(entry: ManifestEntry, ctx: MigrationContext) -> Outcome:
    executable = entry.executable
    if executable and not ctx.runner.available(executable):
        reason = f"{executable} not installed"
        ctx.log.skip(entry.snapshot_path, reason)
        return Outcome.skipped(entry.category, entry.snapshot_path, reason)

    output = ctx.snapshot_path(entry.snapshot_path)
    command = entry.render_command(str(output))
    ctx.log.info(f"Exporting {entry.snapshot_path} ({' '.join(command)})")
    try:
        if entry.writes_own_output:
            output.parent.mkdir(parents=True, exist_ok=True)
            ctx.runner.run(command)
        else:
            ctx.runner.run(command, stdout_path=output, merge_stderr=entry.merge_stderr)
    except MissingSource as e:
        ctx.log.skip(entry.snapshot_path, str(e))
        return Outcome.skipped(entry.category, entry.snapshot_path, str(e))
    except CommandFailure as e:
        _remove(output)
        ctx.log.error(f"Failed to export {entry.snapshot_path}: {e}")
        return Outcome.failed(entry.category, entry.snapshot_path, str(e))

    return Outcome.captured(entry.category, entry.snapshot_path)


def _capture_listing(entry: ManifestEntry, ctx: MigrationContext) -> Outcome:
    source = ctx.home_path(entry.source)
    if not source.is_dir():
        ctx.log.skip(str(source), "does not exist")
        return Outcome.skipped(entry.category, entry.snapshot_path, "does not exist")

    output = ctx.snapshot_path(entry.snapshot_path)
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(directory_listing(source))
    except OSError as e:
        ctx.log.error(f"Error listing {source}: {e}")
        return Outcome.failed(entry.category, entry.snapshot_path, str(e))

    ctx.log.info(f"{source} found. For security, its files are not copied.")
    ctx.log.info(f"Check {output} for a list of files to transfer manually.")
    return Outcome.captured(entry.category, entry.snapshot_path)


def directory_listing(directory: Path) -> str:
    """Describe a directory's entries without reading any of them."""
    lines = [f"Listing of {directory}"]
    for path in sorted(directory.iterdir(), key=lambda p: p.name):
        info = path.lstat()
        modified = datetime.fromtimestamp(info.st_mtime).strftime("%Y-%m-%d %H:%M")
        lines.append(
            f"{stat.filemode(info.st_mode)} {info.st_size:>10} {modified} {path.name}"
        )
    return "\n".join(lines) + "\n"


def find_private_keys(path: Path) -> List[Path]:
    """Return the files at or under ``path`` that hold private key markers."""
    candidates = [p for p in path.rglob("*") if p.is_file()] if path.is_dir() else [path]
    offending = []
    for candidate in candidates:
        try:
            if PRIVATE_KEY_MARKER.search(candidate.read_bytes()):
                offending.append(candidate)
        except OSError:
            continue
    return offending


def _inside_ssh_dir(snapshot_path: str) -> bool:
    return Path(snapshot_path).parts[:1] == (SSH_SNAPSHOT_DIR,)


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path, ignore_errors=True)
    elif path.exists() or path.is_symlink():
        path.unlink()


def record_miniconda_path(ctx: MigrationContext) -> List[Outcome]:
    """Note where Miniconda lives so restore can offer to reinstall it there."""
    miniconda = ctx.config.miniconda_dir(ctx.home)
    if not miniconda.is_dir():
        return []
    (ctx.snapshot / "miniconda_path.txt").write_text(f"{miniconda}\n")
    ctx.log.info(f"Miniconda path recorded: {miniconda}")
    return [Outcome.captured(Category.SHELL, "miniconda_path.txt")]


def emit_ssh_helper(ctx: MigrationContext) -> List[Outcome]:
    """Write the manual key copy helper next to, not inside, the SSH folder."""
    if not ctx.home_path(".ssh").is_dir():
        return []
    artifacts.write_ssh_helper(ctx.snapshot)
    ctx.log.info(f"SSH key copy helper written to {artifacts.SSH_HELPER_NAME}")
    return [Outcome.captured(Category.SSH, artifacts.SSH_HELPER_NAME)]


def capture_conda_environments(ctx: MigrationContext) -> List[Outcome]:
    """Export every named conda environment, base included, to its own file."""
    category = Category.RUNTIME
    listing_name = "python/conda_environments.txt"
    if not ctx.runner.available("conda"):
        ctx.log.skip("conda environments", "conda not installed")
        return [Outcome.skipped(category, listing_name, "conda not installed")]

    listing = ctx.snapshot_path(listing_name)
    try:
        ctx.runner.run(["conda", "env", "list"], stdout_path=listing)
    except (CommandFailure, MissingSource) as e:
        _remove(listing)
        ctx.log.error(f"Failed to list conda environments: {e}")
        return [Outcome.failed(category, listing_name, str(e))]

    outcomes = [Outcome.captured(category, listing_name)]
    ctx.log.info("Conda environments list backed up")

    environments = parse_conda_env_list(listing.read_text())
    for env in environments:
        if env.name is None:
            ctx.log.skip(f"conda environment at {env.path}", "it has no name")
            outcomes.append(Outcome.skipped(category, env.path, "unnamed conda environment"))

    ctx.log.info("Exporting conda environments (this may take a while)")
    envs_dir = ctx.snapshot_path("python/conda_envs")
    envs_dir.mkdir(parents=True, exist_ok=True)
    for name in environments_to_export(environments):
        if not is_safe_env_name(name):
            ctx.log.skip(f"conda environment {name!r}", "not a usable file name")
            outcomes.append(Outcome.skipped(category, name, "unusable environment name"))
            continue
        descriptor = envs_dir / f"{name}.yml"
        subject = f"python/conda_envs/{descriptor.name}"
        try:
            ctx.runner.run(["conda", "env", "export", "-n", name], stdout_path=descriptor)
        except (CommandFailure, MissingSource) as e:
            _remove(descriptor)
            ctx.log.error(f"Failed to export conda environment {name}: {e}")
            outcomes.append(Outcome.failed(category, subject, str(e)))
            continue
        ctx.log.info(f"Exported conda environment: {name}")
        outcomes.append(Outcome.captured(category, subject))
    return outcomes


def capture_python_aliases(ctx: MigrationContext) -> List[Outcome]:
    path = ctx.snapshot_path("python/python_aliases.txt")
    path.parent.mkdir(parents=True, exist_ok=True)
    aliases = find_python_aliases(ctx.home)
    path.write_text("".join(f"{line}\n" for line in aliases))
    return [Outcome.captured(Category.RUNTIME, "python/python_aliases.txt")]


def capture_virtualenvs(ctx: MigrationContext) -> List[Outcome]:
    path = ctx.snapshot_path("python/virtualenv_dirs.txt")
    path.parent.mkdir(parents=True, exist_ok=True)
    found = find_virtualenvs(ctx.home, ctx.config.virtualenv_depth)
    # The snapshot itself lives under home; never list it
    lines = [str(p) for p in found if ctx.snapshot not in p.parents]
    path.write_text("".join(f"{line}\n" for line in lines))
    return [Outcome.captured(Category.RUNTIME, "python/virtualenv_dirs.txt")]


Collector = Callable[[MigrationContext], List[Outcome]]

COLLECTORS: Dict[Category, List[Collector]] = {
    Category.SHELL: [record_miniconda_path],
    Category.SSH: [emit_ssh_helper],
    Category.RUNTIME: [capture_conda_environments, capture_python_aliases, capture_virtualenvs],
}


class BackupManager:
    """Creates snapshots of the development environment.

    Attributes:
        config (Config): Configuration.
        home (Path): Home directory whose environment is captured.
        runner (CommandRunner): Runs export commands.
        manifest (List[ManifestEntry]): Entries to capture, in order.
    """

    def __init__(
        self,
        config: Config,
        home: Optional[Path] = None,
        runner: Optional[CommandRunner] = None,
        console: Optional[Console] = None,
        clock: Callable[[], datetime] = datetime.now,
        manifest: Optional[List[ManifestEntry]] = None,
    ) -> None:
        self.config = config
        self.home = Path(home) if home is not None else Path.home()
        self.runner = runner or CommandRunner()
        self.console = console or Console()
        self.clock = clock
        self.manifest = manifest if manifest is not None else build_manifest(config)

    @property
    def snapshot_root(self) -> Path:
        return self.config.snapshot_dir(self.home)

    def snapshot_name(self, when: datetime) -> str:
        return f"{self.config.snapshot_prefix}_backup_{when.strftime(SNAPSHOT_TIMESTAMP_FORMAT)}"

    def create_snapshot_dir(self) -> Path:
        """Create a new, empty snapshot directory.

        A snapshot is never reused: if one already exists for the current
        second, wait for the next second.
        """
        self.snapshot_root.mkdir(parents=True, exist_ok=True)
        while True:
            path = self.snapshot_root / self.snapshot_name(self.clock())
            try:
                path.mkdir()
                return path
            except FileExistsError:
                logger.debug("Snapshot %s already exists, waiting", path)
                time.sleep(0.2)

    def backup(self) -> BackupResult:
        """Capture every manifest entry into a new snapshot.

        Returns:
            BackupResult: The snapshot directory and the outcome of every step.
        """
        snapshot = self.create_snapshot_dir()
        summary = RunSummary()
        self.console.print(f"[bold]Backup path: {snapshot}")

        with MigrationLog(snapshot / SNAPSHOT_LOG_NAME) as log:
            ctx = MigrationContext(
                home=self.home,
                snapshot=snapshot,
                config=self.config,
                log=log,
                runner=self.runner,
            )
            log.info("Starting Mac development environment migration backup")
            log.info(f"Backup directory: {snapshot}")

            for category in Category:
                summary.extend(self.backup_category(category, ctx))

            artifacts.write_restore_script(snapshot)
            artifacts.write_readme(
                snapshot, summary, taken=self.clock().strftime("%Y-%m-%d %H:%M:%S")
            )
            log.info("README.md created with detailed instructions")

            if not summary.captured:
                self.console.print("[yellow]Warning: Nothing was backed up")
            if summary.has_failures:
                log.warning(
                    f"Backup completed with {len(summary.failed)} failed item(s); "
                    "see the lines above"
                )
            else:
                log.info("Backup completed successfully!")
            log.info("To restore on your new Mac:")
            log.info(f"1. Copy the {snapshot} directory to your new Mac")
            log.info(f"2. Run the {artifacts.RESTORE_SCRIPT_NAME} script inside that directory")

        return BackupResult(snapshot, summary)

    def backup_category(self, category: Category, ctx: MigrationContext) -> List[Outcome]:
        """Capture one category: its manifest entries, then its collectors."""
        ctx.log.info(f"Backing up {category.label}")
        outcomes = [capture_entry(entry, ctx) for entry in entries_for(self.manifest, category)]
        for collector in COLLECTORS.get(category, []):
            try:
                outcomes.extend(collector(ctx))
            except (MigrationError, OSError) as e:
                ctx.log.error(f"Backing up {category.label} failed: {e}")
                outcomes.append(Outcome.failed(category, collector.__name__, str(e)))
        return outcomes

    def list_snapshots(self) -> List[Path]:
        """List snapshot directories under the snapshot root, newest first."""
        root = self.snapshot_root
        if not root.exists():
            return []
        prefix = f"{self.config.snapshot_prefix}_backup_"
        snapshots = [
            d
            for d in root.iterdir()
            if d.is_dir() and d.name.startswith(prefix) and (d / SNAPSHOT_LOG_NAME).exists()
        ]
        snapshots.sort(key=lambda p: p.name, reverse=True)
        return snapshots
