"""Restore functionality for a development environment snapshot.

The restore executor reads a snapshot produced by
:class:`~devmigrate.core.backup.BackupManager`, asks which category to
restore, and runs the matching routines. Files are copied back into the
home directory; anything already there is renamed aside to
``<name>.bak.<timestamp>`` first. Package managers and environment managers
are invoked against the captured manifests.

Every step is independent. A failure is logged with a WARNING or ERROR
line and the sequence moves on.
"""

from __future__ import annotations

import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from . import artifacts
from .commands import CommandRunner
from .config import Config
from .context import SNAPSHOT_LOG_NAME, MigrationContext
from .environments import (
    BASE_ENV,
    PYENV_INIT_LINES,
    PYTHON_ALIAS_LINES,
    append_lines,
    file_contains,
    miniconda_installer_name,
    shell_rc_file,
)
from .errors import CommandFailure, InvalidSnapshot, MigrationError, MissingSource
from .logging import MigrationLog
from .manifest import Category, ManifestEntry, RestoreMethod, build_manifest, entries_for
from .outcome import Outcome, RunSummary
from .prompts import ConsoleDecisions, DecisionProvider


SHADOW_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

EXIT_CHOICE = 0
EVERYTHING_CHOICE = 1


def shadow_path(destination: Path, when: Optional[datetime] = None) -> Path:
    """Free sidecar name for ``destination``: ``<name>.bak.<timestamp>``."""
    stamp = (when or datetime.now()).strftime(SHADOW_TIMESTAMP_FORMAT)
    candidate = destination.with_name(f"{destination.name}.bak.{stamp}")
    counter = 1
    while candidate.exists() or candidate.is_symlink():
        candidate = destination.with_name(f"{destination.name}.bak.{stamp}.{counter}")
        counter += 1
    return candidate


def move_aside(destination: Path) -> Path:
    """Rename an existing file or directory to its sidecar name."""
    aside = shadow_path(destination)
    destination.rename(aside)
    return aside


def restore_entry(entry: ManifestEntry, ctx: MigrationContext) -> Outcome:
    """Copy one entry from the snapshot back into the home directory."""
    if entry.restore is not RestoreMethod.COPY_BACK:
        raise ValueError(f"{entry.snapshot_path} is not restored by copying")

    source = ctx.snapshot_path(entry.snapshot_path)
    if not source.exists():
        ctx.log.warning(f"Warning: {source} does not exist in the snapshot, skipping")
        return Outcome.skipped(entry.category, entry.target, "not in snapshot")

    destination = ctx.home_path(entry.target)
    ctx.log.info(f"Restoring {source} to {destination}")
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        if destination.exists() or destination.is_symlink():
            aside = move_aside(destination)
            ctx.log.info(f"Existing {destination} saved as {aside.name}")
        if source.is_dir():
            shutil.copytree(source, destination, symlinks=True)
        else:
            shutil.copy2(source, destination)
    except OSError as e:
        ctx.log.error(f"Error restoring {destination}: {e}")
        return Outcome.failed(entry.category, entry.target, str(e))

    return Outcome.restored(entry.category, entry.target)


def copy_back(entries: Sequence[ManifestEntry], ctx: MigrationContext) -> List[Outcome]:
    return [restore_entry(e, ctx) for e in entries if e.restore is RestoreMethod.COPY_BACK]


def install_miniconda(ctx: MigrationContext, target: Path, category: Category) -> Outcome:
    """Download the Miniconda installer and install into ``target``.

    Any failure ends this step only.
    """
    subject = f"Miniconda ({target})"
    try:
        installer = miniconda_installer_name()
    except ValueError as e:
        ctx.log.error(str(e))
        return Outcome.failed(category, subject, str(e))

    url = ctx.config.get("miniconda_installer_url").format(installer=installer)
    ctx.log.info("Downloading Miniconda installer...")
    with tempfile.TemporaryDirectory() as tmp:
        download = Path(tmp) / installer
        try:
            ctx.runner.run(["curl", "-fsSL", "-o", str(download), url], capture=False)
        except (CommandFailure, MissingSource) as e:
            ctx.log.error(f"Failed to download Miniconda installer: {e}")
            return Outcome.failed(category, subject, str(e))
        try:
            ctx.runner.run(["bash", str(download), "-b", "-p", str(target)], capture=False)
        except (CommandFailure, MissingSource) as e:
            ctx.log.error(f"Failed to install Miniconda: {e}")
            return Outcome.failed(category, subject, str(e))

    ctx.log.info(f"Miniconda installed successfully at {target}")
    return Outcome.restored(category, subject)


def restore_terminal(entries: Sequence[ManifestEntry], ctx: MigrationContext) -> List[Outcome]:
    ctx.log.info("Restoring iTerm2 settings")
    outcomes = copy_back(entries, ctx)
    if any(o.ok for o in outcomes):
        ctx.log.info("iTerm2 settings restored. You may need to restart iTerm2.")
    return outcomes


def restore_shell(entries: Sequence[ManifestEntry], ctx: MigrationContext) -> List[Outcome]:
    ctx.log.info("Restoring shell configuration files")
    outcomes = copy_back(entries, ctx)

    recorded = ctx.snapshot_path("miniconda_path.txt")
    if recorded.is_file():
        old_path = Path(recorded.read_text().strip())
        ctx.log.info(f"Note: Your old system had Miniconda installed at: {old_path}")
        if old_path.is_dir():
            ctx.log.info(f"Miniconda found at expected path: {old_path}")
        else:
            ctx.log.warning("Miniconda not found at the same path on this system")
            ctx.log.warning("You may need to install Miniconda and update your .bash_profile")
            if ctx.decisions.confirm("Would you like to download and install Miniconda now?"):
                outcomes.append(install_miniconda(ctx, old_path, Category.SHELL))

    ctx.log.info("Shell configuration files restored. You may need to restart your terminal.")
    return outcomes


def restore_files(entries: Sequence[ManifestEntry], ctx: MigrationContext) -> List[Outcome]:
    return copy_back(entries, ctx)


def restore_packages(entries: Sequence[ManifestEntry], ctx: MigrationContext) -> List[Outcome]:
    category = Category.PACKAGES
    ctx.log.info("Restoring Homebrew packages")
    if not ctx.runner.available("brew"):
        ctx.log.warning("Homebrew not installed. Please install it first:")
        ctx.log.warning(ctx.config.get("homebrew_install_command"))
        return [Outcome.skipped(category, "Brewfile", "brew not installed")]

    brewfile = ctx.snapshot_path("Brewfile")
    if brewfile.is_file():
        ctx.log.info("Installing packages from Brewfile")
        try:
            ctx.runner.run(["brew", "bundle", f"--file={brewfile}"], capture=False)
        except (CommandFailure, MissingSource) as e:
            ctx.log.error(f"brew bundle failed: {e}")
            return [Outcome.failed(category, "Brewfile", str(e))]
        return [Outcome.restored(category, "Brewfile")]

    ctx.log.warning("No Brewfile found, skipping")
    return _install_from_lists(ctx)


def _install_from_lists(ctx: MigrationContext) -> List[Outcome]:
    """Install packages one by one from the flat formula and cask lists."""
    outcomes = []
    for list_name, extra in (("brew_formulas.txt", []), ("brew_casks.txt", ["--cask"])):
        path = ctx.snapshot_path(list_name)
        if not path.is_file():
            continue
        names = [line.strip() for line in path.read_text().splitlines() if line.strip()]
        if not names or not ctx.decisions.confirm(
            f"Install the {len(names)} packages listed in {list_name} one by one?"
        ):
            outcomes.append(Outcome.skipped(Category.PACKAGES, list_name, "declined"))
            continue
        for name in names:
            try:
                ctx.runner.run(["brew", "install", *extra, name], capture=False)
            except (CommandFailure, MissingSource) as e:
                ctx.log.warning(f"Failed to install {name}: {e}")
                outcomes.append(Outcome.failed(Category.PACKAGES, name, str(e)))
                continue
            outcomes.append(Outcome.restored(Category.PACKAGES, name))
    return outcomes


def restore_ssh(entries: Sequence[ManifestEntry], ctx: MigrationContext) -> List[Outcome]:
    ctx.log.info("Restoring SSH configuration")
    outcomes = copy_back(entries, ctx)
    for outcome in outcomes:
        if outcome.ok:
            restored = ctx.home_path(outcome.subject)
            restored.chmod(0o600)
            restored.parent.chmod(0o700)

    ctx.log.warning("For security, SSH keys must be manually transferred.")
    ctx.log.info(
        f"Check {ctx.snapshot_path('.ssh/keys_list.txt')} for a list of keys to transfer, "
        f"and use {artifacts.SSH_HELPER_NAME} on the old machine to copy them."
    )
    return outcomes


def restore_runtime(entries: Sequence[ManifestEntry], ctx: MigrationContext) -> List[Outcome]:
    ctx.log.info("Starting Python configuration restoration")
    outcomes: List[Outcome] = []
    for step in (
        _ensure_python3,
        _ensure_python_alias,
        _restore_conda_environments,
        _offer_pip_replay,
        _offer_pyenv,
    ):
        outcomes.extend(step(ctx))
    ctx.log.info("Python configuration restoration completed")
    ctx.log.info("You may need to restart your terminal for Python aliases to take effect")
    return outcomes


def _ensure_python3(ctx: MigrationContext) -> List[Outcome]:
    category = Category.RUNTIME
    if ctx.runner.available("python3"):
        version = ctx.runner.run(["python3", "--version"], merge_stderr=True, check=False)
        ctx.log.info(f"Python 3 is already installed: {version.stdout.strip()}")
        return []

    ctx.log.warning("Python 3 not found on this system")
    if not ctx.decisions.confirm("Would you like to install Python 3 via Homebrew?"):
        return [Outcome.skipped(category, "python3", "declined")]
    if not ctx.runner.available("brew"):
        ctx.log.error("Homebrew not installed. Please install Homebrew first.")
        return [Outcome.failed(category, "python3", "brew not installed")]

    ctx.log.info("Installing Python 3 via Homebrew...")
    try:
        ctx.runner.run(["brew", "install", "python"], capture=False)
    except (CommandFailure, MissingSource) as e:
        ctx.log.error(f"Failed to install Python 3: {e}")
        return [Outcome.failed(category, "python3", str(e))]
    return [Outcome.restored(category, "python3")]


def _version_of(ctx: MigrationContext, executable: str) -> str:
    result = ctx.runner.run([executable, "--version"], merge_stderr=True, check=False)
    return result.stdout.strip()


def _ensure_python_alias(ctx: MigrationContext) -> List[Outcome]:
    if not ctx.runner.available("python3"):
        return []
    if ctx.runner.available("python") and _version_of(ctx, "python") == _version_of(
        ctx, "python3"
    ):
        ctx.log.info("Python already points to Python 3")
        return []

    ctx.log.info("Setting up python -> python3 alias")
    target = shell_rc_file(ctx.home, ctx.env)
    if file_contains(target, "alias python="):
        ctx.log.info(f"Python alias already exists in {target}")
        return []
    try:
        append_lines(target, PYTHON_ALIAS_LINES)
    except OSError as e:
        ctx.log.error(f"Could not update {target}: {e}")
        return [Outcome.failed(Category.RUNTIME, target.name, str(e))]
    ctx.log.info(f"Added python=python3 and pip=pip3 aliases to {target}")
    return [Outcome.restored(Category.RUNTIME, target.name)]


def _restore_conda_environments(ctx: MigrationContext) -> List[Outcome]:
    category = Category.RUNTIME
    envs_dir = ctx.snapshot_path("python/conda_envs")
    if not envs_dir.is_dir():
        return []

    outcomes: List[Outcome] = []
    conda = ctx.runner.which("conda")
    if conda is None:
        ctx.log.warning("conda not found on this system")
        target = ctx.config.miniconda_dir(ctx.home)
        if not ctx.decisions.confirm(
            f"conda is not installed. Would you like to install Miniconda at {target}?"
        ):
            return [Outcome.skipped(category, "conda environments", "conda not installed")]
        installed = install_miniconda(ctx, target, category)
        outcomes.append(installed)
        conda = ctx.runner.which(str(target / "bin" / "conda"))
        if not installed.ok or conda is None:
            ctx.log.error("conda is still unavailable; skipping conda environments")
            return outcomes

    ctx.log.info("Restoring conda environments")
    for descriptor in sorted(envs_dir.glob("*.yml")):
        name = descriptor.stem
        subject = f"conda environment {name}"
        if name == BASE_ENV:
            # base always exists; update it in place
            ctx.log.info("Updating base conda environment")
            command = [conda, "env", "update", "-n", BASE_ENV, "-f", str(descriptor)]
        else:
            ctx.log.info(f"Creating conda environment: {name}")
            command = [conda, "env", "create", "-f", str(descriptor)]
        try:
            ctx.runner.run(command, capture=False)
        except (CommandFailure, MissingSource) as e:
            ctx.log.warning(f"Failed to restore conda environment {name}: {e}")
            ctx.log.warning("You may need to create it manually")
            outcomes.append(Outcome.failed(category, subject, str(e)))
            continue
        outcomes.append(Outcome.restored(category, subject))
    return outcomes


def _offer_pip_replay(ctx: MigrationContext) -> List[Outcome]:
    category = Category.RUNTIME
    requirements = ctx.snapshot_path("python/pip3_packages.txt")
    if not requirements.is_file() or not ctx.runner.available("pip3"):
        return []

    ctx.log.info("Would you like to install pip packages from your old system?")
    ctx.log.warning("Note: This could take a while and might cause conflicts with conda")
    if not ctx.decisions.confirm("Install pip packages?"):
        return [Outcome.skipped(category, "pip3 packages", "declined")]

    ctx.log.info("Installing pip packages...")
    try:
        ctx.runner.run(["pip3", "install", "-r", str(requirements)], capture=False)
    except (CommandFailure, MissingSource) as e:
        ctx.log.warning(f"Some pip packages failed to install: {e}")
        return [Outcome.failed(category, "pip3 packages", str(e))]
    return [Outcome.restored(category, "pip3 packages")]


def _offer_pyenv(ctx: MigrationContext) -> List[Outcome]:
    category = Category.RUNTIME
    if not ctx.snapshot_path("python/.pyenv").is_dir() or ctx.runner.available("pyenv"):
        return []

    ctx.log.info("Pyenv configuration found in backup")
    if not ctx.decisions.confirm("Install pyenv?"):
        return [Outcome.skipped(category, "pyenv", "declined")]

    if ctx.runner.available("brew"):
        command = ["brew", "install", "pyenv"]
    else:
        ctx.log.info("Installing pyenv via curl...")
        command = ["bash", "-c", f"curl -fsSL {ctx.config.get('pyenv_installer_url')} | bash"]
    try:
        ctx.runner.run(command, capture=False)
    except (CommandFailure, MissingSource) as e:
        ctx.log.error(f"Failed to install pyenv: {e}")
        return [Outcome.failed(category, "pyenv", str(e))]

    outcomes = [Outcome.restored(category, "pyenv")]
    target = shell_rc_file(ctx.home, ctx.env)
    if not file_contains(target, "pyenv init"):
        append_lines(target, PYENV_INIT_LINES)
        ctx.log.info(f"Added pyenv initialization to {target}")
    return outcomes


Routine = Callable[[Sequence[ManifestEntry], MigrationContext], List[Outcome]]

ROUTINES: Dict[Category, Routine] = {
    Category.TERMINAL: restore_terminal,
    Category.SHELL: restore_shell,
    Category.EDITOR: restore_files,
    Category.VCS: restore_files,
    Category.PACKAGES: restore_packages,
    Category.SSH: restore_ssh,
    Category.RUNTIME: restore_runtime,
}


class RestoreManager:
    """Restores a snapshot onto this machine.

    Args:
        config: Configuration.
        snapshot: Snapshot directory to restore from.
        home: Home directory to restore into.
        runner: Runs package and environment managers.
        decisions: Answers menu and yes/no questions.
        env: Environment variables; ``$SHELL`` picks the shell init file.

    Raises:
        InvalidSnapshot: ``snapshot`` is not a snapshot directory.
    """

    def __init__(
        self,
        config: Config,
        snapshot: Path,
        home: Optional[Path] = None,
        runner: Optional[CommandRunner] = None,
        decisions: Optional[DecisionProvider] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.config = config
        self.snapshot = Path(snapshot).resolve()
        self.home = Path(home) if home is not None else Path.home()
        self.runner = runner or CommandRunner()
        self.decisions = decisions or ConsoleDecisions()
        self.env = dict(env) if env is not None else dict(self.runner.env)
        self.manifest = build_manifest(config)
        self._check_snapshot()

    def _check_snapshot(self) -> None:
        if not self.snapshot.is_dir():
            raise InvalidSnapshot(self.snapshot, "directory does not exist")
        if not (self.snapshot / SNAPSHOT_LOG_NAME).is_file():
            raise InvalidSnapshot(self.snapshot, f"{SNAPSHOT_LOG_NAME} is missing")

    @staticmethod
    def menu_options() -> List[Tuple[int, str]]:
        """Numbered menu: exit, everything, then one option per category."""
        options = [(EXIT_CHOICE, "Exit")]
        options.extend(enumerate(artifacts.restore_menu(), EVERYTHING_CHOICE))
        return options

    @staticmethod
    def categories_for(choice: int) -> Optional[List[Category]]:
        """Categories selected by a menu choice, or None if it is not valid."""
        categories = list(Category)
        if choice == EVERYTHING_CHOICE:
            return categories
        index = choice - EVERYTHING_CHOICE - 1
        if 0 <= index < len(categories):
            return [categories[index]]
        return None

    def run(self) -> RunSummary:
        """Show the menu and restore the chosen categories."""
        choice = self.decisions.choose("What would you like to restore?", self.menu_options())
        return self.restore(choice)

    def restore(self, choice: int) -> RunSummary:
        """Restore the categories selected by a menu choice."""
        summary = RunSummary()
        if choice == EXIT_CHOICE:
            return summary

        with MigrationLog(self.snapshot / SNAPSHOT_LOG_NAME) as log:
            ctx = MigrationContext(
                home=self.home,
                snapshot=self.snapshot,
                config=self.config,
                log=log,
                runner=self.runner,
                decisions=self.decisions,
                env=self.env,
            )
            log.info("Starting restoration of development environment")
            categories = self.categories_for(choice)
            if categories is None:
                log.warning(f"Invalid option: {choice}")
            else:
                for category in categories:
                    summary.extend(self.restore_category(category, ctx))
            log.info("Restoration complete!")
        return summary

    def restore_category(self, category: Category, ctx: MigrationContext) -> List[Outcome]:
        """Run one category's restore routine; its failures stay inside it."""
        routine = ROUTINES[category]
        try:
            return routine(entries_for(self.manifest, category), ctx)
        except (MigrationError, OSError) as e:
            ctx.log.error(f"Restoring {category.label} failed: {e}")
            return [Outcome.failed(category, category.value, str(e))]
