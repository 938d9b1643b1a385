"""Command line interface for devmigrate."""

from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table

from .core.backup import BackupManager
from .core.config import Config
from .core.errors import ConfigError, InvalidSnapshot
from .core.logging import setup_logging
from .core.manifest import Category
from .core.outcome import RunSummary, Status
from .core.restore import RestoreManager

console = Console()

STATUS_STYLES = {
    Status.CAPTURED: "green",
    Status.RESTORED: "green",
    Status.SKIPPED: "yellow",
    Status.FAILED: "red",
}


def load_config() -> Config:
    try:
        config = Config()
    except ConfigError as e:
        console.print(f"[red]Error: {e}")
        raise click.Abort()
    for problem in config.validate():
        console.print(f"[yellow]Configuration warning: {problem}")
    return config


def print_summary(title: str, summary: RunSummary) -> None:
    """Print a per-category table of outcomes."""
    table = Table(title=title)
    table.add_column("Category", style="cyan")
    table.add_column("Item")
    table.add_column("Status")
    table.add_column("Reason", style="dim")

    for category, outcomes in summary.by_category().items():
        for outcome in outcomes:
            style = STATUS_STYLES[outcome.status]
            table.add_row(
                category.label,
                outcome.subject,
                f"[{style}]{outcome.status.value}[/{style}]",
                outcome.reason or "",
            )

    console.print(table)
    console.print(
        f"{len(summary.captured) + len(summary.restored)} done, "
        f"{len(summary.skipped)} skipped, {len(summary.failed)} failed"
    )


@click.group()
@click.option("--debug", is_flag=True, help="Show debug logging on the console")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    help="Also write debug logging to this file",
)
def cli(debug: bool, log_file: Optional[str]) -> None:
    """Development environment migration tool.

    Back up shell profiles, terminal and editor settings, Git configuration,
    Homebrew packages, SSH configuration and Python environments into a
    timestamped snapshot directory, then restore that snapshot on another
    machine.

    Main commands:

      backup    Create a new snapshot of this machine's environment
      restore   Restore a snapshot through an interactive menu
      list      List snapshots in the snapshot directory

    Run 'devmigrate COMMAND --help' for more information on a specific command.
    """
    setup_logging(debug=debug, log_file=log_file)


@cli.command()
def backup() -> None:
    """Create a new snapshot of this machine's environment.

    The backup command will:
    1. Create <home>/mac_migration_backup_<YYYYMMDD_HHMMSS>/
    2. Copy shell, iTerm2, Vim, Git and SSH configuration (never SSH keys)
    3. Export Homebrew package lists and Python/conda environment descriptors
    4. Write restore.sh and README.md into the snapshot

    Missing files and tools are logged in migration.log and skipped. The
    command always exits successfully; check the summary for failures.

    Example:

      devmigrate backup
    """
    config = load_config()
    manager = BackupManager(config, console=console)
    result = manager.backup()

    print_summary("Backup Summary", result.summary)
    console.print(f"\n[bold]Backup created at {result.snapshot}")
    console.print("To restore on your new Mac:")
    console.print(f"  1. Copy {result.snapshot} to your new Mac")
    console.print("  2. Run ./restore.sh inside that directory")


@cli.command()
@click.argument(
    "snapshot",
    required=False,
    type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
)
def restore(snapshot: Optional[Path]) -> None:
    """Restore a snapshot through an interactive menu.

    SNAPSHOT is the snapshot directory (defaults to the current directory).
    The generated restore.sh inside each snapshot runs this command.

    Menu options:

      0  Exit
      1  Everything
      2-8  One category each: iTerm2, shell, Vim, Git, Homebrew, SSH, Python

    Existing files are renamed to <name>.bak.<timestamp> before being
    replaced. Failures are logged to the snapshot's migration.log and do not
    stop the remaining steps.
    """
    config = load_config()
    try:
        manager = RestoreManager(config, snapshot or Path.cwd())
    except InvalidSnapshot as e:
        console.print(f"[red]Error: {e}")
        raise click.Abort()

    summary = manager.run()
    if summary.outcomes:
        print_summary("Restore Summary", summary)


@cli.command(name="list")
def list_snapshots() -> None:
    """List snapshots in the snapshot directory.

    Shows each snapshot's date, the categories it captured and the command
    that restores it, newest first.
    """
    config = load_config()
    manager = BackupManager(config, console=console)
    snapshots = manager.list_snapshots()

    if not snapshots:
        console.print("[yellow]No snapshots found.")
        return

    table = Table(title="Available Snapshots")
    table.add_column("Snapshot", style="cyan")
    table.add_column("Contents", style="magenta")
    table.add_column("Restore Command", style="blue")

    for snapshot in snapshots:
        table.add_row(
            snapshot.name,
            ", ".join(snapshot_categories(snapshot)) or "No content",
            f"{snapshot / 'restore.sh'}",
        )

    console.print(table)


SNAPSHOT_MARKERS = {
    Category.TERMINAL: ["iterm2"],
    Category.SHELL: [".bash_profile", ".bashrc", ".profile", ".zshrc", ".zprofile"],
    Category.EDITOR: [".vimrc", ".vim"],
    Category.VCS: [".gitconfig", ".gitignore_global"],
    Category.PACKAGES: ["Brewfile", "brew_formulas.txt", "brew_casks.txt"],
    Category.SSH: [".ssh"],
    Category.RUNTIME: ["python"],
}


def snapshot_categories(snapshot: Path) -> List[str]:
    """Labels of the categories with something in the snapshot."""
    return [
        category.label
        for category, markers in SNAPSHOT_MARKERS.items()
        if any((snapshot / marker).exists() for marker in markers)
    ]


def main() -> None:
    """Entry point for the devmigrate CLI."""
    cli()


if __name__ == "__main__":
    main()
