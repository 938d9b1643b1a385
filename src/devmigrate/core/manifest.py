"""Manifest of what makes up a development environment.

Each :class:`ManifestEntry` says where something lives on the origin machine,
how it is captured into a snapshot and how it is put back. The manifest is an
ordered list; the backup and restore executors walk it category by category
in :class:`Category` order.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, List, Optional, Tuple

if TYPE_CHECKING:
    from .config import Config


class Category(str, Enum):
    """Environment categories, in processing order."""

    TERMINAL = "terminal-app-settings"
    SHELL = "shell-config"
    EDITOR = "editor-config"
    VCS = "vcs-config"
    PACKAGES = "package-manager-state"
    SSH = "ssh-config"
    RUNTIME = "language-runtime-env"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]


CATEGORY_LABELS = {
    Category.TERMINAL: "iTerm2 settings",
    Category.SHELL: "Bash profile files",
    Category.EDITOR: "Vim configuration",
    Category.VCS: "Git configuration",
    Category.PACKAGES: "Homebrew packages",
    Category.SSH: "SSH configuration",
    Category.RUNTIME: "Python configuration",
}


class CaptureMethod(str, Enum):
    COPY = "copy"
    EXPORT = "export"


class RestoreMethod(str, Enum):
    COPY_BACK = "copy-back"
    INVOKE = "invoke"
    NONE = "none"


OUTPUT_PLACEHOLDER = "{output}"


@dataclass(frozen=True)
class ManifestEntry:
    """One thing that is backed up.

    Attributes:
        category: Category the entry belongs to.
        source: Path relative to the home directory for copy entries, or a
            label for export entries.
        snapshot_path: Path inside the snapshot that receives the copy or the
            command output.
        capture: How the entry is captured.
        restore: How the entry is restored.
        command: Producing command for export entries. ``{output}`` is
            replaced by the absolute output path.
        requires: Executable that must be on ``PATH``; defaults to the first
            word of ``command``.
        writes_own_output: The command writes ``{output}`` itself instead of
            printing to standard output.
        merge_stderr: Capture standard error together with standard output.
        sensitive: Record a listing of ``source`` instead of its content.
        restore_target: Destination relative to home for copy-back entries;
            defaults to ``source``.
    """

    category: Category
    source: str
    snapshot_path: str
    capture: CaptureMethod = CaptureMethod.COPY
    restore: RestoreMethod = RestoreMethod.COPY_BACK
    command: Optional[Tuple[str, ...]] = None
    requires: Optional[str] = None
    writes_own_output: bool = False
    merge_stderr: bool = False
    sensitive: bool = False
    restore_target: Optional[str] = None

    def __post_init__(self) -> None:
        if self.capture is CaptureMethod.EXPORT and not self.command:
            raise ValueError(f"Export entry {self.snapshot_path} needs a command")
        if self.sensitive and self.restore is RestoreMethod.COPY_BACK:
            raise ValueError(f"Sensitive entry {self.source} cannot be copied back")

    @property
    def executable(self) -> Optional[str]:
        """Executable needed to capture this entry, if any."""
        if self.requires:
            return self.requires
        return self.command[0] if self.command else None

    @property
    def target(self) -> str:
        """Destination relative to the home directory."""
        return self.restore_target or self.source

    def render_command(self, output: str) -> List[str]:
        """Return the command with the output placeholder filled in."""
        if self.command is None:
            raise ValueError(f"{self.snapshot_path} has no command")
        return [part.replace(OUTPUT_PLACEHOLDER, output) for part in self.command]


def copy_entry(
    category: Category,
    source: str,
    snapshot_path: Optional[str] = None,
    restore: RestoreMethod = RestoreMethod.COPY_BACK,
) -> ManifestEntry:
    return ManifestEntry(category, source, snapshot_path or source, restore=restore)


def export_entry(
    category: Category,
    snapshot_path: str,
    *command: str,
    **kwargs: object,
) -> ManifestEntry:
    kwargs.setdefault("restore", RestoreMethod.NONE)
    return ManifestEntry(
        category,
        " ".join(command),
        snapshot_path,
        capture=CaptureMethod.EXPORT,
        command=tuple(command),
        **kwargs,  # type: ignore[arg-type]
    )


def build_manifest(config: Config) -> List[ManifestEntry]:
    """Build the ordered default manifest."""
    entries: List[ManifestEntry] = [
        copy_entry(
            Category.TERMINAL,
            "Library/Preferences/com.googlecode.iterm2.plist",
            "iterm2/com.googlecode.iterm2.plist",
        ),
        copy_entry(
            Category.TERMINAL,
            "Library/Application Support/iTerm2",
            "iterm2/iTerm2",
        ),
    ]

    entries.extend(copy_entry(Category.SHELL, name) for name in config.shell_files)
    entries.append(copy_entry(Category.SHELL, ".conda"))

    entries.extend(
        [
            copy_entry(Category.EDITOR, ".vimrc"),
            copy_entry(Category.EDITOR, ".vim"),
            copy_entry(Category.VCS, ".gitconfig"),
            copy_entry(Category.VCS, ".gitignore_global"),
            export_entry(
                Category.PACKAGES,
                "Brewfile",
                "brew",
                "bundle",
                "dump",
                f"--file={OUTPUT_PLACEHOLDER}",
                writes_own_output=True,
                restore=RestoreMethod.INVOKE,
            ),
            export_entry(Category.PACKAGES, "brew_formulas.txt", "brew", "list", "--formula"),
            export_entry(Category.PACKAGES, "brew_casks.txt", "brew", "list", "--cask"),
            copy_entry(Category.SSH, ".ssh/config"),
            ManifestEntry(
                Category.SSH,
                ".ssh",
                ".ssh/keys_list.txt",
                restore=RestoreMethod.NONE,
                sensitive=True,
            ),
            export_entry(
                Category.RUNTIME,
                "python/system_python_version.txt",
                "python",
                "--version",
                merge_stderr=True,
            ),
            export_entry(
                Category.RUNTIME,
                "python/system_python_path.txt",
                "which",
                "python",
                requires="python",
            ),
            export_entry(
                Category.RUNTIME,
                "python/system_python3_version.txt",
                "python3",
                "--version",
                merge_stderr=True,
            ),
            export_entry(
                Category.RUNTIME,
                "python/system_python3_path.txt",
                "which",
                "python3",
                requires="python3",
            ),
            export_entry(
                Category.RUNTIME,
                "python/pip_packages.txt",
                "pip",
                "list",
                "--format=freeze",
            ),
            export_entry(
                Category.RUNTIME,
                "python/pip3_packages.txt",
                "pip3",
                "list",
                "--format=freeze",
                restore=RestoreMethod.INVOKE,
            ),
            export_entry(Category.RUNTIME, "python/pyenv_versions.txt", "pyenv", "versions"),
            export_entry(Category.RUNTIME, "python/pyenv_global.txt", "pyenv", "global"),
            copy_entry(Category.RUNTIME, ".pyenv", "python/.pyenv", restore=RestoreMethod.NONE),
        ]
    )
    return entries


def entries_for(entries: List[ManifestEntry], category: Category) -> List[ManifestEntry]:
    """Return the entries of one category, keeping manifest order."""
    return [entry for entry in entries if entry.category is category]
