"""Helpers for language runtime environments and shell init files."""

from __future__ import annotations

import os
import platform
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Mapping, Optional, Sequence

BASE_ENV = "base"
ALIAS_FILES = (".bash_profile", ".bashrc", ".zshrc")
VIRTUALENV_NAMES = ("venv", ".venv")

_PYTHON_ALIAS = re.compile(r"alias.*python")
_ACTIVE_MARKER = re.compile(r"\*(\s+|$)")

PYTHON_ALIAS_LINES = (
    "",
    "# Added by migration script - make python point to python3",
    "alias python=python3",
    "alias pip=pip3",
)

PYENV_INIT_LINES = (
    "",
    "# Added by migration script - pyenv setup",
    'export PYENV_ROOT="$HOME/.pyenv"',
    'export PATH="$PYENV_ROOT/bin:$PATH"',
    'eval "$(pyenv init --path)"',
    'eval "$(pyenv init -)"',
)


@dataclass(frozen=True)
class CondaEnvironment:
    """One row of ``conda env list``."""

    name: Optional[str]
    path: str
    active: bool = False


def parse_conda_env_list(output: str) -> List[CondaEnvironment]:
    """Parse the text output of ``conda env list``.

    Environments outside the configured envs directories are listed by path
    only, on an indented row; they come back with ``name`` set to ``None``.
    Paths may contain spaces.

    >>> envs = parse_conda_env_list("# conda environments:\\nbase  *  /opt/conda\\n")
    >>> envs[0].name, envs[0].active
    ('base', True)
    """
    environments = []
    for line in output.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if line[:1].isspace() or stripped.startswith("/") or _ACTIVE_MARKER.match(stripped):
            name, rest = None, stripped
        else:
            name, *tail = re.split(r"\s+", stripped, maxsplit=1)
            rest = tail[0] if tail else ""
        rest = rest.strip()
        marker = _ACTIVE_MARKER.match(rest)
        if marker:
            rest = rest[marker.end():]
        environments.append(CondaEnvironment(name, rest, active=bool(marker)))
    return environments


def environments_to_export(environments: Sequence[CondaEnvironment]) -> List[str]:
    """Names to export: base first, then every other named environment."""
    names = [BASE_ENV]
    for env in environments:
        if env.name and env.name not in names:
            names.append(env.name)
    return names


def is_safe_env_name(name: str) -> bool:
    """Whether ``name`` can be used as a file name inside the descriptor directory."""
    return bool(name) and name not in (".", "..") and "/" not in name and "\\" not in name


def shell_rc_file(home: Path, env: Mapping[str, str]) -> Path:
    """Shell init file that receives appended lines, chosen from ``$SHELL``."""
    shell = Path(env.get("SHELL", "")).name
    if shell == "zsh":
        return home / ".zshrc"
    return home / ".bash_profile"


def file_contains(path: Path, needle: str) -> bool:
    try:
        return needle in path.read_text(errors="replace")
    except OSError:
        return False


def append_lines(path: Path, lines: Sequence[str]) -> None:
    """Append lines to a text file, creating it if needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a") as f:
        f.write("\n".join(lines) + "\n")


def find_python_aliases(home: Path) -> List[str]:
    """Return ``file:line`` for every python alias in the shell init files."""
    matches = []
    for name in ALIAS_FILES:
        path = home / name
        if not path.is_file():
            continue
        try:
            text = path.read_text(errors="replace")
        except OSError:
            continue
        matches.extend(
            f"{path}:{line}" for line in text.splitlines() if _PYTHON_ALIAS.search(line)
        )
    return matches


def find_virtualenvs(root: Path, max_depth: int) -> Iterator[Path]:
    """Yield ``venv``/``.venv`` directories at most ``max_depth`` levels below root."""
    root_depth = len(root.parts)
    for dirpath, dirnames, _ in os.walk(root):
        current = Path(dirpath)
        depth = len(current.parts) - root_depth
        found = sorted(d for d in dirnames if d in VIRTUALENV_NAMES)
        for name in found:
            if depth + 1 <= max_depth:
                yield current / name
        # Never descend into a virtualenv or below the depth limit
        dirnames[:] = [
            d for d in dirnames if d not in VIRTUALENV_NAMES and depth + 1 < max_depth
        ]


def miniconda_installer_name(system: Optional[str] = None, machine: Optional[str] = None) -> str:
    """Name of the Miniconda installer for this machine.

    Raises:
        ValueError: The operating system is not macOS.
    """
    system = system or platform.system()
    machine = machine or platform.machine()
    if system != "Darwin":
        raise ValueError(f"Unsupported OS for automatic Miniconda installation: {system}")
    if machine == "x86_64":
        return "Miniconda3-latest-MacOSX-x86_64.sh"
    return "Miniconda3-latest-MacOSX-arm64.sh"
