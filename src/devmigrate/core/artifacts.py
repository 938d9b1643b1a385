"""Files generated into a snapshot after all categories are captured."""

from __future__ import annotations

import stat
from pathlib import Path
from typing import List

from .manifest import Category
from .outcome import RunSummary, Status

RESTORE_SCRIPT_NAME = "restore.sh"
README_NAME = "README.md"
SSH_HELPER_NAME = "copy_ssh_keys.sh"

RESTORE_SCRIPT = """\
#!/bin/bash

# Restore program for this development environment snapshot.
# Run it from anywhere; it restores from the directory it lives in.
SCRIPT_DIR="$(cd "$(dirname "${BASH_SOURCE[0]}")" && pwd)"

if command -v devmigrate &>/dev/null; then
  exec devmigrate restore "$SCRIPT_DIR"
fi

if command -v python3 &>/dev/null && python3 -c "import devmigrate" &>/dev/null; then
  exec python3 -m devmigrate restore "$SCRIPT_DIR"
fi

echo "devmigrate is not installed. Install it first: python3 -m pip install devmigrate"
exit 1
"""

SSH_HELPER = """\
#!/bin/bash

# Copy selected SSH key files out of ~/.ssh.
# Usage: ./copy_ssh_keys.sh DESTINATION KEY_FILE [KEY_FILE ...]
# Review .ssh/keys_list.txt in this snapshot to decide which keys to transfer.

if [ "$#" -lt 2 ]; then
  echo "Usage: $0 DESTINATION KEY_FILE [KEY_FILE ...]"
  exit 1
fi

DEST="$1"
shift
mkdir -p "$DEST"
chmod 700 "$DEST"

for key in "$@"; do
  if [ -f "$HOME/.ssh/$key" ]; then
    cp -p "$HOME/.ssh/$key" "$DEST/"
    chmod 600 "$DEST/$key"
    echo "Copied $key"
  else
    echo "Warning: $HOME/.ssh/$key does not exist, skipping"
  fi
done
"""

README_TEMPLATE = """\
# Mac Development Environment Migration

This directory contains a backup of your development environment settings,
taken on {taken}.

## Contents
{contents}

## How to Restore
1. Copy this entire directory to your new Mac
2. Install devmigrate: `python3 -m pip install devmigrate`
3. Open Terminal and navigate to this directory: `cd path/to/backup_directory`
4. Run the restore script: `./{restore}`
5. Follow the prompts to select what you want to restore

## Restore Options
The restore script provides several options:
{options}

## Manual Steps
Some items require manual intervention:
- **SSH keys**: For security, SSH keys are never copied. Review `.ssh/keys_list.txt`
  and use the helper script `./{ssh_helper}` on the old machine to copy the keys
  you want to transfer.
- **Application-specific settings**: Some applications may store settings in
  non-standard locations.

## Troubleshooting
- Check `migration.log` in this directory; backup and restore both append to it
- Each category can be restored again individually if it fails
- For Homebrew issues, install Homebrew first (the restore script prints the command)
- If a file fails to restore, check that it exists in the backup and that you have
  permission to write the destination

## Recovery
The restore script renames existing files aside before overwriting them. If
something goes wrong, the original files are next to the restored ones with a
`.bak.TIMESTAMP` extension.

## Security Notes
- Review all configuration files before restoring them
- SSH keys are not copied automatically
- Git credentials should be reviewed before restoring
"""


def restore_menu() -> List[str]:
    """Menu labels in menu order, starting at option 1."""
    return ["Everything"] + [category.label for category in Category]


def write_restore_script(snapshot: Path) -> Path:
    """Write the restore launcher and mark it executable."""
    path = snapshot / RESTORE_SCRIPT_NAME
    path.write_text(RESTORE_SCRIPT)
    make_executable(path)
    return path


def write_ssh_helper(snapshot: Path) -> Path:
    path = snapshot / SSH_HELPER_NAME
    path.write_text(SSH_HELPER)
    make_executable(path)
    return path


def make_executable(path: Path) -> None:
    mode = path.stat().st_mode
    path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def write_readme(snapshot: Path, summary: RunSummary, taken: str) -> Path:
    """Write the manual describing this snapshot."""
    path = snapshot / README_NAME
    path.write_text(
        README_TEMPLATE.format(
            taken=taken,
            contents=_describe_contents(summary),
            options="\n".join(
                f"{number}. **{label}**" for number, label in enumerate(restore_menu(), 1)
            ),
            restore=RESTORE_SCRIPT_NAME,
            ssh_helper=SSH_HELPER_NAME,
        )
    )
    return path


def _describe_contents(summary: RunSummary) -> str:
    grouped = summary.by_category()
    lines = []
    for category in Category:
        outcomes = grouped.get(category, [])
        captured = [o.subject for o in outcomes if o.status is Status.CAPTURED]
        if captured:
            lines.append(f"- {category.label}: {', '.join(captured)}")
        else:
            lines.append(f"- {category.label}: nothing captured")
    return "\n".join(lines)
