"""Configuration management for devmigrate."""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "DEVMIGRATE_CONFIG"
DEFAULT_CONFIG_FILE = Path("~/.config/devmigrate/config.yaml")

DEFAULT_CONFIG: Dict[str, Any] = {
    "snapshot_root": "~",
    "snapshot_prefix": "mac_migration",
    "shell_files": [
        ".bash_profile",
        ".bashrc",
        ".profile",
        ".zshrc",
        ".zprofile",
        ".zsh_history",
        ".bash_history",
    ],
    "miniconda_path": "~/opt/miniconda3",
    "virtualenv_depth": 3,
    "homebrew_install_command": (
        '/bin/bash -c "$(curl -fsSL '
        'https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh)"'
    ),
    "miniconda_installer_url": "https://repo.anaconda.com/miniconda/{installer}",
    "pyenv_installer_url": "https://pyenv.run",
}


class Config:
    """Configuration class for devmigrate."""

    def __init__(self, config_file: Optional[Path] = None) -> None:
        """Initialize configuration.

        Args:
            config_file: Optional YAML file merged over the defaults. When not
                given, ``$DEVMIGRATE_CONFIG`` or ``~/.config/devmigrate/config.yaml``
                is used if it exists.
        """
        self.config: Dict[str, Any] = {}
        self.snapshot_prefix: str = "mac_migration"
        self.shell_files: List[str] = []
        self.miniconda_path: str = "~/opt/miniconda3"
        self.virtualenv_depth: int = 3
        self.load_config(config_file)

    def load_config(self, config_file: Optional[Path] = None) -> None:
        """Load configuration from file."""
        # Start with default configuration
        self._merge_config(copy.deepcopy(DEFAULT_CONFIG))

        if config_file is None:
            config_file = self._default_config_file()
            if config_file is None:
                return

        try:
            with open(config_file, "r") as f:
                user_config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Error loading config file {config_file}: {e}") from e

        if user_config:
            self._merge_config(user_config)
        logger.debug("Loaded configuration from %s", config_file)

    @staticmethod
    def _default_config_file() -> Optional[Path]:
        env_value = os.environ.get(CONFIG_ENV_VAR)
        if env_value:
            return Path(env_value).expanduser()
        default = DEFAULT_CONFIG_FILE.expanduser()
        return default if default.is_file() else None

    def _merge_config(self, config: Dict[str, Any]) -> None:
        """Merge configuration with current configuration."""
        if not isinstance(config, dict):
            raise ConfigError("Configuration must be a dictionary")

        for key in ("snapshot_root", "snapshot_prefix", "miniconda_path"):
            if key in config and not isinstance(config[key], str):
                raise ConfigError(f"{key} must be a string")

        if "shell_files" in config:
            shell_files = config["shell_files"]
            if not isinstance(shell_files, list) or not all(
                isinstance(f, str) for f in shell_files
            ):
                raise ConfigError("shell_files must be a list of strings")

        if "virtualenv_depth" in config:
            depth = config["virtualenv_depth"]
            if not isinstance(depth, int) or isinstance(depth, bool) or depth < 0:
                raise ConfigError("virtualenv_depth must be a non-negative integer")

        self.config.update(config)

        self.snapshot_prefix = self.config["snapshot_prefix"]
        self.shell_files = list(self.config["shell_files"])
        self.miniconda_path = self.config["miniconda_path"]
        self.virtualenv_depth = self.config["virtualenv_depth"]

    def load_from_dict(self, config_data: Dict[str, Any]) -> None:
        """Merge settings from a dictionary.

        Example:
            ```python
            config = Config()
            config.load_from_dict({"snapshot_root": "/tmp/snapshots"})
            ```
        """
        self._merge_config(config_data)

    def validate(self) -> List[str]:
        """Validate configuration."""
        errors = []

        if not self.snapshot_prefix:
            errors.append("snapshot_prefix must not be empty")
        elif "/" in self.snapshot_prefix:
            errors.append("snapshot_prefix must not contain '/'")

        for shell_file in self.shell_files:
            if Path(shell_file).is_absolute():
                errors.append(f"shell file {shell_file} must be relative to the home directory")

        if "{installer}" not in self.get("miniconda_installer_url", ""):
            errors.append("miniconda_installer_url must contain an {installer} placeholder")

        return errors

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value.

        Args:
            key: The configuration key to get.
            default: The default value to return if the key is not found.

        Returns:
            The configuration value, or the default if not found.
        """
        return self.config.get(key, default)

    def snapshot_dir(self, home: Path) -> Path:
        """Resolve the directory that holds snapshots against a home directory."""
        return _resolve_home(self.config["snapshot_root"], home)

    def miniconda_dir(self, home: Path) -> Path:
        """Resolve the Miniconda install directory against a home directory."""
        return _resolve_home(self.miniconda_path, home)


def _resolve_home(path: str, home: Path) -> Path:
    if path == "~":
        return home
    if path.startswith("~/"):
        return home / path[2:]
    return Path(path).expanduser()
