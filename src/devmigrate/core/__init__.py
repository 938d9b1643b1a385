"""Core functionality for devmigrate."""

from .backup import BackupManager, BackupResult
from .config import Config
from .manifest import Category, ManifestEntry, build_manifest
from .outcome import Outcome, RunSummary, Status
from .restore import RestoreManager

__all__ = [
    "BackupManager",
    "BackupResult",
    "Category",
    "Config",
    "ManifestEntry",
    "Outcome",
    "RestoreManager",
    "RunSummary",
    "Status",
    "build_manifest",
]
