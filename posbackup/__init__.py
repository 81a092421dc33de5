"""Backup lifecycle management for the POS database: retention and restore."""

from .errors import BackupError
from .inventory import BackupFile, list_backups
from .restore import RestoreOrchestrator, RestoreOutcome, RestoreState
from .retention import RetentionEnforcer, RetentionReport, enforce_retention
from .settings import BackupSettings

__all__ = [
    "BackupError",
    "BackupFile",
    "BackupSettings",
    "RestoreOrchestrator",
    "RestoreOutcome",
    "RestoreState",
    "RetentionEnforcer",
    "RetentionReport",
    "enforce_retention",
    "list_backups",
]
