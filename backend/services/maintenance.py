"""Maintenance helpers (backups listing and retention)."""

from __future__ import annotations

from pathlib import Path

from posbackup.inventory import BackupFile, find_backup, list_backups as _list_backups
from posbackup.retention import RetentionEnforcer, RetentionReport
from posbackup.settings import BackupSettings


def list_backups(settings: BackupSettings, limit: int | None = None) -> list[BackupFile]:
    backups = list(_list_backups(settings.backup_dir, convention=settings.convention))
    if limit:
        backups = backups[:limit]
    return backups


def resolve_backup(settings: BackupSettings, filename: str) -> Path | None:
    """Return the path of a recognised backup, or ``None``."""

    match = find_backup(_list_backups(settings.backup_dir, convention=settings.convention), filename)
    if match is None or not match.path.is_file():
        return None
    return match.path


def run_retention(settings: BackupSettings, keep_count: int) -> RetentionReport:
    # Ne bloque pas la requête HTTP si une restauration est en cours.
    enforcer = RetentionEnforcer.from_settings(settings, keep_count=keep_count)
    return enforcer.run(blocking=False)
