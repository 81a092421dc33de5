"""Configuration du backend de maintenance, basée sur posbackup.settings."""

from __future__ import annotations

from posbackup.settings import BackupSettings


def get_settings() -> BackupSettings:
    """Dépendance FastAPI : configuration relue à chaque requête."""

    return BackupSettings.load()
