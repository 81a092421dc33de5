"""Configuration centralisée des sauvegardes, lue depuis l'environnement."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

from .database_url import get_database_url
from .errors import InvalidPolicyError

LOGGER = logging.getLogger(__name__)

DEFAULT_KEEP_COUNT = 5
DEFAULT_PREFIXES: Tuple[str, ...] = ("backup-", "pos-backup-")
DEFAULT_SUFFIX = ".sql"


def known_locations(
    home: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Path]:
    """Named backup locations selectable through ``BACKUP_LOCATION``."""

    env = os.environ if environ is None else environ
    home = home or Path.home()
    return {
        "project": Path("backups"),
        "desktop": home / "Desktop" / "POS-Backups",
        "documents": home / "Documents" / "POS-Backups",
        "downloads": home / "Downloads" / "POS-Backups",
        "custom": Path(env.get("BACKUP_CUSTOM_DIR") or "/srv/pos-backups"),
    }


def validate_keep_count(value: object) -> int:
    """Return *value* as a keep count, rejecting anything below one."""

    if isinstance(value, bool):
        raise InvalidPolicyError("Le nombre de sauvegardes à conserver doit être un entier.")
    try:
        count = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise InvalidPolicyError(
            f"Nombre de sauvegardes à conserver invalide: {value!r}."
        ) from exc
    if isinstance(value, float) and value != count:
        raise InvalidPolicyError(f"Nombre de sauvegardes à conserver invalide: {value!r}.")
    if count < 1:
        raise InvalidPolicyError(
            "La politique de rétention doit conserver au moins une sauvegarde."
        )
    return count


def resolve_log_level(name: Optional[str], default: int = logging.INFO) -> int:
    """Return the numeric level for *name*, or *default* when it is unknown."""

    if not name:
        return default
    level = logging.getLevelName(name.strip().upper())
    if isinstance(level, int):
        return level
    LOGGER.warning("Niveau de journalisation inconnu %r, utilisation de %s.", name, logging.getLevelName(default))
    return default


@dataclass(frozen=True, slots=True)
class NamingConvention:
    """Recognised backup file names: one of ``prefixes`` plus ``suffix``."""

    prefixes: Tuple[str, ...] = DEFAULT_PREFIXES
    suffix: str = DEFAULT_SUFFIX

    def matches(self, name: str) -> bool:
        return name.endswith(self.suffix) and name.startswith(self.prefixes)


@dataclass(frozen=True, slots=True)
class BackupSettings:
    backup_dir: Path = Path("backups")
    keep_count: int = DEFAULT_KEEP_COUNT
    database_url: Optional[str] = None
    convention: NamingConvention = field(default_factory=NamingConvention)
    log_level: str = "INFO"

    @staticmethod
    def load(environ: Optional[Mapping[str, str]] = None) -> "BackupSettings":
        """Build settings from *environ* (``os.environ`` when omitted).

        ``BACKUP_DIR`` wins over ``BACKUP_LOCATION``; an unknown location name
        falls back to the project directory.
        """

        env = os.environ if environ is None else environ

        def _get(name: str) -> Optional[str]:
            value = env.get(name)
            if value is None:
                return None
            value = value.strip()
            return value or None

        explicit_dir = _get("BACKUP_DIR")
        if explicit_dir:
            backup_dir = Path(explicit_dir)
        else:
            location = (_get("BACKUP_LOCATION") or "project").lower()
            locations = known_locations(environ=env)
            backup_dir = locations.get(location, locations["project"])

        keep_raw = _get("BACKUP_KEEP_COUNT")
        keep_count = validate_keep_count(keep_raw) if keep_raw else DEFAULT_KEEP_COUNT

        prefixes_raw = _get("BACKUP_PREFIXES")
        prefixes = (
            tuple(part.strip() for part in prefixes_raw.split(",") if part.strip())
            if prefixes_raw
            else DEFAULT_PREFIXES
        )
        convention = NamingConvention(
            prefixes=prefixes or DEFAULT_PREFIXES,
            suffix=_get("BACKUP_SUFFIX") or DEFAULT_SUFFIX,
        )

        return BackupSettings(
            backup_dir=backup_dir,
            keep_count=keep_count,
            database_url=get_database_url(env),
            convention=convention,
            log_level=(_get("LOG_LEVEL") or "INFO").upper(),
        )


__all__ = [
    "BackupSettings",
    "DEFAULT_KEEP_COUNT",
    "NamingConvention",
    "known_locations",
    "resolve_log_level",
    "validate_keep_count",
]
