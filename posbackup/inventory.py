"""Backup inventory: the only place that scans the backup directory.

Both the retention enforcer and the restore orchestrator consult
:func:`list_backups`; neither ranks files on its own.  Filesystem access goes
through a small lister object so ranking can be exercised without touching a
real directory.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from statistics import mean
from typing import Dict, Iterable, Iterator, Optional, Protocol, Tuple

from .errors import BackupDirectoryError, classify_os_error
from .settings import NamingConvention

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BackupFile:
    """Simple container describing a backup file present on disk."""

    name: str
    path: Path
    size_bytes: int
    modified_at: datetime

    @property
    def size_mb(self) -> float:
        """Human friendly representation in megabytes."""

        return self.size_bytes / (1024 * 1024)

    def as_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "path": str(self.path),
            "size_bytes": self.size_bytes,
            "modified_at": self.modified_at.isoformat(),
        }


BackupInventory = Tuple[BackupFile, ...]


class DirectoryLister(Protocol):
    def exists(self, directory: Path) -> bool: ...

    def iter_files(self, directory: Path) -> Iterable[Tuple[str, Path]]: ...

    def stat(self, path: Path) -> Tuple[float, int]: ...


class FilesystemLister:
    """Default lister backed by :mod:`os`."""

    def exists(self, directory: Path) -> bool:
        return directory.is_dir()

    def iter_files(self, directory: Path) -> Iterator[Tuple[str, Path]]:
        with os.scandir(directory) as entries:
            for entry in entries:
                try:
                    if not entry.is_file():
                        continue
                except OSError:
                    continue
                yield entry.name, Path(entry.path)

    def stat(self, path: Path) -> Tuple[float, int]:
        info = path.stat()
        return info.st_mtime, info.st_size


def sort_backups(backups: Iterable[BackupFile]) -> BackupInventory:
    """Newest first; equal timestamps are ordered by file name."""

    return tuple(sorted(backups, key=lambda b: (-b.modified_at.timestamp(), b.name)))


def list_backups(
    directory: str | os.PathLike[str],
    *,
    convention: Optional[NamingConvention] = None,
    lister: Optional[DirectoryLister] = None,
) -> BackupInventory:
    """Return the backups found in *directory*, sorted from newest to oldest.

    A missing directory yields an empty inventory.  Entries that cannot be
    stat'ed are logged and skipped; a directory that cannot be read raises
    :class:`BackupDirectoryError`.
    """

    convention = convention or NamingConvention()
    lister = lister or FilesystemLister()
    backup_dir = Path(directory).absolute()

    if not lister.exists(backup_dir):
        LOGGER.info("Répertoire de sauvegarde introuvable: %s", backup_dir)
        return ()

    try:
        listing = list(lister.iter_files(backup_dir))
    except FileNotFoundError:
        LOGGER.info("Répertoire de sauvegarde disparu pendant la lecture: %s", backup_dir)
        return ()
    except OSError as exc:
        LOGGER.error("Lecture impossible du répertoire %s: %s", backup_dir, exc)
        raise BackupDirectoryError(
            f"Lecture impossible du répertoire de sauvegarde {backup_dir}: {exc}",
            classify_os_error(exc),
        ) from exc

    entries = []
    for name, path in listing:
        if not convention.matches(name):
            continue
        try:
            mtime, size = lister.stat(path)
        except OSError as exc:
            LOGGER.warning("Sauvegarde ignorée, lecture impossible de %s: %s", name, exc)
            continue
        entries.append(
            BackupFile(
                name=name,
                path=path,
                size_bytes=size,
                modified_at=datetime.fromtimestamp(mtime, tz=timezone.utc),
            )
        )

    return sort_backups(entries)


def find_backup(backups: Iterable[BackupFile], name: str) -> Optional[BackupFile]:
    return next((backup for backup in backups if backup.name == name), None)


def compute_backup_statistics(backups: Iterable[BackupFile]) -> Dict[str, object]:
    """Compute aggregate statistics (count, min/max/average/total sizes)."""

    items = list(backups)
    sizes = [backup.size_mb for backup in items]
    if not sizes:
        return {
            "count": 0,
            "total_size_mb": 0.0,
            "average_size_mb": 0.0,
            "max_size_mb": 0.0,
            "min_size_mb": 0.0,
            "newest": None,
            "oldest": None,
        }

    ordered = sort_backups(items)
    return {
        "count": len(items),
        "total_size_mb": float(sum(sizes)),
        "average_size_mb": float(mean(sizes)),
        "max_size_mb": float(max(sizes)),
        "min_size_mb": float(min(sizes)),
        "newest": ordered[0].name,
        "oldest": ordered[-1].name,
    }


__all__ = [
    "BackupFile",
    "BackupInventory",
    "DirectoryLister",
    "FilesystemLister",
    "compute_backup_statistics",
    "find_backup",
    "list_backups",
    "sort_backups",
]
