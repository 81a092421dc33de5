"""Retention enforcement for the backup directory.

The directory is scanned once; the newest ``keep_count`` dumps are kept and
every older dump is deleted independently.  A file that cannot be removed is
reported alongside the partial result instead of aborting the batch.
"""
from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .errors import ErrorKind, classify_os_error
from .inventory import BackupFile, BackupInventory, DirectoryLister, list_backups
from .locking import directory_lock
from .settings import DEFAULT_KEEP_COUNT, BackupSettings, NamingConvention, validate_keep_count

LOGGER = logging.getLogger(__name__)

Remover = Callable[[Path], None]


@dataclass(frozen=True, slots=True)
class RetentionPolicy:
    """Keep the newest ``keep_count`` dumps; a policy keeping nothing is invalid."""

    keep_count: int = DEFAULT_KEEP_COUNT

    def __post_init__(self) -> None:
        object.__setattr__(self, "keep_count", validate_keep_count(self.keep_count))

    def split(self, inventory: BackupInventory) -> Tuple[BackupInventory, BackupInventory]:
        """Return (keep, delete) from a single newest-first snapshot."""

        return inventory[: self.keep_count], inventory[self.keep_count :]


@dataclass(frozen=True, slots=True)
class RetentionError:
    """A dump that could not be removed, with the reason."""

    file: str
    kind: ErrorKind
    message: str

    def as_dict(self) -> Dict[str, str]:
        return {"file": self.file, "kind": self.kind.value, "message": self.message}


@dataclass(frozen=True, slots=True)
class RetentionReport:
    kept: int
    deleted: int
    errors: Tuple[RetentionError, ...] = ()
    kept_files: Tuple[str, ...] = ()
    deleted_files: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors

    def as_dict(self) -> Dict[str, object]:
        return {
            "kept": self.kept,
            "deleted": self.deleted,
            "errors": [error.as_dict() for error in self.errors],
            "kept_files": list(self.kept_files),
            "deleted_files": list(self.deleted_files),
        }


def _unlink(path: Path) -> None:
    path.unlink()


def _delete_one(backup: BackupFile, remover: Remover) -> Optional[RetentionError]:
    try:
        remover(backup.path)
    except OSError as exc:
        LOGGER.error("Suppression impossible de %s: %s", backup.name, exc)
        return RetentionError(backup.name, classify_os_error(exc), str(exc))
    LOGGER.debug("Sauvegarde supprimée: %s", backup.name)
    return None


def delete_backups(
    doomed: Sequence[BackupFile],
    *,
    remover: Optional[Remover] = None,
    max_workers: int = 1,
) -> Tuple[List[str], List[RetentionError]]:
    """Delete every file in *doomed*, returning (deleted names, errors)."""

    remover = remover or _unlink
    if max_workers > 1 and len(doomed) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(lambda backup: _delete_one(backup, remover), doomed))
    else:
        results = [_delete_one(backup, remover) for backup in doomed]

    deleted = [backup.name for backup, error in zip(doomed, results) if error is None]
    errors = [error for error in results if error is not None]
    return deleted, errors


def enforce_retention(
    directory: str | os.PathLike[str],
    keep_count: int,
    *,
    convention: Optional[NamingConvention] = None,
    lister: Optional[DirectoryLister] = None,
    remover: Optional[Remover] = None,
    max_workers: int = 1,
) -> RetentionReport:
    """Keep the ``keep_count`` most recent dumps and delete the others."""

    policy = RetentionPolicy(keep_count)
    snapshot = list_backups(directory, convention=convention, lister=lister)
    keep, doomed = policy.split(snapshot)
    kept_names = tuple(backup.name for backup in keep)

    if not doomed:
        LOGGER.info("Rétention: %s sauvegarde(s) conservée(s), rien à supprimer.", len(keep))
        return RetentionReport(kept=len(keep), deleted=0, kept_files=kept_names)

    LOGGER.info("Rétention: suppression de %s ancienne(s) sauvegarde(s)…", len(doomed))
    deleted, errors = delete_backups(doomed, remover=remover, max_workers=max_workers)
    LOGGER.info(
        "Rétention terminée: %s supprimée(s), %s erreur(s), %s conservée(s).",
        len(deleted),
        len(errors),
        len(keep),
    )
    return RetentionReport(
        kept=len(keep),
        deleted=len(deleted),
        errors=tuple(errors),
        kept_files=kept_names,
        deleted_files=tuple(deleted),
    )


def prune_empty_backups(
    directory: str | os.PathLike[str],
    *,
    convention: Optional[NamingConvention] = None,
    lister: Optional[DirectoryLister] = None,
    remover: Optional[Remover] = None,
) -> RetentionReport:
    """Remove zero-byte dumps left behind by failed exports."""

    snapshot = list_backups(directory, convention=convention, lister=lister)
    empty = [backup for backup in snapshot if backup.size_bytes == 0]
    keep = tuple(backup.name for backup in snapshot if backup.size_bytes > 0)

    if not empty:
        return RetentionReport(kept=len(keep), deleted=0, kept_files=keep)

    LOGGER.info("Suppression de %s sauvegarde(s) vide(s)…", len(empty))
    deleted, errors = delete_backups(empty, remover=remover)
    return RetentionReport(
        kept=len(keep),
        deleted=len(deleted),
        errors=tuple(errors),
        kept_files=keep,
        deleted_files=tuple(deleted),
    )


@dataclass
class RetentionEnforcer:
    """Runs retention passes under the directory's single-flight lock."""

    directory: Path
    keep_count: int = DEFAULT_KEEP_COUNT
    convention: NamingConvention = field(default_factory=NamingConvention)
    max_workers: int = 1
    lock_timeout: Optional[float] = None
    lister: Optional[DirectoryLister] = None
    remover: Optional[Remover] = None

    def __post_init__(self) -> None:
        self.directory = Path(self.directory)
        self.keep_count = validate_keep_count(self.keep_count)

    @classmethod
    def from_settings(cls, settings: BackupSettings, **overrides) -> "RetentionEnforcer":
        params = {
            "directory": settings.backup_dir,
            "keep_count": settings.keep_count,
            "convention": settings.convention,
        }
        params.update(overrides)
        return cls(**params)

    def run(self, *, blocking: bool = True) -> RetentionReport:
        with directory_lock(self.directory, blocking=blocking, timeout=self.lock_timeout):
            return enforce_retention(
                self.directory,
                self.keep_count,
                convention=self.convention,
                lister=self.lister,
                remover=self.remover,
                max_workers=self.max_workers,
            )

    def prune_empty(self, *, blocking: bool = True) -> RetentionReport:
        with directory_lock(self.directory, blocking=blocking, timeout=self.lock_timeout):
            return prune_empty_backups(
                self.directory,
                convention=self.convention,
                lister=self.lister,
                remover=self.remover,
            )


__all__ = [
    "RetentionEnforcer",
    "RetentionError",
    "RetentionPolicy",
    "RetentionReport",
    "delete_backups",
    "enforce_retention",
    "prune_empty_backups",
]
