"""Reusable backup directories and fakes for lifecycle tests."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Iterable, List, Tuple

from posbackup.database_url import RestoreTarget
from posbackup.restore import RunResult

BASE_TIME = 1_700_000_000


def make_backup(directory: Path, name: str, mtime: float, payload: bytes = b"-- dump --\n") -> Path:
    """Write a dump named *name* whose modification time is *mtime*."""

    path = directory / name
    path.write_bytes(payload)
    os.utime(path, (mtime, mtime))
    return path


def make_backups(directory: Path, count: int, *, start: float = BASE_TIME) -> List[Path]:
    """Create ``backup-00.sql`` … oldest first, one minute apart."""

    return [
        make_backup(directory, f"backup-{index:02d}.sql", start + index * 60)
        for index in range(count)
    ]


class FakeLister:
    """In-memory directory: ``{name: (mtime, size) or OSError}``."""

    def __init__(self, entries: Dict[str, object], *, exists: bool = True, scan_error: OSError | None = None):
        self.entries = entries
        self._exists = exists
        self.scan_error = scan_error
        self.stat_calls: List[str] = []

    def exists(self, directory: Path) -> bool:
        return self._exists

    def iter_files(self, directory: Path) -> Iterable[Tuple[str, Path]]:
        if self.scan_error is not None:
            raise self.scan_error
        for name in self.entries:
            yield name, directory / name

    def stat(self, path: Path) -> Tuple[float, int]:
        self.stat_calls.append(path.name)
        value = self.entries[path.name]
        if isinstance(value, OSError):
            raise value
        return value  # type: ignore[return-value]


class RecordingRemover:
    """Remover double: records calls, raises the configured errors."""

    def __init__(self, failures: Dict[str, OSError] | None = None, *, unlink: bool = True):
        self.failures = failures or {}
        self.unlink = unlink
        self.calls: List[str] = []

    def __call__(self, path: Path) -> None:
        self.calls.append(path.name)
        if path.name in self.failures:
            raise self.failures[path.name]
        if self.unlink:
            path.unlink()


class FakeRunner:
    """Restore client double returning a canned :class:`RunResult`."""

    def __init__(self, result: RunResult | None = None, error: Exception | None = None):
        self.result = result or RunResult(returncode=0)
        self.error = error
        self.calls: List[Tuple[Path, RestoreTarget]] = []

    def run(self, path: Path, target: RestoreTarget) -> RunResult:
        self.calls.append((path, target))
        if self.error is not None:
            raise self.error
        return self.result
