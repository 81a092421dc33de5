"""Single-flight lock serialising retention passes and restores per directory."""

from __future__ import annotations

import fcntl
import hashlib
import logging
import os
import tempfile
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional

from .errors import BackupBusyError

LOGGER = logging.getLogger(__name__)

_REGISTRY_GUARD = threading.Lock()
_THREAD_LOCKS: Dict[str, threading.Lock] = {}
_POLL_INTERVAL = 0.1


def _lock_key(directory: str | os.PathLike[str]) -> str:
    return str(Path(directory).expanduser().resolve())


def lock_path_for(directory: str | os.PathLike[str], lock_dir: Optional[Path] = None) -> Path:
    """Lock file used for *directory*, kept outside the backup directory."""

    digest = hashlib.sha1(_lock_key(directory).encode("utf-8")).hexdigest()[:16]
    base = lock_dir or Path(tempfile.gettempdir())
    return base / f"posbackup-{digest}.lock"


def _thread_lock(key: str) -> threading.Lock:
    with _REGISTRY_GUARD:
        lock = _THREAD_LOCKS.get(key)
        if lock is None:
            lock = _THREAD_LOCKS[key] = threading.Lock()
        return lock


@contextmanager
def directory_lock(
    directory: str | os.PathLike[str],
    *,
    blocking: bool = True,
    timeout: Optional[float] = None,
    lock_dir: Optional[Path] = None,
) -> Iterator[Path]:
    """Hold the exclusive lock for *directory* for the duration of the block.

    Raises :class:`BackupBusyError` when the lock cannot be obtained without
    blocking, or within *timeout* seconds.
    """

    key = _lock_key(directory)
    deadline = None if timeout is None else time.monotonic() + timeout
    thread_lock = _thread_lock(key)
    if not blocking:
        acquired = thread_lock.acquire(blocking=False)
    elif timeout is not None:
        acquired = thread_lock.acquire(timeout=timeout)
    else:
        acquired = thread_lock.acquire()
    if not acquired:
        raise BackupBusyError(f"Une opération de sauvegarde est déjà en cours sur {key}.")

    path = lock_path_for(directory, lock_dir)
    try:
        try:
            handle = open(path, "a+")
        except OSError as exc:
            raise BackupBusyError(
                f"Verrou {path} inaccessible pour {key}: {exc}"
            ) from exc
        try:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            _acquire_file_lock(handle, key, blocking=blocking, timeout=remaining)
            LOGGER.debug("Verrou acquis pour %s (%s)", key, path)
            try:
                yield path
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        finally:
            handle.close()
    finally:
        thread_lock.release()


def _acquire_file_lock(handle, key: str, *, blocking: bool, timeout: Optional[float]) -> None:
    if blocking and timeout is None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        return

    deadline = None if not blocking else time.monotonic() + (timeout or 0.0)
    while True:
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            return
        except BlockingIOError:
            if deadline is None or time.monotonic() >= deadline:
                raise BackupBusyError(
                    f"Une opération de sauvegarde est déjà en cours sur {key}."
                ) from None
            time.sleep(_POLL_INTERVAL)


__all__ = ["directory_lock", "lock_path_for"]
