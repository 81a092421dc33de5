"""Exceptions raised by the backup lifecycle helpers."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Stable identifiers reported to operators and machine consumers."""

    NOT_FOUND = "NotFound"
    PERMISSION_DENIED = "PermissionDenied"
    IO_FAILURE = "IOFailure"
    INVALID_SELECTION = "InvalidSelection"
    DECLINED = "Declined"
    EXTERNAL_TOOL_FAILURE = "ExternalToolFailure"
    CONFIGURATION_MISSING = "ConfigurationMissing"
    INVALID_POLICY = "InvalidPolicy"
    BUSY = "Busy"


class BackupError(RuntimeError):
    """Raised when a backup operation cannot be completed."""

    kind: ErrorKind = ErrorKind.IO_FAILURE


class BackupNotFoundError(BackupError):
    kind = ErrorKind.NOT_FOUND


class InvalidSelectionError(BackupError):
    kind = ErrorKind.INVALID_SELECTION


class ConfigurationMissingError(BackupError):
    kind = ErrorKind.CONFIGURATION_MISSING


class ExternalToolError(BackupError):
    """The restore client could not be started or exited with a failure status."""

    kind = ErrorKind.EXTERNAL_TOOL_FAILURE


class InvalidPolicyError(BackupError, ValueError):
    kind = ErrorKind.INVALID_POLICY


class BackupDirectoryError(BackupError):
    """The backup directory itself could not be read."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.IO_FAILURE):
        super().__init__(message)
        self.kind = kind


class BackupBusyError(BackupError):
    """Another retention pass or restore holds the backup directory."""

    kind = ErrorKind.BUSY


def classify_os_error(exc: OSError) -> ErrorKind:
    """Map a filesystem error to the operator facing taxonomy."""

    if isinstance(exc, FileNotFoundError):
        return ErrorKind.NOT_FOUND
    if isinstance(exc, PermissionError):
        return ErrorKind.PERMISSION_DENIED
    return ErrorKind.IO_FAILURE


__all__ = [
    "BackupBusyError",
    "BackupDirectoryError",
    "BackupError",
    "BackupNotFoundError",
    "ConfigurationMissingError",
    "ErrorKind",
    "ExternalToolError",
    "InvalidPolicyError",
    "InvalidSelectionError",
    "classify_os_error",
]
