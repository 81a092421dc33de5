"""Schemas for operator facing reports (CLI ``--json`` output and API)."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field

from .inventory import BackupFile
from .restore import RestoreOutcome
from .retention import RetentionReport


class BackupEntry(BaseModel):
    name: str
    size_bytes: int
    modified_at: datetime

    @classmethod
    def from_backup(cls, backup: BackupFile) -> "BackupEntry":
        return cls(name=backup.name, size_bytes=backup.size_bytes, modified_at=backup.modified_at)


class BackupListResponse(BaseModel):
    directory: str
    backups: List[BackupEntry]

    @classmethod
    def build(cls, directory: str, backups: Iterable[BackupFile]) -> "BackupListResponse":
        return cls(directory=directory, backups=[BackupEntry.from_backup(b) for b in backups])


class RetentionRequest(BaseModel):
    keep_count: Optional[int] = Field(
        default=None, ge=1, description="Nombre de sauvegardes à conserver (BACKUP_KEEP_COUNT si absent)"
    )


class RetentionErrorEntry(BaseModel):
    file: str
    kind: str
    message: str


class RetentionReportSchema(BaseModel):
    kept: int
    deleted: int
    errors: List[RetentionErrorEntry]
    kept_files: List[str]
    deleted_files: List[str]

    @classmethod
    def from_report(cls, report: RetentionReport) -> "RetentionReportSchema":
        return cls.model_validate(report.as_dict())


class RestoreReportSchema(BaseModel):
    state: str
    selected: Optional[BackupEntry] = None
    confirmed: bool
    error_kind: Optional[str] = None
    message: str
    returncode: Optional[int] = None
    diagnostics: str = ""

    @classmethod
    def from_outcome(cls, outcome: RestoreOutcome) -> "RestoreReportSchema":
        return cls(
            state=outcome.state.value,
            selected=BackupEntry.from_backup(outcome.selected) if outcome.selected else None,
            confirmed=outcome.confirmed,
            error_kind=outcome.error_kind.value if outcome.error_kind else None,
            message=outcome.message,
            returncode=outcome.returncode,
            diagnostics=outcome.diagnostics,
        )


__all__ = [
    "BackupEntry",
    "BackupListResponse",
    "RestoreReportSchema",
    "RetentionErrorEntry",
    "RetentionReportSchema",
    "RetentionRequest",
]
