"""Maintenance endpoints (backups)."""

from __future__ import annotations

import os
import secrets

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from fastapi.responses import FileResponse

from backend.services import maintenance as maintenance_service
from backend.settings import get_settings
from posbackup.errors import BackupBusyError, BackupError
from posbackup.reports import BackupListResponse, RetentionReportSchema, RetentionRequest
from posbackup.settings import BackupSettings


def check_api_key(x_api_key: str | None = Header(default=None)) -> None:
    """
    Refuse la requête si `X-API-KEY` ne correspond pas à BACKUP_API_KEY
    (ou ADMIN_API_KEY). Sans clé configurée, l'accès reste ouvert en local.
    """

    secret = (os.getenv("BACKUP_API_KEY") or os.getenv("ADMIN_API_KEY") or "").strip()
    if not secret:
        return
    if x_api_key is None or not secrets.compare_digest(x_api_key, secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Clé API invalide",
            headers={"WWW-Authenticate": "Api-Key"},
        )


router = APIRouter(prefix="/maintenance", tags=["maintenance"], dependencies=[Depends(check_api_key)])


def _unavailable(exc: BackupError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={"kind": exc.kind.value, "message": str(exc)},
    )


@router.get("/backups", response_model=BackupListResponse)
def list_backups(
    limit: int = Query(default=100, ge=1, le=1000),
    settings: BackupSettings = Depends(get_settings),
):
    try:
        backups = maintenance_service.list_backups(settings, limit=limit)
    except BackupError as exc:
        raise _unavailable(exc) from exc
    return BackupListResponse.build(str(settings.backup_dir), backups)


@router.get("/backups/{filename}")
def download_backup(filename: str, settings: BackupSettings = Depends(get_settings)):
    try:
        path = maintenance_service.resolve_backup(settings, filename)
    except BackupError as exc:
        raise _unavailable(exc) from exc
    if path is None:
        raise HTTPException(status_code=404, detail="Sauvegarde introuvable.")
    return FileResponse(path, filename=path.name)


@router.post("/backups/retention", response_model=RetentionReportSchema)
def enforce_retention(payload: RetentionRequest, settings: BackupSettings = Depends(get_settings)):
    keep_count = payload.keep_count if payload.keep_count is not None else settings.keep_count
    try:
        report = maintenance_service.run_retention(settings, keep_count)
    except BackupBusyError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except BackupError as exc:
        raise _unavailable(exc) from exc
    return RetentionReportSchema.from_report(report)
