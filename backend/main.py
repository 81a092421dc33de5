"""FastAPI application exposing backup maintenance to the back office."""

from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import FastAPI

from backend.api import maintenance as maintenance_router
from backend.settings import get_settings
from posbackup.settings import resolve_log_level

LOGGER = logging.getLogger(__name__)


@lru_cache
def create_app() -> FastAPI:
    """Construit l'application FastAPI et le routeur de maintenance."""

    app = FastAPI(
        title="POS Backups API",
        version="1.0.0",
        description="""
## Maintenance des sauvegardes de la base du point de vente

- **Liste** des sauvegardes, de la plus récente à la plus ancienne
- **Téléchargement** d'un dump
- **Rétention** : suppression des sauvegardes au-delà de la limite

La restauration reste une opération en ligne de commande (`posbackup restore`),
car elle exige une confirmation explicite de l'opérateur.
        """,
        openapi_tags=[
            {"name": "maintenance", "description": "Sauvegardes et rétention"},
        ],
    )

    settings = get_settings()
    logging.basicConfig(level=resolve_log_level(settings.log_level))
    LOGGER.info("Répertoire de sauvegarde: %s", settings.backup_dir)

    app.include_router(maintenance_router.router)

    @app.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
