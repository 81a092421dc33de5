from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


_BACKUP_ENV_VARS = (
    "BACKUP_DIR",
    "BACKUP_LOCATION",
    "BACKUP_KEEP_COUNT",
    "BACKUP_PREFIXES",
    "BACKUP_SUFFIX",
    "DATABASE_URL",
    "DB_NAME",
    "DB_HOST",
    "DB_PORT",
    "DB_USER",
    "DB_PASSWORD",
    "DB_DRIVER",
    "MYSQL_PATH",
    "MYSQL_BIN",
    "PSQL_PATH",
    "PSQL_BIN",
    "BACKUP_API_KEY",
    "ADMIN_API_KEY",
)


@pytest.fixture(autouse=True)
def _clean_backup_env(monkeypatch):
    for name in _BACKUP_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def backup_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "backups"
    directory.mkdir()
    return directory
