"""Shared pytest fixtures for backend tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def backup_dir(tmp_path: Path, monkeypatch) -> Path:
    directory = tmp_path / "backups"
    directory.mkdir()
    monkeypatch.setenv("BACKUP_DIR", str(directory))
    monkeypatch.delenv("BACKUP_KEEP_COUNT", raising=False)
    monkeypatch.delenv("BACKUP_PREFIXES", raising=False)
    monkeypatch.delenv("BACKUP_SUFFIX", raising=False)
    monkeypatch.delenv("BACKUP_API_KEY", raising=False)
    monkeypatch.delenv("ADMIN_API_KEY", raising=False)
    return directory


@pytest.fixture
def client(backup_dir) -> TestClient:
    """Create a TestClient instance for the FastAPI app."""
    from backend.main import create_app

    return TestClient(create_app())
