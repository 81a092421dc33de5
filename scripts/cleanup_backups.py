"""Supprime les anciennes sauvegardes au-delà de la limite de conservation."""

from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from posbackup.cli import main


if __name__ == "__main__":
    sys.exit(main(["cleanup", *sys.argv[1:]]))
