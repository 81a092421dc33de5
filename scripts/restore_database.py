"""Restaure la base du point de vente depuis une sauvegarde choisie."""

from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from posbackup.cli import main


if __name__ == "__main__":
    sys.exit(main(["restore", *sys.argv[1:]]))
