"""Canonical path defaults for assistbandit.

Environment variables (override via shell export):
    ASSISTBANDIT_STATE_DIR    Directory holding the persisted bandit snapshot.
                              Default: <project>/data/bandit_model
"""

from __future__ import annotations

import os
from pathlib import Path

# Project root: assistbandit/_paths.py → parents[1]
_PROJECT_ROOT = Path(__file__).resolve().parents[1]

BANDIT_STATE_DIR = Path(
    os.environ.get("ASSISTBANDIT_STATE_DIR", str(_PROJECT_ROOT / "data" / "bandit_model"))
)

CONFIG_FILENAME = "config.json"
MODEL_FILENAME = "model.safetensors"
