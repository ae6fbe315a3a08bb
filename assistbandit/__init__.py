"""assistbandit: NeuralUCB-Diagonal decision engine for proactive assistance.

Subpackages:
  core        — reward network, parameter store, confidence vector, experience log
  algorithms  — selection, training, persistence, simulation
  agents      — AssistBanditManager (application layer)
"""
from __future__ import annotations

__version__ = "0.1.0"

from .config import ManagerConfig, NeuralUCBConfig, TrainingConfig
from .errors import (
    BanditError,
    CorruptSnapshotError,
    DimensionMismatchError,
    MissingSnapshotDataError,
    NumericDegeneracyError,
)
from .algorithms import NeuralUCBDiag, Selection, load_agent, save_agent
from .agents import AssistBanditManager, DecisionStat

__all__ = [
    "ManagerConfig",
    "NeuralUCBConfig",
    "TrainingConfig",
    "BanditError",
    "CorruptSnapshotError",
    "DimensionMismatchError",
    "MissingSnapshotDataError",
    "NumericDegeneracyError",
    "NeuralUCBDiag",
    "Selection",
    "save_agent",
    "load_agent",
    "AssistBanditManager",
    "DecisionStat",
]
