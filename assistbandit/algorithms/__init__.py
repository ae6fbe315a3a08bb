"""Bandit algorithms — NeuralUCB-Diagonal selection, training, persistence, simulation.

Modules
-------
selection   : SelectionEngine, Selection (UCB scoring and U update)
trainer     : Trainer (train to convergence, bounded train_batch)
neural_ucb  : NeuralUCBDiag agent façade
persistence : save_agent / load_agent (config.json + model.safetensors)
simulation  : synthetic environments and regret measurement
"""
from __future__ import annotations

from assistbandit.algorithms.selection import Selection, SelectionEngine
from assistbandit.algorithms.trainer import Trainer
from assistbandit.algorithms.neural_ucb import NeuralUCBDiag
from assistbandit.algorithms.persistence import load_agent, save_agent
from assistbandit.algorithms.simulation import (
    AssistEnvironment,
    ContextualEnvironment,
    LinearRewardEnvironment,
    SimulationResult,
    run_agent,
    run_uniform,
)

__all__ = [
    "Selection",
    "SelectionEngine",
    "Trainer",
    "NeuralUCBDiag",
    "save_agent",
    "load_agent",
    "ContextualEnvironment",
    "LinearRewardEnvironment",
    "AssistEnvironment",
    "SimulationResult",
    "run_agent",
    "run_uniform",
]
