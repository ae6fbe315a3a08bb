"""Core building blocks — reward network, parameter store, confidence, experience.

Modules:
  network     — Network (2-layer ReLU), ParameterStore, canonical parameter order
  confidence  — ConfidenceTracker (diagonal U for NeuralUCB exploration)
  experience  — ExperienceLog (append-only (context, reward) history)
  inputs      — context shape validation, two-arm assist matrix
"""
from __future__ import annotations

from .network import PARAMETER_NAMES, Network, ParameterStore, resolve_device
from .confidence import ConfidenceTracker
from .experience import ExperienceLog
from .inputs import (
    ASSIST_ARM,
    NO_ASSIST_ARM,
    as_context_matrix,
    as_context_row,
    assist_contexts,
)

__all__ = [
    "PARAMETER_NAMES",
    "Network",
    "ParameterStore",
    "resolve_device",
    "ConfidenceTracker",
    "ExperienceLog",
    "as_context_matrix",
    "as_context_row",
    "assist_contexts",
    "NO_ASSIST_ARM",
    "ASSIST_ARM",
]
