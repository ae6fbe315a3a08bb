"""Arm selection by upper confidence bound (NeuralUCB, diagonal).

For each candidate arm i with context x_i:

    f_i = f(x_i; θ)                          predicted reward
    g_i = ∂f_i/∂θ                            flattened gradient
    σ_i = sqrt( Σ_j λ·ν·g_i[j]² / U[j] )     exploration bonus
    s_i = f_i + σ_i                          UCB score

The arm with the largest score is played (ties go to the lowest index) and
the confidence vector is updated with that arm's gradient:

    U ← U + g_c ⊙ g_c

Selection never changes the network weights.

Reference: Zhou, Li & Gu (2020) "Neural Contextual Bandits with UCB-based
Exploration", Algorithm 1 with the diagonal approximation of Z_t.
"""
from __future__ import annotations

import logging
from typing import NamedTuple

import numpy as np
import torch

from assistbandit.core.confidence import ConfidenceTracker
from assistbandit.core.network import Network, ParameterStore
from assistbandit.errors import NumericDegeneracyError

logger = logging.getLogger(__name__)

__all__ = ["Selection", "SelectionEngine"]


class Selection(NamedTuple):
    """Outcome of one ``select`` call.

    Only ``chosen_arm`` drives behaviour; the rest is telemetry.
    """

    chosen_arm: int
    grad_norm: float        # ||g_c||₂ of the chosen arm
    avg_exploration: float  # mean over arms of σ_i
    avg_score: float        # mean over arms of s_i


class SelectionEngine:
    """Scores every arm and updates U for the one it picks."""

    def __init__(
        self,
        network: Network,
        store: ParameterStore,
        confidence: ConfidenceTracker,
    ) -> None:
        self.network = network
        self.store = store
        self.confidence = confidence

    def score(self, contexts: torch.Tensor) -> tuple[np.ndarray, np.ndarray, list[torch.Tensor]]:
        """Predicted values, UCB scores and gradients for a validated (arms, dim) tensor."""
        num_arms = contexts.shape[0]
        values = np.zeros(num_arms, dtype=np.float32)
        scores = np.zeros(num_arms, dtype=np.float32)
        grads: list[torch.Tensor] = []

        for i in range(num_arms):
            # One forward/backward per arm gives that arm's own gradient
            fx = self.network(contexts[i : i + 1]).reshape(())
            g = self.store.gradient(fx)
            sigma = self.confidence.exploration_bonus(g)

            fx_val = fx.detach()
            values[i] = fx_val.item()
            scores[i] = (fx_val + sigma).item()
            grads.append(g)

        return values, scores, grads

    def select(self, contexts: torch.Tensor) -> Selection:
        values, scores, grads = self.score(contexts)

        if not np.all(np.isfinite(scores)):
            raise NumericDegeneracyError(f"non-finite UCB scores: {scores.tolist()}")

        # np.argmax returns the first maximal index
        chosen_arm = int(np.argmax(scores))
        g_chosen = grads[chosen_arm]
        self.confidence.update(g_chosen)

        grad_norm = float(torch.linalg.vector_norm(g_chosen).item())
        avg_exploration = float(np.mean(scores - values))
        avg_score = float(np.mean(scores))

        logger.debug(
            "select: %d arms -> arm %d (g=%.4f, ave_sigma=%.4f, ave_score=%.4f)",
            len(scores), chosen_arm, grad_norm, avg_exploration, avg_score,
        )
        return Selection(chosen_arm, grad_norm, avg_exploration, avg_score)
