"""NeuralUCB-Diagonal contextual bandit agent.

Composes the reward network, its parameter store, the diagonal confidence
tracker and the experience log behind two public operations:

    select(contexts)       -> Selection    (score arms, update U)
    train(context, reward) -> loss         (append, retrain to convergence)

plus ``train_batch`` for cheaper bounded updates and ``save``/``load`` for
snapshots.

Typical round::

    agent = NeuralUCBDiag(dim=8, lambda_=0.1, nu=0.2, hidden_size=16, seed=0)
    sel = agent.select(contexts)                  # contexts: (arms, dim)
    reward = environment(sel.chosen_arm)
    agent.train(contexts[sel.chosen_arm], reward)

The agent owns all of its state and is not synchronised.  Callers sharing one
agent across threads must hold a lock for the whole select → train
round-trip (see :class:`~assistbandit.agents.assist_manager.AssistBanditManager`).

References:
    Zhou, Li & Gu (2020) "Neural Contextual Bandits with UCB-based Exploration"
    https://arxiv.org/abs/1911.04462
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import numpy as np
import torch

from assistbandit.config import NeuralUCBConfig, TrainingConfig
from assistbandit.core.confidence import ConfidenceTracker
from assistbandit.core.experience import ExperienceLog
from assistbandit.core.inputs import as_context_matrix, as_context_row
from assistbandit.core.network import Network, ParameterStore, resolve_device
from assistbandit.algorithms.selection import Selection, SelectionEngine
from assistbandit.algorithms.trainer import Trainer

logger = logging.getLogger(__name__)

__all__ = ["NeuralUCBDiag"]


class NeuralUCBDiag:
    """NeuralUCB agent with a diagonal approximation of the gradient covariance.

    Parameters
    ----------
    dim : int
        Context width.
    lambda_ : float
        Regularisation coefficient λ; U starts at λ·𝟙.
    nu : float
        Exploration scale ν.
    hidden_size : int
        Width of the single hidden layer.
    training : TrainingConfig or None
        Optimiser and loop constants; defaults to ``TrainingConfig()``.
    seed : int or None
        Seeds weight initialisation and the shuffling/sampling generator.
    device : str
        "cpu", "cuda" or "auto".
    """

    def __init__(
        self,
        dim: int,
        lambda_: float = 0.05,
        nu: float = 1.0,
        hidden_size: int = 128,
        training: Optional[TrainingConfig] = None,
        seed: Optional[int] = None,
        device: str = "cpu",
    ) -> None:
        self.config = NeuralUCBConfig(dim=dim, hidden_size=hidden_size, lambda_=lambda_, nu=nu)
        self.training_config = training or TrainingConfig()
        self.device = resolve_device(device)

        if seed is not None:
            torch.manual_seed(seed)
        self._rng = np.random.default_rng(seed)

        self.network = Network(dim, hidden_size).to(self.device)
        self.parameters = ParameterStore(self.network)
        self.confidence = ConfidenceTracker(
            self.parameters.total_param, lambda_, nu, device=self.device
        )
        self.experience = ExperienceLog(dim, max_history=self.training_config.max_history)

        self._selector = SelectionEngine(self.network, self.parameters, self.confidence)
        self._trainer = Trainer(
            self.network, self.parameters, self.experience, self.training_config, self._rng
        )

        logger.info(
            "NeuralUCBDiag(dim=%d, hidden=%d, lambda=%.4g, nu=%.4g, params=%d, device=%s)",
            dim, hidden_size, lambda_, nu, self.parameters.total_param, self.device,
        )

    @classmethod
    def from_config(
        cls,
        config: NeuralUCBConfig,
        training: Optional[TrainingConfig] = None,
        seed: Optional[int] = None,
        device: str = "cpu",
    ) -> NeuralUCBDiag:
        return cls(
            dim=config.dim,
            lambda_=config.lambda_,
            nu=config.nu,
            hidden_size=config.hidden_size,
            training=training,
            seed=seed,
            device=device,
        )

    # ------------------------------------------------------------------
    # Hyperparameters
    # ------------------------------------------------------------------

    @property
    def dim(self) -> int:
        return self.config.dim

    @property
    def lambda_(self) -> float:
        return self.config.lambda_

    @property
    def nu(self) -> float:
        return self.config.nu

    @property
    def total_param(self) -> int:
        return self.parameters.total_param

    @property
    def u(self) -> torch.Tensor:
        return self.confidence.u

    # ------------------------------------------------------------------
    # Bandit operations
    # ------------------------------------------------------------------

    def select(self, contexts) -> Selection:
        """Pick an arm from a (arms, dim) context matrix and update U.

        A 1-D ``(dim,)`` input is one arm, not a batch of scalars: the result
        is always arm 0, and U still grows by that row's gradient.

        Raises
        ------
        DimensionMismatchError
            No rows, or rows not exactly ``dim`` wide.
        NumericDegeneracyError
            A score came out NaN/Inf; U is left unchanged.
        """
        x = as_context_matrix(contexts, self.dim, self.device)
        return self._selector.select(x)

    def train(self, context, reward: float) -> float:
        """Record the played arm's (context, reward) and retrain to convergence."""
        row = as_context_row(context, self.dim)
        return self._trainer.train(row, reward)

    def train_batch(self, context, reward: float) -> float:
        """Record the played arm's (context, reward) and take a few mini-batch steps."""
        row = as_context_row(context, self.dim)
        return self._trainer.train_batch(row, reward)

    def predict(self, contexts) -> np.ndarray:
        """Network estimate f(x) for each row, without exploration."""
        x = as_context_matrix(contexts, self.dim, self.device)
        with torch.no_grad():
            return self.network(x).squeeze(-1).cpu().numpy()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, base_path: str | Path) -> Path:
        from assistbandit.algorithms.persistence import save_agent

        return save_agent(self, base_path)

    @classmethod
    def load(
        cls,
        base_path: str | Path,
        training: Optional[TrainingConfig] = None,
        seed: Optional[int] = None,
        device: str = "cpu",
    ) -> NeuralUCBDiag:
        from assistbandit.algorithms.persistence import load_agent

        return load_agent(base_path, training=training, seed=seed, device=device)

    def __repr__(self) -> str:
        return (
            f"NeuralUCBDiag(dim={self.dim}, hidden={self.config.hidden_size}, "
            f"lambda={self.lambda_}, nu={self.nu}, params={self.total_param:,}, "
            f"history={len(self.experience)})"
        )
