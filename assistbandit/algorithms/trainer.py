"""Online gradient training of the reward network.

Two entry points, both starting by appending the new observation:

``train``
    Sweeps the whole experience log in shuffled order, one AdamW step per
    example, until either the mean squared error of a full sweep drops to
    ``convergence_threshold`` or ``max_updates`` steps have been taken.  The
    update cap is what guarantees termination; convergence is only an early
    exit.

``train_batch``
    A fixed number of mini-batch passes (``batch_steps``), each over
    ``min(batch_size, len(log))`` examples drawn without replacement.  Bounded
    time, meant for high-frequency feedback.

Loss per example: (f(x; θ) − r)², evaluated in float64 so that large rewards
do not overflow.  A fresh optimiser is built on every call, so Adam moment
estimates do not carry over between calls.

A call either trains or leaves the log as it found it: when a step produces a
non-finite loss or gradient the new observation is removed again before
``NumericDegeneracyError`` propagates.
"""
from __future__ import annotations

import logging
import math

import numpy as np
import torch
import torch.optim as optim

from assistbandit.config import TrainingConfig
from assistbandit.core.experience import ExperienceLog
from assistbandit.core.network import Network, ParameterStore
from assistbandit.errors import NumericDegeneracyError

logger = logging.getLogger(__name__)

__all__ = ["Trainer"]

_FLOAT32_MAX = float(np.finfo(np.float32).max)


class Trainer:
    """SGD (AdamW) updates of a :class:`ParameterStore` against an :class:`ExperienceLog`.

    Parameters
    ----------
    network : Network
    store : ParameterStore
        Named view over ``network``'s parameters; these are what get updated.
    experience : ExperienceLog
    config : TrainingConfig
    rng : np.random.Generator
        Drives shuffling and mini-batch sampling.
    """

    def __init__(
        self,
        network: Network,
        store: ParameterStore,
        experience: ExperienceLog,
        config: TrainingConfig,
        rng: np.random.Generator,
    ) -> None:
        self.network = network
        self.store = store
        self.experience = experience
        self.config = config
        self._rng = rng

    def _make_optimizer(self) -> optim.Optimizer:
        return optim.AdamW(
            self.store.parameters(),
            lr=self.config.learning_rate,
            weight_decay=self.config.weight_decay,
        )

    def _step(self, optimizer: optim.Optimizer, idx: int) -> float:
        """One optimiser step on experience ``idx``; returns its pre-step loss.

        Nothing is applied when the loss or any gradient is non-finite.
        """
        ctx, reward = self.experience[idx]
        device = self.store["w1.weight"].device
        x = torch.from_numpy(ctx).to(device).unsqueeze(0)

        pred = self.network(x).double()
        loss = (pred - reward).pow(2).sum()
        loss_val = float(loss.item())
        if not math.isfinite(loss_val):
            raise NumericDegeneracyError(f"non-finite training loss at experience {idx}")

        optimizer.zero_grad()
        loss.backward()
        for name, param in zip(self.store.names(), self.store.parameters()):
            if param.grad is not None and not torch.isfinite(param.grad).all():
                optimizer.zero_grad()
                raise NumericDegeneracyError(
                    f"non-finite gradient for {name} at experience {idx}"
                )
        optimizer.step()
        return loss_val

    @staticmethod
    def _check_reward(reward: float) -> float:
        reward = float(reward)
        # stored as float32, so it must survive that cast
        if not (math.isfinite(reward) and abs(reward) <= _FLOAT32_MAX):
            raise NumericDegeneracyError(f"reward must be a finite float32, got {reward}")
        return reward

    def _record(self, context: np.ndarray, reward: float) -> None:
        self.experience.append(context, self._check_reward(reward))

    def train(self, context: np.ndarray, reward: float) -> float:
        """Append (context, reward) and retrain until convergence or the update cap."""
        self._record(context, reward)
        try:
            return self._fit()
        except NumericDegeneracyError:
            self.experience.pop()
            raise

    def train_batch(self, context: np.ndarray, reward: float) -> float:
        """Append (context, reward) and take ``batch_steps`` mini-batch passes."""
        self._record(context, reward)
        try:
            return self._fit_batches()
        except NumericDegeneracyError:
            self.experience.pop()
            raise

    def _fit(self) -> float:
        optimizer = self._make_optimizer()
        n = len(self.experience)
        indices = np.arange(n)
        max_updates = self.config.max_updates

        total_loss = 0.0
        updates = 0
        sweeps = 0
        while True:
            self._rng.shuffle(indices)
            sweep_loss = 0.0
            for idx in indices:
                loss_val = self._step(optimizer, int(idx))
                sweep_loss += loss_val
                total_loss += loss_val
                updates += 1
                if updates >= max_updates:
                    logger.debug(
                        "train: hit update cap %d after %d sweep(s) (n=%d)",
                        max_updates, sweeps, n,
                    )
                    return total_loss / max_updates
            sweeps += 1

            mean_loss = sweep_loss / n
            if mean_loss <= self.config.convergence_threshold:
                logger.debug(
                    "train: converged after %d sweep(s), %d update(s), loss=%.6f",
                    sweeps, updates, mean_loss,
                )
                return mean_loss

    def _fit_batches(self) -> float:
        optimizer = self._make_optimizer()
        steps = self.config.batch_steps

        total_loss = 0.0
        for _ in range(steps):
            chosen = self.experience.sample(self.config.batch_size, self._rng)
            batch_loss = 0.0
            for idx in chosen:
                batch_loss += self._step(optimizer, int(idx))
            total_loss += batch_loss / len(chosen)

        avg_loss = total_loss / steps
        logger.debug(
            "train_batch: %d step(s) over n=%d, avg loss=%.6f",
            steps, len(self.experience), avg_loss,
        )
        return avg_loss
