"""Append-only experience log of (context, reward) observations."""
from __future__ import annotations

from collections import deque
from typing import Iterator, Optional

import numpy as np

__all__ = ["ExperienceLog"]


class ExperienceLog:
    """Ordered (context, reward) pairs used for retraining.

    Entries are appended; the only removal is :meth:`pop`, which the trainer
    uses to take back an observation whose training call failed.  With ``max_history`` set the log behaves
    as a ring buffer and drops its oldest entry once full; by default it grows
    without bound.

    Parameters
    ----------
    dim : int
        Width every stored context must have.
    max_history : int or None
        Capacity; None keeps everything.
    """

    def __init__(self, dim: int, max_history: Optional[int] = None) -> None:
        self.dim = dim
        self.max_history = max_history
        self._contexts: deque[np.ndarray] = deque(maxlen=max_history)
        self._rewards: deque[float] = deque(maxlen=max_history)

    def append(self, context: np.ndarray, reward: float) -> None:
        ctx = np.asarray(context, dtype=np.float32).reshape(-1)
        if ctx.shape[0] != self.dim:
            raise ValueError(f"context width {ctx.shape[0]} != dim {self.dim}")
        self._contexts.append(ctx.copy())
        self._rewards.append(float(np.float32(reward)))

    def __len__(self) -> int:
        return len(self._rewards)

    def __getitem__(self, idx: int) -> tuple[np.ndarray, float]:
        return self._contexts[idx], self._rewards[idx]

    def __iter__(self) -> Iterator[tuple[np.ndarray, float]]:
        return zip(self._contexts, self._rewards)

    def pop(self) -> tuple[np.ndarray, float]:
        """Remove and return the newest entry."""
        return self._contexts.pop(), self._rewards.pop()

    def sample(self, batch_size: int, rng: np.random.Generator) -> np.ndarray:
        """Indices of ``min(batch_size, len)`` entries drawn without replacement."""
        n = len(self)
        return rng.choice(n, size=min(batch_size, n), replace=False)

    def contexts(self) -> np.ndarray:
        """Stacked contexts, shape (n, dim)."""
        if not self._contexts:
            return np.zeros((0, self.dim), dtype=np.float32)
        return np.stack(list(self._contexts)).astype(np.float32)

    def rewards(self) -> np.ndarray:
        """Rewards, shape (n,)."""
        return np.asarray(list(self._rewards), dtype=np.float32)

    def extend(self, contexts: np.ndarray, rewards: np.ndarray) -> None:
        """Append stacked history (oldest first)."""
        contexts = np.asarray(contexts, dtype=np.float32)
        rewards = np.asarray(rewards, dtype=np.float32).reshape(-1)
        if contexts.ndim != 2 or contexts.shape[0] != rewards.shape[0]:
            raise ValueError(
                f"history shapes disagree: contexts {contexts.shape}, rewards {rewards.shape}"
            )
        for ctx, r in zip(contexts, rewards):
            self.append(ctx, float(r))

    def __repr__(self) -> str:
        return f"ExperienceLog(n={len(self)}, dim={self.dim}, max_history={self.max_history})"
