"""Assist / no-assist decision manager.

Owns one :class:`NeuralUCBDiag` agent for the application and serialises every
access to it behind a single lock; checkpoint reads and writes run outside
that lock under a separate writer lock.  Each decision is a two-arm bandit round:

    arm 0  no-assist   context = zeros(dim)
    arm 1  assist      context = user context x

``decide`` picks an arm and remembers the context; ``feedback`` trains on the
played arm's row once the user's reaction is known, records a
:class:`DecisionStat` and (optionally) snapshots the agent to disk.

Usage::

    manager = AssistBanditManager(dim=16, config=ManagerConfig.from_yaml("bandit.yaml"))
    manager.initialize()
    sel = manager.decide(x)
    ...
    manager.feedback(sel.chosen_arm, reward=1.0)
"""
from __future__ import annotations

import copy
import logging
import shutil
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import numpy as np

from assistbandit._paths import CONFIG_FILENAME, MODEL_FILENAME
from assistbandit.algorithms.neural_ucb import NeuralUCBDiag
from assistbandit.algorithms.selection import Selection
from assistbandit.config import ManagerConfig
from assistbandit.core.inputs import ASSIST_ARM, NO_ASSIST_ARM, as_context_row, assist_contexts
from assistbandit.errors import BanditError

logger = logging.getLogger(__name__)

__all__ = ["AssistBanditManager", "DecisionStat"]


@dataclass
class DecisionStat:
    """One completed decide → feedback round."""

    to_assist: bool
    reward: float
    loss: float
    label: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class AssistBanditManager:
    """Thread-safe owner of the application's assist bandit.

    Parameters
    ----------
    dim : int
        Width of the user context vector.
    config : ManagerConfig or None
        Hyperparameters, checkpoint location and training mode.
    """

    def __init__(self, dim: int, config: Optional[ManagerConfig] = None) -> None:
        self.dim = dim
        self.config = config or ManagerConfig()
        self._lock = threading.Lock()
        self._save_lock = threading.Lock()
        self._agent: Optional[NeuralUCBDiag] = None
        self._stats: list[DecisionStat] = []
        self._latest_context: Optional[np.ndarray] = None

    @property
    def checkpoint_dir(self) -> Path:
        return Path(self.config.checkpoint_dir)

    @property
    def initialized(self) -> bool:
        return self._agent is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _fresh_agent(self) -> NeuralUCBDiag:
        model = self.config.model_config(self.dim)
        return NeuralUCBDiag.from_config(
            model, training=self.config.training, seed=self.config.seed
        )

    def _load_agent(self) -> Optional[NeuralUCBDiag]:
        if not (self.checkpoint_dir / CONFIG_FILENAME).exists():
            return None
        try:
            agent = NeuralUCBDiag.load(
                self.checkpoint_dir, training=self.config.training, seed=self.config.seed
            )
        except BanditError as e:
            logger.error("Failed to load bandit agent from %s: %s", self.checkpoint_dir, e)
            return None
        if agent.dim != self.dim:
            logger.warning(
                "Checkpoint at %s has dim=%d, expected %d; starting fresh",
                self.checkpoint_dir, agent.dim, self.dim,
            )
            return None
        return agent

    def initialize(self) -> bool:
        """Load the checkpoint if possible, else build a fresh agent.

        Returns True when the agent came from disk.  The checkpoint is read
        under the writer lock only; the decision lock is held just for the swap.
        """
        with self._save_lock:
            agent = self._load_agent()
        loaded = agent is not None
        if agent is None:
            agent = self._fresh_agent()
        with self._lock:
            self._agent = agent

        logger.info(
            "Bandit agent %s: %r", "loaded" if loaded else "initialized", agent
        )
        return loaded

    def _require_agent(self) -> NeuralUCBDiag:
        if self._agent is None:
            raise BanditError("Bandit agent not initialized; call initialize() first")
        return self._agent

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def decide(self, context) -> Selection:
        """Choose between no-assist (0) and assist (1) for ``context``."""
        contexts = assist_contexts(context, self.dim)
        with self._lock:
            agent = self._require_agent()
            selection = agent.select(contexts)
            self._latest_context = contexts[ASSIST_ARM].copy()

        logger.info(
            "Bandit chose arm %d (0=no_assist, 1=assist) [g=%.2f, ave_sigma=%.2f, ave_score=%.2f]",
            selection.chosen_arm, selection.grad_norm,
            selection.avg_exploration, selection.avg_score,
        )
        return selection

    def feedback(
        self,
        chosen_arm: int,
        reward: float,
        context=None,
        label: str = "",
    ) -> float:
        """Train on the played arm and record the round.

        Parameters
        ----------
        chosen_arm : int
            0 (no-assist) or 1 (assist), as returned by :meth:`decide`.
        reward : float
        context : array-like, optional
            User context of the round; defaults to the latest decided one.
        label : str
            Free-form tag stored with the stat (e.g. the user's action).

        Returns
        -------
        float
            Training loss reported by ``train`` / ``train_batch``.
        """
        if chosen_arm not in (NO_ASSIST_ARM, ASSIST_ARM):
            raise ValueError(f"chosen_arm must be 0 or 1, got {chosen_arm}")

        with self._lock:
            agent = self._require_agent()
            if context is None:
                context = self._latest_context
            if context is None:
                raise BanditError("No context supplied and no pending decision")
            row = as_context_row(context, self.dim)
            played = row if chosen_arm == ASSIST_ARM else np.zeros(self.dim, dtype=np.float32)

            update = agent.train if self.config.train_mode == "train" else agent.train_batch
            loss = update(played, reward)
            self._stats.append(
                DecisionStat(
                    to_assist=chosen_arm == ASSIST_ARM,
                    reward=float(reward),
                    loss=float(loss),
                    label=label,
                )
            )

        logger.info(
            "Trained bandit agent with reward %.2f for arm %d (loss=%.4f)",
            reward, chosen_arm, loss,
        )

        if self.config.autosave:
            try:
                self.save()
            except (BanditError, OSError) as e:
                logger.error("Failed to save bandit agent: %s", e)
        return loss

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self) -> Path:
        """Snapshot the agent to ``checkpoint_dir``.

        The agent is copied under the decision lock and written after releasing
        it, so disk I/O never blocks ``decide``/``feedback``.
        """
        with self._lock:
            snapshot = copy.deepcopy(self._require_agent())
        with self._save_lock:
            return snapshot.save(self.checkpoint_dir)

    def delete_checkpoint(self) -> bool:
        """Remove the snapshot files; returns False when there was nothing to delete."""
        removed = False
        with self._save_lock:
            for name in (CONFIG_FILENAME, MODEL_FILENAME):
                path = self.checkpoint_dir / name
                if path.exists():
                    path.unlink()
                    removed = True
            if self.checkpoint_dir.exists() and not any(self.checkpoint_dir.iterdir()):
                shutil.rmtree(self.checkpoint_dir)
        if removed:
            logger.info("Deleted bandit model checkpoint: %s", self.checkpoint_dir)
        return removed

    def restart(self) -> None:
        """Forget everything: drop stats, delete the checkpoint, build a fresh agent."""
        self.delete_checkpoint()
        agent = self._fresh_agent()
        with self._lock:
            self._stats.clear()
            self._latest_context = None
            self._agent = agent
        logger.info("Bandit agent restarted")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def stats(self) -> list[DecisionStat]:
        with self._lock:
            return list(self._stats)

    def latest_context(self) -> Optional[np.ndarray]:
        with self._lock:
            return None if self._latest_context is None else self._latest_context.copy()

    def drop_latest_context(self) -> None:
        with self._lock:
            self._latest_context = None
