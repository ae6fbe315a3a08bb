"""Bandit configuration: frozen, serialisable, validated on construction.

Three layers of configuration:

* ``NeuralUCBConfig``: the hyperparameters that define an agent's shape and
  exploration.  This is what ``config.json`` inside a snapshot holds.
* ``TrainingConfig``: optimiser and loop constants for ``train`` /
  ``train_batch``.
* ``ManagerConfig``: application-level settings for
  :class:`~assistbandit.agents.assist_manager.AssistBanditManager`.

All three can be built from a dict; ``ManagerConfig`` can also be loaded from
YAML.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from assistbandit._paths import BANDIT_STATE_DIR

__all__ = [
    "NeuralUCBConfig",
    "TrainingConfig",
    "ManagerConfig",
    "count_parameters",
]

_TRAIN_MODES = ("train", "batch")


def count_parameters(dim: int, hidden_size: int) -> int:
    """Scalar count of ``w1.weight, w1.bias, w2.weight, w2.bias``."""
    return hidden_size * dim + hidden_size + hidden_size + 1


@dataclass(frozen=True)
class NeuralUCBConfig:
    """Hyperparameters of a NeuralUCB-Diagonal agent.

    ``lambda_`` is serialised as ``"lambda"``.  ``total_param`` is derived
    from the network shape and only checked (never trusted) when read back.
    """

    dim: int
    hidden_size: int = 128
    lambda_: float = 0.05
    nu: float = 1.0

    def __post_init__(self) -> None:
        if self.dim < 1:
            raise ValueError(f"dim must be >= 1, got {self.dim}")
        if self.hidden_size < 1:
            raise ValueError(f"hidden_size must be >= 1, got {self.hidden_size}")
        if not self.lambda_ > 0:
            raise ValueError(f"lambda must be > 0, got {self.lambda_}")
        if not self.nu > 0:
            raise ValueError(f"nu must be > 0, got {self.nu}")

    @property
    def total_param(self) -> int:
        return count_parameters(self.dim, self.hidden_size)

    @classmethod
    def from_dict(cls, d: dict) -> NeuralUCBConfig:
        return cls(
            dim=int(d["dim"]),
            hidden_size=int(d.get("hidden_size", 128)),
            lambda_=float(d.get("lambda", d.get("lambda_", 0.05))),
            nu=float(d.get("nu", 1.0)),
        )

    def to_dict(self) -> dict:
        return {
            "dim": self.dim,
            "hidden_size": self.hidden_size,
            "lambda": self.lambda_,
            "nu": self.nu,
            "total_param": self.total_param,
        }


@dataclass(frozen=True)
class TrainingConfig:
    """Optimiser and loop constants shared by ``train`` and ``train_batch``."""

    learning_rate: float = 0.01
    weight_decay: float = 0.01
    max_updates: int = 100  # hard cap for train(); the real termination guarantee
    convergence_threshold: float = 1e-3
    batch_size: int = 32
    batch_steps: int = 10
    max_history: Optional[int] = None  # None keeps every observation

    def __post_init__(self) -> None:
        if self.learning_rate <= 0:
            raise ValueError(f"learning_rate must be > 0, got {self.learning_rate}")
        if self.max_updates < 1:
            raise ValueError(f"max_updates must be >= 1, got {self.max_updates}")
        if self.batch_size < 1 or self.batch_steps < 1:
            raise ValueError("batch_size and batch_steps must be >= 1")
        if self.max_history is not None and self.max_history < 1:
            raise ValueError(f"max_history must be >= 1 or None, got {self.max_history}")

    @classmethod
    def from_dict(cls, d: dict) -> TrainingConfig:
        known = {k: v for k, v in d.items() if k in cls.__dataclass_fields__}
        return cls(**known)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ManagerConfig:
    """Settings for the application-facing assist manager.

    Defaults mirror the production agent: 128 hidden units, lambda 0.05,
    nu 1.0, full ``train`` after every piece of feedback.
    """

    checkpoint_dir: Path = BANDIT_STATE_DIR
    hidden_size: int = 128
    lambda_: float = 0.05
    nu: float = 1.0
    train_mode: str = "train"  # or "batch"
    autosave: bool = True
    seed: Optional[int] = None
    training: TrainingConfig = field(default_factory=TrainingConfig)

    def __post_init__(self) -> None:
        if self.train_mode not in _TRAIN_MODES:
            raise ValueError(
                f"Unknown train_mode {self.train_mode!r}. Available: {list(_TRAIN_MODES)}"
            )

    def model_config(self, dim: int) -> NeuralUCBConfig:
        return NeuralUCBConfig(
            dim=dim, hidden_size=self.hidden_size, lambda_=self.lambda_, nu=self.nu
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> ManagerConfig:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ManagerConfig:
        return ManagerConfig(
            checkpoint_dir=Path(d.get("checkpoint_dir", BANDIT_STATE_DIR)),
            hidden_size=int(d.get("hidden_size", 128)),
            lambda_=float(d.get("lambda", d.get("lambda_", 0.05))),
            nu=float(d.get("nu", 1.0)),
            train_mode=d.get("train_mode", "train"),
            autosave=bool(d.get("autosave", True)),
            seed=d.get("seed"),
            training=TrainingConfig.from_dict(d.get("training", {})),
        )

    def to_dict(self) -> dict:
        d = asdict(self)
        d["checkpoint_dir"] = str(self.checkpoint_dir)
        d["lambda"] = d.pop("lambda_")
        return d
