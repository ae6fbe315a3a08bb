"""Snapshot save/load for NeuralUCBDiag agents.

Directory layout::

    base_path/
    ├── config.json          {dim, hidden_size, lambda, nu, total_param, training}
    └── model.safetensors    named-tensor container:
            w1.weight, w1.bias, w2.weight, w2.bias   network parameters
            u                                        confidence vector (total_param,)
            context_history                          (n, dim), only when n > 0
            reward_history                           (n,),     only when n > 0

Tensors are matched by name, never by position.  Both files are written to a
temporary file in the same directory and moved into place with
``os.replace``, so a re-save fully replaces the previous snapshot.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Optional

import torch
from safetensors import SafetensorError
from safetensors.torch import load_file, save_file

from assistbandit._paths import CONFIG_FILENAME, MODEL_FILENAME
from assistbandit.config import NeuralUCBConfig, TrainingConfig
from assistbandit.core.network import PARAMETER_NAMES
from assistbandit.errors import CorruptSnapshotError, MissingSnapshotDataError
from assistbandit.algorithms.neural_ucb import NeuralUCBDiag

logger = logging.getLogger(__name__)

__all__ = ["save_agent", "load_agent", "CONTEXT_HISTORY_KEY", "REWARD_HISTORY_KEY", "U_KEY"]

U_KEY = "u"
CONTEXT_HISTORY_KEY = "context_history"
REWARD_HISTORY_KEY = "reward_history"


# ============================================================================
# Save
# ============================================================================


def _atomic_write(target: Path, write: Callable[[str], None]) -> None:
    fd, tmp = tempfile.mkstemp(dir=target.parent, suffix=".tmp")
    os.close(fd)
    try:
        write(tmp)
        os.replace(tmp, str(target))
    except Exception:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


def save_agent(agent: NeuralUCBDiag, base_path: str | Path) -> Path:
    """Write ``config.json`` and ``model.safetensors`` under ``base_path``."""
    base = Path(base_path)
    base.mkdir(parents=True, exist_ok=True)

    metadata = agent.config.to_dict()
    metadata["training"] = agent.training_config.to_dict()

    def _write_json(tmp: str) -> None:
        with open(tmp, "w") as f:
            json.dump(metadata, f, indent=2)

    tensors = agent.parameters.snapshot()
    tensors[U_KEY] = agent.u.detach().to("cpu").clone().contiguous()
    n = len(agent.experience)
    if n > 0:
        tensors[CONTEXT_HISTORY_KEY] = torch.from_numpy(agent.experience.contexts()).contiguous()
        tensors[REWARD_HISTORY_KEY] = torch.from_numpy(agent.experience.rewards()).contiguous()

    _atomic_write(base / CONFIG_FILENAME, _write_json)
    _atomic_write(base / MODEL_FILENAME, lambda tmp: save_file(tensors, tmp))

    logger.info(
        "Saved bandit agent to %s (%d params, %d experience(s), u_sum=%.4f)",
        base, agent.total_param, n, agent.confidence.sum(),
    )
    return base


# ============================================================================
# Load
# ============================================================================


def _read_metadata(path: Path) -> tuple[NeuralUCBConfig, TrainingConfig]:
    if not path.exists():
        raise MissingSnapshotDataError(f"No snapshot metadata at {path}")
    try:
        raw = json.loads(path.read_text())
        config = NeuralUCBConfig.from_dict(raw)
        training = TrainingConfig.from_dict(raw.get("training", {}))
        saved_total = raw.get("total_param")
        if saved_total is not None:
            saved_total = int(saved_total)
    except (json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as e:
        raise CorruptSnapshotError(f"Unreadable snapshot metadata {path}: {e}") from e

    if saved_total is not None and saved_total != config.total_param:
        raise CorruptSnapshotError(
            f"total_param {saved_total} in {path} does not match "
            f"dim={config.dim}, hidden_size={config.hidden_size} ({config.total_param})"
        )
    return config, training


def _read_tensors(path: Path) -> dict[str, torch.Tensor]:
    if not path.exists():
        raise MissingSnapshotDataError(f"No tensor container at {path}")
    try:
        return load_file(str(path), device="cpu")
    except (SafetensorError, OSError) as e:
        raise CorruptSnapshotError(f"Unreadable tensor container {path}: {e}") from e


def _expect_shape(name: str, tensor: torch.Tensor, shape: tuple[int, ...]) -> None:
    if tuple(tensor.shape) != shape:
        raise CorruptSnapshotError(
            f"Tensor {name!r} has shape {tuple(tensor.shape)}, expected {shape}"
        )


def load_agent(
    base_path: str | Path,
    training: Optional[TrainingConfig] = None,
    seed: Optional[int] = None,
    device: str = "cpu",
) -> NeuralUCBDiag:
    """Rebuild an agent from a snapshot directory.

    Parameters
    ----------
    base_path : str or Path
    training : TrainingConfig, optional
        Overrides the training constants stored in the snapshot.
    seed : int, optional
        Seeds the restored agent's shuffling/sampling generator.
    device : str

    Raises
    ------
    MissingSnapshotDataError
        No ``config.json``, no container, no ``"u"`` or a missing parameter.
    CorruptSnapshotError
        Unparsable files, invalid metadata or training values, tensors of the
        wrong shape, or a half-present history.
    """
    base = Path(base_path)
    config, stored_training = _read_metadata(base / CONFIG_FILENAME)
    tensors = _read_tensors(base / MODEL_FILENAME)

    if training is None:
        training = stored_training

    agent = NeuralUCBDiag.from_config(config, training=training, seed=seed, device=device)

    for name in PARAMETER_NAMES:
        if name not in tensors:
            raise MissingSnapshotDataError(f"Missing parameter tensor {name!r} in {base}")
        _expect_shape(name, tensors[name], agent.parameters.shape(name))
        agent.parameters.assign(name, tensors[name])

    if U_KEY not in tensors:
        raise MissingSnapshotDataError(f"Missing {U_KEY!r} tensor in {base}")
    _expect_shape(U_KEY, tensors[U_KEY], (config.total_param,))
    agent.confidence.load(tensors[U_KEY])

    has_contexts = CONTEXT_HISTORY_KEY in tensors
    has_rewards = REWARD_HISTORY_KEY in tensors
    if has_contexts != has_rewards:
        raise CorruptSnapshotError(
            f"{base} holds only one of {CONTEXT_HISTORY_KEY!r}/{REWARD_HISTORY_KEY!r}"
        )
    if has_contexts:
        contexts = tensors[CONTEXT_HISTORY_KEY]
        rewards = tensors[REWARD_HISTORY_KEY]
        n = rewards.shape[0] if rewards.ndim == 1 else -1
        _expect_shape(REWARD_HISTORY_KEY, rewards, (n,))
        _expect_shape(CONTEXT_HISTORY_KEY, contexts, (n, config.dim))
        agent.experience.extend(contexts.numpy(), rewards.numpy())

    logger.info(
        "Loaded bandit agent from %s (dim=%d, hidden=%d, %d experience(s))",
        base, config.dim, config.hidden_size, len(agent.experience),
    )
    return agent
