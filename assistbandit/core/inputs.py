"""Shape checks and tensor conversion for caller-supplied contexts."""
from __future__ import annotations

import numpy as np
import torch

from assistbandit.errors import DimensionMismatchError

__all__ = [
    "NO_ASSIST_ARM",
    "ASSIST_ARM",
    "as_context_matrix",
    "as_context_row",
    "assist_contexts",
]


def _to_numpy(contexts) -> np.ndarray:
    if isinstance(contexts, torch.Tensor):
        contexts = contexts.detach().to("cpu").numpy()
    return np.asarray(contexts, dtype=np.float32)


def as_context_matrix(contexts, dim: int, device: torch.device) -> torch.Tensor:
    """Validate a (arms, dim) context matrix and move it to ``device``.

    A single 1-D row is treated as one arm.
    """
    arr = _to_numpy(contexts)
    if arr.ndim == 1:
        arr = arr.reshape(1, -1)
    if arr.ndim != 2:
        raise DimensionMismatchError(f"contexts must be 2-D (arms, dim), got shape {arr.shape}")
    if arr.shape[0] < 1:
        raise DimensionMismatchError("at least one arm is required")
    if arr.shape[1] != dim:
        raise DimensionMismatchError(f"context width {arr.shape[1]} != dim {dim}")
    return torch.from_numpy(np.ascontiguousarray(arr)).to(device)


def as_context_row(context, dim: int) -> np.ndarray:
    """Validate one context given as (dim,) or (1, dim); return a flat float32 row."""
    arr = _to_numpy(context)
    if arr.ndim == 2 and arr.shape[0] == 1:
        arr = arr[0]
    if arr.ndim != 1 or arr.shape[0] != dim:
        raise DimensionMismatchError(
            f"context must have shape ({dim},) or (1, {dim}), got {arr.shape}"
        )
    return arr.copy()


NO_ASSIST_ARM = 0
ASSIST_ARM = 1


def assist_contexts(context, dim: int) -> np.ndarray:
    """Two-arm matrix ``[zeros(dim), context]``: row 0 no-assist, row 1 assist."""
    row = as_context_row(context, dim)
    return np.stack([np.zeros(dim, dtype=np.float32), row])
