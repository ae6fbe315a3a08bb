"""Reward network and its named parameter store.

The value estimate is a two-layer ReLU network:

    f(x; θ) = W₂ · relu(W₁ · x + b₁) + b₂

with θ = (W₁ ∈ R^{h×d}, b₁ ∈ R^h, W₂ ∈ R^{1×h}, b₂ ∈ R).

Every learnable tensor is addressed by a stable name (``w1.weight``,
``w1.bias``, ``w2.weight``, ``w2.bias``).  ``PARAMETER_NAMES`` also fixes the
order in which per-parameter quantities (gradients, the confidence vector U)
are flattened, so nothing depends on module iteration order.
"""
from __future__ import annotations

from typing import Iterator, Optional, Sequence

import torch
import torch.nn as nn

__all__ = [
    "PARAMETER_NAMES",
    "Network",
    "ParameterStore",
    "resolve_device",
]

PARAMETER_NAMES: tuple[str, ...] = ("w1.weight", "w1.bias", "w2.weight", "w2.bias")


def resolve_device(device: str | torch.device = "cpu") -> torch.device:
    """Map ``"auto"`` to CUDA when available, anything else to itself."""
    if device == "auto":
        return torch.device("cuda" if torch.cuda.is_available() else "cpu")
    return torch.device(device)


class Network(nn.Module):
    """W₂ · relu(W₁ · x) with biases; one scalar output per input row."""

    def __init__(self, dim: int, hidden_size: int) -> None:
        super().__init__()
        self.dim = dim
        self.hidden_size = hidden_size
        self.w1 = nn.Linear(dim, hidden_size)
        self.w2 = nn.Linear(hidden_size, 1)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """(batch, dim) -> (batch, 1)."""
        return self.w2(torch.relu(self.w1(x)))


class ParameterStore:
    """Named view over the learnable tensors of a :class:`Network`.

    The store does not copy anything: it holds references to the network's
    ``nn.Parameter`` objects, so in-place optimiser steps are visible here and
    :meth:`assign` writes straight into the network.
    """

    def __init__(self, network: Network) -> None:
        named = dict(network.named_parameters())
        if set(named) != set(PARAMETER_NAMES):
            raise ValueError(
                f"Network parameters {sorted(named)} do not match {list(PARAMETER_NAMES)}"
            )
        self._params: dict[str, nn.Parameter] = {name: named[name] for name in PARAMETER_NAMES}

    def __getitem__(self, name: str) -> nn.Parameter:
        return self._params[name]

    def __iter__(self) -> Iterator[str]:
        return iter(PARAMETER_NAMES)

    def __len__(self) -> int:
        return len(self._params)

    def names(self) -> tuple[str, ...]:
        return PARAMETER_NAMES

    def parameters(self) -> list[nn.Parameter]:
        """Parameters in canonical order."""
        return [self._params[name] for name in PARAMETER_NAMES]

    @property
    def total_param(self) -> int:
        return sum(p.numel() for p in self._params.values())

    def shape(self, name: str) -> tuple[int, ...]:
        return tuple(self._params[name].shape)

    def snapshot(self) -> dict[str, torch.Tensor]:
        """Detached, contiguous CPU copies keyed by name."""
        return {
            name: p.detach().to("cpu").clone().contiguous()
            for name, p in self._params.items()
        }

    def assign(self, name: str, value: torch.Tensor) -> None:
        """Overwrite one parameter in place (shape must already match)."""
        param = self._params[name]
        with torch.no_grad():
            param.copy_(value.to(device=param.device, dtype=param.dtype))

    def flatten(self, tensors: Sequence[Optional[torch.Tensor]]) -> torch.Tensor:
        """Concatenate per-parameter tensors in canonical order.

        ``None`` entries (no gradient contribution) are zero-filled.
        """
        parts = []
        for param, t in zip(self.parameters(), tensors):
            if t is None:
                t = torch.zeros_like(param)
            parts.append(t.reshape(-1))
        return torch.cat(parts)

    def gradient(self, output: torch.Tensor) -> torch.Tensor:
        """∂output/∂θ flattened to a vector of length ``total_param``.

        Uses ``torch.autograd.grad`` so ``.grad`` buffers (owned by the
        optimiser) are left untouched.
        """
        grads = torch.autograd.grad(
            output, self.parameters(), retain_graph=False, allow_unused=True
        )
        return self.flatten(grads).detach()
