"""Diagonal confidence tracker for NeuralUCB.

NeuralUCB keeps Z_t = λI + Σ_s g_s g_sᵀ, the accumulated outer product of
chosen-arm gradients.  The diagonal variant stores only diag(Z_t):

    U ← λ·𝟙                 (initialisation)
    U ← U + g_c ⊙ g_c        (after each selection of arm c)

and bounds the uncertainty of an arm with gradient g as

    σ = sqrt( Σ_j λ·ν·g_j² / U_j )

Entries of U never decrease: the only update adds squares.
"""
from __future__ import annotations

import torch

__all__ = ["ConfidenceTracker"]


class ConfidenceTracker:
    """Holds U, one float32 scalar per learnable network parameter."""

    def __init__(
        self,
        total_param: int,
        lambda_: float,
        nu: float,
        device: torch.device | str = "cpu",
    ) -> None:
        self.total_param = total_param
        self.lambda_ = float(lambda_)
        self.nu = float(nu)
        self.u = torch.full((total_param,), self.lambda_, dtype=torch.float32, device=device)

    def exploration_bonus(self, g: torch.Tensor) -> torch.Tensor:
        """σ for one flattened gradient (0-dim tensor)."""
        sigma2 = (g * g / self.u) * (self.lambda_ * self.nu)
        return sigma2.sum().sqrt()

    def update(self, g: torch.Tensor) -> None:
        self.u = self.u + g * g

    def load(self, u: torch.Tensor) -> None:
        """Replace U wholesale (snapshot restore)."""
        if tuple(u.shape) != (self.total_param,):
            raise ValueError(
                f"U must have shape ({self.total_param},), got {tuple(u.shape)}"
            )
        self.u = u.to(device=self.u.device, dtype=torch.float32).clone()

    def sum(self) -> float:
        return float(self.u.sum().item())

    def __repr__(self) -> str:
        return (
            f"ConfidenceTracker(total_param={self.total_param}, "
            f"lambda={self.lambda_}, nu={self.nu}, u_sum={self.sum():.4f})"
        )
