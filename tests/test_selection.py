"""Tests for assistbandit.algorithms.selection — UCB scoring, arm choice, U updates."""
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest
import numpy as np
import torch


def _agent(dim=8, hidden=16, seed=0, **kw):
    from assistbandit.algorithms.neural_ucb import NeuralUCBDiag
    return NeuralUCBDiag(dim=dim, lambda_=0.1, nu=0.2, hidden_size=hidden, seed=seed, **kw)


# =====================================================================
# Arm choice
# =====================================================================

class TestSelect:
    def test_chosen_arm_in_range(self):
        agent = _agent()
        rng = np.random.default_rng(0)
        for _ in range(20):
            k = int(rng.integers(1, 6))
            sel = agent.select(rng.standard_normal((k, 8)))
            assert 0 <= sel.chosen_arm < k, f"arm {sel.chosen_arm} out of range for {k} arms"
            assert sel.grad_norm >= 0.0
            assert sel.avg_exploration >= 0.0

    def test_one_dimensional_input_is_one_arm(self):
        flat, row = _agent(seed=5), _agent(seed=5)
        x = np.linspace(-1.0, 1.0, 8)
        u_before = float(flat.u.sum())
        sel = flat.select(x)
        assert sel.chosen_arm == 0
        assert float(flat.u.sum()) > u_before

        same = row.select(x.reshape(1, 8))
        assert same.chosen_arm == 0
        assert torch.allclose(flat.u, row.u)

    def test_ties_go_to_lowest_index(self):
        agent = _agent()
        x = np.random.default_rng(3).standard_normal(8)
        sel = agent.select(np.stack([x, x, x]))
        assert sel.chosen_arm == 0

    def test_picks_highest_score(self):
        from assistbandit.core.inputs import as_context_matrix
        agent = _agent()
        contexts = np.random.default_rng(4).standard_normal((5, 8))
        x = as_context_matrix(contexts, 8, agent.device)
        _, scores, _ = agent._selector.score(x)
        sel = agent.select(contexts)
        assert sel.chosen_arm == int(np.argmax(scores))
        assert sel.avg_score == pytest.approx(float(np.mean(scores)), rel=1e-5)

    def test_select_does_not_touch_weights(self):
        agent = _agent()
        before = agent.parameters.snapshot()
        agent.select(np.random.default_rng(5).standard_normal((3, 8)))
        after = agent.parameters.snapshot()
        for name in before:
            assert torch.equal(before[name], after[name]), f"{name} changed during select"


# =====================================================================
# Confidence vector
# =====================================================================

class TestConfidenceUpdate:
    def test_u_starts_at_lambda(self):
        agent = _agent()
        assert agent.u.shape == (agent.total_param,)
        assert torch.allclose(agent.u, torch.full((agent.total_param,), 0.1))

    def test_u_gains_chosen_gradient_squared(self):
        from assistbandit.core.inputs import as_context_matrix
        agent = _agent()
        contexts = np.random.default_rng(6).standard_normal((3, 8))
        x = as_context_matrix(contexts, 8, agent.device)
        _, _, grads = agent._selector.score(x)

        u_before = agent.u.clone()
        sel = agent.select(contexts)
        expected = u_before + grads[sel.chosen_arm] ** 2
        assert torch.allclose(agent.u, expected, atol=1e-6)
        assert sel.grad_norm == pytest.approx(
            torch.linalg.vector_norm(grads[sel.chosen_arm]).item(), rel=1e-5
        )

    def test_u_monotone(self):
        agent = _agent()
        rng = np.random.default_rng(7)
        prev = agent.u.clone()
        for i in range(15):
            agent.select(rng.standard_normal((2, 8)))
            if i % 3 == 0:
                agent.train(rng.standard_normal(8), float(rng.normal()))
            assert torch.all(agent.u >= prev), "U decreased"
            # ∂f/∂b₂ = 1, so every selection grows U by at least 1
            assert agent.u.sum().item() > prev.sum().item()
            prev = agent.u.clone()

    def test_repeated_context_shrinks_exploration(self):
        agent = _agent()
        x = np.random.default_rng(8).standard_normal((1, 8))
        first = agent.select(x).avg_exploration
        for _ in range(10):
            last = agent.select(x).avg_exploration
        assert last < first, f"exploration {last} did not shrink from {first}"


# =====================================================================
# Errors
# =====================================================================

class TestSelectErrors:
    def test_wrong_width(self):
        from assistbandit.errors import DimensionMismatchError
        agent = _agent()
        u_before = agent.u.clone()
        with pytest.raises(DimensionMismatchError):
            agent.select(np.zeros((2, 7)))
        assert torch.equal(agent.u, u_before)

    def test_no_arms(self):
        from assistbandit.errors import DimensionMismatchError
        agent = _agent()
        with pytest.raises(DimensionMismatchError):
            agent.select(np.zeros((0, 8)))

    def test_nan_context_leaves_u_unchanged(self):
        from assistbandit.errors import NumericDegeneracyError
        agent = _agent()
        u_before = agent.u.clone()
        contexts = np.zeros((2, 8))
        contexts[1, 0] = np.nan
        with pytest.raises(NumericDegeneracyError):
            agent.select(contexts)
        assert torch.equal(agent.u, u_before)


def test_concrete_scenario_select_after_training():
    """dim=8, hidden=16, λ=0.1, ν=0.2; 10 rounds with reward 0.1·i, then select on 3 arms."""
    agent = _agent(seed=42)
    rng = np.random.default_rng(42)
    for i in range(10):
        loss = agent.train(rng.standard_normal(8), 0.1 * i)
        assert np.isfinite(loss)
    sel = agent.select(rng.standard_normal((3, 8)))
    assert sel.chosen_arm in (0, 1, 2)
    assert sel.grad_norm >= 0.0
    assert len(agent.experience) == 10
