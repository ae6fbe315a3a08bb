"""Tests for assistbandit.algorithms.trainer — train to convergence and bounded train_batch."""
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest
import numpy as np
import torch


def _agent(training=None, seed=0):
    from assistbandit.algorithms.neural_ucb import NeuralUCBDiag
    return NeuralUCBDiag(dim=4, lambda_=0.1, nu=0.2, hidden_size=16, training=training, seed=seed)


def _count_steps(agent, monkeypatch):
    """Wrap the trainer's per-example step and return a list that records each call."""
    calls = []
    original = agent._trainer._step

    def counting_step(optimizer, idx):
        calls.append(idx)
        return original(optimizer, idx)

    monkeypatch.setattr(agent._trainer, "_step", counting_step)
    return calls


# =====================================================================
# train
# =====================================================================

class TestTrain:
    def test_train_updates_weights_and_log(self):
        agent = _agent()
        before = agent.parameters.snapshot()
        loss = agent.train(np.ones(4), 1.0)
        assert np.isfinite(loss) and loss >= 0.0
        assert len(agent.experience) == 1
        after = agent.parameters.snapshot()
        assert any(not torch.equal(before[k], after[k]) for k in before)

    def test_train_leaves_u_alone(self):
        agent = _agent()
        u_before = agent.u.clone()
        agent.train(np.ones(4), 1.0)
        assert torch.equal(agent.u, u_before)

    def test_repeated_training_fits_target(self):
        agent = _agent(seed=1)
        x = np.array([0.5, -0.3, 0.8, 0.1])
        losses = [agent.train(x, 0.5) for _ in range(5)]
        assert losses[-1] < 0.05, f"final loss {losses[-1]} too high: {losses}"
        pred = agent.predict(x)[0]
        assert abs(pred - 0.5) < 0.2, f"prediction {pred} far from 0.5"

    def test_update_cap_bounds_steps(self, monkeypatch):
        from assistbandit.config import TrainingConfig
        agent = _agent(TrainingConfig(max_updates=5, convergence_threshold=0.0))
        calls = _count_steps(agent, monkeypatch)
        rng = np.random.default_rng(0)
        for _ in range(3):
            calls.clear()
            agent.train(rng.standard_normal(4), float(rng.normal()))
            assert len(calls) == 5, f"expected 5 updates, got {len(calls)}"

    def test_convergence_stops_after_one_sweep(self, monkeypatch):
        from assistbandit.config import TrainingConfig
        agent = _agent(TrainingConfig(convergence_threshold=1e9))
        calls = _count_steps(agent, monkeypatch)
        rng = np.random.default_rng(1)
        for n in range(1, 5):
            calls.clear()
            agent.train(rng.standard_normal(4), 0.0)
            # one shuffled sweep touches every example exactly once
            assert sorted(calls) == list(range(n))

    def test_non_finite_reward(self):
        from assistbandit.errors import NumericDegeneracyError
        agent = _agent()
        for bad in (float("nan"), float("inf")):
            with pytest.raises(NumericDegeneracyError):
                agent.train(np.ones(4), bad)
        assert len(agent.experience) == 0

    def test_reward_outside_float32_range(self):
        from assistbandit.errors import NumericDegeneracyError
        agent = _agent()
        with pytest.raises(NumericDegeneracyError):
            agent.train(np.ones(4), 1e39)
        assert len(agent.experience) == 0

    def test_large_finite_reward_keeps_agent_usable(self):
        agent = _agent()
        big = float(np.float32(1e20))
        assert np.isfinite(agent.train(np.ones(4), big))
        assert np.isfinite(agent.train(np.zeros(4), 0.5))
        assert np.isfinite(agent.train_batch(np.ones(4), 0.0))
        assert len(agent.experience) == 3
        for name, p in agent.parameters.snapshot().items():
            assert torch.isfinite(p).all(), f"{name} went non-finite"

    def test_overflowing_gradient_rolls_back(self):
        from assistbandit.errors import NumericDegeneracyError
        agent = _agent()
        agent.train(np.ones(4), 0.5)
        # the squared error fits float64 but its gradient overflows float32
        with pytest.raises(NumericDegeneracyError):
            agent.train(np.ones(4), 3.0e38)
        assert agent.experience.rewards().tolist() == [0.5]
        for name, p in agent.parameters.snapshot().items():
            assert torch.isfinite(p).all(), f"{name} went non-finite"

        assert np.isfinite(agent.train(np.zeros(4), 0.0))
        assert len(agent.experience) == 2

    def test_wrong_width(self):
        from assistbandit.errors import DimensionMismatchError
        agent = _agent()
        with pytest.raises(DimensionMismatchError):
            agent.train(np.ones(5), 1.0)
        assert len(agent.experience) == 0

    def test_max_history_ring_buffer(self):
        from assistbandit.config import TrainingConfig
        agent = _agent(TrainingConfig(max_history=3, max_updates=3))
        for i in range(5):
            agent.train(np.full(4, float(i)), float(i))
        assert len(agent.experience) == 3
        assert agent.experience.rewards().tolist() == [2.0, 3.0, 4.0]


# =====================================================================
# train_batch
# =====================================================================

class TestTrainBatch:
    def test_step_count_is_bounded(self, monkeypatch):
        from assistbandit.config import TrainingConfig
        agent = _agent(TrainingConfig(batch_size=4, batch_steps=3))
        calls = _count_steps(agent, monkeypatch)
        rng = np.random.default_rng(2)
        for n in range(1, 9):
            calls.clear()
            loss = agent.train_batch(rng.standard_normal(4), float(rng.normal()))
            assert np.isfinite(loss) and loss >= 0.0
            assert len(calls) == 3 * min(4, n)

    def test_batches_sample_without_replacement(self, monkeypatch):
        from assistbandit.config import TrainingConfig
        agent = _agent(TrainingConfig(batch_size=4, batch_steps=1))
        rng = np.random.default_rng(3)
        for _ in range(6):
            agent.train_batch(rng.standard_normal(4), 0.0)
        calls = _count_steps(agent, monkeypatch)
        agent.train_batch(rng.standard_normal(4), 0.0)
        assert len(calls) == 4 and len(set(calls)) == 4

    def test_train_batch_reduces_error(self):
        agent = _agent(seed=2)
        x = np.array([1.0, 0.0, -1.0, 0.5])
        before = abs(agent.predict(x)[0] - 1.0)
        for _ in range(10):
            agent.train_batch(x, 1.0)
        after = abs(agent.predict(x)[0] - 1.0)
        assert after < before, f"error {after} did not drop below {before}"

    def test_non_finite_reward(self):
        from assistbandit.errors import NumericDegeneracyError
        agent = _agent()
        with pytest.raises(NumericDegeneracyError):
            agent.train_batch(np.ones(4), float("nan"))
        assert len(agent.experience) == 0

    def test_overflowing_gradient_rolls_back(self):
        from assistbandit.errors import NumericDegeneracyError
        agent = _agent()
        agent.train_batch(np.ones(4), 0.5)
        with pytest.raises(NumericDegeneracyError):
            agent.train_batch(np.ones(4), -3.0e38)
        assert len(agent.experience) == 1
        assert np.isfinite(agent.train_batch(np.zeros(4), 0.0))
        assert len(agent.experience) == 2
