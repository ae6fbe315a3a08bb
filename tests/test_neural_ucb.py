"""End-to-end learning tests for NeuralUCBDiag on synthetic environments."""
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest
import numpy as np


def _agent(dim, seed=0):
    from assistbandit.algorithms.neural_ucb import NeuralUCBDiag
    return NeuralUCBDiag(dim=dim, lambda_=0.05, nu=0.1, hidden_size=16, seed=seed)


# =====================================================================
# Environments
# =====================================================================

class TestEnvironments:
    def test_assist_environment_rewards(self):
        from assistbandit.algorithms.simulation import AssistEnvironment
        env = AssistEnvironment(dim=3, weights=np.array([1.0, 0.0, 0.0]), seed=0)
        ctx = env.contexts()
        assert ctx.shape == (2, 3)
        assert np.all(ctx[0] == 0)

        good = np.array([[0.0, 0.0, 0.0], [2.0, 1.0, -1.0]], dtype=np.float32)
        bad = np.array([[0.0, 0.0, 0.0], [-2.0, 1.0, -1.0]], dtype=np.float32)
        assert env.expected_rewards(good).tolist() == [0.0, 1.0]
        assert env.expected_rewards(bad).tolist() == [0.0, -1.0]
        assert env.observe(good, 1) == 1.0
        assert env.observe(bad, 0) == 0.0

    def test_linear_environment(self):
        from assistbandit.algorithms.simulation import LinearRewardEnvironment
        env = LinearRewardEnvironment(dim=4, num_arms=3, noise=0.0, seed=1)
        ctx = env.contexts()
        assert ctx.shape == (3, 4)
        np.testing.assert_allclose(env.expected_rewards(ctx), ctx @ env.weights, rtol=1e-6)
        assert env.observe(ctx, 2) == pytest.approx(float(ctx[2] @ env.weights), rel=1e-5)

    def test_same_seed_same_stream(self):
        from assistbandit.algorithms.simulation import AssistEnvironment
        a, b = AssistEnvironment(dim=4, seed=7), AssistEnvironment(dim=4, seed=7)
        np.testing.assert_array_equal(a.weights, b.weights)
        np.testing.assert_array_equal(a.contexts(), b.contexts())

    def test_uniform_regret_is_about_half(self):
        from assistbandit.algorithms.simulation import AssistEnvironment, run_uniform
        result = run_uniform(AssistEnvironment(dim=4, seed=0), 400, seed=0)
        assert result.regrets.shape == (400,)
        assert set(np.unique(result.regrets).tolist()) <= {0.0, 1.0}
        assert 0.35 < result.regrets.mean() < 0.65

    def test_unknown_mode(self):
        from assistbandit.algorithms.simulation import AssistEnvironment, run_agent
        with pytest.raises(ValueError):
            run_agent(_agent(4), AssistEnvironment(dim=4, seed=0), 5, mode="online")


# =====================================================================
# Regret versus a random policy
# =====================================================================

class TestRegret:
    def test_assist_batch_beats_uniform(self):
        from assistbandit.algorithms.simulation import AssistEnvironment, run_agent, run_uniform
        rounds = 200
        agent_result = run_agent(_agent(4, seed=0), AssistEnvironment(dim=4, seed=11), rounds, mode="batch")
        uniform_result = run_uniform(AssistEnvironment(dim=4, seed=11), rounds, seed=11)

        assert agent_result.cumulative_regret < uniform_result.cumulative_regret, (
            f"agent regret {agent_result.cumulative_regret} >= "
            f"uniform regret {uniform_result.cumulative_regret}"
        )
        late_accuracy = float(np.mean(agent_result.regrets[100:] <= 1e-9))
        assert late_accuracy > 0.6, f"late accuracy {late_accuracy:.2f} too low"

    def test_assist_train_beats_uniform(self):
        from assistbandit.algorithms.simulation import AssistEnvironment, run_agent, run_uniform
        rounds = 100
        agent_result = run_agent(_agent(4, seed=1), AssistEnvironment(dim=4, seed=5), rounds, mode="train")
        uniform_result = run_uniform(AssistEnvironment(dim=4, seed=5), rounds, seed=5)
        assert agent_result.cumulative_regret < uniform_result.cumulative_regret

    def test_linear_batch_beats_uniform(self):
        from assistbandit.algorithms.simulation import LinearRewardEnvironment, run_agent, run_uniform
        rounds = 150
        agent_result = run_agent(
            _agent(4, seed=2), LinearRewardEnvironment(dim=4, num_arms=3, seed=3), rounds
        )
        uniform_result = run_uniform(LinearRewardEnvironment(dim=4, num_arms=3, seed=3), rounds, seed=3)
        assert agent_result.cumulative_regret < uniform_result.cumulative_regret
        assert np.all(agent_result.regrets >= -1e-6)
        assert len(agent_result.arms) == rounds
