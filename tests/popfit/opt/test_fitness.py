########################################################################################
##
##                                  TESTS FOR
##                               'opt/fitness.py'
##
########################################################################################

# IMPORTS ==============================================================================

import numpy as np
import pytest

from popfit.config import EstimationConfig
from popfit.errors import ConfigurationError
from popfit.opt.fitness import (
    CRITERIA,
    INFEASIBLE_FITNESS,
    LEAST_SQUARES,
    MAXIMUM_LIKELIHOOD,
    MODEL_EFFICIENCY,
    FitnessEvaluator,
    evaluate,
    model_efficiency,
    negative_log_likelihood,
    sum_of_squares,
    user_fitness,
)
from popfit.opt.rescale import rescale


# ═══════════════════════════════════════════════════════════════════════════
# Helpers / Fixtures
# ═══════════════════════════════════════════════════════════════════════════

OBSERVED = np.array([
    [50.0, 80.0],
    [52.5, 89.6],
    [54.99375, 99.49184],
])


def _config(**overrides):
    kwargs = dict(
        num_species=2,
        num_guilds=1,
        run_length=2,
        guild_species={0: [0, 1]},
        observed_species=OBSERVED,
        ranges={"growth_rate": (0.0, 1.0), "carrying_capacity": (50.0, 500.0)},
    )
    kwargs.update(overrides)
    return EstimationConfig(**kwargs)


# ═══════════════════════════════════════════════════════════════════════════
# Statistics
# ═══════════════════════════════════════════════════════════════════════════

class TestStatistics:

    def test_sum_of_squares(self):
        assert sum_of_squares([[1.0, 2.0]], [[0.0, 0.0]]) == 5.0

    def test_model_efficiency_perfect(self):
        assert model_efficiency(OBSERVED, OBSERVED) == pytest.approx(1.0)

    def test_model_efficiency_mean_predictor_is_zero(self):
        est = np.tile(OBSERVED.mean(axis=0), (3, 1))
        assert model_efficiency(est, OBSERVED) == pytest.approx(0.0)

    def test_model_efficiency_skips_constant_series(self):
        obs = np.array([[1.0, 5.0], [2.0, 5.0], [3.0, 5.0]])
        est = np.array([[1.0, 0.0], [2.0, 0.0], [3.0, 0.0]])
        assert model_efficiency(est, obs) == pytest.approx(1.0)

    def test_model_efficiency_all_constant(self):
        obs = np.ones((3, 2))
        assert model_efficiency(obs * 2, obs) == 0.0

    def test_negative_log_likelihood_closed_form(self):
        obs = np.array([[1.0], [2.0], [4.0]])
        est = np.array([[1.5], [2.0], [3.0]])
        resid = (obs - est)[:, 0]
        var = np.mean(resid ** 2)
        expected = 0.5 * len(resid) * (np.log(2 * np.pi * var) + 1.0)
        assert negative_log_likelihood(est, obs) == pytest.approx(expected)

    def test_negative_log_likelihood_perfect_fit_is_finite(self):
        assert np.isfinite(negative_log_likelihood(OBSERVED, OBSERVED))


# ═══════════════════════════════════════════════════════════════════════════
# Evaluation
# ═══════════════════════════════════════════════════════════════════════════

class TestEvaluate:

    def test_least_squares_uses_rescaled_data(self):
        sim = OBSERVED * 1.1
        expected = sum_of_squares(rescale(sim), rescale(OBSERVED))
        assert evaluate(sim, OBSERVED, LEAST_SQUARES) == pytest.approx(expected)

    def test_least_squares_insensitive_to_uniform_scale(self):
        # Min-Max rescaling removes a uniform factor
        assert evaluate(OBSERVED * 3.0, OBSERVED, LEAST_SQUARES) == pytest.approx(0.0)

    def test_model_efficiency_negated(self):
        assert evaluate(OBSERVED, OBSERVED, MODEL_EFFICIENCY) == pytest.approx(-1.0)

    def test_maximum_likelihood_skips_rescaling(self):
        sim = OBSERVED * 1.1
        expected = negative_log_likelihood(sim, OBSERVED)
        assert evaluate(sim, OBSERVED, MAXIMUM_LIKELIHOOD, "Mean") == pytest.approx(expected)

    def test_unknown_criterion_raises(self):
        with pytest.raises(ConfigurationError, match="Unknown objective criterion"):
            evaluate(OBSERVED, OBSERVED, "Chi Square")

    def test_shape_mismatch_raises(self):
        with pytest.raises(ConfigurationError, match="shape"):
            evaluate(OBSERVED[:2], OBSERVED, LEAST_SQUARES)

    def test_user_fitness_sign(self):
        assert user_fitness(-0.8, MODEL_EFFICIENCY) == 0.8
        assert user_fitness(0.8, LEAST_SQUARES) == 0.8


# ═══════════════════════════════════════════════════════════════════════════
# Evaluator
# ═══════════════════════════════════════════════════════════════════════════

class TestFitnessEvaluator:

    def test_exact_parameters_fit_perfectly(self):
        evaluator = FitnessEvaluator(_config())
        assert evaluator([0.1, 0.2, 100.0, 200.0]) == pytest.approx(0.0, abs=1e-18)

    def test_model_efficiency_best_is_minus_one(self):
        evaluator = FitnessEvaluator(_config(objective_criterion=MODEL_EFFICIENCY))
        assert evaluator([0.1, 0.2, 100.0, 200.0]) == pytest.approx(-1.0)

    @pytest.mark.parametrize("criterion", CRITERIA)
    def test_infeasible_candidate_returns_sentinel(self, criterion):
        catch = np.zeros((3, 2))
        catch[0, 0] = 1000.0
        cfg = _config(harvest_form="Catch", catch=catch, objective_criterion=criterion)
        evaluator = FitnessEvaluator(cfg)
        assert evaluator([0.1, 0.2, 100.0, 200.0]) == INFEASIBLE_FITNESS

    def test_simulate_returns_state(self):
        state = FitnessEvaluator(_config()).simulate([0.1, 0.2, 100.0, 200.0])
        np.testing.assert_allclose(state.species, OBSERVED, rtol=1e-12)

    def test_unknown_criterion_raises(self):
        with pytest.raises(ConfigurationError):
            FitnessEvaluator(_config(objective_criterion="Chi Square"))

    def test_wrong_vector_length_raises(self):
        with pytest.raises(ConfigurationError):
            FitnessEvaluator(_config())([0.1, 0.2, 100.0])
