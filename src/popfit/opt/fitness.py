#########################################################################################
##
##                                FITNESS EVALUATION
##                                  (fitness.py)
##
##      Scores a simulated biomass trajectory against the observations. All
##      criteria are returned in minimization form.
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

import numpy as np
from scipy import stats

from ..errors import ConfigurationError
from ..forms import make_forms
from .codec import ParameterLayout
from .rescale import rescale
from .simulator import SimulationState, simulate


__all__ = [
    "INFEASIBLE_FITNESS",
    "LEAST_SQUARES",
    "MODEL_EFFICIENCY",
    "MAXIMUM_LIKELIHOOD",
    "CRITERIA",
    "sum_of_squares",
    "model_efficiency",
    "negative_log_likelihood",
    "evaluate",
    "fitness_for",
    "user_fitness",
    "FitnessEvaluator",
]


INFEASIBLE_FITNESS = 99999.0

LEAST_SQUARES = "Least Squares"
MODEL_EFFICIENCY = "Model Efficiency"
MAXIMUM_LIKELIHOOD = "Maximum Likelihood"

CRITERIA = (LEAST_SQUARES, MODEL_EFFICIENCY, MAXIMUM_LIKELIHOOD)

# Floor for the per-series residual variance in the likelihood
_MIN_VARIANCE = 1e-12


# STATISTICS ============================================================================

def sum_of_squares(estimated, observed) -> float:
    """Sum of squared differences over all years and series."""
    diff = np.asarray(estimated, dtype=float) - np.asarray(observed, dtype=float)
    return float(np.sum(diff * diff))


def model_efficiency(estimated, observed) -> float:
    """Nash-Sutcliffe model efficiency averaged over series.

    Per series ``1 - sum((obs - est)^2) / sum((obs - mean(obs))^2)``; the
    value is at most 1, reached by a perfect fit. Series with constant
    observations carry no information and are left out; if none remain the
    efficiency is 0.
    """
    est = np.asarray(estimated, dtype=float)
    obs = np.asarray(observed, dtype=float)
    if obs.ndim == 1:
        est, obs = est.reshape(-1, 1), obs.reshape(-1, 1)

    spread = np.sum((obs - obs.mean(axis=0)) ** 2, axis=0)
    error = np.sum((obs - est) ** 2, axis=0)

    ok = spread > 0.0
    if not np.any(ok):
        return 0.0
    return float(np.mean(1.0 - error[ok] / spread[ok]))


def negative_log_likelihood(estimated, observed) -> float:
    """Gaussian negative log-likelihood with the per-series MLE variance.

    Works on original-scale biomass; rescaled data would distort the
    variance estimate.
    """
    est = np.asarray(estimated, dtype=float)
    obs = np.asarray(observed, dtype=float)
    if obs.ndim == 1:
        est, obs = est.reshape(-1, 1), obs.reshape(-1, 1)

    resid = obs - est
    sigma = np.sqrt(np.maximum(np.mean(resid * resid, axis=0), _MIN_VARIANCE))
    return float(-np.sum(stats.norm.logpdf(resid, loc=0.0, scale=sigma)))


# EVALUATION ============================================================================

def evaluate(simulated, observed, criterion: str, scaling: str = "Min Max") -> float:
    """Scalar fitness of *simulated* against *observed*, to be minimized.

    Parameters
    ----------
    simulated, observed : array_like
        Biomass matrices ``[year][series]`` of equal shape.
    criterion : str
        One of :data:`CRITERIA`. Model Efficiency is returned negated.
        Maximum Likelihood skips rescaling.
    scaling : str
        Rescaling method for the other two criteria.

    Raises
    ------
    ConfigurationError
        Unknown criterion or mismatched shapes.
    """
    sim = np.asarray(simulated, dtype=float)
    obs = np.asarray(observed, dtype=float)
    if sim.shape != obs.shape:
        raise ConfigurationError(
            f"Simulated shape {sim.shape} does not match observed shape {obs.shape}"
        )

    if criterion == MAXIMUM_LIKELIHOOD:
        return negative_log_likelihood(sim, obs)

    if criterion == LEAST_SQUARES:
        return sum_of_squares(rescale(sim, scaling), rescale(obs, scaling))

    if criterion == MODEL_EFFICIENCY:
        # minimization form; negate again before showing it to a user
        return -model_efficiency(rescale(sim, scaling), rescale(obs, scaling))

    raise ConfigurationError(
        f"Unknown objective criterion '{criterion}'. Choose from {list(CRITERIA)}."
    )


def fitness_for(state: SimulationState, config) -> float:
    """Fitness of a simulation state, the sentinel for infeasible ones."""
    if not state.feasible:
        return INFEASIBLE_FITNESS
    return evaluate(state.species, config.observed, config.objective_criterion, config.scaling)


def user_fitness(value: float, criterion: str) -> float:
    """Convert a minimization-form fitness into the sign shown to users."""
    return -value if criterion == MODEL_EFFICIENCY else value


# EVALUATOR =============================================================================

class FitnessEvaluator:
    """Callable objective: flat vector in, scalar fitness out.

    Decodes the candidate, simulates a fresh trajectory, and scores it. No
    state is carried between calls.

    Parameters
    ----------
    config : EstimationConfig
        Run configuration.
    forms : FormSet, optional
        Active forms; resolved from *config* when omitted.
    layout : ParameterLayout, optional
        Parameter layout; derived from *config* when omitted.
    """

    def __init__(self, config, forms=None, layout: ParameterLayout | None = None):
        if config.objective_criterion not in CRITERIA:
            raise ConfigurationError(
                f"Unknown objective criterion '{config.objective_criterion}'. "
                f"Choose from {list(CRITERIA)}."
            )
        self.config = config
        self.forms = forms if forms is not None else make_forms(config)
        self.layout = layout if layout is not None else ParameterLayout.from_config(config, self.forms)


    def simulate(self, x) -> SimulationState:
        """Decode *x* and run the population simulator."""
        return simulate(self.layout.decode(x), self.config, self.forms)


    def __call__(self, x) -> float:
        return fitness_for(self.simulate(x), self.config)
