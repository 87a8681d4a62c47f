#########################################################################################
##
##                       PARAMETER ESTIMATION ENGINE: PUBLIC API
##                               (opt/__init__.py)
##
#########################################################################################

from .codec import (
    BLOCK_ORDER,
    ParameterBlock,
    DecodedParameters,
    ParameterLayout,
    ParameterBounds,
    decode,
    encode,
)
from .rescale import rescale, rescale_min_max, rescale_mean
from .simulator import SimulationState, carrying_capacities, simulate
from .fitness import (
    INFEASIBLE_FITNESS,
    CRITERIA,
    FitnessEvaluator,
    evaluate,
    user_fitness,
)
from .reporting import ProgressSink, format_summary, plot_fit, write_stop_file
from .estimator import (
    PROGRESS_INTERVAL,
    ALGORITHMS,
    RunStatus,
    EstimationResult,
    BaseEstimator,
    ScipyEstimator,
)
from .bees import BeesEstimator
from ..errors import ConfigurationError


ESTIMATORS = {
    "scipy": ScipyEstimator,
    "bees": BeesEstimator,
}


def create_estimator(config, strategy: str = "scipy", **kwargs) -> BaseEstimator:
    """Build the estimator for *strategy* (``"scipy"`` or ``"bees"``).

    Keyword arguments are passed to the estimator constructor.
    """
    try:
        cls = ESTIMATORS[strategy.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown estimation strategy '{strategy}'. Choose from {sorted(ESTIMATORS)}."
        ) from None
    return cls(config, **kwargs)
