from importlib import metadata

try:
    __version__ = metadata.version("popfit")
except Exception:
    __version__ = "unknown"

from .errors import PopfitError, ConfigurationError, ForcedStop
from .config import EstimationConfig, StoppingCriteria, BeesSettings
from .opt import (
    RunStatus,
    EstimationResult,
    ScipyEstimator,
    BeesEstimator,
    create_estimator,
)
from .utils.logger import LoggerManager
