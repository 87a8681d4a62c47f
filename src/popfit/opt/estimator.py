#########################################################################################
##
##                       PARAMETER ESTIMATION DRIVER (popfit core)
##                                 (estimator.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable

import numpy as np
import scipy.optimize as sci_opt

from ..errors import ConfigurationError, ForcedStop
from ..forms import make_forms
from ..utils.logger import LoggerManager
from .codec import DecodedParameters, ParameterBounds, ParameterLayout
from .fitness import MODEL_EFFICIENCY, FitnessEvaluator, user_fitness
from .reporting import (
    ProgressSink,
    format_elapsed,
    format_summary,
    plot_fit,
    write_stop_file,
)
from .simulator import SimulationState


__all__ = [
    "PROGRESS_INTERVAL",
    "ALGORITHMS",
    "RunStatus",
    "EstimationResult",
    "BaseEstimator",
    "ScipyEstimator",
]


# Evaluations between two progress snapshots
PROGRESS_INTERVAL = 1000


# ALGORITHM TABLE =======================================================================
#
# Name -> (scipy driver, options). The NLopt-style names select the closest
# bound-constrained scipy algorithm; plain scipy names are accepted as well.

_GLOBAL = {"direct", "differential_evolution", "dual_annealing"}

ALGORITHMS = {
    # global
    "GN_ORIG_DIRECT_L": ("direct", {"locally_biased": True}),
    "GN_DIRECT_L":      ("direct", {"locally_biased": True}),
    "GN_DIRECT_L_RAND": ("direct", {"locally_biased": True}),
    "GN_DIRECT":        ("direct", {"locally_biased": False}),
    "GN_CRS2_LM":       ("differential_evolution", {}),
    "GD_StoGO":         ("dual_annealing", {}),
    # local
    "LN_COBYLA":        ("minimize", {"method": "COBYLA"}),
    "LN_BOBYQA":        ("minimize", {"method": "Powell"}),
    "LN_PRAXIS":        ("minimize", {"method": "Powell"}),
    "LN_NELDERMEAD":    ("minimize", {"method": "Nelder-Mead"}),
    "LN_SBPLX":         ("minimize", {"method": "Nelder-Mead"}),
    "LD_MMA":           ("minimize", {"method": "TNC"}),
    "LD_SLSQP":         ("minimize", {"method": "SLSQP"}),
    "LD_LBFGS":         ("minimize", {"method": "L-BFGS-B"}),
    # scipy names
    "direct":                 ("direct", {}),
    "differential_evolution": ("differential_evolution", {}),
    "dual_annealing":         ("dual_annealing", {}),
    "Nelder-Mead":            ("minimize", {"method": "Nelder-Mead"}),
    "Powell":                 ("minimize", {"method": "Powell"}),
    "COBYLA":                 ("minimize", {"method": "COBYLA"}),
    "L-BFGS-B":               ("minimize", {"method": "L-BFGS-B"}),
    "SLSQP":                  ("minimize", {"method": "SLSQP"}),
    "TNC":                    ("minimize", {"method": "TNC"}),
}


# RUN STATE =============================================================================

class RunStatus(Enum):
    IDLE = "idle"
    CONFIGURED = "configured"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class _StoppingCriterionReached(Exception):
    """Target fitness, time budget or evaluation budget hit inside the objective."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


# RESULT ================================================================================

@dataclass
class EstimationResult:
    """Outcome of one estimation run.

    ``fitness`` and ``subrun_fitness`` use the user-facing sign (Model
    Efficiency is positive, 1 is best).
    """

    status: RunStatus
    x: np.ndarray
    fitness: float
    nfev: int
    message: str
    elapsed: float
    parameters: DecodedParameters
    subrun_fitness: np.ndarray = field(default_factory=lambda: np.array([], dtype=float))
    fitness_std: float = 0.0
    summary: str = ""


    @property
    def success(self) -> bool:
        return self.status is RunStatus.COMPLETED


    def __repr__(self) -> str:
        return (
            f"EstimationResult({self.status.name}, fitness={self.fitness:.4g}, "
            f"nfev={self.nfev}, x={self.x})"
        )


# BASE DRIVER ===========================================================================

class BaseEstimator:
    """Optimizer driver shared by all search strategies.

    Owns the run state machine (``IDLE -> CONFIGURED -> RUNNING ->
    COMPLETED | CANCELLED | FAILED``), the cancellation flag, the evaluation
    counter and the running best point. Subclasses implement
    :meth:`_optimize`, which drives :meth:`objective` until it returns or one
    of the stop signals unwinds it.

    Parameters
    ----------
    config : EstimationConfig
        Run configuration, read-only during a run.
    progress_file : str or Path, optional
        Append-only progress sink; a snapshot is written every
        :data:`PROGRESS_INTERVAL` evaluations.
    stop_file : str or Path, optional
        Receives the run-stop record when a run ends.
    on_completed : callable, optional
        ``fn(summary, show_diagnostic_chart)`` called when a run ends.

    Notes
    -----
    Only the cancellation flag (a ``threading.Event``) is meant to be touched
    from another thread while a run is in progress. Everything else belongs
    to the thread executing :meth:`run`.

    Example
    -------
    .. code-block:: python

        est = ScipyEstimator(config, progress_file="progress.csv")
        worker = est.start()          # runs on a background thread
        ...
        est.stop()                    # cooperative cancel
        worker.join()
        print(est.result.summary)
    """

    def __init__(
        self,
        config,
        *,
        progress_file=None,
        stop_file=None,
        on_completed: Callable[[str, bool], None] | None = None,
    ):
        self.config = config
        self.progress = ProgressSink(progress_file) if progress_file is not None else None
        self.stop_file = Path(stop_file) if stop_file is not None else None
        self.logger = LoggerManager.get_logger(f"opt.{type(self).__name__}")

        self._completed_callbacks: list[Callable[[str, bool], None]] = []
        if on_completed is not None:
            self._completed_callbacks.append(on_completed)

        self._cancel = threading.Event()
        self._thread: threading.Thread | None = None
        self._status = RunStatus.IDLE

        self.run_number = 0
        self.result: EstimationResult | None = None
        self._params: DecodedParameters | None = None

        self._reset_run_state()


    # PROPERTIES ------------------------------------------------------------------------

    @property
    def status(self) -> RunStatus:
        return self._status


    @property
    def cancel_requested(self) -> bool:
        return self._cancel.is_set()


    @property
    def elapsed(self) -> float:
        """Seconds since the current (or last) run entered ``RUNNING``."""
        if self._start_time is None:
            return 0.0
        return time.perf_counter() - self._start_time


    @property
    def growth_rates(self) -> np.ndarray | None:
        return self._get("growth_rate")


    @property
    def carrying_capacities(self) -> np.ndarray | None:
        return self._get("carrying_capacity")


    @property
    def catchability(self) -> np.ndarray | None:
        return self._get("catchability")


    @property
    def competition_alpha(self) -> np.ndarray | None:
        return self._get("competition_alpha")


    @property
    def competition_beta_species(self) -> np.ndarray | None:
        return self._get("competition_beta_species")


    @property
    def competition_beta_guilds(self) -> np.ndarray | None:
        return self._get("competition_beta_guilds")


    @property
    def predation(self) -> np.ndarray | None:
        return self._get("predation")


    @property
    def handling(self) -> np.ndarray | None:
        return self._get("handling")


    @property
    def exponent(self) -> np.ndarray | None:
        return self._get("exponent")


    def _get(self, name: str) -> np.ndarray | None:
        if self._params is None:
            return None
        value = getattr(self._params, name)
        return None if value is None else value.copy()


    # CALLBACKS -------------------------------------------------------------------------

    def on_run_completed(self, fn: Callable[[str, bool], None]) -> "BaseEstimator":
        """Register ``fn(summary, show_diagnostic_chart)`` for run completion."""
        self._completed_callbacks.append(fn)
        return self


    # CONFIGURATION ---------------------------------------------------------------------

    def _reset_run_state(self) -> None:
        self.forms = None
        self.layout: ParameterLayout | None = None
        self.bounds: ParameterBounds | None = None
        self.evaluator: FitnessEvaluator | None = None
        self.x0: np.ndarray | None = None
        self._free: np.ndarray | None = None

        self.nfev = 0
        self.best_x: np.ndarray | None = None
        self.best_fitness = np.inf
        self._subrun_best: list[float] = []
        self._start_time: float | None = None
        self._stop_value: float | None = None
        self._label = ""


    def configure(self) -> "BaseEstimator":
        """Derive layout, bounds, starting point and objective from the config.

        Raises
        ------
        ConfigurationError
            If the configuration is inconsistent.
        """
        if self._status is RunStatus.RUNNING:
            raise RuntimeError("Cannot reconfigure while a run is in progress")

        config = self.config.validate()

        self.forms = make_forms(config)
        self.layout = ParameterLayout.from_config(config, self.forms)
        self.bounds = ParameterBounds.from_config(config, self.forms)

        if len(self.bounds) != self.layout.size:
            raise ConfigurationError(
                f"Forms contributed {len(self.bounds)} bound pairs for a layout "
                f"of {self.layout.size} parameters"
            )
        if (
            config.num_estimated_parameters is not None
            and config.num_estimated_parameters != self.layout.size
        ):
            raise ConfigurationError(
                f"Declared {config.num_estimated_parameters} estimated parameters, "
                f"active forms define {self.layout.size}"
            )
        if not (np.all(np.isfinite(self.bounds.lower)) and np.all(np.isfinite(self.bounds.upper))):
            raise ConfigurationError("Parameter ranges must be finite")

        self.evaluator = FitnessEvaluator(config, self.forms, self.layout)
        self.x0 = self.bounds.starting_point()
        self._free = ~self.bounds.fixed

        stop_value = config.stopping.stop_value
        if stop_value is not None and config.objective_criterion == MODEL_EFFICIENCY:
            stop_value = -stop_value
        self._stop_value = stop_value

        self._configure_algorithm()

        self._status = RunStatus.CONFIGURED
        return self


    def _configure_algorithm(self) -> None:
        """Strategy-specific validation, called at the end of :meth:`configure`."""


    # OBJECTIVE -------------------------------------------------------------------------

    def objective(self, x) -> float:
        """Evaluate one full-length candidate under the run's stop rules.

        Checks cancellation first and raises :class:`ForcedStop` when it is
        set. Then enforces the time and evaluation budgets, evaluates,
        updates the running best, writes the periodic progress snapshot and
        finally checks the target fitness.
        """
        if self._cancel.is_set():
            raise ForcedStop("Run stopped by user")

        stopping = self.config.stopping
        if stopping.max_evaluations is not None and self.nfev >= stopping.max_evaluations:
            raise _StoppingCriterionReached(
                f"Maximum number of evaluations ({stopping.max_evaluations}) reached"
            )
        if stopping.max_time is not None and self.elapsed >= stopping.max_time:
            raise _StoppingCriterionReached(
                f"Maximum run time ({stopping.max_time} s) reached"
            )

        x_arr = np.asarray(x, dtype=float).reshape(-1)
        fitness = float(self.evaluator(x_arr))
        self.nfev += 1

        if fitness < self.best_fitness:
            self.best_fitness = fitness
            self.best_x = x_arr.copy()

        if self.progress is not None and self.nfev % PROGRESS_INTERVAL == 0:
            self.progress.write(
                self._label, self.nfev, self.best_fitness, self.config.objective_criterion
            )

        if self._stop_value is not None and fitness <= self._stop_value:
            raise _StoppingCriterionReached("Stop fitness value reached")

        return fitness


    def _expand(self, z) -> np.ndarray:
        """Full parameter vector from the free-parameter vector *z*."""
        x = self.x0.copy()
        x[self._free] = np.asarray(z, dtype=float).reshape(-1)
        return x


    def _reduced_objective(self, z) -> float:
        return self.objective(self._expand(z))


    # RUN CONTROL -----------------------------------------------------------------------

    def stop(self) -> None:
        """Request cancellation; honoured at the next evaluation boundary.

        A request made before :meth:`run` cancels that run at its first
        evaluation. The flag is cleared when a run ends.
        """
        self._cancel.set()


    def start(self) -> threading.Thread:
        """Run :meth:`run` on a background worker thread and return it."""
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("An estimation run is already in progress")
        self._thread = threading.Thread(
            target=self.run,
            name=f"popfit-{type(self).__name__}",
            daemon=True,
        )
        self._thread.start()
        return self._thread


    def join(self, timeout: float | None = None) -> EstimationResult | None:
        """Wait for a run started with :meth:`start` and return its result."""
        if self._thread is not None:
            self._thread.join(timeout)
        return self.result


    def run(self) -> EstimationResult:
        """Configure, optimize and finish one estimation run.

        Library failures end the run as ``FAILED`` instead of propagating.
        Configuration errors are raised.
        """
        if self._status is RunStatus.RUNNING:
            raise RuntimeError("An estimation run is already in progress")

        self._reset_run_state()
        self.run_number += 1
        self._label = f"{self.config.run_label} {self.run_number}-1"

        try:
            self.configure()
        except ConfigurationError:
            self._status = RunStatus.FAILED
            self._cancel.clear()
            raise

        self._log_start()
        self._status = RunStatus.RUNNING
        self._start_time = time.perf_counter()

        try:
            message = self._optimize()
            status = RunStatus.COMPLETED
        except _StoppingCriterionReached as stop:
            status, message = RunStatus.COMPLETED, stop.reason
        except ForcedStop:
            status, message = RunStatus.CANCELLED, "Run stopped by user"
            self.logger.info("User terminated the estimation run")
        except Exception as err:
            self.logger.exception("Optimizer failed")
            status, message = RunStatus.FAILED, f"{type(err).__name__}: {err}"
        finally:
            self._cancel.clear()

        return self._finish(status, message)


    def _optimize(self) -> str:
        """Drive :meth:`objective` to convergence; return a status message."""
        raise NotImplementedError


    def _log_start(self) -> None:
        stopping = self.config.stopping
        self.logger.info(
            "%s: %d estimated parameters (%d fixed), minimizer %s",
            self._label,
            self.layout.size,
            int(np.sum(~self._free)),
            self.config.minimizer,
        )
        if stopping.stop_value is not None:
            self.logger.info("Setting stop fitness value: %s", stopping.stop_value)
        if stopping.max_time is not None:
            self.logger.info("Setting max run time: %s s", stopping.max_time)
        if stopping.max_evaluations is not None:
            self.logger.info(
                "Setting max num function evaluations: %s", stopping.max_evaluations
            )


    # RESULTS ---------------------------------------------------------------------------

    def _finish(self, status: RunStatus, message: str) -> EstimationResult:
        """Extract best parameters, write the stop record and notify callers."""
        config = self.config
        elapsed = self.elapsed

        x = self.best_x if self.best_x is not None else self.x0
        self._params = self.layout.decode(x)

        criterion = config.objective_criterion
        best = user_fitness(self.best_fitness, criterion) if np.isfinite(self.best_fitness) else np.nan

        subruns = [f for f in self._subrun_best if np.isfinite(f)]
        if not subruns and np.isfinite(self.best_fitness):
            subruns = [self.best_fitness]
        subrun_fitness = np.array([user_fitness(f, criterion) for f in subruns], dtype=float)
        fitness_std = float(np.std(subrun_fitness)) if subrun_fitness.size else 0.0

        summary = format_summary(
            config,
            num_estimated=self.layout.size,
            best_fitness=best,
            fitness_std=fitness_std,
            parameters=self._params,
            initial=self.layout.decode(self.x0),
        )
        elapsed_str = format_elapsed(elapsed)

        if self.stop_file is not None:
            write_stop_file(self.stop_file, elapsed_str, summary)

        self.result = EstimationResult(
            status=status,
            x=np.asarray(x, dtype=float).copy(),
            fitness=best,
            nfev=self.nfev,
            message=message,
            elapsed=elapsed,
            parameters=self._params,
            subrun_fitness=subrun_fitness,
            fitness_std=fitness_std,
            summary=summary,
        )
        self._status = status

        self.logger.info(
            "%s %s after %d evaluations: %s (best fitness %.6g)",
            self._label, status.value, self.nfev, message, best,
        )
        self.logger.info(elapsed_str)

        for fn in self._completed_callbacks:
            fn(summary, config.show_diagnostic_chart)

        return self.result


    def simulate_best(self) -> SimulationState:
        """Trajectory of the best parameters of the last run."""
        if self.result is None:
            raise ValueError("No completed run. Call run() first.")
        return self.evaluator.simulate(self.result.x)


    def display(self) -> None:
        """Print the summary of the last run."""
        if self.result is None:
            raise ValueError("No completed run. Call run() first.")
        print("=" * 60)
        print(f"Parameter Estimation Results ({self.result.status.value})")
        print("=" * 60)
        print(self.result.summary)
        print("=" * 60)


    def plot_fit(self, **kwargs):
        """Diagnostic chart of the last run; see :func:`reporting.plot_fit`."""
        return plot_fit(self.simulate_best(), self.config, **kwargs)


# SCIPY STRATEGY ========================================================================

class ScipyEstimator(BaseEstimator):
    """Single-trajectory bound-constrained search with ``scipy.optimize``.

    ``config.minimizer`` selects an entry of :data:`ALGORITHMS`. Parameters
    fixed by equal bounds are removed from the search space and held at
    their bound. The stopping criteria are enforced by :meth:`objective`, so
    they act the same way for every algorithm.
    """

    def _configure_algorithm(self) -> None:
        name = self.config.minimizer
        if name not in ALGORITHMS:
            raise ConfigurationError(
                f"Unknown minimizer '{name}'. Choose from {sorted(ALGORITHMS)}."
            )
        self._driver, self._options = ALGORITHMS[name]


    def _optimize(self) -> str:
        if not np.any(self._free):
            self.objective(self.x0)
            return "All parameters fixed by their bounds"

        free = self._free
        z0 = self.x0[free]
        lower = self.bounds.lower[free]
        upper = self.bounds.upper[free]
        bounds_list = list(zip(lower, upper))
        fun = self._reduced_objective

        if self._driver == "direct":
            res = sci_opt.direct(fun, bounds=bounds_list, **self._options)

        elif self._driver == "differential_evolution":
            res = sci_opt.differential_evolution(
                fun,
                bounds=bounds_list,
                x0=z0,
                seed=self.config.seed,
                polish=False,
                **self._options,
            )

        elif self._driver == "dual_annealing":
            res = sci_opt.dual_annealing(
                fun,
                bounds=bounds_list,
                x0=z0,
                seed=self.config.seed,
                **self._options,
            )

        else:
            res = sci_opt.minimize(
                fun,
                x0=z0,
                bounds=bounds_list,
                **self._options,
            )

        self.logger.debug("Optimizer return: %s", res.message)
        return str(res.message)
