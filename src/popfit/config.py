#########################################################################################
##
##                            ESTIMATION RUN CONFIGURATION
##                                    (config.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Mapping

import numpy as np

from .errors import ConfigurationError
from .forms import FORM_REGISTRY


__all__ = [
    "StoppingCriteria",
    "BeesSettings",
    "EstimationConfig",
]


# STOPPING CRITERIA =====================================================================

@dataclass
class StoppingCriteria:
    """Optimizer-level stopping criteria, each disabled when ``None``.

    Parameters
    ----------
    stop_value : float, optional
        Target fitness in the user-facing sign convention. For Model
        Efficiency this is the (positive, at most 1) efficiency to reach.
    max_time : float, optional
        Wall-clock budget for the whole run in seconds.
    max_evaluations : int, optional
        Maximum number of fitness evaluations.
    """

    stop_value: float | None = None
    max_time: float | None = None
    max_evaluations: int | None = None


# BEES SETTINGS =========================================================================

@dataclass
class BeesSettings:
    """Tuning of the Bees-algorithm search.

    Parameters
    ----------
    max_generations : int
        Generations per sub-run.
    num_bees : int
        Total number of sites (scouts) kept per generation.
    num_best_sites : int
        Sites that receive neighbourhood search each generation.
    num_elite_sites : int
        Leading subset of the best sites that receives more recruits.
    num_elite_bees : int
        Recruits sent to each elite site.
    num_other_bees : int
        Recruits sent to each non-elite best site.
    neighborhood_size : float
        Initial patch half-width as a fraction of each parameter's range.
    patch_shrink : float
        Factor applied to a patch when its site fails to improve.
    max_stagnation : int
        Generations without improvement after which a site is abandoned.
    seed : int, optional
        Seed for ``numpy.random.default_rng``.
    """

    max_generations: int = 100
    num_bees: int = 40
    num_best_sites: int = 8
    num_elite_sites: int = 3
    num_elite_bees: int = 10
    num_other_bees: int = 4
    neighborhood_size: float = 0.1
    patch_shrink: float = 0.8
    max_stagnation: int = 10
    seed: int | None = None


    def validate(self) -> None:
        if self.max_generations < 1 or self.num_bees < 1:
            raise ConfigurationError("Bees search needs at least one generation and one bee")
        if not 0 <= self.num_elite_sites <= self.num_best_sites <= self.num_bees:
            raise ConfigurationError(
                "Bees sites must satisfy 0 <= elite sites <= best sites <= bees, "
                f"got {self.num_elite_sites}, {self.num_best_sites}, {self.num_bees}"
            )
        if not 0.0 < self.neighborhood_size <= 1.0:
            raise ConfigurationError(
                f"neighborhood_size must be in (0, 1], got {self.neighborhood_size}"
            )
        if not 0.0 < self.patch_shrink <= 1.0:
            raise ConfigurationError(f"patch_shrink must be in (0, 1], got {self.patch_shrink}")


# ESTIMATION CONFIG =====================================================================

@dataclass
class EstimationConfig:
    """Everything one estimation run needs, populated before the run starts.

    The configuration is treated as immutable while a run is in progress.
    All matrices are indexed ``[year][series]`` with ``run_length + 1`` rows,
    row 0 holding the initial observed biomass.

    Parameters
    ----------
    num_species, num_guilds : int
        Number of species and guilds.
    run_length : int
        Number of simulated years after year 0.
    guild_species : mapping or sequence
        Guild index to member species indices. Every species belongs to
        exactly one guild.
    observed_species : array_like
        Observed biomass, shape ``(run_length + 1, num_species)``.
    observed_guilds : array_like, optional
        Observed guild biomass. Derived by summing member species when
        omitted.
    catch, effort, exploitation : array_like, optional
        Harvest data, shape ``(run_length + 1, num_species)``; zeros when
        omitted.
    growth_form, harvest_form, competition_form, predation_form : str
        Functional-form names, matched case-sensitively.
    objective_criterion : str
        ``"Least Squares"``, ``"Model Efficiency"`` or ``"Maximum Likelihood"``.
    scaling : str
        ``"Min Max"`` or ``"Mean"``.
    minimizer : str
        Optimizer algorithm name, interpreted by the estimator strategy.
    stopping : StoppingCriteria
        Optional target fitness / wall time / evaluation budget.
    ranges : mapping
        Parameter block name to ``(lower, upper)``. Each bound is a scalar
        or an array broadcastable to the block shape.
    total_parameters : int, optional
        Total number of model parameters, reported in the summary.
    num_estimated_parameters : int, optional
        Declared estimated-parameter count. When given it must equal the
        size of the active parameter layout.
    num_subruns : int
        Independent repetitions (Bees strategy).
    show_diagnostic_chart : bool
        Forwarded to the completion notification.
    bees : BeesSettings
        Bees-algorithm tuning.
    seed : int, optional
        Seed for stochastic scipy optimizers.
    run_label : str
        Prefix of the progress run label (``"Run 3-1"``).
    """

    num_species: int
    num_guilds: int
    run_length: int
    guild_species: Any
    observed_species: Any
    observed_guilds: Any = None
    catch: Any = None
    effort: Any = None
    exploitation: Any = None
    growth_form: str = "Logistic"
    harvest_form: str = "Null"
    competition_form: str = "Null"
    predation_form: str = "Null"
    objective_criterion: str = "Least Squares"
    scaling: str = "Min Max"
    minimizer: str = "LN_NELDERMEAD"
    stopping: StoppingCriteria = field(default_factory=StoppingCriteria)
    ranges: dict = field(default_factory=dict)
    total_parameters: int | None = None
    num_estimated_parameters: int | None = None
    num_subruns: int = 1
    show_diagnostic_chart: bool = False
    bees: BeesSettings = field(default_factory=BeesSettings)
    seed: int | None = None
    run_label: str = "Run"


    def __post_init__(self) -> None:
        self.num_species = int(self.num_species)
        self.num_guilds = int(self.num_guilds)
        self.run_length = int(self.run_length)

        if isinstance(self.guild_species, Mapping):
            members = {int(g): [int(s) for s in spp] for g, spp in self.guild_species.items()}
        else:
            members = {g: [int(s) for s in spp] for g, spp in enumerate(self.guild_species)}
        self.guild_species = members

        shape = (self.num_years, self.num_species)
        self.observed_species = np.asarray(self.observed_species, dtype=float)

        for name in ("catch", "effort", "exploitation"):
            value = getattr(self, name)
            if value is None:
                setattr(self, name, np.zeros(shape))
            else:
                setattr(self, name, np.asarray(value, dtype=float))

        if self.observed_guilds is None:
            if self.observed_species.shape == shape and self._membership_ok():
                self.observed_guilds = self.aggregate_by_guild(self.observed_species)
        else:
            self.observed_guilds = np.asarray(self.observed_guilds, dtype=float)


    # PROPERTIES ------------------------------------------------------------------------

    @property
    def num_years(self) -> int:
        """Rows of every biomass matrix: year 0 plus ``run_length`` years."""
        return self.run_length + 1


    @property
    def is_aggregate(self) -> bool:
        """True when the simulated units are guilds rather than species."""
        return self.competition_form == "AGG-PROD"


    @property
    def num_units(self) -> int:
        """Number of simulated series: guilds for AGG-PROD, species otherwise."""
        return self.num_guilds if self.is_aggregate else self.num_species


    @property
    def guild_of(self) -> np.ndarray:
        """Guild index of every species."""
        out = np.full(self.num_species, -1, dtype=int)
        for g, spp in self.guild_species.items():
            out[spp] = g
        return out


    @property
    def observed(self) -> np.ndarray:
        """Observed matrix the fit is scored against."""
        return self.observed_guilds if self.is_aggregate else self.observed_species


    @property
    def unit_catch(self) -> np.ndarray:
        return self.aggregate_by_guild(self.catch) if self.is_aggregate else self.catch


    @property
    def unit_effort(self) -> np.ndarray:
        return self.aggregate_by_guild(self.effort, np.mean) if self.is_aggregate else self.effort


    @property
    def unit_exploitation(self) -> np.ndarray:
        if self.is_aggregate:
            return self.aggregate_by_guild(self.exploitation, np.mean)
        return self.exploitation


    # HELPERS ---------------------------------------------------------------------------

    def aggregate_by_guild(self, matrix: np.ndarray, reduce=np.sum) -> np.ndarray:
        """Collapse ``[year][species]`` columns into ``[year][guild]`` columns."""
        matrix = np.asarray(matrix, dtype=float)
        out = np.zeros((matrix.shape[0], self.num_guilds))
        for g in range(self.num_guilds):
            spp = self.guild_species.get(g, [])
            if spp:
                out[:, g] = reduce(matrix[:, spp], axis=1)
        return out


    def range_for(self, name: str, shape: tuple[int, ...]) -> tuple[np.ndarray, np.ndarray]:
        """Return ``(lower, upper)`` for a parameter block, broadcast to *shape*."""
        if name not in self.ranges:
            raise ConfigurationError(f"No parameter range configured for block '{name}'")

        lower, upper = self.ranges[name]
        try:
            lo = np.broadcast_to(np.asarray(lower, dtype=float), shape)
            hi = np.broadcast_to(np.asarray(upper, dtype=float), shape)
        except ValueError as err:
            raise ConfigurationError(
                f"Parameter range for '{name}' cannot be broadcast to shape {shape}"
            ) from err
        return lo.copy(), hi.copy()


    def _membership_ok(self) -> bool:
        counts = np.zeros(self.num_species, dtype=int)
        for spp in self.guild_species.values():
            for s in spp:
                if not 0 <= s < self.num_species:
                    return False
                counts[s] += 1
        return bool(np.all(counts == 1))


    # VALIDATION ------------------------------------------------------------------------

    def validate(self) -> "EstimationConfig":
        """Fail fast on structural inconsistencies.

        Returns
        -------
        EstimationConfig
            Self, for chaining.

        Raises
        ------
        ConfigurationError
        """
        if self.num_species < 1 or self.num_guilds < 1:
            raise ConfigurationError("At least one species and one guild are required")
        if self.run_length < 1:
            raise ConfigurationError(f"run_length must be >= 1, got {self.run_length}")

        if any(not 0 <= g < self.num_guilds for g in self.guild_species):
            raise ConfigurationError(
                f"guild_species refers to guilds outside 0..{self.num_guilds - 1}"
            )
        if not self._membership_ok():
            raise ConfigurationError("Every species must belong to exactly one guild")

        shape = (self.num_years, self.num_species)
        for name in ("observed_species", "catch", "effort", "exploitation"):
            matrix = getattr(self, name)
            if matrix.shape != shape:
                raise ConfigurationError(
                    f"{name} has shape {matrix.shape}, expected {shape}"
                )

        guild_shape = (self.num_years, self.num_guilds)
        if self.observed_guilds is None or self.observed_guilds.shape != guild_shape:
            got = None if self.observed_guilds is None else self.observed_guilds.shape
            raise ConfigurationError(f"observed_guilds has shape {got}, expected {guild_shape}")

        for kind, name in (
            ("growth", self.growth_form),
            ("harvest", self.harvest_form),
            ("competition", self.competition_form),
            ("predation", self.predation_form),
        ):
            if name not in FORM_REGISTRY[kind]:
                raise ConfigurationError(
                    f"Unknown {kind} form '{name}'. "
                    f"Choose from {sorted(FORM_REGISTRY[kind])}."
                )

        if self.num_subruns < 1:
            raise ConfigurationError(f"num_subruns must be >= 1, got {self.num_subruns}")

        stop = self.stopping
        if stop.max_time is not None and stop.max_time <= 0:
            raise ConfigurationError(f"max_time must be positive, got {stop.max_time}")
        if stop.max_evaluations is not None and stop.max_evaluations < 1:
            raise ConfigurationError(
                f"max_evaluations must be >= 1, got {stop.max_evaluations}"
            )

        return self


    # CONSTRUCTION ----------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EstimationConfig":
        """Build a configuration from plain Python containers.

        Nested ``"stopping"`` and ``"bees"`` entries may be mappings. Unknown
        keys raise :class:`ConfigurationError`.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")

        kwargs = dict(data)
        if isinstance(kwargs.get("stopping"), Mapping):
            kwargs["stopping"] = StoppingCriteria(**kwargs["stopping"])
        if isinstance(kwargs.get("bees"), Mapping):
            kwargs["bees"] = BeesSettings(**kwargs["bees"])
        if "ranges" in kwargs:
            kwargs["ranges"] = {k: tuple(v) for k, v in kwargs["ranges"].items()}

        try:
            return cls(**kwargs)
        except TypeError as err:
            raise ConfigurationError(str(err)) from err
