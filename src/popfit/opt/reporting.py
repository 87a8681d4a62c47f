#########################################################################################
##
##                          PROGRESS AND RESULT REPORTING
##                                 (reporting.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from pathlib import Path

import numpy as np

from .codec import DecodedParameters
from .fitness import MODEL_EFFICIENCY


__all__ = [
    "ProgressSink",
    "write_stop_file",
    "format_elapsed",
    "format_summary",
    "plot_fit",
]


_LABELS = {
    "growth_rate": "Growth Rate",
    "carrying_capacity": "Carrying Capacity",
    "catchability": "Catchability",
    "competition_alpha": "Competition (alpha)",
    "competition_beta_species": "Competition (beta::species)",
    "competition_beta_guilds": "Competition (beta::guilds)",
    "predation": "Predation (rho)",
    "handling": "Handling",
    "exponent": "Predation Exponent",
}


# PROGRESS SINK =========================================================================

class ProgressSink:
    """Append-only progress file, one snapshot per line::

        Run 1-1, 3000, 0.0123, -1

    Parameters
    ----------
    path : str or Path
        Progress file; created on first write.
    """

    UNUSED = -1

    def __init__(self, path):
        self.path = Path(path)


    def write(self, label: str, evaluations: int, best_fitness: float, criterion: str) -> None:
        """Append one snapshot. Model Efficiency is re-negated here."""
        adjusted = -best_fitness if criterion == MODEL_EFFICIENCY else best_fitness
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(f"{label}, {evaluations}, {adjusted}, {self.UNUSED}\n")


    def clear(self) -> None:
        """Truncate the progress file."""
        self.path.write_text("", encoding="utf-8")


    def read(self) -> list[tuple[str, int, float, int]]:
        """Parse all snapshots written so far."""
        if not self.path.exists():
            return []
        rows = []
        for line in self.path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            label, evals, fitness, unused = (part.strip() for part in line.split(","))
            rows.append((label, int(evals), float(fitness), int(unused)))
        return rows


# STOP RECORD ===========================================================================

def write_stop_file(path, elapsed: str, summary: str) -> None:
    """Write the fixed-format run-stop record (status, run name, time, fitness)."""
    lines = ["Stop", "", elapsed, summary]
    Path(path).write_text("\n".join(lines) + "\n", encoding="utf-8")


def format_elapsed(seconds: float) -> str:
    """``"Elapsed runtime: 0 h 1 m 2.345 s"``."""
    hours, rest = divmod(float(seconds), 3600.0)
    minutes, secs = divmod(rest, 60.0)
    return f"Elapsed runtime: {int(hours)} h {int(minutes)} m {secs:.3f} s"


# SUMMARY ===============================================================================

def _fmt(value: float) -> str:
    return f"{value:.3e}"


def _vector_lines(label: str, values, include_total: bool) -> list[str]:
    values = np.asarray(values, dtype=float).reshape(-1)
    lines = [f"  {label}: " + "  ".join(_fmt(v) for v in values)]
    if include_total:
        lines.append(f"  Total {label}: {_fmt(values.sum())}")
    return lines


def _matrix_lines(label: str, matrix) -> list[str]:
    lines = [f"  {label}:"]
    for row in np.atleast_2d(np.asarray(matrix, dtype=float)):
        lines.append("    " + "  ".join(_fmt(v) for v in row))
    return lines


def format_summary(
    config,
    *,
    num_estimated: int,
    best_fitness: float,
    fitness_std: float,
    parameters: DecodedParameters,
    initial: DecodedParameters | None = None,
) -> str:
    """Human-readable summary of a finished run.

    Parameters
    ----------
    config : EstimationConfig
        Run configuration (criterion, sub-run count, total parameter count).
    num_estimated : int
        Size of the estimated parameter vector.
    best_fitness : float
        Best fitness in the user-facing sign.
    fitness_std : float
        Standard deviation of sub-run best fitness values.
    parameters : DecodedParameters
        Best estimated parameters.
    initial : DecodedParameters, optional
        Starting parameters; their carrying capacities are listed.
    """
    total = config.total_parameters if config.total_parameters is not None else num_estimated

    lines = [
        f"Est'd Parameters: {num_estimated}",
        f"Total Parameters: {total}",
        "",
        f"Number of Runs: {config.num_subruns}",
        f"Best Fitness ({config.objective_criterion}) value of all runs: {best_fitness:.6g}",
        f"Std dev of Best Fitness values from all runs: {fitness_std:.6g}",
    ]

    if initial is not None and initial.carrying_capacity is not None:
        lines += ["", "Initial Parameters:"]
        lines += _vector_lines(_LABELS["carrying_capacity"], initial.carrying_capacity, True)

    lines += ["", "Estimated Parameters:"]
    for name, value in parameters.present().items():
        label = _LABELS[name]
        if np.ndim(value) == 1:
            lines += _vector_lines(label, value, name == "carrying_capacity")
        else:
            lines += _matrix_lines(label, value)

    return "\n".join(lines)


# DIAGNOSTIC CHART ======================================================================

def plot_fit(state, config, *, axes=None, title: str | None = None):
    """Plot simulated against observed biomass, one subplot per series.

    Parameters
    ----------
    state : SimulationState
        Trajectory of the best parameters.
    config : EstimationConfig
        Run configuration providing the observations.
    axes : sequence of matplotlib.axes.Axes, optional
        Existing axes, one per series.
    title : str, optional
        Figure title.

    Returns
    -------
    fig : matplotlib.figure.Figure
    axes : list[matplotlib.axes.Axes]
    """
    import matplotlib.pyplot as plt  # lazy import

    observed = np.asarray(config.observed, dtype=float)
    simulated = np.asarray(state.species, dtype=float)
    years = np.arange(observed.shape[0])
    n = observed.shape[1]
    unit = "Guild" if config.is_aggregate else "Species"

    if axes is None:
        fig, axes_arr = plt.subplots(n, 1, sharex=True, figsize=(8, max(3, 2.5 * n)))
        axes_list = [axes_arr] if n == 1 else list(axes_arr)
    else:
        axes_list = list(axes)
        fig = axes_list[0].figure

    for i, ax in enumerate(axes_list[:n]):
        ax.plot(years, observed[:, i], "o", ms=5, alpha=0.6, label="observed")
        if state.feasible:
            ax.plot(years, simulated[:, i], "-", lw=2, label="simulated")
        ax.set_ylabel(f"{unit} {i}")
        ax.grid(True, alpha=0.3)
        ax.legend()

    axes_list[-1].set_xlabel("Year")
    if title:
        fig.suptitle(title)

    return fig, axes_list
