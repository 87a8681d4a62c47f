#########################################################################################
##
##                               POPULATION SIMULATOR
##                                 (simulator.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ..forms import FormContext, make_forms
from .codec import DecodedParameters


__all__ = [
    "SimulationState",
    "carrying_capacities",
    "simulate",
]


# STATE =================================================================================

@dataclass
class SimulationState:
    """Simulated biomass trajectory of one fitness evaluation.

    Parameters
    ----------
    species : np.ndarray
        Unit biomass ``[year][unit]`` (guilds for aggregate runs).
    guilds : np.ndarray
        Guild biomass ``[year][guild]``, always the sum of member units.
    feasible : bool
        False when a step produced negative or non-finite biomass. The
        matrices are then incomplete and must not be scored.
    failed_year, failed_unit : int, optional
        Location of the first infeasible value.
    """

    species: np.ndarray
    guilds: np.ndarray
    feasible: bool = True
    failed_year: int | None = None
    failed_unit: int | None = None


    def __bool__(self) -> bool:
        return self.feasible


# CARRYING CAPACITY =====================================================================

def carrying_capacities(params: DecodedParameters, config) -> tuple[float, np.ndarray]:
    """Return ``(system_K, guild_K)`` for one evaluation.

    Guild capacity is the sum of its members' carrying capacities and the
    system capacity the sum over all guilds. Without a carrying-capacity block
    both are zero. For aggregate runs every unit is its own guild.
    """
    guild_k = np.zeros(config.num_guilds)
    k = params.carrying_capacity

    if k is not None:
        if config.is_aggregate:
            guild_k = np.asarray(k, dtype=float).copy()
        else:
            for g in range(config.num_guilds):
                for s in config.guild_species.get(g, []):
                    guild_k[g] += k[s]

    system_k = 0.0
    for g in range(config.num_guilds):
        system_k += guild_k[g]

    return float(system_k), guild_k


# SIMULATOR =============================================================================

def simulate(params: DecodedParameters, config, forms=None) -> SimulationState:
    """Advance unit and guild biomass over ``config.run_length`` years.

    For every year ``t`` and unit ``i``::

        B[t, i] = B[t-1, i] + growth - harvest - competition - predation

    with each term produced by the active form from year ``t - 1`` state.
    Guild biomass at ``t`` is recomputed from the members once the year is
    complete. The first negative or non-finite value stops the simulation
    and the state is returned as infeasible.

    Parameters
    ----------
    params : DecodedParameters
        Decoded candidate parameters.
    config : EstimationConfig
        Run configuration.
    forms : FormSet, optional
        Active forms; resolved from *config* when omitted.

    Returns
    -------
    SimulationState
    """
    forms = forms if forms is not None else make_forms(config)
    growth, harvest, competition, predation = forms

    n_years = config.num_years
    n_units = config.num_units
    n_guilds = config.num_guilds
    aggregate = config.is_aggregate

    species = np.zeros((n_years, n_units))
    guilds = np.zeros((n_years, n_guilds))

    if aggregate:
        species[0] = config.observed_guilds[0]
        unit_guild = np.arange(n_units)
    else:
        species[0] = config.observed_species[0]
        unit_guild = config.guild_of

    def _aggregate(row):
        if aggregate:
            return row.copy()
        out = np.zeros(n_guilds)
        np.add.at(out, unit_guild, row)
        return out

    guilds[0] = _aggregate(species[0])

    system_k, guild_k = carrying_capacities(params, config)

    ctx = FormContext(
        params=params,
        species_biomass=species,
        guild_biomass=guilds,
        catch=config.unit_catch,
        effort=config.unit_effort,
        exploitation=config.unit_exploitation,
        system_carrying_capacity=system_k,
    )

    for t in range(1, n_years):
        ctx.year = t - 1
        for i in range(n_units):
            ctx.unit = i
            ctx.biomass = species[t - 1, i]
            ctx.guild_carrying_capacity = guild_k[unit_guild[i]]

            value = (
                ctx.biomass
                + growth.evaluate(ctx)
                - harvest.evaluate(ctx)
                - competition.evaluate(ctx)
                - predation.evaluate(ctx)
            )

            if not np.isfinite(value) or value < 0.0:
                return SimulationState(
                    species=species,
                    guilds=guilds,
                    feasible=False,
                    failed_year=t,
                    failed_unit=i,
                )

            species[t, i] = value

        guilds[t] = _aggregate(species[t])

    return SimulationState(species=species, guilds=guilds)
