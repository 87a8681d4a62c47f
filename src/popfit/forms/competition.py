#########################################################################################
##
##                                COMPETITION FORMS
##                             (forms/competition.py)
##
#########################################################################################

# IMPORTS ===============================================================================

import numpy as np

from ._form import Form


# HELPERS ===============================================================================

def _scaled(numerator: float, denominator: float) -> float:
    """``numerator / denominator`` with a zero capacity contributing nothing."""
    if denominator == 0.0:
        return 0.0
    return numerator / denominator


# FORMS =================================================================================

class NullCompetition(Form):
    kind = "competition"
    name = "Null"


class NoKCompetition(Form):
    """Lotka-Volterra style interaction, ``B_i sum_j alpha_ij B_j``."""

    kind = "competition"
    name = "NO_K"
    blocks = ("competition_alpha",)

    def evaluate(self, ctx):
        alpha = ctx.params.competition_alpha[ctx.unit]
        return ctx.biomass * float(np.dot(alpha, ctx.species_biomass[ctx.year]))


class MsProdCompetition(Form):
    """Multi-species production competition.

    Species term scaled by ``r_i B_i / K_sys`` plus a guild term scaled by
    ``r_i B_i / (K_sys - K_guild)``. Both capacities come from the logistic
    carrying capacities, so without them the term vanishes.
    """

    kind = "competition"
    name = "MS-PROD"
    blocks = ("competition_beta_species", "competition_beta_guilds")

    def evaluate(self, ctx):
        i, t = ctx.unit, ctx.year
        p = ctx.params
        rb = p.growth_rate[i] * ctx.biomass

        species_sum = float(np.dot(p.competition_beta_species[i], ctx.species_biomass[t]))
        guild_sum = float(np.dot(p.competition_beta_guilds[i], ctx.guild_biomass[t]))

        k_sys = ctx.system_carrying_capacity
        return (
            _scaled(rb, k_sys) * species_sum
            + _scaled(rb, k_sys - ctx.guild_carrying_capacity) * guild_sum
        )


class AggProdCompetition(Form):
    """Aggregate production competition between guilds.

    Units are guilds; the term is ``r_g B_g / K_g sum_k beta_gk B_k``.
    """

    kind = "competition"
    name = "AGG-PROD"
    blocks = ("competition_beta_guilds",)

    def evaluate(self, ctx):
        i, t = ctx.unit, ctx.year
        p = ctx.params
        rb = p.growth_rate[i] * ctx.biomass
        guild_sum = float(np.dot(p.competition_beta_guilds[i], ctx.guild_biomass[t]))
        return _scaled(rb, ctx.guild_carrying_capacity) * guild_sum
