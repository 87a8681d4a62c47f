#########################################################################################
##
##                                 PREDATION FORMS
##                              (forms/predation.py)
##
##      Row i of the predation and handling matrices describes prey i, column j
##      the predator j.
##
#########################################################################################

# IMPORTS ===============================================================================

import numpy as np

from ._form import Form


# FORMS =================================================================================

class NullPredation(Form):
    kind = "predation"
    name = "Null"


class TypeIPredation(Form):
    """Linear functional response, ``B_i sum_j rho_ij B_j``."""

    kind = "predation"
    name = "Type I"
    blocks = ("predation",)

    def evaluate(self, ctx):
        rho = ctx.params.predation[ctx.unit]
        return ctx.biomass * float(np.dot(rho, ctx.species_biomass[ctx.year]))


class TypeIIPredation(Form):
    """Saturating response, ``sum_j rho_ij B_i B_j / (1 + h_ij rho_ij B_i)``."""

    kind = "predation"
    name = "Type II"
    blocks = ("predation", "handling")

    def _prey_term(self, ctx):
        return ctx.biomass

    def evaluate(self, ctx):
        i = ctx.unit
        rho = ctx.params.predation[i]
        h = ctx.params.handling[i]
        prey = self._prey_term(ctx)
        predators = ctx.species_biomass[ctx.year]
        return float(np.sum(rho * prey * predators / (1.0 + h * rho * prey)))


class TypeIIIPredation(TypeIIPredation):
    """Sigmoid response, prey biomass raised to the estimated exponent."""

    name = "Type III"
    blocks = ("predation", "handling", "exponent")

    def _prey_term(self, ctx):
        return ctx.biomass ** ctx.params.exponent[ctx.unit]
