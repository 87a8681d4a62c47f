#########################################################################################
##
##                                  GROWTH FORMS
##                                (forms/growth.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from ._form import Form


# FORMS =================================================================================

class NullGrowth(Form):
    """No growth term. Growth rates are still estimated since the
    production-based competition forms scale with them."""

    kind = "growth"
    name = "Null"
    blocks = ("growth_rate",)


class LinearGrowth(Form):
    """Exponential growth, ``r B``."""

    kind = "growth"
    name = "Linear"
    blocks = ("growth_rate",)

    def evaluate(self, ctx):
        return ctx.params.growth_rate[ctx.unit] * ctx.biomass


class LogisticGrowth(Form):
    """Logistic growth, ``r B (1 - B / K)``."""

    kind = "growth"
    name = "Logistic"
    blocks = ("growth_rate", "carrying_capacity")

    def evaluate(self, ctx):
        i = ctx.unit
        r = ctx.params.growth_rate[i]
        k = ctx.params.carrying_capacity[i]
        return r * ctx.biomass * (1.0 - ctx.biomass / k)
