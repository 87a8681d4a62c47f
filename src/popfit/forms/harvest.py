#########################################################################################
##
##                                  HARVEST FORMS
##                                (forms/harvest.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from ._form import Form


# FORMS =================================================================================

class NullHarvest(Form):
    kind = "harvest"
    name = "Null"


class CatchHarvest(Form):
    """Observed catch removed as is."""

    kind = "harvest"
    name = "Catch"

    def evaluate(self, ctx):
        return ctx.catch[ctx.year, ctx.unit]


class EffortHarvest(Form):
    """Effort-based removal with estimated catchability, ``q E B``."""

    kind = "harvest"
    name = "Effort (qE)"
    blocks = ("catchability",)

    def evaluate(self, ctx):
        i = ctx.unit
        return ctx.params.catchability[i] * ctx.effort[ctx.year, i] * ctx.biomass


class ExploitationHarvest(Form):
    """Removal at an observed exploitation rate, ``F B``."""

    kind = "harvest"
    name = "Exploitation (F)"

    def evaluate(self, ctx):
        return ctx.exploitation[ctx.year, ctx.unit] * ctx.biomass
