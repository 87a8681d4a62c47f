#########################################################################################
##
##                           FUNCTIONAL FORM BASE CLASS
##                                (forms/_form.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np


# CONTEXT ===============================================================================

@dataclass
class FormContext:
    """Inputs a form sees when it evaluates one unit for one year step.

    The simulator creates a single context per evaluation and updates
    ``year``, ``unit``, ``biomass`` and ``guild_carrying_capacity`` in place
    while it walks the trajectory.

    Parameters
    ----------
    year : int
        Index of the previous year (the step computes ``year + 1``).
    unit : int
        Species index, or guild index for aggregate runs.
    biomass : float
        Biomass of ``unit`` at ``year``.
    params : DecodedParameters
        Decoded parameter blocks of the current candidate.
    species_biomass : np.ndarray
        Simulated unit biomass history ``[year][unit]``.
    guild_biomass : np.ndarray
        Simulated guild biomass history ``[year][guild]``.
    catch, effort, exploitation : np.ndarray
        Harvest data ``[year][unit]``.
    system_carrying_capacity : float
        Sum of all guild carrying capacities, fixed for the evaluation.
    guild_carrying_capacity : float
        Carrying capacity of the guild that ``unit`` belongs to.
    """

    params: Any
    species_biomass: np.ndarray
    guild_biomass: np.ndarray
    catch: np.ndarray
    effort: np.ndarray
    exploitation: np.ndarray
    system_carrying_capacity: float = 0.0
    guild_carrying_capacity: float = 0.0
    year: int = 0
    unit: int = 0
    biomass: float = 0.0


# BASE CLASS ============================================================================

class Form:
    """Base class of every growth / harvest / competition / predation form.

    A form contributes one additive term to the biomass update and declares
    which parameter blocks it needs. Subclasses override :meth:`evaluate`
    and set ``name`` and ``blocks``.

    Attributes
    ----------
    kind : str
        ``"growth"``, ``"harvest"``, ``"competition"`` or ``"predation"``.
    name : str
        Registry name, matched case-sensitively.
    blocks : tuple[str, ...]
        Parameter blocks this form contributes, in layout order.
    """

    kind = None
    name = None
    blocks = ()


    def evaluate(self, ctx: FormContext) -> float:
        """Return this form's term for ``ctx.unit`` at ``ctx.year``."""
        return 0.0


    def load_parameter_ranges(self, bounds, config) -> None:
        """Append the bound pairs of this form's blocks to *bounds*."""
        for block in self.blocks:
            bounds.add_block(block, config)


    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
