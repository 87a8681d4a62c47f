#########################################################################################
##
##                       FUNCTIONAL FORM REGISTRY: PUBLIC API
##                               (forms/__init__.py)
##
##      The one place where form names are resolved. Everything else works with
##      form objects.
##
#########################################################################################

from dataclasses import dataclass

from ..errors import ConfigurationError
from ._form import Form, FormContext
from .growth import NullGrowth, LinearGrowth, LogisticGrowth
from .harvest import NullHarvest, CatchHarvest, EffortHarvest, ExploitationHarvest
from .competition import (
    NullCompetition,
    NoKCompetition,
    MsProdCompetition,
    AggProdCompetition,
)
from .predation import NullPredation, TypeIPredation, TypeIIPredation, TypeIIIPredation


FORM_REGISTRY = {
    kind: {cls.name: cls for cls in classes}
    for kind, classes in (
        ("growth", (NullGrowth, LinearGrowth, LogisticGrowth)),
        ("harvest", (NullHarvest, CatchHarvest, EffortHarvest, ExploitationHarvest)),
        ("competition", (NullCompetition, NoKCompetition, MsProdCompetition, AggProdCompetition)),
        ("predation", (NullPredation, TypeIPredation, TypeIIPredation, TypeIIIPredation)),
    )
}


def make_form(kind: str, name: str) -> Form:
    """Instantiate the registered form *name* of the given *kind*."""
    try:
        forms = FORM_REGISTRY[kind]
    except KeyError:
        raise ConfigurationError(f"Unknown form kind '{kind}'") from None
    if name not in forms:
        raise ConfigurationError(
            f"Unknown {kind} form '{name}'. Choose from {sorted(forms)}."
        )
    return forms[name]()


@dataclass
class FormSet:
    """The four active forms of a run, in layout order."""

    growth: Form
    harvest: Form
    competition: Form
    predation: Form


    def __iter__(self):
        return iter((self.growth, self.harvest, self.competition, self.predation))


    @property
    def blocks(self) -> tuple[str, ...]:
        """Names of all active parameter blocks, in layout order."""
        return tuple(block for form in self for block in form.blocks)


    def load_parameter_ranges(self, bounds, config) -> None:
        for form in self:
            form.load_parameter_ranges(bounds, config)


def make_forms(config) -> FormSet:
    """Resolve the four form names of *config* through the registry."""
    return FormSet(
        growth=make_form("growth", config.growth_form),
        harvest=make_form("harvest", config.harvest_form),
        competition=make_form("competition", config.competition_form),
        predation=make_form("predation", config.predation_form),
    )


__all__ = [
    "Form",
    "FormContext",
    "FormSet",
    "FORM_REGISTRY",
    "make_form",
    "make_forms",
]
