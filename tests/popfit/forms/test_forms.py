########################################################################################
##
##                                  TESTS FOR
##                                  'forms/*.py'
##
########################################################################################

# IMPORTS ==============================================================================

import numpy as np
import pytest

from popfit.config import EstimationConfig
from popfit.errors import ConfigurationError
from popfit.forms import FORM_REGISTRY, FormContext, FormSet, make_form, make_forms
from popfit.opt.codec import DecodedParameters, ParameterBounds


# ═══════════════════════════════════════════════════════════════════════════
# Helpers / Fixtures
# ═══════════════════════════════════════════════════════════════════════════

def _ctx(params, biomass=2.0, species=(2.0, 3.0), guilds=(5.0,), **kwargs):
    species_row = np.array(species, dtype=float)
    return FormContext(
        params=params,
        species_biomass=np.array([species_row]),
        guild_biomass=np.array([guilds], dtype=float),
        catch=np.array([[7.0, 8.0]]),
        effort=np.array([[10.0, 20.0]]),
        exploitation=np.array([[0.25, 0.5]]),
        biomass=biomass,
        **kwargs,
    )


RHO = np.array([[0.1, 0.2], [0.0, 0.0]])
HANDLING = np.ones((2, 2))


# ═══════════════════════════════════════════════════════════════════════════
# Registry
# ═══════════════════════════════════════════════════════════════════════════

class TestRegistry:

    def test_names(self):
        assert sorted(FORM_REGISTRY["growth"]) == ["Linear", "Logistic", "Null"]
        assert sorted(FORM_REGISTRY["harvest"]) == [
            "Catch", "Effort (qE)", "Exploitation (F)", "Null",
        ]
        assert sorted(FORM_REGISTRY["competition"]) == ["AGG-PROD", "MS-PROD", "NO_K", "Null"]
        assert sorted(FORM_REGISTRY["predation"]) == ["Null", "Type I", "Type II", "Type III"]

    def test_kinds_match(self):
        for kind, forms in FORM_REGISTRY.items():
            for cls in forms.values():
                assert cls.kind == kind

    def test_names_are_case_sensitive(self):
        with pytest.raises(ConfigurationError, match="Unknown growth form"):
            make_form("growth", "logistic")

    def test_unknown_kind(self):
        with pytest.raises(ConfigurationError, match="form kind"):
            make_form("migration", "Null")

    def test_make_forms(self):
        cfg = EstimationConfig(
            num_species=1,
            num_guilds=1,
            run_length=1,
            guild_species=[[0]],
            observed_species=np.ones((2, 1)),
            predation_form="Type II",
        )
        forms = make_forms(cfg)
        assert isinstance(forms, FormSet)
        assert forms.blocks == ("growth_rate", "carrying_capacity", "predation", "handling")
        assert [f.kind for f in forms] == ["growth", "harvest", "competition", "predation"]

    def test_forms_append_bounds(self):
        cfg = EstimationConfig(
            num_species=2,
            num_guilds=1,
            run_length=1,
            guild_species=[[0, 1]],
            observed_species=np.ones((2, 2)),
            harvest_form="Effort (qE)",
            ranges={"growth_rate": (0, 1), "carrying_capacity": (1, 2), "catchability": (0, 0.1)},
        )
        bounds = ParameterBounds()
        make_forms(cfg).load_parameter_ranges(bounds, cfg)
        assert len(bounds) == 6
        assert bounds.names[4:] == ["catchability[0]", "catchability[1]"]


# ═══════════════════════════════════════════════════════════════════════════
# Terms
# ═══════════════════════════════════════════════════════════════════════════

class TestTerms:

    def test_null_forms_contribute_nothing(self):
        ctx = _ctx(DecodedParameters(growth_rate=np.ones(2)))
        for kind in FORM_REGISTRY:
            assert make_form(kind, "Null").evaluate(ctx) == 0.0

    def test_logistic(self):
        params = DecodedParameters(growth_rate=np.array([0.5, 0.0]), carrying_capacity=np.array([4.0, 1.0]))
        assert make_form("growth", "Logistic").evaluate(_ctx(params)) == pytest.approx(0.5)

    def test_harvest_terms(self):
        params = DecodedParameters(catchability=np.array([0.01, 0.02]))
        ctx = _ctx(params, unit=1, biomass=3.0)
        assert make_form("harvest", "Catch").evaluate(ctx) == 8.0
        assert make_form("harvest", "Effort (qE)").evaluate(ctx) == pytest.approx(1.2)
        assert make_form("harvest", "Exploitation (F)").evaluate(ctx) == pytest.approx(1.5)

    def test_no_k(self):
        params = DecodedParameters(competition_alpha=np.array([[0.1, 0.2], [0.0, 0.0]]))
        # 2 * (0.1 * 2 + 0.2 * 3)
        assert make_form("competition", "NO_K").evaluate(_ctx(params)) == pytest.approx(1.6)

    def test_ms_prod_zero_capacity_contributes_nothing(self):
        params = DecodedParameters(
            growth_rate=np.ones(2),
            competition_beta_species=np.ones((2, 2)),
            competition_beta_guilds=np.ones((2, 1)),
        )
        ctx = _ctx(params)
        assert make_form("competition", "MS-PROD").evaluate(ctx) == 0.0

    def test_agg_prod(self):
        params = DecodedParameters(
            growth_rate=np.array([0.1]),
            competition_beta_guilds=np.array([[0.5]]),
        )
        ctx = _ctx(params, guild_carrying_capacity=10.0)
        # 0.1 * 2 / 10 * 0.5 * 5
        assert make_form("competition", "AGG-PROD").evaluate(ctx) == pytest.approx(0.05)

    def test_type_i(self):
        params = DecodedParameters(predation=RHO)
        assert make_form("predation", "Type I").evaluate(_ctx(params)) == pytest.approx(1.6)

    def test_type_ii(self):
        params = DecodedParameters(predation=RHO, handling=HANDLING)
        # 0.4 / 1.2 + 1.2 / 1.4
        expected = 0.4 / 1.2 + 1.2 / 1.4
        assert make_form("predation", "Type II").evaluate(_ctx(params)) == pytest.approx(expected)

    def test_type_iii_raises_prey_to_exponent(self):
        params = DecodedParameters(predation=RHO, handling=HANDLING, exponent=np.array([2.0, 1.0]))
        # prey term 2 ** 2 = 4
        expected = 0.8 / 1.4 + 2.4 / 1.8
        assert make_form("predation", "Type III").evaluate(_ctx(params)) == pytest.approx(expected)

    def test_repr(self):
        assert "Type III" in repr(make_form("predation", "Type III"))
