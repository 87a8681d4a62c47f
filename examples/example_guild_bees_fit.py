#########################################################################################
##
##               popfit example: aggregate guild model with the Bees search
##
##  Model:   guild biomass with logistic growth and AGG-PROD competition
##  Fit:     three independent Bees sub-runs; the spread of their best
##           fitness values is reported in the summary
##
#########################################################################################

# IMPORTS ===============================================================================

import numpy as np

from popfit import EstimationConfig, BeesSettings, LoggerManager
from popfit.opt import BeesEstimator


# SYNTHETIC SURVEY ======================================================================

def make_survey(years=20):
    r = np.array([0.3, 0.15])
    k = np.array([2000.0, 4000.0])
    beta = np.array([[0.0, 0.05], [0.02, 0.0]])

    guilds = np.zeros((years + 1, 2))
    guilds[0] = [500.0, 1500.0]
    for t in range(1, years + 1):
        g = guilds[t - 1]
        guilds[t] = g + r * g * (1.0 - g / k) - r * g / k * (beta @ g)

    # split each guild over two member species
    species = np.column_stack([
        0.6 * guilds[:, 0], 0.4 * guilds[:, 0],
        0.7 * guilds[:, 1], 0.3 * guilds[:, 1],
    ])
    return species


# Run Example ===========================================================================

if __name__ == '__main__':

    LoggerManager.configure(level="INFO")

    observed = make_survey()

    config = EstimationConfig(
        num_species=4,
        num_guilds=2,
        run_length=observed.shape[0] - 1,
        guild_species={0: [0, 1], 1: [2, 3]},
        observed_species=observed,
        competition_form="AGG-PROD",
        ranges={
            "growth_rate": (0.05, 0.6),
            "carrying_capacity": (1000.0, 8000.0),
            "competition_beta_guilds": (0.0, 0.1),
        },
        num_subruns=3,
        bees=BeesSettings(max_generations=40, seed=7),
    )

    est = BeesEstimator(config)
    est.on_subrun_completed(
        lambda run, sub, total: print(f"run {run}: sub-run {sub}/{total} done")
    )
    result = est.run()

    print(result.summary)
