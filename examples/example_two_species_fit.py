#########################################################################################
##
##               popfit example: two-species logistic fit
##
##  Model:   B[t+1] = B[t] + r B[t] (1 - B[t] / K) - q E[t] B[t]
##  Fit:     growth rates, carrying capacities and catchabilities from a
##           noisy biomass survey
##
#########################################################################################

# IMPORTS ===============================================================================

import numpy as np
import matplotlib.pyplot as plt

from popfit import EstimationConfig, StoppingCriteria, LoggerManager
from popfit.opt import ScipyEstimator


# SYNTHETIC SURVEY ======================================================================

def make_survey(years=25, seed=1):
    rng = np.random.default_rng(seed)
    r = np.array([0.35, 0.2])
    k = np.array([1200.0, 3000.0])
    q = np.array([0.002, 0.001])

    effort = np.column_stack([
        np.linspace(20.0, 60.0, years + 1),
        np.linspace(40.0, 10.0, years + 1),
    ])

    biomass = np.zeros((years + 1, 2))
    biomass[0] = [300.0, 2500.0]
    for t in range(1, years + 1):
        b = biomass[t - 1]
        biomass[t] = b + r * b * (1.0 - b / k) - q * effort[t - 1] * b

    noisy = biomass * np.exp(0.05 * rng.standard_normal(biomass.shape))
    noisy[0] = biomass[0]
    return noisy, effort


# Run Example ===========================================================================

if __name__ == '__main__':

    LoggerManager.configure(level="INFO")

    observed, effort = make_survey()

    config = EstimationConfig(
        num_species=2,
        num_guilds=1,
        run_length=observed.shape[0] - 1,
        guild_species={0: [0, 1]},
        observed_species=observed,
        effort=effort,
        harvest_form="Effort (qE)",
        objective_criterion="Model Efficiency",
        minimizer="GN_DIRECT_L",
        ranges={
            "growth_rate": (0.05, 0.6),
            "carrying_capacity": ([500.0, 1000.0], [3000.0, 6000.0]),
            "catchability": (0.0, 0.005),
        },
        stopping=StoppingCriteria(stop_value=0.99, max_evaluations=5000),
        show_diagnostic_chart=True,
    )

    def on_completed(summary, show_chart):
        print(summary)

    est = ScipyEstimator(config, progress_file="progress.csv", on_completed=on_completed)
    result = est.run()

    print("growth rates:       ", est.growth_rates)
    print("carrying capacities:", est.carrying_capacities)
    print("catchability:       ", est.catchability)

    if config.show_diagnostic_chart:
        est.plot_fit(title=f"Two-species fit ({result.status.value})")
        plt.show()
