#########################################################################################
##
##                              BEES ALGORITHM STRATEGY
##                                    (bees.py)
##
##      Population-based search: random scouts, recruited neighbourhood search
##      around the best sites with shrinking patches, and site abandonment
##      after stagnation. Repeated for a number of independent sub-runs.
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from typing import Callable

import numpy as np

from .estimator import BaseEstimator


__all__ = ["BeesEstimator"]


# BEES ESTIMATOR ========================================================================

class BeesEstimator(BaseEstimator):
    """Bees-algorithm search over the free parameters.

    Runs ``config.num_subruns`` independent searches that share one
    evaluation counter and one set of stopping criteria. The best point
    over all sub-runs is the run result, and the spread of the sub-run
    best values is reported as the fitness standard deviation.

    Sub-run completions are announced with ``fn(run_number, subrun,
    num_subruns)`` to callbacks registered through
    :meth:`on_subrun_completed`.
    """

    def __init__(self, config, **kwargs):
        super().__init__(config, **kwargs)
        self._subrun_callbacks: list[Callable[[int, int, int], None]] = []


    def on_subrun_completed(self, fn: Callable[[int, int, int], None]) -> "BeesEstimator":
        self._subrun_callbacks.append(fn)
        return self


    def _configure_algorithm(self) -> None:
        self.config.bees.validate()


    def _optimize(self) -> str:
        config = self.config
        rng = np.random.default_rng(config.bees.seed)

        free = self._free
        lower = self.bounds.lower[free]
        upper = self.bounds.upper[free]

        for subrun in range(1, config.num_subruns + 1):
            self._label = f"{config.run_label} {self.run_number}-{subrun}"
            self._subrun_best.append(np.inf)

            if lower.size == 0:
                self._score(np.array([], dtype=float))
            else:
                self._search(rng, lower, upper)

            self.logger.info(
                "%s finished, best fitness %.6g", self._label, self._subrun_best[-1]
            )
            for fn in self._subrun_callbacks:
                fn(self.run_number, subrun, config.num_subruns)

        return f"Completed {config.num_subruns} sub-run(s)"


    def _score(self, z) -> float:
        fitness = self._reduced_objective(z)
        if fitness < self._subrun_best[-1]:
            self._subrun_best[-1] = fitness
        return fitness


    def _scatter(self, rng, lower, upper, count: int) -> np.ndarray:
        return lower + rng.random((count, lower.size)) * (upper - lower)


    def _search(self, rng, lower: np.ndarray, upper: np.ndarray) -> float:
        """One sub-run; returns its best fitness."""
        s = self.config.bees
        initial_patch = s.neighborhood_size * (upper - lower)

        sites = self._scatter(rng, lower, upper, s.num_bees)
        fitness = np.array([self._score(z) for z in sites])
        patch = np.tile(initial_patch, (s.num_bees, 1))
        stale = np.zeros(s.num_bees, dtype=int)

        for _ in range(s.max_generations):
            order = np.argsort(fitness, kind="stable")
            sites, fitness = sites[order], fitness[order]
            patch, stale = patch[order], stale[order]

            # local search around the best sites
            for k in range(s.num_best_sites):
                recruits = s.num_elite_bees if k < s.num_elite_sites else s.num_other_bees
                if recruits < 1:
                    continue

                step = rng.uniform(-1.0, 1.0, (recruits, lower.size)) * patch[k]
                candidates = np.clip(sites[k] + step, lower, upper)
                scores = np.array([self._score(z) for z in candidates])

                j = int(np.argmin(scores))
                if scores[j] < fitness[k]:
                    sites[k], fitness[k] = candidates[j], scores[j]
                    stale[k] = 0
                    continue

                patch[k] *= s.patch_shrink
                stale[k] += 1
                if stale[k] > s.max_stagnation:
                    sites[k] = self._scatter(rng, lower, upper, 1)[0]
                    fitness[k] = self._score(sites[k])
                    patch[k] = initial_patch
                    stale[k] = 0

            # global search with the remaining scouts
            scouts = s.num_bees - s.num_best_sites
            if scouts > 0:
                rest = slice(s.num_best_sites, None)
                sites[rest] = self._scatter(rng, lower, upper, scouts)
                fitness[rest] = [self._score(z) for z in sites[rest]]
                patch[rest] = initial_patch
                stale[rest] = 0

        return self._subrun_best[-1]
