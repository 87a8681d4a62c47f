#########################################################################################
##
##                                 DATA RESCALING
##                                  (rescale.py)
##
##      Per-series normalization that makes species of very different biomass
##      magnitude comparable inside one fitness value.
##
#########################################################################################

# IMPORTS ===============================================================================

import numpy as np


MIN_MAX = "Min Max"
MEAN = "Mean"


# HELPERS ===============================================================================

def _column_stats(matrix):
    m = np.asarray(matrix, dtype=float)
    if m.ndim == 1:
        m = m.reshape(-1, 1)
    lo = m.min(axis=0)
    span = m.max(axis=0) - lo
    return m, lo, span


def _divide_columns(numerator, span):
    """Divide each column by its range; zero-range columns become all zeros."""
    out = np.zeros_like(numerator)
    ok = span > 0.0
    out[:, ok] = numerator[:, ok] / span[ok]
    return out


# RESCALERS =============================================================================

def rescale_min_max(matrix) -> np.ndarray:
    """``(x - min) / (max - min)`` per column.

    A column whose values are all equal maps to zeros.
    """
    m, lo, span = _column_stats(matrix)
    return _divide_columns(m - lo, span)


def rescale_mean(matrix) -> np.ndarray:
    """``(x - mean) / (max - min)`` per column.

    Centres on the column mean but divides by the min-max range, not by the
    standard deviation. A column whose values are all equal maps to zeros.
    """
    m, _, span = _column_stats(matrix)
    return _divide_columns(m - m.mean(axis=0), span)


RESCALERS = {
    MIN_MAX: rescale_min_max,
    MEAN: rescale_mean,
}


def rescale(matrix, method: str = MIN_MAX) -> np.ndarray:
    """Rescale every column of ``matrix[year][series]``.

    Unrecognised method names fall back to Min-Max.
    """
    return RESCALERS.get(method, rescale_min_max)(matrix)
