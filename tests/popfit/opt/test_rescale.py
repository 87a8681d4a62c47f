########################################################################################
##
##                                  TESTS FOR
##                               'opt/rescale.py'
##
########################################################################################

# IMPORTS ==============================================================================

import numpy as np
import pytest

from popfit.opt.rescale import MEAN, MIN_MAX, rescale, rescale_mean, rescale_min_max


# ═══════════════════════════════════════════════════════════════════════════
# Tests
# ═══════════════════════════════════════════════════════════════════════════

class TestRescale:

    def test_min_max_columns(self):
        m = np.array([[0.0, 10.0], [5.0, 20.0], [10.0, 30.0]])
        out = rescale_min_max(m)
        np.testing.assert_allclose(out, [[0.0, 0.0], [0.5, 0.5], [1.0, 1.0]])

    def test_min_max_range(self):
        out = rescale_min_max(np.random.default_rng(0).random((20, 4)) * 100)
        assert out.min() == pytest.approx(0.0)
        assert out.max() == pytest.approx(1.0)

    def test_mean_divides_by_range_not_std(self):
        m = np.array([[0.0], [5.0], [10.0]])
        np.testing.assert_allclose(rescale_mean(m), [[-0.5], [0.0], [0.5]])

    def test_mean_is_centred(self):
        out = rescale_mean(np.random.default_rng(1).random((15, 3)))
        np.testing.assert_allclose(out.mean(axis=0), 0.0, atol=1e-12)

    def test_degenerate_column_becomes_zeros(self):
        m = np.array([[3.0, 1.0], [3.0, 2.0], [3.0, 4.0]])
        for method in (MIN_MAX, MEAN):
            out = rescale(m, method)
            np.testing.assert_array_equal(out[:, 0], 0.0)
            assert np.all(np.isfinite(out))

    def test_unknown_method_falls_back_to_min_max(self):
        m = np.array([[1.0], [2.0], [3.0]])
        np.testing.assert_array_equal(rescale(m, "Z-Score"), rescale_min_max(m))

    def test_one_dimensional_input(self):
        out = rescale([2.0, 4.0, 6.0])
        assert out.shape == (3, 1)
        np.testing.assert_allclose(out[:, 0], [0.0, 0.5, 1.0])
