"""
Tests for the SWEEP-based fit.

Validates:
    - Full rank: G⁻ equals inv(X'WX), β̂ equals the least-squares solution
    - Rank deficiency: aliased parameters, generalized-inverse property
    - WLS equals OLS on √w-scaled data
    - Coding invariance of fitted values
"""

import numpy as np
import pytest

from glmstats.core.compute.tolerances import CPU_FP64
from glmstats.core.exceptions import DimensionError
from glmstats.glm import GLMDesign
from glmstats.glm._fit import cross_product_matrix, fitted_values, sweep_fit


class TestFullRankFit:
    """With a full-rank design the sweep reproduces ordinary inversion."""

    def test_g_inverse_is_inverse(self, ancova):
        d = GLMDesign.from_data(ancova, 'y', factors=['g'], covariates=['x'])
        fit = sweep_fit(d)
        np.testing.assert_allclose(
            fit.g_inverse, np.linalg.inv(d.xtwx()),
            rtol=CPU_FP64.rtol, atol=CPU_FP64.atol,
        )
        assert not fit.aliased.any()
        assert fit.rank == d.p

    def test_beta_is_least_squares(self, ancova):
        d = GLMDesign.from_data(ancova, 'y', factors=['g'], covariates=['x'])
        fit = sweep_fit(d)
        expected, *_ = np.linalg.lstsq(d.X, d.y, rcond=None)
        np.testing.assert_allclose(fit.beta, expected, rtol=1e-9)
        rss = np.sum((d.y - d.X @ expected) ** 2)
        np.testing.assert_allclose(fit.rss, rss, rtol=1e-9)

    def test_cross_product_layout(self, two_groups):
        d = GLMDesign.from_data(two_groups, 'y', factors=['g'])
        M = cross_product_matrix(d)
        assert M.shape == (3, 3)
        np.testing.assert_allclose(M[:2, :2], d.X.T @ d.X)
        np.testing.assert_allclose(M[:2, 2], d.X.T @ d.y)
        assert M[2, 2] == pytest.approx(np.sum(d.y ** 2))


class TestRankDeficientFit:
    """Redundant columns are aliased and the sweep yields a g-inverse."""

    def test_indicator_coding_aliases_last_levels(self, twoway_balanced):
        d = GLMDesign.from_data(
            twoway_balanced, 'y', factors=['A', 'B'], coding='indicator',
        )
        fit = sweep_fit(d)
        aliased = [d.parameter_labels[j] for j in np.flatnonzero(fit.aliased)]
        assert aliased == [
            '[A=a2]', '[B=b3]', '[A=a1]*[B=b3]',
            '[A=a2]*[B=b1]', '[A=a2]*[B=b2]', '[A=a2]*[B=b3]',
        ]
        assert fit.rank == d.rank == 6
        assert np.all(fit.beta[fit.aliased] == 0.0)
        assert np.all(fit.g_inverse[fit.aliased] == 0.0)

    def test_generalized_inverse_property(self, twoway_empty_cell):
        d = GLMDesign.from_data(
            twoway_empty_cell, 'y', factors=['A', 'B'], coding='indicator',
        )
        fit = sweep_fit(d)
        A = d.xtwx()
        np.testing.assert_allclose(A @ fit.g_inverse @ A, A, rtol=1e-8, atol=1e-8)

    def test_empty_cell_reference_coding(self, twoway_empty_cell):
        d = GLMDesign.from_data(twoway_empty_cell, 'y', factors=['A', 'B'])
        fit = sweep_fit(d)
        # five observed cells support five parameters out of six columns
        assert d.rank == 5
        assert fit.rank == 5
        assert fit.aliased.sum() == d.p - 5

    def test_coding_invariant_fitted_values(self, twoway_empty_cell):
        ref = GLMDesign.from_data(twoway_empty_cell, 'y', factors=['A', 'B'])
        ind = GLMDesign.from_data(
            twoway_empty_cell, 'y', factors=['A', 'B'], coding='indicator',
        )
        np.testing.assert_allclose(
            fitted_values(ref, sweep_fit(ref)),
            fitted_values(ind, sweep_fit(ind)),
            rtol=1e-9,
        )


class TestWeightedFit:
    """WLS through the sweep equals OLS on √w-scaled data."""

    def test_matches_scaled_ols(self, weighted_oneway):
        d = GLMDesign.from_data(weighted_oneway, 'y', factors=['g'], weights='w')
        fit = sweep_fit(d)
        sw = np.sqrt(d.w)
        expected, *_ = np.linalg.lstsq(d.X * sw[:, None], d.y * sw, rcond=None)
        np.testing.assert_allclose(fit.beta, expected, rtol=1e-9)
        wrss = np.sum(d.w * (d.y - d.X @ expected) ** 2)
        np.testing.assert_allclose(fit.rss, wrss, rtol=1e-9)


class TestFitErrors:
    """An empty design cannot be swept."""

    def test_zero_columns(self, two_groups):
        d = GLMDesign.from_data(two_groups, 'y', factors=['g'])
        empty = d.__class__(**{**d.__dict__, 'X': np.zeros((6, 0))})
        with pytest.raises(DimensionError, match="empty design"):
            cross_product_matrix(empty)
