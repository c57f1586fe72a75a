"""
Tests for Levene's test of equality of error variances.

The mean- and median-centered variants are checked against
scipy.stats.levene, which implements the same Brown-Forsythe family.
"""

import math

import numpy as np
import pytest
from scipy import stats

from glmstats.core.exceptions import ValidationError
from glmstats.glm import levene_test


def _groups(data, factor):
    y, g = data['y'], data[factor]
    return [y[g == level] for level in np.unique(g)]


class TestLeveneTable:
    """Four centers without covariates."""

    def test_row_names(self, oneway_unbalanced):
        sol = levene_test(oneway_unbalanced, 'y', factors=['g'])
        assert [r.function for r in sol.rows] == [
            'Based on Mean',
            'Based on Median',
            'Based on Median and with adjusted df',
            'Based on trimmed mean',
        ]
        assert sol.n_groups == 3
        assert not sol.used_residuals

    @pytest.mark.parametrize("center, index", [('mean', 0), ('median', 1)])
    def test_matches_scipy(self, oneway_unbalanced, center, index):
        sol = levene_test(oneway_unbalanced, 'y', factors=['g'])
        expected = stats.levene(*_groups(oneway_unbalanced, 'g'), center=center)
        row = sol.rows[index]
        assert row.statistic == pytest.approx(expected.statistic, rel=1e-10)
        assert row.significance == pytest.approx(expected.pvalue, rel=1e-8)
        assert (row.df1, row.df2) == (2, 21.0)

    def test_adjusted_df(self, oneway_unbalanced):
        sol = levene_test(oneway_unbalanced, 'y', factors=['g'])
        median, adjusted = sol.rows[1], sol.rows[2]
        assert adjusted.statistic == median.statistic
        assert adjusted.df1 == median.df1
        assert 0.0 < adjusted.df2 <= median.df2

    def test_equal_spread(self, two_groups):
        sol = levene_test(two_groups, 'y', factors=['g'])
        assert sol.statistic == 0.0
        assert sol.significance == 1.0

    def test_detects_unequal_variances(self, rng):
        y = np.concatenate([rng.normal(0.0, 1.0, 40), rng.normal(0.0, 6.0, 40)])
        data = {'y': y, 'g': np.repeat(['a', 'b'], 40)}
        sol = levene_test(data, 'y', factors=['g'])
        assert sol.significance < 0.01

    def test_cells_of_two_factors(self, twoway_balanced):
        sol = levene_test(twoway_balanced, 'y', factors=['A', 'B'])
        assert sol.n_groups == 6
        assert sol.rows[0].df1 == 5
        assert sol.rows[0].df2 == 18.0


class TestLeveneOptions:
    """Single-center requests and the residual variant."""

    def test_single_center(self, oneway_unbalanced):
        sol = levene_test(oneway_unbalanced, 'y', factors=['g'], center='median')
        assert [r.function for r in sol.rows] == ['Based on Median']

    def test_adjusted_only(self, oneway_unbalanced):
        sol = levene_test(oneway_unbalanced, 'y', factors=['g'], center='median_adjusted')
        assert [r.function for r in sol.rows] == ['Based on Median and with adjusted df']

    def test_residuals_with_covariates(self, ancova):
        sol = levene_test(ancova, 'y', factors=['g'], covariates=['x'])
        assert sol.used_residuals
        (row,) = sol.rows
        assert row.function == 'Levene'
        assert not math.isnan(row.statistic)

    def test_single_record_cells_skipped(self, two_groups):
        data = {
            'y': np.append(two_groups['y'], 30.0),
            'g': np.append(two_groups['g'], 'C'),
        }
        sol = levene_test(data, 'y', factors=['g'])
        assert sol.n_groups == 2


class TestLeveneErrors:
    """Invalid requests."""

    def test_invalid_center(self, two_groups):
        with pytest.raises(ValidationError, match="center"):
            levene_test(two_groups, 'y', factors=['g'], center='mode')

    def test_no_replicated_cell(self):
        data = {'y': np.array([1.0, 2.0, 3.0]), 'g': np.array(['a', 'b', 'c'])}
        with pytest.raises(ValidationError, match="more than one observation"):
            levene_test(data, 'y', factors=['g'])
