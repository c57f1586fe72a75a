"""
End-to-end tests for glm().

Two groups A = [10, 12, 14], B = [20, 22, 24]:
    Corrected Model / g:  SS 150, df 1, F 37.5
    Intercept (Type III): SS 1734 (= 17² · 6)
    Error:                SS 16,  df 4
    Total:                SS 1900, df 6
    Corrected Total:      SS 166, df 5
"""

import math
import warnings

import numpy as np
import pytest
from scipy import stats

from glmstats.core.exceptions import DimensionError, ValidationError
from glmstats.glm import GLMSolution, glm


def _row(sol, source):
    (row,) = [r for r in sol.table if r.source == source]
    return row


# ═══════════════════════════════════════════════════════════════════════
# Between-subjects table
# ═══════════════════════════════════════════════════════════════════════


class TestBetweenSubjectsTable:
    """Tests of Between-Subjects Effects."""

    def test_two_groups(self, two_groups):
        sol = glm(two_groups, 'y', factors=['g'])
        assert isinstance(sol, GLMSolution)
        assert [r.source for r in sol.table] == [
            'Corrected Model', 'Intercept', 'g', 'Error', 'Total', 'Corrected Total',
        ]
        model = _row(sol, 'Corrected Model')
        assert model.sum_of_squares == pytest.approx(150.0)
        assert model.df == 1
        assert model.f_value == pytest.approx(37.5)
        assert _row(sol, 'Intercept').sum_of_squares == pytest.approx(1734.0)
        assert _row(sol, 'g').sum_of_squares == pytest.approx(150.0)

        error = _row(sol, 'Error')
        assert (error.sum_of_squares, error.df) == (pytest.approx(16.0), 4)
        assert error.mean_square == pytest.approx(4.0)
        assert error.f_value is None

        assert _row(sol, 'Total').sum_of_squares == pytest.approx(1900.0)
        assert _row(sol, 'Total').df == 6
        assert _row(sol, 'Corrected Total').sum_of_squares == pytest.approx(166.0)
        assert sol.r_squared == pytest.approx(150.0 / 166.0)
        assert sol.adj_r_squared == pytest.approx(1.0 - (16.0 / 166.0) * 5 / 4)

    @pytest.mark.parametrize("ss_type", [1, 2, 3, 4])
    def test_model_plus_error_is_total(self, twoway_unbalanced, ss_type):
        sol = glm(twoway_unbalanced, 'y', factors=['A', 'B'], ss_type=ss_type)
        model = _row(sol, 'Corrected Model')
        error = _row(sol, 'Error')
        total = _row(sol, 'Corrected Total')
        assert model.sum_of_squares + error.sum_of_squares == pytest.approx(
            total.sum_of_squares
        )
        assert model.df + error.df == total.df
        assert sol.ss_type == ss_type

    def test_no_intercept(self, two_groups):
        sol = glm(two_groups, 'y', factors=['g'], intercept=False)
        sources = [r.source for r in sol.table]
        assert sources[0] == 'Model'
        assert 'Corrected Total' not in sources
        assert _row(sol, 'Model').df == 2
        assert _row(sol, 'Model').sum_of_squares == pytest.approx(1900.0 - 16.0)
        # g replaces the intercept and tests both level means against zero
        assert sol.tests['g'].df == 2
        assert sol.tests['g'].sum_of_squares == pytest.approx(1900.0 - 16.0)

    def test_covariate_model(self, ancova):
        sol = glm(ancova, 'y', factors=['g'], covariates=['x'])
        assert list(sol.tests) == ['Intercept', 'x', 'g']
        assert sol.tests['x'].significance < 0.001
        assert sol.design_string == 'Intercept + x + g'

    def test_weighted(self, weighted_oneway):
        sol = glm(weighted_oneway, 'y', factors=['g'], weights='w')
        w, y = weighted_oneway['w'], weighted_oneway['y']
        ybar = np.average(y, weights=w)
        assert _row(sol, 'Corrected Total').sum_of_squares == pytest.approx(
            np.sum(w * (y - ybar) ** 2)
        )
        assert sol.info['weighted'] is True


# ═══════════════════════════════════════════════════════════════════════
# Parameter estimates
# ═══════════════════════════════════════════════════════════════════════


class TestParameterEstimates:
    """One row per design column."""

    def test_values(self, two_groups):
        sol = glm(two_groups, 'y', factors=['g'])
        intercept, group = sol.parameters
        assert intercept.parameter == 'Intercept'
        assert intercept.estimate == pytest.approx(22.0)
        assert group.estimate == pytest.approx(-10.0)
        assert group.t_value ** 2 == pytest.approx(37.5)
        assert group.partial_eta_squared == pytest.approx(37.5 / (37.5 + 4))
        assert group.noncentrality == pytest.approx(abs(group.t_value))
        np.testing.assert_allclose(sol.coefficients, [22.0, -10.0])

    def test_matches_two_sample_t(self, two_groups):
        sol = glm(two_groups, 'y', factors=['g'])
        y, g = two_groups['y'], two_groups['g']
        expected = stats.ttest_ind(y[g == 'A'], y[g == 'B'])
        group = sol.parameters[1]
        assert group.t_value == pytest.approx(expected.statistic)
        assert group.significance == pytest.approx(expected.pvalue)
        assert sol.tests['g'].significance == pytest.approx(expected.pvalue)

    def test_aliased_rows(self, twoway_balanced):
        sol = glm(twoway_balanced, 'y', factors=['A', 'B'], coding='indicator')
        aliased = [p for p in sol.parameters if p.aliased]
        assert len(aliased) == 6
        assert all(p.estimate == 0.0 and math.isnan(p.std_error) for p in aliased)
        assert sol.aliased == tuple(p.parameter for p in aliased)

    def test_indicator_coding_same_tests(self, twoway_unbalanced):
        ref = glm(twoway_unbalanced, 'y', factors=['A', 'B'])
        ind = glm(twoway_unbalanced, 'y', factors=['A', 'B'], coding='indicator')
        for term in ('A', 'B', 'A*B'):
            assert ind.tests[term].f_value == pytest.approx(ref.tests[term].f_value)
        np.testing.assert_allclose(ind.fitted_values, ref.fitted_values)


# ═══════════════════════════════════════════════════════════════════════
# Heteroscedasticity-consistent parameter estimates
# ═══════════════════════════════════════════════════════════════════════


def _sandwich(X, e, w, hc):
    """Textbook sandwich covariance of a full-rank WLS fit."""
    n, k = X.shape
    Z = X * np.sqrt(w)[:, None]
    bread = np.linalg.inv(Z.T @ Z)
    h = np.einsum('ij,jk,ik->i', Z, bread, Z)
    u = w * e ** 2
    if hc == 'hc0':
        omega = u
    elif hc == 'hc1':
        omega = u * n / (n - k)
    elif hc == 'hc2':
        omega = u / (1.0 - h)
    elif hc == 'hc3':
        omega = u / (1.0 - h) ** 2
    else:
        omega = u / (1.0 - h) ** np.minimum(4.0, n * h / k)
    return bread @ (Z.T * omega) @ Z @ bread


class TestRobustParameterEstimates:
    """Sandwich standard errors HC0-HC4."""

    @pytest.mark.parametrize("hc, se_intercept, se_group", [
        # group residuals are -2, 0, 2 and every leverage is 1/3
        ('hc0', math.sqrt(8.0 / 9.0), math.sqrt(16.0 / 9.0)),
        ('hc1', math.sqrt(4.0 / 3.0), math.sqrt(8.0 / 3.0)),
        ('hc2', math.sqrt(4.0 / 3.0), math.sqrt(8.0 / 3.0)),
        ('hc3', math.sqrt(2.0), 2.0),
    ])
    def test_two_groups_by_hand(self, two_groups, hc, se_intercept, se_group):
        sol = glm(two_groups, 'y', factors=['g'])
        intercept, group = sol.robust_parameters(hc)
        assert intercept.estimate == pytest.approx(22.0)
        assert group.estimate == pytest.approx(-10.0)
        assert intercept.robust_std_error == pytest.approx(se_intercept)
        assert group.robust_std_error == pytest.approx(se_group)
        assert group.t_value == pytest.approx(-10.0 / se_group)
        assert group.significance == pytest.approx(2.0 * stats.t.sf(10.0 / se_group, 4))
        half = stats.t.ppf(0.975, 4) * se_group
        assert group.ci_lower == pytest.approx(-10.0 - half)
        assert group.ci_upper == pytest.approx(-10.0 + half)

    @pytest.mark.parametrize("hc", ['hc0', 'hc1', 'hc2', 'hc3', 'hc4'])
    def test_matches_textbook_sandwich(self, ancova, hc):
        sol = glm(ancova, 'y', factors=['g'], covariates=['x'])
        X = sol.design.X
        cov = _sandwich(X, sol.residuals, np.ones(len(X)), hc)
        rows = sol.robust_parameters(hc)
        np.testing.assert_allclose(
            [r.robust_std_error for r in rows], np.sqrt(np.diag(cov)), rtol=1e-8,
        )
        np.testing.assert_allclose([r.estimate for r in rows], sol.coefficients)

    def test_weighted(self, weighted_oneway):
        sol = glm(weighted_oneway, 'y', factors=['g'], weights='w')
        cov = _sandwich(sol.design.X, sol.residuals, weighted_oneway['w'], 'hc3')
        np.testing.assert_allclose(
            [r.robust_std_error for r in sol.robust_parameters()],
            np.sqrt(np.diag(cov)), rtol=1e-8,
        )

    def test_default_is_hc3(self, ancova):
        sol = glm(ancova, 'y', factors=['g'], covariates=['x'])
        assert sol.robust_parameters() == sol.robust_parameters('HC3')

    def test_aliased_rows(self, twoway_balanced):
        sol = glm(twoway_balanced, 'y', factors=['A', 'B'], coding='indicator')
        rows = sol.robust_parameters('hc0')
        aliased = [r for r in rows if r.aliased]
        assert len(aliased) == 6
        assert all(r.estimate == 0.0 and math.isnan(r.robust_std_error) for r in aliased)
        assert all(r.robust_std_error > 0.0 for r in rows if not r.aliased)

    @pytest.mark.parametrize("hc", ['hc5', 'white', 3])
    def test_invalid_hc(self, two_groups, hc):
        sol = glm(two_groups, 'y', factors=['g'])
        with pytest.raises(ValidationError, match="hc must be one of"):
            sol.robust_parameters(hc)


# ═══════════════════════════════════════════════════════════════════════
# Warnings
# ═══════════════════════════════════════════════════════════════════════


class TestWarnings:
    """Conditions reported through warnings and Result.warnings."""

    def test_listwise_deletion(self, two_groups):
        data = dict(two_groups)
        data['y'] = data['y'].copy()
        data['y'][0] = np.nan
        with pytest.warns(RuntimeWarning, match="1 of 6 records dropped"):
            sol = glm(data, 'y', factors=['g'])
        assert sol.n_obs == 5
        assert sol.info['n_dropped'] == 1
        assert any('listwise' in w for w in sol.warnings)

    def test_rank_deficient(self, twoway_empty_cell):
        with pytest.warns(RuntimeWarning, match="rank-deficient"):
            sol = glm(twoway_empty_cell, 'y', factors=['A', 'B'])
        assert sol.rank == 5
        assert len(sol.info['aliased']) == 1

    def test_type3_empty_cell(self, twoway_empty_cell):
        with pytest.warns(RuntimeWarning, match="'B' keeps 1 of 2 contrasts"):
            sol = glm(twoway_empty_cell, 'y', factors=['A', 'B'])
        assert sol.tests['A'].df == 0
        assert sol.tests['B'].df == 1
        assert any("'A' has no testable hypothesis" in w for w in sol.warnings)

    def test_indicator_coding_is_quiet(self, twoway_balanced):
        with warnings.catch_warnings():
            warnings.simplefilter('error')
            sol = glm(twoway_balanced, 'y', factors=['A', 'B'], coding='indicator')
        assert sol.warnings == ()

    def test_no_error_df(self):
        data = {'y': np.array([1.0, 3.0]), 'g': np.array(['a', 'b'])}
        with pytest.warns(RuntimeWarning, match="No error degrees of freedom"):
            sol = glm(data, 'y', factors=['g'])
        assert sol.df_error == 0
        assert math.isnan(sol.tests['g'].f_value)

    def test_untestable_term(self, two_groups):
        data = dict(two_groups)
        data['c'] = np.array(['only'] * 6)
        with pytest.warns(RuntimeWarning, match="'c' has no testable hypothesis"):
            sol = glm(data, 'y', factors=['g', 'c'], terms=['g', 'c'], coding='indicator')
        assert sol.tests['c'].df == 0
        assert sol.tests['c'].sum_of_squares == 0.0


# ═══════════════════════════════════════════════════════════════════════
# Hypotheses on a fitted model
# ═══════════════════════════════════════════════════════════════════════


class TestSolutionHypotheses:
    """Re-testing terms and arbitrary L without refitting."""

    def test_term_under_other_type(self, twoway_unbalanced):
        sol = glm(twoway_unbalanced, 'y', factors=['A', 'B'])
        refit = glm(twoway_unbalanced, 'y', factors=['A', 'B'], ss_type=1)
        assert sol.test_term('A', ss_type=1).sum_of_squares == pytest.approx(
            refit.tests['A'].sum_of_squares
        )
        assert sol.test_term('B*A').source == 'A*B'

    def test_arbitrary_hypothesis(self, two_groups):
        sol = glm(two_groups, 'y', factors=['g'])
        test = sol.test_hypothesis([0.0, 1.0], source='A vs B')
        assert test.source == 'A vs B'
        assert test.f_value == pytest.approx(37.5)

    def test_hypothesis_wrong_width(self, two_groups):
        sol = glm(two_groups, 'y', factors=['g'])
        with pytest.raises(DimensionError):
            sol.test_hypothesis(np.ones((1, 3)))

    def test_hypothesis_matrix_default_type(self, twoway_balanced):
        sol = glm(twoway_balanced, 'y', factors=['A', 'B'], ss_type=2)
        np.testing.assert_allclose(
            sol.hypothesis_matrix('A'), sol.hypothesis_matrix('A', ss_type=2),
        )

    @pytest.mark.parametrize("ss_type", [0, 5])
    def test_invalid_ss_type_on_solution(self, two_groups, ss_type):
        sol = glm(two_groups, 'y', factors=['g'])
        with pytest.raises(ValidationError, match="ss_type"):
            sol.hypothesis_matrix('g', ss_type=ss_type)
        with pytest.raises(ValidationError, match="ss_type"):
            sol.test_term('g', ss_type=ss_type)

    def test_estimable_function(self, two_groups):
        sol = glm(two_groups, 'y', factors=['g'])
        rows = sol.estimable_function()
        assert [r.label for r in rows] == ['L1', 'L2']
        assert [r.term for r in rows] == ['Intercept', 'g']
        np.testing.assert_allclose(rows[0].coefficients, [1.0, 0.5])


# ═══════════════════════════════════════════════════════════════════════
# Envelope and reporting
# ═══════════════════════════════════════════════════════════════════════


class TestSolutionEnvelope:
    """Info, timing and the text summary."""

    def test_info_and_timing(self, twoway_balanced):
        sol = glm(twoway_balanced, 'y', factors=['A', 'B'])
        assert sol.backend_name == 'cpu_sweep'
        assert sol.info['terms'] == ('Intercept', 'A', 'B', 'A*B')
        assert sol.info['coding'] == 'reference'
        assert sol.alpha == 0.05
        assert sol.timing is not None

    def test_summary(self, twoway_balanced):
        sol = glm(twoway_balanced, 'y', factors=['A', 'B'])
        text = sol.summary()
        assert "Tests of Between-Subjects Effects" in text
        assert "Type III Sum of Squares" in text
        assert "Corrected Total" in text
        assert "[A=a1]*[B=b2]" in text
        assert repr(sol).startswith("GLMSolution(dependent='y'")

    def test_summary_marks_redundant(self, twoway_balanced):
        sol = glm(twoway_balanced, 'y', factors=['A', 'B'], coding='indicator')
        assert "(redundant)" in sol.summary()


class TestGLMErrors:
    """Argument validation."""

    def test_invalid_ss_type(self, two_groups):
        with pytest.raises(ValidationError, match="ss_type"):
            glm(two_groups, 'y', factors=['g'], ss_type=0)

    def test_invalid_alpha(self, two_groups):
        with pytest.raises(ValidationError, match="alpha"):
            glm(two_groups, 'y', factors=['g'], alpha=1.5)
