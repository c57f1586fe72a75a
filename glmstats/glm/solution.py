"""
User-facing GLM solution types.

Each solution wraps a Result[Params] and provides convenient accessors
and formatted summary output. GLMSolution additionally keeps the design
and the swept fit so that hypothesis matrices, contrasts and marginal
means can be requested later without refitting.
"""

import math
from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from glmstats.core.result import Result
from glmstats.glm._common import (
    ContrastEstimate,
    ContrastParams,
    EMMean,
    EMMeansParams,
    EstimableFunctionRow,
    GLMParams,
    HeteroscedasticityParams,
    HeteroscedasticityTest,
    HypothesisTestResult,
    LeveneParams,
    LeveneRow,
    PairwiseComparison,
    ParameterEstimate,
    PostHocComparison,
    PostHocParams,
    RobustParameterEstimate,
    TableRow,
    UnivariateTest,
)
from glmstats.glm._effects import estimable_function, robust_parameter_estimates
from glmstats.glm._evaluator import ErrorTerm, as_hypothesis_matrix, test_hypothesis
from glmstats.glm._fit import SweptResult, fitted_values, residuals
from glmstats.glm._hypothesis import hypothesis_matrix
from glmstats.glm._posthoc import resolve_methods
from glmstats.glm.design import GLMDesign


# =====================================================================
# GLMSolution
# =====================================================================


@dataclass
class GLMSolution:
    """
    User-facing result for a univariate general linear model.

    Produced by glm().
    """
    _result: Result[GLMParams]
    _design: GLMDesign
    _fit: SweptResult

    @property
    def dependent(self) -> str:
        return self._result.params.dependent

    @property
    def table(self) -> tuple[TableRow, ...]:
        """Tests of Between-Subjects Effects."""
        return self._result.params.table

    @property
    def tests(self) -> dict[str, HypothesisTestResult]:
        """term name -> test at the requested SS type."""
        return self._result.params.tests

    @property
    def ss_type(self) -> int:
        return self._result.params.ss_type

    @property
    def parameters(self) -> tuple[ParameterEstimate, ...]:
        return self._result.params.parameters

    @property
    def coefficients(self) -> NDArray[np.floating]:
        return self._result.params.coefficients

    @property
    def aliased(self) -> tuple[str, ...]:
        """Labels of the redundant (aliased) parameters."""
        return tuple(p.parameter for p in self.parameters if p.aliased)

    @property
    def n_obs(self) -> int:
        return self._result.params.n_obs

    @property
    def rank(self) -> int:
        return self._result.params.rank

    @property
    def df_error(self) -> int:
        return self._result.params.df_error

    @property
    def sse(self) -> float:
        return self._result.params.sse

    @property
    def mse(self) -> float:
        return self._result.params.mse

    @property
    def r_squared(self) -> float:
        return self._result.params.r_squared

    @property
    def adj_r_squared(self) -> float:
        return self._result.params.adj_r_squared

    @property
    def design_string(self) -> str:
        return self._result.params.design_string

    @property
    def design(self) -> GLMDesign:
        return self._design

    @property
    def g_inverse(self) -> NDArray[np.floating]:
        """Generalized inverse of X'WX from the sweep."""
        return self._fit.g_inverse

    @property
    def fitted_values(self) -> NDArray[np.floating]:
        return fitted_values(self._design, self._fit)

    @property
    def residuals(self) -> NDArray[np.floating]:
        return residuals(self._design, self._fit)

    @property
    def alpha(self) -> float:
        return self._result.info['alpha']

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    @property
    def error_term(self) -> ErrorTerm:
        return ErrorTerm(sse=self.sse, df=self.df_error, mse=self.mse)

    def hypothesis_matrix(self, term: str, ss_type: int | None = None) -> NDArray[np.floating]:
        """L matrix of a model term (defaults to the fitted SS type)."""
        return hypothesis_matrix(
            self._design, term, self.ss_type if ss_type is None else ss_type,
        )

    def test_term(self, term: str, ss_type: int | None = None) -> HypothesisTestResult:
        """Test a model term under any SS type without refitting."""
        resolved = self._design.term(term)
        L = self.hypothesis_matrix(resolved.name, ss_type)
        return test_hypothesis(
            L, self._fit, self.error_term, source=resolved.name, alpha=self.alpha,
        )

    def test_hypothesis(self, L: Any, source: str = 'Contrast') -> HypothesisTestResult:
        """
        F test of an arbitrary general linear hypothesis Lβ = 0.

        Args:
            L: (k, p) array, or a single (p,) row, over the columns listed
                in ``design.parameter_labels``
        """
        L = as_hypothesis_matrix(L, self._design.p)
        return test_hypothesis(L, self._fit, self.error_term, source=source, alpha=self.alpha)

    def estimable_function(self) -> tuple[EstimableFunctionRow, ...]:
        return estimable_function(self._design)

    def robust_parameters(self, hc: str = 'hc3') -> tuple[RobustParameterEstimate, ...]:
        """
        Parameter estimates with heteroscedasticity-consistent standard errors.

        Args:
            hc: 'hc0', 'hc1', 'hc2', 'hc3' (default) or 'hc4'
        """
        return robust_parameter_estimates(
            self._design, self._fit, self.error_term, hc=hc, alpha=self.alpha,
        )

    def summary(self) -> str:
        """Tests of Between-Subjects Effects and parameter estimates."""
        width = 96
        lines = [
            "Tests of Between-Subjects Effects",
            "=" * width,
            f"Dependent Variable: {self.dependent}",
            f"Type {_roman(self.ss_type)} Sum of Squares, N = {self.n_obs}",
            "",
            f"{'Source':<22} {'SS':>14} {'df':>5} {'Mean Square':>14} {'F':>10} "
            f"{'Sig.':>8} {'Eta2':>7} {'Power':>7}",
            "-" * width,
        ]
        for row in self.table:
            if row.f_value is not None:
                lines.append(
                    f"{row.source:<22} {row.sum_of_squares:>14.4f} {row.df:>5} "
                    f"{_fmt(row.mean_square, 14)} {_fmt(row.f_value, 10, 3)} "
                    f"{_fmt(row.significance, 8, 3)} {_fmt(row.partial_eta_squared, 7, 3)} "
                    f"{_fmt(row.observed_power, 7, 3)} {_significance_stars(row.significance)}"
                )
            else:
                lines.append(
                    f"{row.source:<22} {row.sum_of_squares:>14.4f} {row.df:>5} "
                    f"{_fmt(row.mean_square, 14)}"
                )
        lines.append("-" * width)
        lines.append(
            f"R Squared = {self.r_squared:.3f} (Adjusted R Squared = {self.adj_r_squared:.3f})"
        )
        lines.append(f"Design: {self.design_string}")

        lines.append("")
        lines.append("Parameter Estimates")
        lines.append("-" * width)
        lines.append(
            f"{'Parameter':<26} {'B':>12} {'Std. Error':>12} {'t':>9} {'Sig.':>8} "
            f"{'Lower':>11} {'Upper':>11}"
        )
        for p in self.parameters:
            if p.aliased:
                lines.append(f"{p.parameter:<26} {0.0:>12.4f}  (redundant)")
                continue
            lines.append(
                f"{p.parameter:<26} {p.estimate:>12.4f} {_fmt(p.std_error, 12)} "
                f"{_fmt(p.t_value, 9, 3)} {_fmt(p.significance, 8, 3)} "
                f"{_fmt(p.ci_lower, 11)} {_fmt(p.ci_upper, 11)}"
            )
        if self.aliased:
            lines.append("This parameter is set to zero because it is redundant.")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"GLMSolution(dependent={self.dependent!r}, type={self.ss_type}, "
            f"n={self.n_obs}, rank={self.rank}, terms={list(self.tests)})"
        )


# =====================================================================
# EMMeansSolution
# =====================================================================


@dataclass
class EMMeansSolution:
    """
    User-facing result for estimated marginal means.

    Produced by glm_emmeans().
    """
    _result: Result[EMMeansParams]

    @property
    def effect(self) -> str:
        return self._result.params.effect

    @property
    def factors(self) -> tuple[str, ...]:
        return self._result.params.factors

    @property
    def estimates(self) -> tuple[EMMean, ...]:
        return self._result.params.estimates

    @property
    def means(self) -> dict[tuple[str, ...], float]:
        """level combination -> marginal mean."""
        return {tuple(lvl for _, lvl in e.levels): e.mean for e in self.estimates}

    @property
    def compared_factor(self) -> str | None:
        return self._result.params.compared_factor

    @property
    def pairwise(self) -> tuple[PairwiseComparison, ...]:
        return self._result.params.pairwise

    @property
    def univariate(self) -> tuple[UnivariateTest, ...]:
        return self._result.params.univariate

    @property
    def adjustment(self) -> str:
        return self._result.params.adjustment

    @property
    def alpha(self) -> float:
        return self._result.params.alpha

    @property
    def covariate_means(self) -> dict[str, float]:
        return self._result.params.covariate_means

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def summary(self) -> str:
        conf = int(round((1 - self.alpha) * 100))
        lines = [f"Estimated Marginal Means: {self.effect}", "=" * 72]
        if self.covariate_means:
            evaluated = ", ".join(f"{k} = {v:.4f}" for k, v in self.covariate_means.items())
            lines.append(f"Covariates evaluated at: {evaluated}")
        header = ' '.join(f"{f:<10}" for f in self.factors)
        lines.append(
            f"{header} {'Mean':>12} {'Std. Error':>12} "
            f"{'Lower ' + str(conf) + '%':>12} {'Upper':>12}"
        )
        lines.append("-" * 72)
        for e in self.estimates:
            cells = ' '.join(f"{lvl:<10}" for _, lvl in e.levels)
            lines.append(
                f"{cells} {_fmt(e.mean, 12)} {_fmt(e.std_error, 12)} "
                f"{_fmt(e.ci_lower, 12)} {_fmt(e.ci_upper, 12)}"
            )

        if self.pairwise:
            lines.append("")
            lines.append(f"Pairwise Comparisons of {self.compared_factor} "
                         f"(adjustment: {self.adjustment})")
            lines.append("-" * 72)
            for c in self.pairwise:
                given = ", ".join(f"{f}={lvl}" for f, lvl in c.given)
                prefix = f"[{given}] " if given else ""
                lines.append(
                    f"{prefix}{c.level_i} - {c.level_j}: {_fmt(c.mean_difference, 10)} "
                    f"(SE {_fmt(c.std_error, 8)}, p = {_fmt(c.significance, 6, 3).strip()})"
                )

        for u in self.univariate:
            given = ", ".join(f"{f}={lvl}" for f, lvl in u.given)
            lines.append("")
            lines.append(f"Univariate Test{' (' + given + ')' if given else ''}")
            lines.append(
                f"  Contrast: SS = {u.contrast.sum_of_squares:.4f}, df = {u.contrast.df}, "
                f"F = {_fmt(u.contrast.f_value, 0, 3).strip()}, "
                f"Sig. = {_fmt(u.contrast.significance, 0, 3).strip()}"
            )
            lines.append(
                f"  Error:    SS = {u.error.sum_of_squares:.4f}, df = {u.error.df}"
            )
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"EMMeansSolution(effect={self.effect!r}, n_cells={len(self.estimates)})"


# =====================================================================
# ContrastSolution
# =====================================================================


@dataclass
class ContrastSolution:
    """
    User-facing result for a contrast on one factor.

    Produced by glm_contrast().
    """
    _result: Result[ContrastParams]

    @property
    def specification(self) -> str:
        return self._result.params.specification

    @property
    def factor(self) -> str:
        return self._result.params.factor

    @property
    def method(self) -> str:
        return self._result.params.method

    @property
    def reference(self) -> str:
        return self._result.params.reference

    @property
    def levels(self) -> tuple[str, ...]:
        return self._result.params.levels

    @property
    def coefficients(self) -> NDArray[np.floating]:
        return self._result.params.coefficients

    @property
    def estimates(self) -> tuple[ContrastEstimate, ...]:
        return self._result.params.estimates

    @property
    def test(self) -> tuple[TableRow, ...]:
        """(Contrast, Error) rows of the joint test."""
        return self._result.params.test

    @property
    def f_value(self) -> float:
        return self.test[0].f_value

    @property
    def significance(self) -> float:
        return self.test[0].significance

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def summary(self) -> str:
        lines = [f"Contrast Results: {self.specification}", "=" * 72]
        lines.append(
            f"{'Contrast':<28} {'Estimate':>11} {'Std. Error':>11} {'Sig.':>7} "
            f"{'Lower':>10} {'Upper':>10}"
        )
        lines.append("-" * 72)
        for e in self.estimates:
            lines.append(
                f"{e.label:<28} {_fmt(e.estimate, 11)} {_fmt(e.std_error, 11)} "
                f"{_fmt(e.significance, 7, 3)} {_fmt(e.ci_lower, 10)} {_fmt(e.ci_upper, 10)}"
            )
        contrast, error = self.test
        lines.append("")
        lines.append(
            f"Test: F({contrast.df}, {error.df}) = {_fmt(contrast.f_value, 0, 3).strip()}, "
            f"Sig. = {_fmt(contrast.significance, 0, 3).strip()}"
        )
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"ContrastSolution({self.specification!r}, rows={len(self.estimates)})"


# =====================================================================
# PostHocSolution
# =====================================================================


_POSTHOC_TITLES = {
    'lsd': "LSD",
    'bonferroni': "Bonferroni",
    'sidak': "Sidak",
    'scheffe': "Scheffe",
    'tukey': "Tukey HSD",
    'dunnett': "Dunnett t (2-sided)",
    'games_howell': "Games-Howell",
    'tamhane': "Tamhane",
}


@dataclass
class PostHocSolution:
    """
    User-facing result for post hoc multiple comparisons.

    Produced by glm_posthoc().
    """
    _result: Result[PostHocParams]

    @property
    def factor(self) -> str:
        return self._result.params.factor

    @property
    def levels(self) -> tuple[str, ...]:
        return self._result.params.levels

    @property
    def means(self) -> dict[str, float]:
        """level -> observed mean."""
        p = self._result.params
        return dict(zip(p.levels, p.means))

    @property
    def counts(self) -> dict[str, int]:
        p = self._result.params
        return dict(zip(p.levels, p.counts))

    @property
    def methods(self) -> tuple[str, ...]:
        return tuple(self._result.params.comparisons)

    @property
    def comparisons(self) -> dict[str, tuple[PostHocComparison, ...]]:
        return self._result.params.comparisons

    def __getitem__(self, method: str) -> tuple[PostHocComparison, ...]:
        return self.comparisons[resolve_methods(method)[0]]

    @property
    def control(self) -> str | None:
        return self._result.params.control

    @property
    def alpha(self) -> float:
        return self._result.params.alpha

    @property
    def mse(self) -> float:
        return self._result.params.mse

    @property
    def df_error(self) -> int:
        return self._result.params.df_error

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def summary(self) -> str:
        width = 88
        conf = 100.0 * (1.0 - self.alpha)
        lines = [
            "Multiple Comparisons",
            "=" * width,
            f"Dependent Variable: {self.info.get('dependent', '')}",
            f"Factor: {self.factor}",
        ]
        for method, rows in self.comparisons.items():
            lines.append("")
            lines.append(_POSTHOC_TITLES[method])
            lines.append(
                f"{'(I)':<12} {'(J)':<12} {'Mean Diff (I-J)':>16} {'Std. Error':>11} "
                f"{'Sig.':>7} {f'{conf:g}% Lower':>11} {'Upper':>11}"
            )
            lines.append("-" * width)
            for c in rows:
                lines.append(
                    f"{c.level_i:<12} {c.level_j:<12} {_fmt(c.mean_difference, 16)} "
                    f"{_fmt(c.std_error, 11)} {_fmt(c.significance, 7, 3)} "
                    f"{_fmt(c.ci_lower, 11)} {_fmt(c.ci_upper, 11)} "
                    f"{_significance_stars(c.significance)}"
                )
        if 'dunnett' in self.comparisons:
            lines.append("")
            lines.append(f"Dunnett t-tests treat {self.control!r} as the control.")
        lines.append(f"Based on observed means. Error term: Mean Square(Error) = {self.mse:.4f}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"PostHocSolution(factor={self.factor!r}, methods={list(self.methods)}, "
            f"levels={len(self.levels)})"
        )


# =====================================================================
# LeveneSolution
# =====================================================================


@dataclass
class LeveneSolution:
    """
    User-facing result for Levene's test of equality of error variances.

    Produced by levene_test().
    """
    _result: Result[LeveneParams]

    @property
    def rows(self) -> tuple[LeveneRow, ...]:
        return self._result.params.rows

    @property
    def statistic(self) -> float:
        """Statistic of the first row (mean-based)."""
        return self.rows[0].statistic

    @property
    def significance(self) -> float:
        return self.rows[0].significance

    @property
    def n_groups(self) -> int:
        return self._result.params.n_groups

    @property
    def used_residuals(self) -> bool:
        return self._result.params.used_residuals

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def summary(self) -> str:
        p = self._result.params
        lines = [
            "Levene's Test of Equality of Error Variances",
            "=" * 72,
            f"Dependent Variable: {p.dependent}",
            f"{'':<38} {'Statistic':>10} {'df1':>5} {'df2':>9} {'Sig.':>7}",
            "-" * 72,
        ]
        for row in self.rows:
            lines.append(
                f"{row.function:<38} {_fmt(row.statistic, 10, 3)} {row.df1:>5} "
                f"{_fmt(row.df2, 9, 3)} {_fmt(row.significance, 7, 3)}"
            )
        lines.append(f"Design: {p.design_string}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"LeveneSolution(F={self.statistic:.4f}, groups={self.n_groups})"


# =====================================================================
# HeteroscedasticitySolution
# =====================================================================


@dataclass
class HeteroscedasticitySolution:
    """
    User-facing result for the heteroscedasticity test battery.

    Produced by heteroscedasticity_tests().
    """
    _result: Result[HeteroscedasticityParams]

    @property
    def tests(self) -> tuple[HeteroscedasticityTest, ...]:
        return self._result.params.tests

    def __getitem__(self, name: str) -> HeteroscedasticityTest:
        for test in self.tests:
            if test.name.lower() == name.lower():
                return test
        raise KeyError(name)

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def summary(self) -> str:
        p = self._result.params
        lines = [
            "Heteroskedasticity Tests",
            "=" * 72,
            f"Dependent Variable: {p.dependent}",
            f"{'Test':<26} {'Statistic':>10} {'df1':>5} {'df2':>6} {'Sig.':>7}",
            "-" * 72,
        ]
        for t in self.tests:
            df2 = f"{t.df2:>6}" if t.df2 is not None else f"{'':>6}"
            lines.append(
                f"{t.name:<26} {_fmt(t.statistic, 10, 3)} {t.df1:>5} {df2} "
                f"{_fmt(t.significance, 7, 3)}"
            )
        lines.append(f"Design: {p.design_string}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"HeteroscedasticitySolution(tests={[t.name for t in self.tests]})"


# =====================================================================
# Formatting helpers
# =====================================================================


def _fmt(value: float | None, width: int, digits: int = 4) -> str:
    if value is None:
        return f"{'':>{width}}"
    if math.isnan(value):
        return f"{'.':>{width}}"
    if math.isinf(value):
        return f"{'inf':>{width}}"
    return f"{value:>{width}.{digits}f}"


def _roman(n: int) -> str:
    return {1: 'I', 2: 'II', 3: 'III', 4: 'IV'}.get(n, str(n))


def _significance_stars(p: float | None) -> str:
    """Return significance stars for a p-value."""
    if p is None or np.isnan(p):
        return ""
    if p < 0.001:
        return "***"
    if p < 0.01:
        return "**"
    if p < 0.05:
        return "*"
    if p < 0.1:
        return "."
    return ""
