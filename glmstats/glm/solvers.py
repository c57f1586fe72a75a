"""
GLM solver dispatch.

Public API:
    glm(data, dependent, ...) -> GLMSolution
    glm_emmeans(solution, effect, ...) -> EMMeansSolution
    glm_contrast(solution, specification, ...) -> ContrastSolution
    glm_posthoc(solution, factor, ...) -> PostHocSolution
    levene_test(data, dependent, ...) -> LeveneSolution
    heteroscedasticity_tests(solution, ...) -> HeteroscedasticitySolution
"""

import warnings
from typing import Any, Mapping, Sequence

import numpy as np

from glmstats.core.compute.timing import Timer
from glmstats.core.exceptions import ValidationError
from glmstats.core.result import Result
from glmstats.core.validation import check_probability
from glmstats.glm._adjust import get_adjustment
from glmstats.glm._common import GLMParams
from glmstats.glm._contrasts import compute_contrast
from glmstats.glm._effects import (
    between_subjects_table,
    model_summary,
    parameter_estimates,
)
from glmstats.glm._emmeans import compute_emmeans
from glmstats.glm._evaluator import ErrorTerm, test_hypothesis
from glmstats.glm._fit import residuals as fit_residuals
from glmstats.glm._fit import sweep_fit
from glmstats.glm._heteroscedasticity import VALID_TESTS, heteroscedasticity_impl
from glmstats.glm._hypothesis import (
    VALID_SS_TYPES,
    hypothesis_matrix,
    type3_contrast_count,
)
from glmstats.glm._posthoc import UNEQUAL_VARIANCE, posthoc_impl, resolve_methods
from glmstats.glm._levene import levene_impl
from glmstats.glm.design import GLMDesign
from glmstats.glm.solution import (
    ContrastSolution,
    EMMeansSolution,
    GLMSolution,
    HeteroscedasticitySolution,
    LeveneSolution,
    PostHocSolution,
)

BACKEND_NAME = 'cpu_sweep'


def glm(
    data: Mapping[str, Any],
    dependent: str,
    *,
    factors: Sequence[str] = (),
    covariates: Sequence[str] = (),
    terms: Sequence[str] | None = None,
    weights: str | None = None,
    intercept: bool = True,
    ss_type: int = 3,
    coding: str = 'reference',
    alpha: float = 0.05,
) -> GLMSolution:
    """
    Univariate general linear model.

    Fits the model by sweeping the cross-product matrix, which handles
    rank deficiency (empty cells, collinear covariates) by aliasing
    redundant parameters, then tests every model term with the requested
    type of sums of squares.

    Args:
        data: Mapping of column name -> 1D array-like (dict or DataFrame)
        dependent: Name of the response column
        factors: Names of fixed factors
        covariates: Names of covariates
        terms: Explicit model terms, e.g. ["A", "B", "A*B", "x"]. Default:
            covariates, then the full factorial of the factors.
        weights: Name of a WLS weight column. Records with weight <= 0
            are dropped.
        intercept: Include an intercept. Default True.
        ss_type: Sums of squares type (1, 2, 3, or 4). Default 3.
            Type I: sequential (order-dependent)
            Type II: adjusted for terms not containing the term
            Type III: equal-weighted cell-mean contrasts
            Type IV: Type III over observed cells (for empty cells)
        coding: 'reference' (default; last level of each factor is
            dropped) or 'indicator' (one column per level,
            overparameterized)
        alpha: Significance level for confidence intervals and power.

    Returns:
        GLMSolution with the between-subjects table and parameter estimates

    Examples:
        >>> sol = glm(data, 'y', factors=['A', 'B'])
        >>> print(sol.summary())
        >>> sol.tests['A*B'].f_value
        >>> sol.test_term('A', ss_type=1)
    """
    if ss_type not in VALID_SS_TYPES:
        raise ValidationError(f"ss_type must be 1, 2, 3, or 4, got {ss_type!r}")
    check_probability(alpha, 'alpha')

    timer = Timer()
    timer.start()
    warn_list: list[str] = []

    with timer.section('design'):
        design = GLMDesign.from_data(
            data, dependent,
            factors=factors, covariates=covariates, terms=terms,
            weights=weights, intercept=intercept, coding=coding,
        )
    if design.n_dropped:
        _warn(warn_list, (
            f"{design.n_dropped} of {design.n_records} records dropped by listwise "
            f"deletion (missing or invalid values)"
        ))

    with timer.section('sweep'):
        fit = sweep_fit(design)
        error = ErrorTerm.from_fit(design, fit)

    aliased = tuple(
        p.label for p, flag in zip(design.parameters, fit.aliased) if flag
    )
    if aliased and coding == 'reference':
        _warn(warn_list, (
            f"Design is rank-deficient (rank {design.rank} of {design.p}); "
            f"redundant parameters set to zero: {', '.join(aliased)}"
        ))
    if error.df <= 0:
        _warn(warn_list, "No error degrees of freedom; F tests are undefined")

    with timer.section('tests'):
        tests = {}
        for term in design.terms:
            L = hypothesis_matrix(design, term, ss_type)
            tests[term.name] = test_hypothesis(
                L, fit, error, source=term.name, alpha=alpha,
            )
            if L.shape[0] == 0 and design.columns(term).size:
                _warn(warn_list, (
                    f"Term {term.name!r} has no testable hypothesis "
                    f"(Type {ss_type} df = 0)"
                ))
            if ss_type == 3:
                n_contrasts = type3_contrast_count(design, term)
                if L.shape[0] < n_contrasts:
                    _warn(warn_list, (
                        f"Type III hypothesis of {term.name!r} keeps {L.shape[0]} of "
                        f"{n_contrasts} contrasts; the others involve empty cells "
                        f"and are not estimable"
                    ))
        table = between_subjects_table(design, error, tests, alpha=alpha)
        parameters = parameter_estimates(design, fit, error, alpha=alpha)
        _, _, r2, adj_r2 = model_summary(design, error)

    timer.stop()

    params = GLMParams(
        dependent=dependent,
        table=table,
        tests=tests,
        ss_type=ss_type,
        parameters=parameters,
        coefficients=fit.beta.copy(),
        n_obs=design.n,
        rank=design.rank,
        df_error=error.df,
        sse=error.sse,
        mse=error.mse,
        r_squared=r2,
        adj_r_squared=adj_r2,
        design_string=design.design_string,
    )

    result = Result(
        params=params,
        info={
            'alpha': alpha,
            'coding': coding,
            'n_parameters': design.p,
            'rank': design.rank,
            'aliased': aliased,
            'n_dropped': design.n_dropped,
            'weighted': design.w is not None,
            'terms': design.term_names,
        },
        timing=timer.result(),
        backend_name=BACKEND_NAME,
        warnings=tuple(warn_list),
    )

    return GLMSolution(_result=result, _design=design, _fit=fit)


def glm_emmeans(
    solution: GLMSolution,
    effect: str = '(OVERALL)',
    *,
    compare: bool | str = False,
    adjustment: str = 'lsd',
    alpha: float | None = None,
) -> EMMeansSolution:
    """
    Estimated marginal means of an effect of a fitted model.

    Means are equal-weighted over factors not in the effect and evaluated
    at the (weighted) covariate means. Combinations that are not estimable,
    such as empty cells of an interaction model, report NaN.

    Args:
        solution: Result of glm()
        effect: '(OVERALL)', a factor, or a factor interaction in the model
        compare: True to compare the levels of the effect's first factor,
            or the name of the factor to compare. With interactions the
            comparisons run within each combination of the other factors.
        adjustment: 'lsd' (no adjustment), 'bonferroni', or 'sidak'
        alpha: Significance level; defaults to the model's alpha

    Returns:
        EMMeansSolution

    Examples:
        >>> em = glm_emmeans(sol, 'A', compare=True, adjustment='bonferroni')
        >>> em.means
        >>> em.pairwise[0].significance
    """
    alpha = solution.alpha if alpha is None else alpha
    check_probability(alpha, 'alpha')
    adjustment = get_adjustment(adjustment).name

    timer = Timer()
    timer.start()
    warn_list: list[str] = []

    with timer.section('tests'):
        params = compute_emmeans(
            solution.design, solution._fit, solution.error_term, effect,
            compare=compare, adjustment=adjustment, alpha=alpha,
        )

    n_missing = sum(1 for e in params.estimates if np.isnan(e.mean))
    if n_missing:
        _warn(warn_list, (
            f"{n_missing} of {len(params.estimates)} marginal means of "
            f"{params.effect!r} are not estimable"
        ))

    timer.stop()
    result = Result(
        params=params,
        info={'effect': params.effect, 'compare': compare, 'dependent': solution.dependent},
        timing=timer.result(),
        backend_name=BACKEND_NAME,
        warnings=tuple(warn_list),
    )
    return EMMeansSolution(_result=result)


def glm_contrast(
    solution: GLMSolution,
    specification: Any,
    *,
    alpha: float | None = None,
) -> ContrastSolution:
    """
    Contrast on the levels of one factor of a fitted model.

    Args:
        solution: Result of glm()
        specification: "Factor (Method)", "Factor (Method, Ref: First|Last)"
            or a (factor, method[, reference]) tuple. Methods: Deviation,
            Simple, Difference, Helmert, Repeated, Polynomial, None.
        alpha: Significance level; defaults to the model's alpha

    Returns:
        ContrastSolution with one estimate per contrast row and the joint test

    Examples:
        >>> c = glm_contrast(sol, 'A (Simple, Ref: First)')
        >>> c.estimates[0].estimate
    """
    alpha = solution.alpha if alpha is None else alpha
    check_probability(alpha, 'alpha')

    timer = Timer()
    timer.start()
    with timer.section('tests'):
        params = compute_contrast(
            solution.design, solution._fit, solution.error_term, specification,
            alpha=alpha,
        )
    timer.stop()

    result = Result(
        params=params,
        info={'dependent': solution.dependent},
        timing=timer.result(),
        backend_name=BACKEND_NAME,
    )
    return ContrastSolution(_result=result)


def glm_posthoc(
    solution: GLMSolution,
    factor: str,
    *,
    methods: str | Sequence[str] = ('tukey',),
    control: str | None = None,
    alpha: float | None = None,
) -> PostHocSolution:
    """
    Post hoc multiple comparisons of the observed means of one factor.

    Equal-variance methods use the fitted model's MSE and error df;
    Games-Howell and Tamhane's T2 use the level variances instead. Only
    models without covariates or weights qualify. Use glm_emmeans with
    compare=True for adjusted means.

    Args:
        solution: Result of glm()
        factor: A factor of the model
        methods: One or more of 'lsd', 'bonferroni', 'sidak', 'scheffe',
            'tukey' (default), 'dunnett', 'games_howell', 'tamhane'
        control: Dunnett control level: 'first', 'last' (default) or a
            level name
        alpha: Significance level; defaults to the model's alpha

    Returns:
        PostHocSolution with one comparison table per method

    Examples:
        >>> ph = glm_posthoc(sol, 'g', methods=['tukey', 'scheffe'])
        >>> ph['tukey'][0].significance
    """
    alpha = solution.alpha if alpha is None else alpha
    check_probability(alpha, 'alpha')
    methods = resolve_methods(methods)

    timer = Timer()
    timer.start()
    warn_list: list[str] = []

    with timer.section('tests'):
        params = posthoc_impl(
            solution.design, solution.error_term, factor,
            methods=methods, control=control, alpha=alpha,
        )

    if params.df_error <= 0:
        _warn(warn_list, "No error degrees of freedom; post hoc tests are undefined")
    single = [lvl for lvl, n in zip(params.levels, params.counts) if n < 2]
    if single and any(m in UNEQUAL_VARIANCE for m in methods):
        _warn(warn_list, (
            f"Levels with fewer than two records have no variance; their "
            f"unequal-variance comparisons are undefined: {', '.join(single)}"
        ))

    timer.stop()
    result = Result(
        params=params,
        info={'factor': factor, 'methods': methods, 'dependent': solution.dependent},
        timing=timer.result(),
        backend_name=BACKEND_NAME,
        warnings=tuple(warn_list),
    )
    return PostHocSolution(_result=result)


def levene_test(
    data: Mapping[str, Any],
    dependent: str,
    *,
    factors: Sequence[str] = (),
    covariates: Sequence[str] = (),
    weights: str | None = None,
    center: str = 'all',
) -> LeveneSolution:
    """
    Levene's test of equality of error variances across design cells.

    Without covariates the dependent values are grouped by the cells of
    all factors; with covariates the residuals of the full factorial
    model are grouped instead.

    Args:
        data: Mapping of column name -> 1D array-like
        dependent: Name of the response column
        factors: Factors whose level combinations define the groups
        covariates: Covariates of the model (switches to residuals)
        weights: Optional WLS weight column for the residual model
        center: 'all' (default: mean, median, median with adjusted df and
            trimmed mean), or one of those alone

    Returns:
        LeveneSolution
    """
    timer = Timer()
    timer.start()
    warn_list: list[str] = []

    with timer.section('design'):
        design = GLMDesign.from_data(
            data, dependent, factors=factors, covariates=covariates, weights=weights,
        )
    if design.n_dropped:
        _warn(warn_list, (
            f"{design.n_dropped} of {design.n_records} records dropped by listwise "
            f"deletion (missing or invalid values)"
        ))

    resid = None
    if design.covariates:
        with timer.section('sweep'):
            resid = fit_residuals(design, sweep_fit(design))

    with timer.section('tests'):
        params = levene_impl(design, residuals=resid, center=center)

    timer.stop()
    result = Result(
        params=params,
        info={'center': center, 'n_obs': design.n},
        timing=timer.result(),
        backend_name=BACKEND_NAME,
        warnings=tuple(warn_list),
    )
    return LeveneSolution(_result=result)


def heteroscedasticity_tests(
    solution: GLMSolution,
    *,
    tests: Sequence[str] = VALID_TESTS,
) -> HeteroscedasticitySolution:
    """
    White, Breusch-Pagan, modified Breusch-Pagan and F tests for
    heteroscedasticity of a fitted model's residuals.

    Args:
        solution: Result of glm()
        tests: Subset of ('white', 'breusch_pagan', 'modified_breusch_pagan', 'f')

    Returns:
        HeteroscedasticitySolution
    """
    timer = Timer()
    timer.start()
    with timer.section('tests'):
        params = heteroscedasticity_impl(
            solution.design, solution.fitted_values, solution.residuals, tests=tests,
        )
    timer.stop()

    result = Result(
        params=params,
        info={'dependent': solution.dependent},
        timing=timer.result(),
        backend_name=BACKEND_NAME,
    )
    return HeteroscedasticitySolution(_result=result)


# =====================================================================
# Internal helpers
# =====================================================================


def _warn(warn_list: list[str], message: str) -> None:
    warnings.warn(message, RuntimeWarning, stacklevel=3)
    warn_list.append(message)
