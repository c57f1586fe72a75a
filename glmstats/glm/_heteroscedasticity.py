"""
Heteroscedasticity tests.

All four tests regress the squared residuals of the fitted model on an
auxiliary design by ordinary least squares:

    White                   n·R² on the predictors, covariate squares and
                            cross products of different variables; χ²
    Breusch-Pagan           ESS / (2σ̂⁴) on [1, ŷ], σ̂² = RSS/n; χ²(1)
    Modified Breusch-Pagan  n·R² on [1, ŷ] (Koenker); χ²(1)
    F                       (R²/df1) / ((1-R²)/df2) on [1, ŷ]

Weighted models use √w-scaled residuals.
"""

from dataclasses import dataclass
from typing import Any, Callable, Sequence

import numpy as np
from numpy.typing import NDArray

from glmstats.core.compute.linalg import independent_rows, qr_solve
from glmstats.core.exceptions import ValidationError
from glmstats.glm._common import HeteroscedasticityParams, HeteroscedasticityTest
from glmstats.glm._distributions import chi_square_significance, f_significance
from glmstats.glm.design import GLMDesign

VALID_TESTS = ('white', 'breusch_pagan', 'modified_breusch_pagan', 'f')

_ZERO = 1e-12


@dataclass(frozen=True)
class _Auxiliary:
    r_squared: float
    ess: float
    df: int


def _auxiliary_regression(Z: NDArray, u: NDArray) -> _Auxiliary:
    """OLS of u on Z (first column the intercept) after dropping dependent columns."""
    keep = independent_rows(Z.T)
    Z = Z[:, keep]
    beta = qr_solve(Z, u)
    fitted = Z @ beta
    centered = u - u.mean()
    tss = float(centered @ centered)
    ess = float(np.sum((fitted - u.mean()) ** 2))
    rss = float(np.sum((u - fitted) ** 2))
    r2 = 1.0 - rss / tss if tss > _ZERO else 0.0
    return _Auxiliary(r_squared=min(1.0, max(0.0, r2)), ess=ess, df=Z.shape[1] - 1)


def white_predictors(design: GLMDesign) -> NDArray[np.floating[Any]]:
    """
    Auxiliary design of White's test: intercept, one indicator per factor
    level except the last, covariates, covariate squares and the products
    of columns belonging to different variables.
    """
    n = design.n
    blocks: list[tuple[str, NDArray]] = []
    for f in design.factors:
        values = design.factor_values[f]
        for lvl in design.factor_levels[f][:-1]:
            blocks.append((f, (values == lvl).astype(np.float64)))
    for c in design.covariates:
        blocks.append((c, design.covariate_values[c].astype(np.float64)))

    columns = [np.ones(n)]
    columns.extend(col for _, col in blocks)
    columns.extend(
        design.covariate_values[c].astype(np.float64) ** 2 for c in design.covariates
    )
    for i in range(len(blocks)):
        for j in range(i + 1, len(blocks)):
            if blocks[i][0] != blocks[j][0]:
                columns.append(blocks[i][1] * blocks[j][1])
    return np.column_stack(columns)


def heteroscedasticity_impl(
    design: GLMDesign,
    fitted: NDArray[np.floating[Any]],
    residuals: NDArray[np.floating[Any]],
    *,
    tests: Sequence[str] = VALID_TESTS,
) -> HeteroscedasticityParams:
    requested = []
    for name in tests:
        key = str(name).strip().lower().replace('-', '_').replace(' ', '_')
        if key not in VALID_TESTS:
            raise ValidationError(f"unknown test {name!r}; valid tests: {VALID_TESTS}")
        if key not in requested:
            requested.append(key)

    if design.w is not None:
        scale = np.sqrt(design.w)
        residuals = residuals * scale
        fitted = fitted * scale

    n = design.n
    u = residuals ** 2
    sigma2 = float(np.sum(u)) / n

    out: list[HeteroscedasticityTest] = []
    bp_aux = None
    constant_fit = np.ptp(fitted) <= _ZERO * max(1.0, float(np.max(np.abs(fitted))))
    if any(k != 'white' for k in requested) and not constant_fit and sigma2 > _ZERO:
        bp_aux = _auxiliary_regression(np.column_stack([np.ones(n), fitted]), u)

    for key in requested:
        if key == 'white':
            out.append(_white(design, u, sigma2))
        elif key == 'breusch_pagan':
            out.append(_from_aux(
                'Breusch-Pagan', bp_aux, sigma2, constant_fit,
                lambda a: a.ess / (2.0 * sigma2 ** 2),
            ))
        elif key == 'modified_breusch_pagan':
            out.append(_from_aux(
                'Modified Breusch-Pagan', bp_aux, sigma2, constant_fit,
                lambda a: n * a.r_squared,
            ))
        else:
            out.append(_f_test(bp_aux, sigma2, constant_fit, n))

    return HeteroscedasticityParams(
        dependent=design.dependent,
        tests=tuple(out),
        design_string=design.design_string,
    )


def _degenerate(name: str, note: str, f_test: bool = False) -> HeteroscedasticityTest:
    return HeteroscedasticityTest(
        name=name, statistic=0.0, df1=0, df2=0 if f_test else None,
        significance=1.0, note=note,
    )


def _undefined(name: str, f_test: bool = False) -> HeteroscedasticityTest:
    nan = float('nan')
    return HeteroscedasticityTest(
        name=name, statistic=nan, df1=0, df2=0 if f_test else None,
        significance=nan, note='residual variance is zero',
    )


def _white(design: GLMDesign, u: NDArray, sigma2: float) -> HeteroscedasticityTest:
    name = 'White'
    if sigma2 <= _ZERO:
        return _undefined(name)
    aux = _auxiliary_regression(white_predictors(design), u)
    if aux.df == 0:
        return _degenerate(name, 'no predictors besides the intercept')
    statistic = design.n * aux.r_squared
    return HeteroscedasticityTest(
        name=name,
        statistic=statistic,
        df1=aux.df,
        df2=None,
        significance=chi_square_significance(statistic, aux.df),
        note='predictors, squares of covariates and cross products',
    )


def _from_aux(
    name: str,
    aux: _Auxiliary | None,
    sigma2: float,
    constant_fit: bool,
    statistic_fn: Callable[[_Auxiliary], float],
) -> HeteroscedasticityTest:
    if sigma2 <= _ZERO:
        return _undefined(name)
    if constant_fit or aux is None:
        return _degenerate(name, 'predicted values are constant')
    statistic = float(statistic_fn(aux))
    return HeteroscedasticityTest(
        name=name,
        statistic=statistic,
        df1=1,
        df2=None,
        significance=chi_square_significance(statistic, 1),
        note='predicted values',
    )


def _f_test(
    aux: _Auxiliary | None,
    sigma2: float,
    constant_fit: bool,
    n: int,
) -> HeteroscedasticityTest:
    name = 'F'
    if sigma2 <= _ZERO:
        return _undefined(name, f_test=True)
    if constant_fit or aux is None:
        return _degenerate(name, 'predicted values are constant', f_test=True)
    df1, df2 = 1, n - 2
    r2 = aux.r_squared
    if df2 <= 0:
        statistic = float('nan')
    elif r2 >= 1.0:
        statistic = float('inf')
    else:
        statistic = (r2 / df1) / ((1.0 - r2) / df2)
    return HeteroscedasticityTest(
        name=name,
        statistic=statistic,
        df1=df1,
        df2=df2,
        significance=f_significance(df1, df2, statistic),
        note='predicted values',
    )
