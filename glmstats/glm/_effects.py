"""
Report tables of a fitted GLM: Tests of Between-Subjects Effects,
parameter estimates (model-based and heteroscedasticity-consistent)
and the general estimable function.
"""

import math
from typing import Any

import numpy as np
from numpy.typing import NDArray

from glmstats.core.exceptions import ValidationError
from glmstats.glm._common import (
    EstimableFunctionRow,
    HypothesisTestResult,
    ParameterEstimate,
    RobustParameterEstimate,
    TableRow,
)
from glmstats.glm._distributions import observed_power_t, t_critical, t_significance
from glmstats.glm._evaluator import ErrorTerm, estimate_rows, f_statistics
from glmstats.glm._fit import SweptResult, residuals
from glmstats.glm._hypothesis import type3_matrix
from glmstats.glm.design import GLMDesign


def _row(test: HypothesisTestResult) -> TableRow:
    return TableRow(
        source=test.source,
        sum_of_squares=test.sum_of_squares,
        df=test.df,
        mean_square=test.mean_square,
        f_value=test.f_value,
        significance=test.significance,
        partial_eta_squared=test.partial_eta_squared,
        noncentrality=test.noncentrality,
        observed_power=test.observed_power,
    )


def total_sums_of_squares(design: GLMDesign) -> tuple[float, float]:
    """(uncorrected Σwy², corrected Σw(y - ȳ_w)²)."""
    w = design.weights
    y = design.y
    uncorrected = float(np.sum(w * y ** 2))
    mean = float(np.sum(w * y) / np.sum(w))
    corrected = float(np.sum(w * (y - mean) ** 2))
    return uncorrected, corrected


def model_summary(
    design: GLMDesign,
    error: ErrorTerm,
) -> tuple[float, int, float, float]:
    """
    Model line of the table.

    Returns:
        (ss_model, df_model, r_squared, adj_r_squared). With an intercept
        everything is corrected for the mean.
    """
    uncorrected, corrected = total_sums_of_squares(design)
    if design.has_intercept:
        total, df_total = corrected, design.n - 1
        df_model = design.rank - 1
    else:
        total, df_total = uncorrected, design.n
        df_model = design.rank

    ss_model = max(total - error.sse, 0.0)
    if total > 0.0:
        r2 = min(1.0, ss_model / total)
    else:
        r2 = float('nan')
    if error.df > 0 and not math.isnan(r2):
        adj = 1.0 - (1.0 - r2) * df_total / error.df
    else:
        adj = float('nan')
    return ss_model, df_model, r2, adj


def between_subjects_table(
    design: GLMDesign,
    error: ErrorTerm,
    tests: dict[str, HypothesisTestResult],
    *,
    alpha: float = 0.05,
) -> tuple[TableRow, ...]:
    """
    Tests of Between-Subjects Effects.

    Rows: Corrected Model (Model without an intercept), every term in
    model order, Error, Total and, with an intercept, Corrected Total.
    """
    uncorrected, corrected = total_sums_of_squares(design)
    ss_model, df_model, _, _ = model_summary(design, error)
    label = 'Corrected Model' if design.has_intercept else 'Model'

    rows = [_row(f_statistics(label, ss_model, df_model, error, alpha))]
    rows.extend(_row(tests[t.name]) for t in design.terms)
    rows.append(TableRow(
        source='Error', sum_of_squares=error.sse, df=error.df, mean_square=error.mse,
    ))
    rows.append(TableRow(
        source='Total', sum_of_squares=uncorrected, df=design.n, mean_square=None,
    ))
    if design.has_intercept:
        rows.append(TableRow(
            source='Corrected Total', sum_of_squares=corrected,
            df=design.n - 1, mean_square=None,
        ))
    return tuple(rows)


def parameter_estimates(
    design: GLMDesign,
    fit: SweptResult,
    error: ErrorTerm,
    *,
    alpha: float = 0.05,
) -> tuple[ParameterEstimate, ...]:
    """One row per design column; aliased parameters are reported as 0 with NaN statistics."""
    nan = float('nan')
    rows = estimate_rows(np.eye(design.p), fit, error, alpha=alpha)

    out: list[ParameterEstimate] = []
    for j, (param, r) in enumerate(zip(design.parameters, rows)):
        if fit.aliased[j]:
            out.append(ParameterEstimate(
                parameter=param.label, estimate=0.0, std_error=nan, t_value=nan,
                significance=nan, ci_lower=nan, ci_upper=nan,
                partial_eta_squared=nan, noncentrality=nan, observed_power=nan,
                aliased=True,
            ))
            continue

        t = r.t_value
        if math.isnan(t) or error.df <= 0:
            eta = nan
        else:
            eta = t ** 2 / (t ** 2 + error.df)
        out.append(ParameterEstimate(
            parameter=param.label,
            estimate=r.estimate,
            std_error=r.std_error,
            t_value=t,
            significance=r.significance,
            ci_lower=r.ci_lower,
            ci_upper=r.ci_upper,
            partial_eta_squared=eta,
            noncentrality=abs(t),
            observed_power=observed_power_t(t, error.df, alpha),
            aliased=False,
        ))
    return tuple(out)


VALID_HC = ('hc0', 'hc1', 'hc2', 'hc3', 'hc4')

# leverages this close to 1 leave a zero residual; their term is not rescaled
_LEVERAGE_FLOOR = 1e-10


def _hc_weights(hc: str, leverage: NDArray, n: int, rank: int) -> NDArray:
    """Per-record multipliers of the squared residuals for each HC variant."""
    if hc == 'hc0':
        return np.ones(n)
    if hc == 'hc1':
        return np.full(n, n / (n - rank) if n > rank else 1.0)

    one_minus_h = 1.0 - leverage
    ok = one_minus_h > _LEVERAGE_FLOOR
    scale = np.ones(n)
    if hc == 'hc2':
        scale[ok] = 1.0 / one_minus_h[ok]
    elif hc == 'hc3':
        scale[ok] = 1.0 / one_minus_h[ok] ** 2
    else:
        delta = np.minimum(4.0, n * leverage / rank)
        scale[ok] = 1.0 / one_minus_h[ok] ** delta[ok]
    return scale


def robust_parameter_estimates(
    design: GLMDesign,
    fit: SweptResult,
    error: ErrorTerm,
    *,
    hc: str = 'hc3',
    alpha: float = 0.05,
) -> tuple[RobustParameterEstimate, ...]:
    """
    Parameter estimates with heteroscedasticity-consistent standard errors.

    The covariance is the sandwich

        G⁻ (Σᵢ uᵢ zᵢ zᵢ') G⁻,   zᵢ = √wᵢ xᵢ,   uᵢ = wᵢ eᵢ² · adjᵢ

    where the leverage hᵢ = zᵢ' G⁻ zᵢ sets the adjustment: HC0 none,
    HC1 n/(n - r), HC2 1/(1 - h), HC3 1/(1 - h)², HC4 1/(1 - h)^δ with
    δ = min(4, n·h/r). Tests and intervals use t with the error df.

    Raises:
        ValidationError: If hc is not one of VALID_HC.
    """
    if not isinstance(hc, str) or hc.strip().lower() not in VALID_HC:
        raise ValidationError(f"hc must be one of {VALID_HC}, got {hc!r}")
    hc = hc.strip().lower()

    nan = float('nan')
    Z = design.weighted_x()
    G = fit.g_inverse
    e = residuals(design, fit)
    u = design.weights * e ** 2

    leverage = np.einsum('ij,jk,ik->i', Z, G, Z)
    scale = _hc_weights(hc, leverage, design.n, max(design.rank, 1))
    meat = Z.T @ (Z * (u * scale)[:, None])
    cov = G @ meat @ G
    cov = (cov + cov.T) / 2.0

    crit = t_critical(alpha, error.df)
    out: list[RobustParameterEstimate] = []
    for j, param in enumerate(design.parameters):
        if fit.aliased[j]:
            out.append(RobustParameterEstimate(
                parameter=param.label, estimate=0.0, robust_std_error=nan,
                t_value=nan, significance=nan, ci_lower=nan, ci_upper=nan,
                aliased=True,
            ))
            continue
        b = float(fit.beta[j])
        se = math.sqrt(max(float(cov[j, j]), 0.0))
        t = b / se if se > 0.0 else nan
        out.append(RobustParameterEstimate(
            parameter=param.label,
            estimate=b,
            robust_std_error=se,
            t_value=t,
            significance=t_significance(t, error.df),
            ci_lower=b - crit * se,
            ci_upper=b + crit * se,
            aliased=False,
        ))
    return tuple(out)


def estimable_function(design: GLMDesign) -> tuple[EstimableFunctionRow, ...]:
    """Type III hypothesis rows of every term, labelled L1, L2, ..."""
    out: list[EstimableFunctionRow] = []
    for term in design.terms:
        L: NDArray[np.floating[Any]] = type3_matrix(design, term)
        for row in L:
            out.append(EstimableFunctionRow(
                label=f"L{len(out) + 1}",
                term=term.name,
                coefficients=row,
            ))
    return tuple(out)
