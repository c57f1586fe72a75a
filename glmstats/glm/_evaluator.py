"""
General linear hypothesis evaluator.

Turns any hypothesis matrix L (from a Type I-IV builder, a contrast or
an EMM specification) into estimates and tests, reusing the single β̂ and
G⁻ of the fitted model:

    estimate        Lβ̂
    covariance      L G⁻ L' · MSE
    SSH             (Lβ̂)' (L G⁻ L')⁻¹ (Lβ̂)

Numerical degeneracy never raises; it surfaces as NaN (non-estimable) or
as zero SSH (hypothesis trivially true).
"""

import math
from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from glmstats.core.compute.linalg import pinv_with_rank
from glmstats.core.compute.tolerances import ESTIMABLE_TOL, ZERO_TOL
from glmstats.core.exceptions import DimensionError
from glmstats.core.validation import check_2d, check_array, check_finite
from glmstats.glm._common import HypothesisTestResult, TableRow
from glmstats.glm._distributions import (
    f_significance,
    observed_power_f,
    t_critical,
    t_significance,
)
from glmstats.glm._fit import SweptResult
from glmstats.glm.design import GLMDesign


@dataclass(frozen=True)
class ErrorTerm:
    """Residual (error) line of the model."""
    sse: float
    df: int
    mse: float

    @staticmethod
    def from_fit(design: GLMDesign, fit: SweptResult) -> 'ErrorTerm':
        df = design.n - design.rank
        mse = fit.rss / df if df > 0 else float('nan')
        return ErrorTerm(sse=fit.rss, df=df, mse=mse)


@dataclass(frozen=True)
class LinearEstimate:
    """Estimate of one row of L with its t-based inference."""
    estimate: float
    std_error: float
    t_value: float
    significance: float
    ci_lower: float
    ci_upper: float


def as_hypothesis_matrix(L: Any, p: int) -> NDArray[np.floating[Any]]:
    """Coerce a user-supplied L to a finite (k, p) float array."""
    L = check_array(L, 'L')
    check_finite(L, 'L')
    if L.ndim == 1:
        L = L[None, :] if L.size else np.zeros((0, p))
    check_2d(L, 'L')
    if L.shape[1] != p:
        raise DimensionError(
            f"L: expected shape (k, {p}), got {L.shape}"
        )
    return L


# =====================================================================
# Omnibus test
# =====================================================================


def hypothesis_sum_of_squares(
    L: NDArray[np.floating[Any]],
    fit: SweptResult,
) -> tuple[float, int]:
    """
    SSH and hypothesis df for Lβ = 0.

    Returns:
        (ssh, df). k = 0 gives (0.0, 0).
    """
    k = L.shape[0]
    if k == 0:
        return 0.0, 0

    lb = L @ fit.beta
    V = L @ fit.g_inverse @ L.T
    V = (V + V.T) / 2.0

    rank = int(np.linalg.matrix_rank(V)) if np.any(V) else 0
    if rank == k:
        try:
            ssh = float(lb @ np.linalg.solve(V, lb))
        except np.linalg.LinAlgError:
            pass
        else:
            return _clean_ssh(ssh), k

    if np.max(np.abs(V)) <= ZERO_TOL:
        if np.max(np.abs(lb)) <= ZERO_TOL:
            return 0.0, k
        return float('nan'), k

    V_inv, rank = pinv_with_rank(V)
    ssh = float(lb @ V_inv @ lb)
    return _clean_ssh(ssh), rank


def _clean_ssh(ssh: float) -> float:
    if ssh < 0.0:
        return 0.0 if abs(ssh) <= ZERO_TOL else float('nan')
    return ssh


def f_statistics(
    source: str,
    ssh: float,
    df: int,
    error: ErrorTerm,
    alpha: float = 0.05,
) -> HypothesisTestResult:
    """
    Mean square, F, significance, effect size and power for one SSH.

    df = 0 reports SS 0 and NaN for everything else.
    """
    nan = float('nan')
    if df <= 0:
        return HypothesisTestResult(
            source=source, sum_of_squares=0.0, df=0, mean_square=nan,
            f_value=nan, significance=nan, partial_eta_squared=nan,
            noncentrality=nan, observed_power=nan, error_df=error.df,
        )

    msh = ssh / df
    mse = error.mse
    if math.isnan(msh) or math.isnan(mse):
        f_value = nan
    elif mse <= ZERO_TOL:
        f_value = math.inf if msh > ZERO_TOL else nan
    else:
        f_value = msh / mse

    denominator = ssh + error.sse
    if math.isnan(ssh) or denominator <= 0.0:
        eta = nan
    else:
        eta = min(1.0, max(0.0, ssh / denominator))

    return HypothesisTestResult(
        source=source,
        sum_of_squares=ssh,
        df=df,
        mean_square=msh,
        f_value=f_value,
        significance=f_significance(df, error.df, f_value),
        partial_eta_squared=eta,
        noncentrality=f_value * df,
        observed_power=observed_power_f(f_value, df, error.df, alpha),
        error_df=error.df,
    )


def test_hypothesis(
    L: NDArray[np.floating[Any]],
    fit: SweptResult,
    error: ErrorTerm,
    *,
    source: str = 'Contrast',
    alpha: float = 0.05,
) -> HypothesisTestResult:
    """F test of Lβ = 0."""
    ssh, df = hypothesis_sum_of_squares(L, fit)
    return f_statistics(source, ssh, df, error, alpha)


def contrast_table(
    test: HypothesisTestResult,
    error: ErrorTerm,
) -> tuple[TableRow, TableRow]:
    """The (Contrast, Error) rows of a univariate or contrast test."""
    contrast = TableRow(
        source='Contrast',
        sum_of_squares=test.sum_of_squares,
        df=test.df,
        mean_square=test.mean_square,
        f_value=test.f_value,
        significance=test.significance,
        partial_eta_squared=test.partial_eta_squared,
        noncentrality=test.noncentrality,
        observed_power=test.observed_power,
    )
    error_row = TableRow(
        source='Error',
        sum_of_squares=error.sse,
        df=error.df,
        mean_square=error.mse,
    )
    return contrast, error_row


# =====================================================================
# Row estimates
# =====================================================================


def estimability(
    L: NDArray[np.floating[Any]],
    fit: SweptResult,
    xtwx: NDArray[np.floating[Any]],
) -> NDArray[np.bool_]:
    """
    Per-row estimability check: l is estimable when l H = l with
    H = G⁻ X'WX. An all-zero row is reported as not estimable.
    """
    H = fit.g_inverse @ xtwx
    out = np.empty(L.shape[0], dtype=bool)
    for i, row in enumerate(L):
        size = np.max(np.abs(row)) if row.size else 0.0
        if size == 0.0:
            out[i] = False
            continue
        out[i] = np.max(np.abs(row @ H - row)) <= ESTIMABLE_TOL * max(1.0, size)
    return out


def estimate_rows(
    L: NDArray[np.floating[Any]],
    fit: SweptResult,
    error: ErrorTerm,
    *,
    alpha: float = 0.05,
    hypothesized: NDArray[np.floating[Any]] | None = None,
    estimable: NDArray[np.bool_] | None = None,
) -> list[LinearEstimate]:
    """
    Estimate, SE, t, two-sided significance and 1-alpha CI for each row.

    Rows flagged non-estimable get NaN throughout.
    """
    nan = float('nan')
    k = L.shape[0]
    if hypothesized is None:
        hypothesized = np.zeros(k)
    crit = t_critical(alpha, error.df)

    out: list[LinearEstimate] = []
    for i in range(k):
        if estimable is not None and not estimable[i]:
            out.append(LinearEstimate(nan, nan, nan, nan, nan, nan))
            continue
        row = L[i]
        estimate = float(row @ fit.beta)
        variance = float(row @ fit.g_inverse @ row) * error.mse
        se = math.sqrt(max(variance, 0.0)) if not math.isnan(variance) else nan
        diff = estimate - float(hypothesized[i])
        if math.isnan(se) or se == 0.0:
            t_value = nan
        else:
            t_value = diff / se
        out.append(LinearEstimate(
            estimate=estimate,
            std_error=se,
            t_value=t_value,
            significance=t_significance(t_value, error.df),
            ci_lower=estimate - crit * se,
            ci_upper=estimate + crit * se,
        ))
    return out
