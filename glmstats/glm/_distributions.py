"""
Distribution utilities for the GLM.

Thin wrappers over scipy.stats that return NaN for invalid input
(non-positive df, NaN statistic) instead of raising, so that a
non-estimable hypothesis propagates as NaN through the report rows.
"""

import math

import numpy as np
from numpy.typing import NDArray
from scipy import stats as sp_stats
from scipy.optimize import brentq


def _bad(*values: float) -> bool:
    return any(v is None or math.isnan(v) for v in values)


def f_significance(df1: float, df2: float, f: float) -> float:
    """Upper-tail probability P(F(df1, df2) > f)."""
    if _bad(df1, df2, f) or df1 <= 0 or df2 <= 0:
        return float('nan')
    if math.isinf(f):
        return 0.0
    if f <= 0.0:
        return 1.0
    return float(sp_stats.f.sf(f, df1, df2))


def t_significance(t: float, df: float) -> float:
    """Two-sided p-value of a t statistic."""
    if _bad(t, df) or df <= 0:
        return float('nan')
    if math.isinf(t):
        return 0.0
    return float(min(1.0, 2.0 * sp_stats.t.sf(abs(t), df)))


def t_critical(alpha: float, df: float) -> float:
    """
    Two-sided critical value t(1 - alpha/2, df).

    Falls back to the standard normal when df <= 0 (no error degrees of
    freedom left to estimate the variance).
    """
    if _bad(alpha, df) or not 0.0 < alpha < 1.0:
        return float('nan')
    if df <= 0:
        return float(sp_stats.norm.ppf(1.0 - alpha / 2.0))
    return float(sp_stats.t.ppf(1.0 - alpha / 2.0, df))


def f_critical(alpha: float, df1: float, df2: float) -> float:
    """Upper critical value F(1 - alpha; df1, df2)."""
    if _bad(alpha, df1, df2) or df1 <= 0 or df2 <= 0 or not 0.0 < alpha < 1.0:
        return float('nan')
    return float(sp_stats.f.isf(alpha, df1, df2))


def chi_square_significance(x: float, df: float) -> float:
    """Upper-tail probability P(χ²(df) > x)."""
    if _bad(x, df) or df <= 0:
        return float('nan')
    if x <= 0.0:
        return 1.0
    return float(sp_stats.chi2.sf(x, df))


def noncentral_f_cdf(f: float, df1: float, df2: float, ncp: float) -> float:
    """
    Noncentral F distribution function by the Patnaik approximation.

    F'(df1, df2, λ) is approximated by c·F(ν, df2) with
    ν = (df1 + λ)² / (df1 + 2λ) and c = (df1 + λ) / df1.
    """
    if _bad(f, df1, df2, ncp) or df1 <= 0 or df2 <= 0 or ncp < 0:
        return float('nan')
    if f <= 0.0:
        return 0.0
    nu = (df1 + ncp) ** 2 / (df1 + 2.0 * ncp)
    scaled = f * df1 / (df1 + ncp)
    return float(sp_stats.f.cdf(scaled, nu, df2))


def observed_power_f(f: float, df1: float, df2: float, alpha: float = 0.05) -> float:
    """
    Observed power of an F test, taking λ = F·df1 as the noncentrality.
    """
    if _bad(f, df1, df2, alpha) or df1 <= 0 or df2 <= 0:
        return float('nan')
    if math.isinf(f):
        return 1.0
    if f < 0.0:
        return float('nan')
    critical = f_critical(alpha, df1, df2)
    if math.isnan(critical):
        return float('nan')
    power = 1.0 - noncentral_f_cdf(critical, df1, df2, f * df1)
    return float(min(1.0, max(0.0, power)))


def observed_power_t(t: float, df: float, alpha: float = 0.05) -> float:
    """
    Observed power of a two-sided t test with noncentrality δ = |t|.

    The noncentral t is approximated by a normal:
    P(T' > t_c) ≈ Φ((δ - t_c) / √(1 + t_c² / (2·df))).
    """
    if _bad(t, df, alpha) or df <= 0:
        return float('nan')
    if math.isinf(t):
        return 1.0
    critical = t_critical(alpha, df)
    delta = abs(t)
    spread = math.sqrt(1.0 + critical ** 2 / (2.0 * df))
    upper = sp_stats.norm.cdf((delta - critical) / spread)
    lower = sp_stats.norm.cdf((-delta - critical) / spread)
    return float(min(1.0, max(0.0, upper + lower)))


def studentized_range_significance(q: float, k: int, df: float) -> float:
    """Upper-tail probability of the studentized range of k means."""
    if _bad(q, df) or k < 2 or df <= 0:
        return float('nan')
    if math.isinf(q):
        return 0.0
    if q <= 0.0:
        return 1.0
    return float(min(1.0, sp_stats.studentized_range.sf(q, k, df)))


def studentized_range_critical(alpha: float, k: int, df: float) -> float:
    """Upper critical value q(1 - alpha; k, df)."""
    if _bad(alpha, df) or k < 2 or df <= 0 or not 0.0 < alpha < 1.0:
        return float('nan')
    return float(sp_stats.studentized_range.isf(alpha, k, df))


# Dunnett's many-to-one distribution is a multivariate t integrated by
# quasi-Monte Carlo; a fixed seed makes repeated calls agree exactly.
DUNNETT_SEED = 20240611


def _dunnett_coverage(c: float, corr: NDArray, df: float) -> float:
    """P(max |T_i| < c) for T ~ multivariate t(corr, df)."""
    dist = sp_stats.multivariate_t(shape=corr, df=df, seed=DUNNETT_SEED)
    upper = np.full(corr.shape[0], c)
    return float(dist.cdf(upper, lower_limit=-upper))


def dunnett_significance(t: float, corr: NDArray, df: float) -> float:
    """Two-sided many-to-one p-value of one treatment-vs-control t statistic."""
    if _bad(t, df) or df <= 0:
        return float('nan')
    if math.isinf(t):
        return 0.0
    if corr.shape[0] == 1:
        return t_significance(t, df)
    return float(min(1.0, max(0.0, 1.0 - _dunnett_coverage(abs(t), corr, df))))


def dunnett_critical(alpha: float, corr: NDArray, df: float) -> float:
    """Two-sided critical value c with P(max |T_i| < c) = 1 - alpha."""
    if _bad(alpha, df) or df <= 0 or not 0.0 < alpha < 1.0:
        return float('nan')
    if corr.shape[0] == 1:
        return t_critical(alpha, df)
    m = corr.shape[0]
    # the Sidak and Bonferroni cutoffs bracket the simultaneous one
    lower = t_critical(1.0 - (1.0 - alpha) ** (1.0 / m), df) * 0.5
    upper = t_critical(alpha / m, df) * 1.5
    return float(brentq(
        lambda c: _dunnett_coverage(c, corr, df) - (1.0 - alpha), lower, upper, xtol=1e-6,
    ))
