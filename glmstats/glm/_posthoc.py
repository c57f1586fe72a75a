"""
Post hoc multiple comparisons of the observed level means of one factor.

Equal-variance methods use the model's MSE and error df:

    LSD, Bonferroni, Sidak:
        t = (ȳᵢ - ȳⱼ) / √(MSE (1/nᵢ + 1/nⱼ)), adjusted over k(k-1)/2 pairs.

    Scheffe:
        F = t² / (k - 1) against F(k - 1, df). Intervals use √((k-1) F_crit).

    Tukey HSD (Tukey-Kramer for unequal n):
        q = |t| √2 against the studentized range of k means.

    Dunnett:
        each level against a control, with the many-to-one multivariate t
        of the correlated treatment-vs-control statistics.

Unequal-variance methods use the level variances and Welch df:

    Games-Howell:
        q = |t| √2 against the studentized range with the Welch df.

    Tamhane's T2:
        Welch t with a Sidak adjustment.
"""

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from glmstats.core.exceptions import UnknownTermError, ValidationError
from glmstats.glm._adjust import adjust_alpha, adjust_p
from glmstats.glm._common import PostHocComparison, PostHocParams
from glmstats.glm._distributions import (
    dunnett_critical,
    dunnett_significance,
    f_critical,
    f_significance,
    studentized_range_critical,
    studentized_range_significance,
    t_critical,
    t_significance,
)
from glmstats.glm._evaluator import ErrorTerm
from glmstats.glm.design import GLMDesign

VALID_POSTHOC = (
    'lsd', 'bonferroni', 'sidak', 'scheffe', 'tukey', 'dunnett',
    'games_howell', 'tamhane',
)
UNEQUAL_VARIANCE = ('games_howell', 'tamhane')

_ALIASES = {
    'hsd': 'tukey',
    'scheffé': 'scheffe',
    'šidák': 'sidak',
    't2': 'tamhane',
    'none': 'lsd',
}

_SQRT2 = math.sqrt(2.0)


@dataclass(frozen=True)
class LevelStatistics:
    """Observed size, mean and variance of one factor level."""
    level: str
    n: int
    mean: float
    variance: float     # NaN for a single record


def resolve_methods(methods: str | Sequence[str]) -> tuple[str, ...]:
    """Canonical method names in request order, without duplicates."""
    if isinstance(methods, str):
        methods = (methods,)
    out: list[str] = []
    for method in methods:
        if not isinstance(method, str):
            raise ValidationError(
                f"post hoc method must be a string, got {type(method).__name__}"
            )
        key = method.strip().lower().replace('-', '_').replace(' ', '_')
        key = _ALIASES.get(key, key)
        if key not in VALID_POSTHOC:
            raise ValidationError(
                f"post hoc method must be one of {VALID_POSTHOC}, got {method!r}"
            )
        if key not in out:
            out.append(key)
    if not out:
        raise ValidationError("at least one post hoc method is required")
    return tuple(out)


def level_statistics(design: GLMDesign, factor: str) -> tuple[LevelStatistics, ...]:
    values = design.factor_values[factor]
    y = design.y
    out = []
    for level in design.factor_levels[factor]:
        group = y[values == level]
        variance = float(np.var(group, ddof=1)) if group.size > 1 else float('nan')
        out.append(LevelStatistics(
            level=level, n=int(group.size), mean=float(np.mean(group)), variance=variance,
        ))
    return tuple(out)


def resolve_control(levels: tuple[str, ...], control: str | None) -> str:
    """Control level of Dunnett's test; default the last level."""
    if control is None:
        return levels[-1]
    key = str(control)
    if key in levels:
        return key
    if key.strip().lower() == 'first':
        return levels[0]
    if key.strip().lower() == 'last':
        return levels[-1]
    raise ValidationError(
        f"control must be 'first', 'last' or a level of the factor {list(levels)}, "
        f"got {control!r}"
    )


# =====================================================================
# Comparisons
# =====================================================================


def _comparison(
    method: str,
    a: LevelStatistics,
    b: LevelStatistics,
    se: float,
    significance: float,
    crit: float,
    df: float,
) -> PostHocComparison:
    diff = a.mean - b.mean
    return PostHocComparison(
        method=method,
        level_i=a.level,
        level_j=b.level,
        mean_difference=diff,
        std_error=se,
        significance=significance,
        ci_lower=diff - crit * se,
        ci_upper=diff + crit * se,
        df=df,
    )


def _t(diff: float, se: float) -> float:
    if not se > 0.0:
        return float('nan')
    return diff / se


def equal_variance_comparisons(
    method: str,
    stats: Sequence[LevelStatistics],
    error: ErrorTerm,
    alpha: float,
) -> tuple[PostHocComparison, ...]:
    """All pairs i < j with the pooled model MSE."""
    k = len(stats)
    m = k * (k - 1) // 2
    df = error.df

    if method in ('lsd', 'bonferroni', 'sidak'):
        crit = t_critical(adjust_alpha(alpha, m, method), df)
    elif method == 'scheffe':
        crit = math.sqrt((k - 1) * f_critical(alpha, k - 1, df))
    else:
        crit = studentized_range_critical(alpha, k, df) / _SQRT2

    out = []
    for i in range(k):
        for j in range(i + 1, k):
            a, b = stats[i], stats[j]
            se = math.sqrt(error.mse * (1.0 / a.n + 1.0 / b.n))
            t = _t(a.mean - b.mean, se)
            if method == 'scheffe':
                p = f_significance(k - 1, df, t ** 2 / (k - 1))
            elif method == 'tukey':
                p = studentized_range_significance(abs(t) * _SQRT2, k, df)
            else:
                p = adjust_p(t_significance(t, df), m, method)
            out.append(_comparison(method, a, b, se, p, crit, df))
    return tuple(out)


def _welch(a: LevelStatistics, b: LevelStatistics) -> tuple[float, float]:
    """(standard error, Welch-Satterthwaite df) of ȳa - ȳb."""
    if a.n < 2 or b.n < 2:
        return float('nan'), float('nan')
    va, vb = a.variance / a.n, b.variance / b.n
    denom = va ** 2 / (a.n - 1) + vb ** 2 / (b.n - 1)
    if denom <= 0.0:
        return math.sqrt(va + vb), float('nan')
    return math.sqrt(va + vb), (va + vb) ** 2 / denom


def unequal_variance_comparisons(
    method: str,
    stats: Sequence[LevelStatistics],
    alpha: float,
) -> tuple[PostHocComparison, ...]:
    """All pairs i < j with separate variances (Games-Howell, Tamhane's T2)."""
    k = len(stats)
    m = k * (k - 1) // 2

    out = []
    for i in range(k):
        for j in range(i + 1, k):
            a, b = stats[i], stats[j]
            se, df = _welch(a, b)
            t = _t(a.mean - b.mean, se)
            if method == 'games_howell':
                p = studentized_range_significance(abs(t) * _SQRT2, k, df)
                crit = studentized_range_critical(alpha, k, df) / _SQRT2
            else:
                p = adjust_p(t_significance(t, df), m, 'sidak')
                crit = t_critical(adjust_alpha(alpha, m, 'sidak'), df)
            out.append(_comparison(method, a, b, se, p, crit, df))
    return tuple(out)


def dunnett_comparisons(
    stats: Sequence[LevelStatistics],
    control: str,
    error: ErrorTerm,
    alpha: float,
) -> tuple[PostHocComparison, ...]:
    """Every other level against the control, two-sided."""
    (ctrl,) = [s for s in stats if s.level == control]
    treatments = [s for s in stats if s.level != control]
    df = error.df

    # corr(Tᵢ, Tⱼ) through the shared control mean
    r = np.array([math.sqrt(s.n / (s.n + ctrl.n)) for s in treatments])
    corr = np.outer(r, r)
    np.fill_diagonal(corr, 1.0)

    crit = dunnett_critical(alpha, corr, df)
    out = []
    for s in treatments:
        se = math.sqrt(error.mse * (1.0 / s.n + 1.0 / ctrl.n))
        t = _t(s.mean - ctrl.mean, se)
        p = dunnett_significance(t, corr, df)
        out.append(_comparison('dunnett', s, ctrl, se, p, crit, df))
    return tuple(out)


# =====================================================================
# Entry
# =====================================================================


def posthoc_impl(
    design: GLMDesign,
    error: ErrorTerm,
    factor: str,
    *,
    methods: Sequence[str],
    control: str | None = None,
    alpha: float = 0.05,
) -> PostHocParams:
    """
    Post hoc comparisons of one factor of a fitted model.

    Raises:
        UnknownTermError: If factor is not a factor of the model.
        ValidationError: If the model has covariates or weights, or the
            factor has fewer than two levels.
    """
    if factor not in design.factors:
        raise UnknownTermError(
            f"{factor!r} is not a factor of the model. Factors: {list(design.factors)}",
            term=factor,
            available=design.factors,
        )
    if design.covariates:
        raise ValidationError(
            "post hoc tests compare observed means and are not available with "
            "covariates; use glm_emmeans(..., compare=True) for adjusted means"
        )
    if design.w is not None:
        raise ValidationError("post hoc tests are not available for weighted models")

    stats = level_statistics(design, factor)
    if len(stats) < 2:
        raise ValidationError(
            f"post hoc tests need at least two levels of {factor!r}, got {len(stats)}"
        )

    resolved_control = None
    comparisons: dict[str, tuple[PostHocComparison, ...]] = {}
    for method in methods:
        if method == 'dunnett':
            resolved_control = resolve_control(design.factor_levels[factor], control)
            comparisons[method] = dunnett_comparisons(stats, resolved_control, error, alpha)
        elif method in UNEQUAL_VARIANCE:
            comparisons[method] = unequal_variance_comparisons(method, stats, alpha)
        else:
            comparisons[method] = equal_variance_comparisons(method, stats, error, alpha)

    return PostHocParams(
        factor=factor,
        levels=tuple(s.level for s in stats),
        means=tuple(s.mean for s in stats),
        counts=tuple(s.n for s in stats),
        comparisons=comparisons,
        control=resolved_control,
        alpha=alpha,
        mse=error.mse,
        df_error=error.df,
    )
