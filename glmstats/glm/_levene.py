"""
Levene's test of equality of error variances across design cells.

Algorithm: transform the values of every cell (the combination of all
factor levels) to absolute deviations from a cell center, then run a
one-way ANOVA on the transformed values.

Without covariates the raw dependent values are used and four centers are
reported (mean, median, median with Satterthwaite-adjusted df, 5% trimmed
mean). With covariates the residuals of the full model are grouped instead
and only the mean-centered statistic is reported.
"""

from typing import Any, Callable

import numpy as np
from numpy.typing import NDArray
from scipy import stats as sp_stats

from glmstats.core.exceptions import ValidationError
from glmstats.glm._common import LeveneParams, LeveneRow
from glmstats.glm._distributions import f_significance
from glmstats.glm.design import GLMDesign

VALID_CENTERS = ('all', 'mean', 'median', 'median_adjusted', 'trimmed')

TRIM_PROPORTION = 0.05

# SS below this count as zero when forming F
_SS_ZERO = 1e-12


def _trimmed_mean(values: NDArray) -> float:
    return float(sp_stats.trim_mean(values, TRIM_PROPORTION))


_CENTERS: dict[str, Callable[[NDArray], Any]] = {
    'mean': np.mean,
    'median': np.median,
    'trimmed': _trimmed_mean,
}


def cell_groups(design: GLMDesign) -> list[NDArray[np.intp]]:
    """Record indices of every observed cell over all factors, in sorted cell order."""
    if not design.factors:
        return [np.arange(design.n, dtype=np.intp)]
    keys = list(zip(*(design.factor_values[f] for f in design.factors)))
    order: dict[tuple, list[int]] = {}
    for i, key in enumerate(keys):
        order.setdefault(key, []).append(i)
    rank = {f: {lvl: k for k, lvl in enumerate(design.factor_levels[f])} for f in design.factors}
    ordered = sorted(
        order, key=lambda cell: tuple(rank[f][lvl] for f, lvl in zip(design.factors, cell)),
    )
    return [np.asarray(order[cell], dtype=np.intp) for cell in ordered]


def _oneway(groups: list[NDArray]) -> tuple[float, int, int, list[float]]:
    """F of a one-way ANOVA; also returns the within-group SS of every group."""
    n = sum(len(g) for g in groups)
    k = len(groups)
    grand = float(np.mean(np.concatenate(groups)))

    ss_between = 0.0
    ss_within = 0.0
    within: list[float] = []
    for g in groups:
        mean = float(np.mean(g))
        ss_between += len(g) * (mean - grand) ** 2
        u = float(np.sum((g - mean) ** 2))
        within.append(u)
        ss_within += u

    df1 = k - 1
    df2 = n - k
    if df1 <= 0 or df2 <= 0:
        return float('nan'), df1, df2, within
    if ss_within <= _SS_ZERO:
        f_value = 0.0 if ss_between <= _SS_ZERO else float('inf')
    else:
        f_value = (ss_between / df1) / (ss_within / df2)
    return f_value, df1, df2, within


def _levene_row(
    label: str,
    values: NDArray,
    groups: list[NDArray[np.intp]],
    center: Callable[[NDArray], Any],
) -> tuple[LeveneRow, list[float], list[int]]:
    transformed = [np.abs(values[g] - center(values[g])) for g in groups]
    f_value, df1, df2, within = _oneway(transformed)
    row = LeveneRow(
        function=label,
        statistic=f_value,
        df1=df1,
        df2=float(df2),
        significance=f_significance(df1, df2, f_value),
    )
    return row, within, [len(g) for g in groups]


def levene_impl(
    design: GLMDesign,
    *,
    residuals: NDArray[np.floating[Any]] | None = None,
    center: str = 'all',
) -> LeveneParams:
    """
    Levene's test on the cells of a design.

    Args:
        design: Design whose factors define the groups
        residuals: Model residuals to group instead of the dependent values
            (used when the model has covariates)
        center: 'all' for the full table, or one of 'mean', 'median',
            'median_adjusted', 'trimmed'
    """
    if center not in VALID_CENTERS:
        raise ValidationError(f"center must be one of {VALID_CENTERS}, got {center!r}")

    groups = [g for g in cell_groups(design) if g.size > 1]
    if not groups:
        raise ValidationError(
            "Levene's test requires at least one cell with more than one observation"
        )

    if residuals is not None:
        row, _, _ = _levene_row('Levene', residuals, groups, np.mean)
        return LeveneParams(
            dependent=design.dependent,
            rows=(row,),
            n_groups=len(groups),
            used_residuals=True,
            design_string=design.design_string,
        )

    y = design.y
    rows: list[LeveneRow] = []
    if center in ('all', 'mean'):
        rows.append(_levene_row('Based on Mean', y, groups, np.mean)[0])
    if center in ('all', 'median', 'median_adjusted'):
        median_row, within, sizes = _levene_row('Based on Median', y, groups, np.median)
        if center != 'median_adjusted':
            rows.append(median_row)
        if center in ('all', 'median_adjusted'):
            rows.append(_adjusted_df_row(median_row, within, sizes))
    if center in ('all', 'trimmed'):
        rows.append(_levene_row('Based on trimmed mean', y, groups, _trimmed_mean)[0])

    return LeveneParams(
        dependent=design.dependent,
        rows=tuple(rows),
        n_groups=len(groups),
        used_residuals=False,
        design_string=design.design_string,
    )


def _adjusted_df_row(median_row: LeveneRow, within: list[float], sizes: list[int]) -> LeveneRow:
    """Median-based statistic with Satterthwaite-style df2 = (Σu)² / Σ(u²/(m-1))."""
    numerator = sum(within) ** 2
    denominator = sum(u ** 2 / (m - 1) for u, m in zip(within, sizes))
    df2 = numerator / denominator if denominator > 0.0 else float('nan')
    return LeveneRow(
        function='Based on Median and with adjusted df',
        statistic=median_row.statistic,
        df1=median_row.df1,
        df2=df2,
        significance=f_significance(median_row.df1, df2, median_row.statistic),
    )
