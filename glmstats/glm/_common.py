"""
Common data types for the univariate GLM.

Contains the frozen parameter payloads that go inside Result[P] envelopes.
Each payload is a pure data container — no methods, no computation.

NaN in a numeric field means "computed but not estimable"; None means the
field does not apply to that row (e.g. F for the Error row).
"""

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class HypothesisTestResult:
    """Omnibus test of Lβ = 0 for one source (term, contrast, EMM effect)."""
    source: str
    sum_of_squares: float
    df: int
    mean_square: float
    f_value: float
    significance: float
    partial_eta_squared: float
    noncentrality: float
    observed_power: float
    error_df: int


@dataclass(frozen=True)
class TableRow:
    """One row of a report table (Tests of Between-Subjects Effects, etc.)."""
    source: str
    sum_of_squares: float
    df: int
    mean_square: float | None
    f_value: float | None = None
    significance: float | None = None
    partial_eta_squared: float | None = None
    noncentrality: float | None = None
    observed_power: float | None = None


@dataclass(frozen=True)
class ParameterEstimate:
    """One row of the parameter estimates table."""
    parameter: str
    estimate: float
    std_error: float
    t_value: float
    significance: float
    ci_lower: float
    ci_upper: float
    partial_eta_squared: float
    noncentrality: float
    observed_power: float
    aliased: bool


@dataclass(frozen=True)
class RobustParameterEstimate:
    """One row of the parameter estimates table with a sandwich standard error."""
    parameter: str
    estimate: float
    robust_std_error: float
    t_value: float
    significance: float
    ci_lower: float
    ci_upper: float
    aliased: bool


@dataclass(frozen=True)
class GLMParams:
    """
    Parameter payload for a fitted univariate GLM.

    table holds the Tests of Between-Subjects Effects in report order:
    Corrected Model (or Model), every term in model order, Error, Total,
    Corrected Total.
    """
    dependent: str
    table: tuple[TableRow, ...]
    tests: dict[str, HypothesisTestResult]    # term -> test at ss_type
    ss_type: int
    parameters: tuple[ParameterEstimate, ...]
    coefficients: NDArray[np.floating]
    n_obs: int
    rank: int
    df_error: int
    sse: float
    mse: float
    r_squared: float
    adj_r_squared: float
    design_string: str


@dataclass(frozen=True)
class ContrastEstimate:
    """One row of L: estimate of a single linear combination."""
    label: str
    estimate: float
    hypothesized: float
    difference: float
    std_error: float
    significance: float
    ci_lower: float
    ci_upper: float


@dataclass(frozen=True)
class ContrastParams:
    """Parameter payload for a contrast on one factor."""
    specification: str
    factor: str
    method: str
    reference: str
    levels: tuple[str, ...]
    coefficients: NDArray[np.floating]         # (rows, levels)
    estimates: tuple[ContrastEstimate, ...]
    test: tuple[TableRow, ...]                 # (Contrast, Error)
    alpha: float


@dataclass(frozen=True)
class EMMean:
    """Estimated marginal mean of one level combination."""
    levels: tuple[tuple[str, str], ...]        # ((factor, level), ...)
    mean: float
    std_error: float
    ci_lower: float
    ci_upper: float


@dataclass(frozen=True)
class PairwiseComparison:
    """Difference between the EMMs of two levels of the compared factor."""
    factor: str
    level_i: str
    level_j: str
    given: tuple[tuple[str, str], ...]         # fixed levels of other factors
    mean_difference: float
    std_error: float
    significance: float
    ci_lower: float
    ci_upper: float


@dataclass(frozen=True)
class UnivariateTest:
    """Omnibus test of the compared factor, possibly within fixed levels of others."""
    given: tuple[tuple[str, str], ...]
    contrast: TableRow
    error: TableRow


@dataclass(frozen=True)
class EMMeansParams:
    """Parameter payload for estimated marginal means of one effect."""
    effect: str
    factors: tuple[str, ...]
    estimates: tuple[EMMean, ...]
    compared_factor: str | None
    pairwise: tuple[PairwiseComparison, ...]
    univariate: tuple[UnivariateTest, ...]
    adjustment: str
    alpha: float
    covariate_means: dict[str, float]


@dataclass(frozen=True)
class LeveneRow:
    """One variant of Levene's statistic."""
    function: str
    statistic: float
    df1: int
    df2: float          # float: the adjusted-df variant is fractional
    significance: float


@dataclass(frozen=True)
class LeveneParams:
    """Parameter payload for Levene's test of equality of error variances."""
    dependent: str
    rows: tuple[LeveneRow, ...]
    n_groups: int
    used_residuals: bool
    design_string: str


@dataclass(frozen=True)
class HeteroscedasticityTest:
    """One auxiliary-regression test for heteroscedasticity."""
    name: str
    statistic: float
    df1: int
    df2: int | None     # None for chi-square tests
    significance: float
    note: str


@dataclass(frozen=True)
class HeteroscedasticityParams:
    """Parameter payload for the heteroscedasticity test battery."""
    dependent: str
    tests: tuple[HeteroscedasticityTest, ...]
    design_string: str


@dataclass(frozen=True)
class EstimableFunctionRow:
    """One row of the general estimable function (a Type III L row)."""
    label: str
    term: str
    coefficients: NDArray[np.floating]


@dataclass(frozen=True)
class PostHocComparison:
    """Difference between the observed means of two levels (I - J)."""
    method: str
    level_i: str
    level_j: str
    mean_difference: float
    std_error: float
    significance: float
    ci_lower: float
    ci_upper: float
    df: float           # Welch df for the unequal-variance methods


@dataclass(frozen=True)
class PostHocParams:
    """Parameter payload for post hoc comparisons of one factor."""
    factor: str
    levels: tuple[str, ...]
    means: tuple[float, ...]
    counts: tuple[int, ...]
    comparisons: dict[str, tuple[PostHocComparison, ...]]   # method -> rows
    control: str | None                                   # Dunnett only
    alpha: float
    mse: float
    df_error: int
