"""
Numerical thresholds and tolerance tiers.

Two kinds of constants live here:

- Algorithmic thresholds used by the GLM engine to decide when a pivot,
  a singular value or a quadratic form is "numerically zero". These are
  part of the method: changing them changes which parameters are aliased.
- Tolerance tiers used by the test suite to compare results.
"""

from dataclasses import dataclass


# SWEEP: a pivot is skipped (parameter aliased) when its current diagonal
# falls to this fraction of the original diagonal entry.
SWEEP_PIVOT_TOL = 1e-12

# Numerical rank of the design matrix X.
DESIGN_RANK_TOL = 1e-10

# Incremental row-basis extraction for hypothesis matrices.
ROW_BASIS_TOL = 1e-8

# Relative cutoff for Moore-Penrose pseudo-inverses (Type II projector).
PINV_RCOND = 1e-10

# |x| <= ZERO_TOL counts as zero in the SSH fallback rules and for MSE.
ZERO_TOL = 1e-9

# L is estimable when max|L H - L| <= ESTIMABLE_TOL * max(1, max|L|),
# with H = G⁻ X'WX.
ESTIMABLE_TOL = 1e-6


@dataclass(frozen=True)
class ToleranceTier:
    """Tolerance specification for numerical comparison."""
    rtol: float
    atol: float
    name: str
    description: str


# Well-conditioned problems: generalized-inverse results must agree with
# direct inversion to near machine precision
CPU_FP64 = ToleranceTier(
    rtol=1e-10,
    atol=1e-12,
    name='cpu_fp64',
    description='CPU double precision',
)

# Ill-conditioned problems (cond > 1e4), or results that go through an
# approximation such as Patnaik's observed power
CPU_FP64_ILL_CONDITIONED = ToleranceTier(
    rtol=1e-4,
    atol=1e-6,
    name='cpu_fp64_ill_conditioned',
    description='CPU double precision, ill-conditioned (cond > 1e4)',
)
