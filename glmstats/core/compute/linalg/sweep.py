"""
The SWEEP operator.

Given a symmetric cross-product matrix, sweeping on pivot k replaces it by

    a_ij ← a_ij − a_ik·a_kj / a_kk      (i, j ≠ k)
    a_kj ← a_kj / a_kk,  a_ik ← a_ik / a_kk
    a_kk ← −1 / a_kk

After sweeping a set S of pivots the S×S block holds −(A_SS)⁻¹, the S×T
block holds A_SS⁻¹ A_ST (regression coefficients of T on S) and the T×T
block holds the residual cross-products A_TT − A_TS A_SS⁻¹ A_ST.

Rank deficiency is handled by the pivot test: when the current diagonal
has collapsed to a tiny fraction of its original value the column is a
linear combination of pivots already swept, and it is skipped. The skipped
pivots are reported so callers can zero the corresponding parameters; the
swept block is then one particular generalized inverse.
"""

from dataclasses import dataclass
from typing import Any, Iterable

import numpy as np
from numpy.typing import NDArray

from glmstats.core.compute.tolerances import SWEEP_PIVOT_TOL


@dataclass(frozen=True)
class SweepResult:
    """
    Output of the SWEEP operator.

    Attributes:
        matrix: The swept copy of the input matrix
        swept: Boolean mask over all columns, True where a pivot was swept
        skipped: Indices of requested pivots that were skipped (aliased)
    """
    matrix: NDArray[np.floating[Any]]
    swept: NDArray[np.bool_]
    skipped: tuple[int, ...]


def sweep(
    matrix: NDArray[np.floating[Any]],
    pivots: Iterable[int],
    *,
    tol: float = SWEEP_PIVOT_TOL,
) -> SweepResult:
    """
    Sweep a symmetric matrix on the given pivots, in order.

    The input is never modified.

    Args:
        matrix: Square symmetric matrix (typically X'WX or Z'WZ)
        pivots: Column indices to sweep, in sweep order
        tol: A pivot is skipped when |current diagonal| <= tol * |original
            diagonal| (or when it is exactly zero)

    Returns:
        SweepResult with the swept matrix and the pivot bookkeeping
    """
    m = np.array(matrix, dtype=np.float64, copy=True)
    if m.ndim != 2 or m.shape[0] != m.shape[1]:
        raise ValueError(f"sweep requires a square matrix, got shape {m.shape}")

    original_diag = np.abs(np.diag(m)).copy()
    swept = np.zeros(m.shape[0], dtype=bool)
    skipped: list[int] = []

    for k in pivots:
        d = m[k, k]
        if d == 0.0 or abs(d) <= tol * original_diag[k]:
            skipped.append(int(k))
            continue

        row = m[k, :].copy()
        col = m[:, k].copy()
        m -= np.outer(col, row) / d
        m[k, :] = row / d
        m[:, k] = col / d
        m[k, k] = -1.0 / d
        swept[k] = True

    return SweepResult(matrix=m, swept=swept, skipped=tuple(skipped))
