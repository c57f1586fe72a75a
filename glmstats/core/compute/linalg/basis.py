"""
Rank, row-basis and pseudo-inverse helpers.

Hypothesis matrices are built by several constructive routes that can
produce redundant rows; these helpers reduce them to a linearly
independent set and supply the Moore-Penrose inverse where a regular
inverse may not exist.
"""

from typing import Any

import numpy as np
from numpy.typing import NDArray
from scipy import linalg as sp_linalg

from glmstats.core.compute.tolerances import (
    DESIGN_RANK_TOL,
    ESTIMABLE_TOL,
    PINV_RCOND,
    ROW_BASIS_TOL,
)


def independent_rows(
    A: NDArray[np.floating[Any]],
    tol: float = ROW_BASIS_TOL,
    *,
    scale: float | None = None,
) -> NDArray[np.intp]:
    """
    Indices of a maximal linearly independent subset of the rows of A.

    Rows are tested incrementally in order: a row is accepted when its
    component orthogonal to the rows accepted so far has norm greater than
    tol * max(1, ||row||). Earlier rows therefore take precedence.

    Rows with norm <= tol * max(1, scale) are treated as zero. scale
    defaults to the largest row norm of A; callers whose rows may consist
    entirely of rounding noise pass the magnitude of the matrix the rows
    were derived from.
    """
    A = np.atleast_2d(np.asarray(A, dtype=np.float64))
    if A.shape[0] == 0:
        return np.zeros(0, dtype=np.intp)
    if scale is None:
        scale = float(np.max(np.linalg.norm(A, axis=1)))
    floor = tol * max(1.0, scale)
    basis: list[NDArray] = []
    keep: list[int] = []

    for i, row in enumerate(A):
        norm = np.linalg.norm(row)
        if norm <= floor:
            continue
        residual = row.copy()
        for q in basis:
            residual -= (q @ residual) * q
        # second pass keeps the basis orthogonal in floating point
        for q in basis:
            residual -= (q @ residual) * q
        r_norm = np.linalg.norm(residual)
        if r_norm > tol * max(1.0, norm):
            basis.append(residual / r_norm)
            keep.append(i)

    return np.asarray(keep, dtype=np.intp)


def row_basis(
    A: NDArray[np.floating[Any]],
    tol: float = ROW_BASIS_TOL,
    *,
    scale: float | None = None,
) -> NDArray[np.floating[Any]]:
    """
    Reduce A to a linearly independent set of its own rows.

    Returns an array with A.shape[1] columns and between 0 and rank(A) rows.
    """
    A = np.atleast_2d(np.asarray(A, dtype=np.float64))
    return A[independent_rows(A, tol, scale=scale)].copy()


def numerical_rank(
    A: NDArray[np.floating[Any]],
    rtol: float = DESIGN_RANK_TOL,
) -> int:
    """Number of singular values greater than rtol * largest singular value."""
    A = np.atleast_2d(np.asarray(A, dtype=np.float64))
    if A.size == 0:
        return 0
    s = np.linalg.svd(A, compute_uv=False)
    if s[0] <= 0.0:
        return 0
    return int(np.sum(s > rtol * s[0]))


def pinv_with_rank(
    A: NDArray[np.floating[Any]],
    rcond: float = PINV_RCOND,
    *,
    atol: float = 0.0,
) -> tuple[NDArray[np.floating[Any]], int]:
    """
    Moore-Penrose pseudo-inverse of A and the rank it was computed at.

    Singular values below max(atol, rcond * largest) are treated as zero.
    """
    A = np.atleast_2d(np.asarray(A, dtype=np.float64))
    if A.size == 0 or not np.any(A):
        return np.zeros((A.shape[1], A.shape[0]), dtype=np.float64), 0
    inverse, rank = sp_linalg.pinv(A, atol=atol, rtol=rcond, return_rank=True)
    return inverse, int(rank)


def estimable_span(
    L: NDArray[np.floating[Any]],
    X: NDArray[np.floating[Any]],
    *,
    rtol: float = DESIGN_RANK_TOL,
    tol: float = ESTIMABLE_TOL,
) -> NDArray[np.floating[Any]]:
    """
    Rows spanning the part of the row space of L that is estimable under X.

    lβ is estimable exactly when l lies in the row space of X, i.e. when
    l N = 0 for a basis N of the null space of X. The combinations c'L with
    c'(L N) = 0 form the intersection of the two row spaces, which depends
    only on the spaces themselves: neither the order of the columns of X
    nor the choice of generalized inverse can change it.

    Returns L itself when every row is estimable, otherwise a spanning set
    of the intersection (possibly with no rows). The result is not reduced
    to a basis.
    """
    L = np.atleast_2d(np.asarray(L, dtype=np.float64))
    if L.shape[0] == 0:
        return L.copy()
    N = sp_linalg.null_space(X, rcond=rtol)
    if N.shape[1] == 0:
        return L.copy()

    M = L @ N
    floor = tol * max(1.0, float(np.max(np.abs(L))))
    if np.max(np.abs(M)) <= floor:
        return L.copy()

    U, s, _ = np.linalg.svd(M, full_matrices=True)
    rank = int(np.sum(s > floor))
    C = U[:, rank:]
    return C.T @ L
