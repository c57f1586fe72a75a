"""
Hypothesis (L) matrix builders for the four sums-of-squares types.

Every builder takes the design and the name of a model term and returns
a freshly allocated (k, p) matrix whose rows are linearly independent;
k = 0 means the term has no testable hypothesis.

Type I (sequential):
    Rows of X'WX for the term, after sweeping out every preceding term.
    SS(term) = R(term | preceding terms). Depends on term order.

Type II (marginality):
    The term adjusted for every term that does not contain it, with the
    terms that contain it carried along. Does not depend on term order.

Type III (equal-weighted cell means):
    Level-vs-last contrasts of equally weighted cell means, averaging over
    every factor outside the term. Built from the per-column parameter
    descriptions and restricted to its estimable part, so it does not
    depend on term order or on the coding. Contrasts that reach an empty
    cell drop out.

Type IV (observed cells):
    Level contrasts rewritten over observed cells only; pairs of levels
    stand in for level-vs-last contrasts that reach an empty cell.
    Coincides with Type III when no cell is empty.
"""

from typing import Any

import numpy as np
from numpy.typing import NDArray

from glmstats.core.compute.linalg import estimable_span, pinv_with_rank, row_basis, sweep
from glmstats.core.compute.tolerances import PINV_RCOND
from glmstats.core.exceptions import ValidationError
from glmstats.glm._emmeans import (
    Cell,
    cell_weight_row,
    reference_contrast_weights,
)
from glmstats.glm._terms import Term
from glmstats.glm.design import GLMDesign

VALID_SS_TYPES = (1, 2, 3, 4)


def hypothesis_matrix(
    design: GLMDesign,
    term: str | Term,
    ss_type: int = 3,
) -> NDArray[np.floating[Any]]:
    """
    Build the hypothesis matrix of a term for the given SS type.

    Raises:
        ValidationError: If ss_type is not 1, 2, 3 or 4
        UnknownTermError: If the term is not in the model
    """
    if ss_type not in VALID_SS_TYPES:
        raise ValidationError(f"ss_type must be 1, 2, 3, or 4, got {ss_type!r}")
    resolved = design.term(term)
    builder = {1: type1_matrix, 2: type2_matrix, 3: type3_matrix, 4: type4_matrix}[ss_type]
    return builder(design, resolved)


def _empty(design: GLMDesign) -> NDArray[np.floating[Any]]:
    return np.zeros((0, design.p), dtype=np.float64)


# =====================================================================
# Type I
# =====================================================================


def type1_matrix(design: GLMDesign, term: str | Term) -> NDArray[np.floating[Any]]:
    term = design.term(term)
    cols = design.columns(term)
    if cols.size == 0:
        return _empty(design)

    xtwx = design.xtwx()
    position = design.term_names.index(term.name)
    preceding = np.concatenate(
        [design.columns(t) for t in design.terms[:position]] or [np.zeros(0, dtype=np.intp)]
    ).astype(np.intp)

    swept = sweep(xtwx, preceding).matrix
    L = swept[cols, :].copy()
    L[:, preceding] = 0.0

    # rows of a term that is fully aliased by its predecessors are pure
    # rounding noise; judge them against the unswept rows
    scale = float(np.max(np.linalg.norm(xtwx[cols, :], axis=1)))
    return row_basis(L, scale=scale)


# =====================================================================
# Type II
# =====================================================================


def type2_matrix(design: GLMDesign, term: str | Term) -> NDArray[np.floating[Any]]:
    term = design.term(term)
    cols2 = design.columns(term)
    if cols2.size == 0:
        return _empty(design)

    cols1: list[NDArray] = []
    cols3: list[NDArray] = []
    for other in design.terms:
        if other.name == term.name:
            continue
        if other.contains(term):
            cols3.append(design.columns(other))
        else:
            cols1.append(design.columns(other))
    idx1 = np.concatenate(cols1).astype(np.intp) if cols1 else np.zeros(0, dtype=np.intp)
    idx3 = np.concatenate(cols3).astype(np.intp) if cols3 else np.zeros(0, dtype=np.intp)

    wx = design.weighted_x()
    X2 = wx[:, cols2]
    if idx1.size:
        X1 = wx[:, idx1]
        G1, _ = pinv_with_rank(X1.T @ X1)
        R2 = X2 - X1 @ (G1 @ (X1.T @ X2))
    else:
        R2 = X2

    c_inv = R2.T @ R2
    c_inv = (c_inv + c_inv.T) / 2.0
    # a term fully explained by X1 leaves only rounding noise in c_inv
    floor = PINV_RCOND * max(1.0, float(np.max(np.abs(np.diag(X2.T @ X2)))))
    C, rank = pinv_with_rank(c_inv, atol=floor)
    if rank == 0:
        return _empty(design)

    L = np.zeros((cols2.size, design.p), dtype=np.float64)
    L[:, cols2] = C @ c_inv
    if idx3.size:
        L[:, idx3] = C @ (R2.T @ wx[:, idx3])
    return row_basis(L)


# =====================================================================
# Type III
# =====================================================================


def term_contrast_weights(
    design: GLMDesign,
    term: Term,
    *,
    all_pairs: bool = False,
) -> list[dict[Cell, float]]:
    """Cell weightings tested for a term; the absorbing term tests each level mean."""
    if term.name == design.absorbing_term:
        (factor,) = term.factors
        return [{(lvl,): 1.0} for lvl in design.factor_levels[factor]]
    return reference_contrast_weights(design, term.factors, all_pairs=all_pairs)


def type3_rows(design: GLMDesign, term: Term) -> list[NDArray[np.floating[Any]]]:
    """Type III rows before reduction to a basis, one per contrast."""
    covariates = frozenset(term.covariates)
    return [
        cell_weight_row(design, term.factors, weights, covariates=covariates)
        for weights in term_contrast_weights(design, term)
    ]


def type3_matrix(design: GLMDesign, term: str | Term) -> NDArray[np.floating[Any]]:
    """
    Row basis of the estimable part of the term's Type III contrasts.

    A contrast that averages over an empty cell is not estimable. Only
    the combinations of contrasts in which the empty cells cancel are
    kept, so the result is fixed by the model and not by the generalized
    inverse the sweep happens to produce.
    """
    term = design.term(term)
    rows = type3_rows(design, term)
    if not rows:
        return _empty(design)
    return row_basis(estimable_span(np.vstack(rows), design.weighted_x()))


def type3_contrast_count(design: GLMDesign, term: str | Term) -> int:
    """Number of independent Type III contrasts before the estimability restriction."""
    rows = type3_rows(design, design.term(term))
    return row_basis(np.vstack(rows)).shape[0] if rows else 0


# =====================================================================
# Type IV
# =====================================================================


def type4_cell_factors(design: GLMDesign, term: Term) -> tuple[str, ...]:
    """
    Factors whose cells Type IV averages over: the term's own factors
    followed by those of every factor-only term containing it.
    """
    factors = list(term.factors)
    for other in design.terms:
        if other.covariates or not other.contains(term):
            continue
        for f in other.factors:
            if f not in factors:
                factors.append(f)
    return tuple(factors)


def type4_matrix(design: GLMDesign, term: str | Term) -> NDArray[np.floating[Any]]:
    term = design.term(term)
    if term.covariates:
        return type3_matrix(design, term)

    span = type4_cell_factors(design, term)
    k = len(term.factors)
    observed = design.observed_cells(span)

    # observed cells of the span grouped by their levels on the term's factors
    extensions: dict[Cell, list[Cell]] = {}
    for cell in observed:
        extensions.setdefault(cell[:k], []).append(cell)

    rows: list[NDArray] = []
    for weights in term_contrast_weights(design, term, all_pairs=True):
        span_weights: dict[Cell, float] = {}
        testable = True
        for cell, weight in weights.items():
            cells = extensions.get(cell, [])
            if not cells:
                testable = False
                break
            for full in cells:
                span_weights[full] = span_weights.get(full, 0.0) + weight / len(cells)
        if testable:
            rows.append(cell_weight_row(design, span, span_weights))

    if not rows:
        return _empty(design)
    return row_basis(np.vstack(rows))
