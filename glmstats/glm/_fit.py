"""
Model fitting by SWEEP.

Builds the augmented cross-product matrix

    M = [ X'WX   X'Wy ]
        [ y'WX   y'Wy ]

and sweeps it on every parameter column in order. Afterwards

    β  = M[:p, p]          (aliased parameters: 0)
    G⁻ = −M[:p, :p]        (aliased rows and columns: 0)
    RSS = M[p, p]

G⁻ is a symmetric generalized inverse of X'WX (a g2-inverse), so every
estimable Lβ and its variance L G⁻ L' is invariant to the choice of G⁻.
"""

from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from glmstats.core.compute.linalg import sweep
from glmstats.core.exceptions import DimensionError
from glmstats.glm.design import GLMDesign


@dataclass(frozen=True)
class SweptResult:
    """
    Solution of the normal equations.

    Attributes:
        beta: (p,) coefficient vector, zero for aliased parameters
        g_inverse: (p, p) generalized inverse of X'WX
        rss: Weighted residual sum of squares
        aliased: (p,) True where the pivot was skipped
        rank: Number of non-aliased parameters
    """
    beta: NDArray[np.floating[Any]]
    g_inverse: NDArray[np.floating[Any]]
    rss: float
    aliased: NDArray[np.bool_]
    rank: int


def cross_product_matrix(design: GLMDesign) -> NDArray[np.floating[Any]]:
    """The (p+1) × (p+1) augmented matrix [X y]' W [X y]."""
    if design.p == 0:
        raise DimensionError("cannot form cross-products of an empty design")
    Z = np.column_stack([design.X, design.y])
    if design.w is not None:
        WZ = Z * design.w[:, None]
    else:
        WZ = Z
    M = Z.T @ WZ
    return (M + M.T) / 2.0


def sweep_fit(design: GLMDesign) -> SweptResult:
    """Fit the model by sweeping the augmented cross-product matrix."""
    p = design.p
    M = cross_product_matrix(design)
    result = sweep(M, range(p))

    aliased = ~result.swept[:p]
    swept = result.matrix

    beta = swept[:p, p].copy()
    g_inverse = -swept[:p, :p]
    g_inverse = (g_inverse + g_inverse.T) / 2.0

    beta[aliased] = 0.0
    g_inverse[aliased, :] = 0.0
    g_inverse[:, aliased] = 0.0

    # swept y'Wy is the residual sum of squares; clip float noise
    rss = max(float(swept[p, p]), 0.0)

    return SweptResult(
        beta=beta,
        g_inverse=g_inverse,
        rss=rss,
        aliased=aliased,
        rank=int(np.sum(~aliased)),
    )


def fitted_values(design: GLMDesign, fit: SweptResult) -> NDArray[np.floating[Any]]:
    return design.X @ fit.beta


def residuals(design: GLMDesign, fit: SweptResult) -> NDArray[np.floating[Any]]:
    return design.y - design.X @ fit.beta
