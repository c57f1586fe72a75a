"""
Linear algebra kernels for glmstats.

All functions follow these conventions:
    - NumPy/SciPy (LAPACK under the hood), float64 throughout
    - Inputs are never modified
    - Operations with bookkeeping return a structured result dataclass

Submodules:
    sweep: The SWEEP operator with pivot-skip for rank deficiency
    basis: Row bases, numerical rank, pseudo-inverse
    qr: QR decomposition and full-rank least squares
"""

from glmstats.core.compute.linalg.sweep import SweepResult, sweep
from glmstats.core.compute.linalg.basis import (
    estimable_span,
    independent_rows,
    numerical_rank,
    pinv_with_rank,
    row_basis,
)
from glmstats.core.compute.linalg.qr import QRResult, qr_decompose, qr_solve

__all__ = [
    # SWEEP
    "SweepResult",
    "sweep",
    # Bases and generalized inverses
    "estimable_span",
    "independent_rows",
    "numerical_rank",
    "pinv_with_rank",
    "row_basis",
    # QR
    "QRResult",
    "qr_decompose",
    "qr_solve",
]
