"""
Contrasts on the levels of one factor.

A contrast specification names a factor, a method and (for methods that
use one) a reference level:

    "A (Simple)"
    "A (Deviation, Ref: First)"
    ("A", "helmert", "last")

Each method yields a coefficient matrix over the factor's levels; every row
is mapped onto the model parameters by equal-weighted averaging over the
other factors, then estimated and jointly tested.
"""

import re
from typing import Any

import numpy as np
from numpy.typing import NDArray

from glmstats.core.compute.linalg import row_basis
from glmstats.core.exceptions import UnknownTermError, ValidationError
from glmstats.glm._common import ContrastEstimate, ContrastParams
from glmstats.glm._emmeans import cell_weight_row
from glmstats.glm._evaluator import (
    ErrorTerm,
    contrast_table,
    estimability,
    estimate_rows,
    test_hypothesis,
)
from glmstats.glm._fit import SweptResult
from glmstats.glm.design import GLMDesign

VALID_METHODS = (
    'deviation', 'simple', 'difference', 'helmert', 'repeated', 'polynomial', 'none',
)
VALID_REFERENCES = ('first', 'last')

_SPEC_RE = re.compile(
    r'^\s*(?P<factor>[^()]+?)\s*'
    r'\(\s*(?P<method>[a-z]+)\s*'
    r'(?:,\s*ref(?:erence)?\s*:?\s*(?P<ref>[a-z]+)\s*)?'
    r'\)\s*$',
    re.IGNORECASE,
)

_ORDER_NAMES = ('Linear', 'Quadratic', 'Cubic')


def parse_contrast(specification: Any) -> tuple[str, str, str]:
    """
    Parse a contrast specification into (factor, method, reference).

    Method and reference are returned in lower case. The reference
    defaults to 'last'.

    Raises:
        ValidationError: On malformed input or an unknown method/reference
    """
    if isinstance(specification, (tuple, list)):
        if len(specification) == 2:
            factor, method = specification
            reference = 'last'
        elif len(specification) == 3:
            factor, method, reference = specification
        else:
            raise ValidationError(
                f"contrast tuple must be (factor, method) or (factor, method, reference), "
                f"got {specification!r}"
            )
    elif isinstance(specification, str):
        match = _SPEC_RE.match(specification)
        if match is None:
            raise ValidationError(
                f"cannot parse contrast specification {specification!r}; "
                f"expected 'Factor (Method)' or 'Factor (Method, Ref: First|Last)'"
            )
        factor = match.group('factor')
        method = match.group('method')
        reference = match.group('ref') or 'last'
    else:
        raise ValidationError(
            f"contrast specification must be a string or tuple, got {type(specification).__name__}"
        )

    method = str(method).strip().lower()
    reference = str(reference).strip().lower()
    if method not in VALID_METHODS:
        raise ValidationError(
            f"unknown contrast method {method!r}; valid methods: {VALID_METHODS}"
        )
    if reference not in VALID_REFERENCES:
        raise ValidationError(
            f"contrast reference must be 'first' or 'last', got {reference!r}"
        )
    return str(factor).strip(), method, reference


# =====================================================================
# Coefficient matrices
# =====================================================================


def contrast_coefficients(
    method: str,
    levels: tuple[str, ...],
    reference: str = 'last',
) -> tuple[NDArray[np.floating[Any]], list[str]]:
    """
    Coefficient matrix (rows, k) and row labels for a contrast method.

    Every row sums to zero.
    """
    k = len(levels)
    ref = 0 if reference == 'first' else k - 1
    eye = np.eye(k)
    rows: list[NDArray] = []
    labels: list[str] = []

    if k < 2 or method == 'none':
        return np.zeros((0, k)), labels

    if method == 'deviation':
        for i in range(k):
            if i == ref:
                continue
            rows.append(eye[i] - 1.0 / k)
            labels.append(f"Level {levels[i]} vs. Mean")

    elif method == 'simple':
        for i in range(k):
            if i == ref:
                continue
            rows.append(eye[i] - eye[ref])
            labels.append(f"Level {levels[i]} vs. Level {levels[ref]}")

    elif method == 'difference':
        for i in range(1, k):
            rows.append(eye[i] - eye[:i].mean(axis=0))
            labels.append(f"Level {levels[i]} vs. Previous")

    elif method == 'helmert':
        for i in range(k - 1):
            rows.append(eye[i] - eye[i + 1:].mean(axis=0))
            labels.append(f"Level {levels[i]} vs. Later")

    elif method == 'repeated':
        for i in range(k - 1):
            rows.append(eye[i] - eye[i + 1])
            labels.append(f"Level {levels[i]} vs. Level {levels[i + 1]}")

    elif method == 'polynomial':
        poly = polynomial_contrasts(k)
        for degree in range(1, k):
            rows.append(poly[degree - 1])
            labels.append(
                _ORDER_NAMES[degree - 1] if degree <= 3 else f"Order {degree}"
            )

    return np.vstack(rows), labels


def polynomial_contrasts(k: int) -> NDArray[np.floating[Any]]:
    """
    Orthonormal polynomial contrasts for k equally spaced levels.

    Row d-1 holds the degree-d polynomial; each row has unit length, is
    orthogonal to the constant, and ends with a positive entry.
    """
    x = np.arange(1, k + 1, dtype=np.float64)
    x -= x.mean()
    V = np.vander(x, k, increasing=True)
    Q, _ = np.linalg.qr(V)
    P = Q[:, 1:].T.copy()
    for row in P:
        if row[-1] < 0:
            row *= -1.0
    return P


# =====================================================================
# Estimation
# =====================================================================


def compute_contrast(
    design: GLMDesign,
    fit: SweptResult,
    error: ErrorTerm,
    specification: Any,
    *,
    alpha: float = 0.05,
) -> ContrastParams:
    factor, method, reference = parse_contrast(specification)
    if factor not in design.factors:
        raise UnknownTermError(
            f"contrast factor {factor!r} is not a factor of the model. "
            f"Factors: {list(design.factors)}",
            term=factor,
            available=design.factors,
        )

    levels = design.factor_levels[factor]
    coefficients, labels = contrast_coefficients(method, levels, reference)

    L = np.vstack([
        cell_weight_row(
            design, (factor,),
            {(lvl,): float(c) for lvl, c in zip(levels, row)},
        )
        for row in coefficients
    ]) if coefficients.shape[0] else np.zeros((0, design.p))

    ok = estimability(L, fit, design.xtwx()) if L.shape[0] else np.zeros(0, dtype=bool)
    rows = estimate_rows(L, fit, error, alpha=alpha, estimable=ok)
    estimates = tuple(
        ContrastEstimate(
            label=label,
            estimate=r.estimate,
            hypothesized=0.0,
            difference=r.estimate,
            std_error=r.std_error,
            significance=r.significance,
            ci_lower=r.ci_lower,
            ci_upper=r.ci_upper,
        )
        for label, r in zip(labels, rows)
    )

    H = row_basis(L[ok]) if L.shape[0] else L
    test = test_hypothesis(H, fit, error, source='Contrast', alpha=alpha)

    display = specification if isinstance(specification, str) else (
        f"{factor} ({method.capitalize()}, Ref: {reference.capitalize()})"
    )
    return ContrastParams(
        specification=display,
        factor=factor,
        method=method,
        reference=reference,
        levels=levels,
        coefficients=coefficients,
        estimates=estimates,
        test=contrast_table(test, error),
        alpha=alpha,
    )
