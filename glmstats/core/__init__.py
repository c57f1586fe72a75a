"""
Core infrastructure for glmstats.

This module provides shared abstractions and utilities used by the
domain subpackage (glm).

Key components:
    result: Generic Result[P] envelope
    exceptions: Exception hierarchy
    validation: Input validators
    compute: Timing, tolerances, linear algebra kernels
"""

from glmstats.core.result import Result
from glmstats.core.exceptions import (
    GLMStatsError,
    ValidationError,
    DimensionError,
    NoValidDataError,
    UnknownTermError,
    NumericalError,
    SingularMatrixError,
)

__all__ = [
    # Result
    "Result",
    # Exceptions
    "GLMStatsError",
    "ValidationError",
    "DimensionError",
    "NoValidDataError",
    "UnknownTermError",
    "NumericalError",
    "SingularMatrixError",
]
