"""
Argument validators.

Column data goes through listwise deletion in GLMDesign.from_data and is
never rejected for a missing value. Everything else a caller hands in
(hypothesis matrices, alpha, column shapes) is checked here and rejected
with the offending name and value in the message.
"""

from typing import Any

import numpy as np
from numpy.typing import ArrayLike, NDArray

from glmstats.core.exceptions import DimensionError, ValidationError


def check_array(array: ArrayLike, name: str) -> NDArray[np.floating[Any]]:
    """
    Convert a numeric array-like to float64.

    Raises:
        ValidationError: On ragged, mixed or non-numeric input
    """
    try:
        result = np.asarray(array)
    except (ValueError, TypeError) as e:
        raise ValidationError(f"{name}: cannot convert to array: {e}") from e

    if result.dtype == object:
        raise ValidationError(
            f"{name}: converted to object dtype, indicating mixed types or non-numeric data"
        )
    if not np.issubdtype(result.dtype, np.number) and result.dtype != np.bool_:
        raise ValidationError(f"{name}: non-numeric dtype {result.dtype}")
    return result.astype(np.float64)


def check_finite(array: NDArray[np.floating[Any]], name: str) -> None:
    """Raises ValidationError if the array holds NaN or Inf."""
    if not np.all(np.isfinite(array)):
        n_nan = int(np.sum(np.isnan(array)))
        n_inf = int(np.sum(np.isinf(array)))
        raise ValidationError(
            f"{name}: contains non-finite values ({n_nan} NaN, {n_inf} Inf)"
        )


def check_ndim(array: NDArray[Any], ndim: int, name: str) -> None:
    if array.ndim != ndim:
        raise DimensionError(
            f"{name}: expected {ndim}D array, got {array.ndim}D with shape {array.shape}"
        )


def check_1d(array: NDArray[Any], name: str) -> None:
    check_ndim(array, 1, name)


def check_2d(array: NDArray[Any], name: str) -> None:
    check_ndim(array, 2, name)


def check_consistent_length(*arrays: NDArray[Any], names: tuple[str, ...]) -> None:
    """
    All columns of a data set must have the same number of records.

    Raises:
        ValueError: If names and arrays do not pair up
        DimensionError: On differing lengths, listing every length
    """
    if len(arrays) != len(names):
        raise ValueError(
            f"Number of arrays ({len(arrays)}) must match number of names ({len(names)})"
        )
    lengths = [arr.shape[0] for arr in arrays]
    if len(set(lengths)) > 1:
        details = ", ".join(f"{name}={length}" for name, length in zip(names, lengths))
        raise DimensionError(f"Inconsistent lengths: {details}")


def check_probability(value: float, name: str) -> None:
    """Raises ValidationError unless value is a number strictly inside (0, 1)."""
    if isinstance(value, bool) or not isinstance(value, (int, float, np.floating)):
        raise ValidationError(f"{name}: must be in (0, 1), got {value!r}")
    if not 0.0 < value < 1.0:
        raise ValidationError(f"{name}: must be in (0, 1), got {value!r}")
