"""
Tests for input validation utilities.

Validates every function in core/validation.py:
    - check_array: conversion, dtype coercion, object rejection
    - check_finite: NaN/Inf detection
    - check_ndim / check_1d / check_2d: dimensionality checks
    - check_consistent_length: multi-array length matching
    - check_probability: open unit interval
"""

import numpy as np
import pytest

from glmstats.core.exceptions import DimensionError, ValidationError
from glmstats.core.validation import (
    check_1d,
    check_2d,
    check_array,
    check_consistent_length,
    check_finite,
    check_ndim,
    check_probability,
)


# ═══════════════════════════════════════════════════════════════════════
# check_array
# ═══════════════════════════════════════════════════════════════════════


class TestCheckArray:
    """check_array converts to ndarray and rejects non-numeric data."""

    def test_list_to_float_array(self):
        result = check_array([1, 2, 3], "y")
        assert result.dtype == np.float64
        np.testing.assert_array_equal(result, [1.0, 2.0, 3.0])

    def test_float_array_passthrough(self):
        arr = np.array([1.5, 2.5])
        assert check_array(arr, "y").dtype == np.float64

    def test_strings_rejected(self):
        with pytest.raises(ValidationError, match="non-numeric"):
            check_array(np.array(["a", "b"]), "y")

    def test_mixed_types_rejected(self):
        with pytest.raises(ValidationError, match="object dtype"):
            check_array(np.array([1, "a", None], dtype=object), "y")


# ═══════════════════════════════════════════════════════════════════════
# check_finite
# ═══════════════════════════════════════════════════════════════════════


class TestCheckFinite:
    """check_finite reports NaN and Inf counts."""

    def test_finite_passes(self):
        check_finite(np.array([1.0, 2.0]), "y")

    def test_nan_and_inf_counted(self):
        with pytest.raises(ValidationError, match=r"1 NaN, 1 Inf"):
            check_finite(np.array([1.0, np.nan, np.inf]), "y")


# ═══════════════════════════════════════════════════════════════════════
# Dimensionality
# ═══════════════════════════════════════════════════════════════════════


class TestDimensionChecks:
    """check_ndim and its 1D/2D shortcuts raise DimensionError."""

    def test_1d_ok(self):
        check_1d(np.zeros(3), "y")

    def test_1d_rejects_2d(self):
        with pytest.raises(DimensionError, match="expected 1D"):
            check_1d(np.zeros((3, 1)), "y")

    def test_2d_rejects_1d(self):
        with pytest.raises(DimensionError, match="expected 2D"):
            check_2d(np.zeros(3), "X")

    def test_ndim_message_has_shape(self):
        with pytest.raises(DimensionError, match=r"\(2, 2, 2\)"):
            check_ndim(np.zeros((2, 2, 2)), 2, "X")


class TestCheckConsistentLength:
    """check_consistent_length compares first dimensions."""

    def test_equal_lengths_pass(self):
        check_consistent_length(np.zeros(4), np.zeros(4), names=("y", "A"))

    def test_unequal_lengths_raise(self):
        with pytest.raises(DimensionError, match="y=4, A=3"):
            check_consistent_length(np.zeros(4), np.zeros(3), names=("y", "A"))

    def test_name_count_mismatch(self):
        with pytest.raises(ValueError, match="Number of arrays"):
            check_consistent_length(np.zeros(4), np.zeros(4), names=("y",))


class TestCheckProbability:
    """check_probability accepts values strictly between 0 and 1."""

    @pytest.mark.parametrize("value", [0.01, 0.05, 0.5, 0.999])
    def test_valid(self, value):
        check_probability(value, "alpha")

    @pytest.mark.parametrize("value", [0.0, 1.0, -0.1, 1.5, "0.05", None])
    def test_invalid(self, value):
        with pytest.raises(ValidationError, match="alpha"):
            check_probability(value, "alpha")
