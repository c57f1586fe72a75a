"""
Tests for the glmstats exception hierarchy.

Validates:
    - Inheritance chain (all exceptions catchable via GLMStatsError)
    - Input errors are ValidationErrors, degeneracy errors NumericalErrors
    - Diagnostic attributes on NoValidDataError, UnknownTermError and
      SingularMatrixError
"""

import pytest

from glmstats.core.exceptions import (
    DimensionError,
    GLMStatsError,
    NoValidDataError,
    NumericalError,
    SingularMatrixError,
    UnknownTermError,
    ValidationError,
)


# ═══════════════════════════════════════════════════════════════════════
# Inheritance hierarchy
# ═══════════════════════════════════════════════════════════════════════


class TestInheritance:
    """Every exception is catchable via GLMStatsError."""

    def test_validation_error_is_glmstats_error(self):
        with pytest.raises(GLMStatsError):
            raise ValidationError("bad input")

    def test_dimension_error_is_validation_error(self):
        with pytest.raises(ValidationError):
            raise DimensionError("wrong shape")

    def test_no_valid_data_is_validation_error(self):
        with pytest.raises(ValidationError):
            raise NoValidDataError("nothing left", variable="y")

    def test_unknown_term_is_validation_error(self):
        with pytest.raises(ValidationError):
            raise UnknownTermError("no such term", term="C")

    def test_singular_matrix_error_is_numerical_error(self):
        with pytest.raises(NumericalError):
            raise SingularMatrixError("singular")

    def test_numerical_error_is_not_validation_error(self):
        err = NumericalError("overflow")
        assert not isinstance(err, ValidationError)
        assert isinstance(err, GLMStatsError)


# ═══════════════════════════════════════════════════════════════════════
# Diagnostic attributes
# ═══════════════════════════════════════════════════════════════════════


class TestNoValidDataError:
    """NoValidDataError names the variable."""

    def test_variable_attribute(self):
        err = NoValidDataError("no valid data for 'y'", variable="y")
        assert err.variable == "y"
        assert "no valid data" in str(err)

    def test_variable_defaults_to_none(self):
        assert NoValidDataError("empty").variable is None


class TestUnknownTermError:
    """UnknownTermError carries the requested name and the alternatives."""

    def test_attributes(self):
        err = UnknownTermError(
            "Unknown term 'C'", term="C", available=["Intercept", "A", "B"],
        )
        assert err.term == "C"
        assert err.available == ("Intercept", "A", "B")

    def test_defaults(self):
        err = UnknownTermError("Unknown term")
        assert err.term is None
        assert err.available == ()


class TestSingularMatrixError:
    """SingularMatrixError carries matrix diagnostic attributes."""

    def test_all_attributes(self):
        err = SingularMatrixError(
            "X is rank-deficient",
            matrix_name="X",
            condition_number=1e18,
            rank=3,
            expected_rank=5,
        )
        assert str(err) == "X is rank-deficient"
        assert err.matrix_name == "X"
        assert err.condition_number == 1e18
        assert err.rank == 3
        assert err.expected_rank == 5

    def test_defaults_are_none(self):
        err = SingularMatrixError("singular")
        assert err.matrix_name is None
        assert err.condition_number is None
        assert err.rank is None
        assert err.expected_rank is None

    def test_catchable_with_attributes(self):
        with pytest.raises(SingularMatrixError) as exc_info:
            raise SingularMatrixError("singular", matrix_name="Z", rank=2)
        assert exc_info.value.matrix_name == "Z"
        assert exc_info.value.rank == 2
