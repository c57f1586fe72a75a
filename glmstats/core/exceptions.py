"""
Exceptions raised by glmstats.

Bad input raises a ValidationError subclass before any arithmetic runs.
Statistical degeneracy (aliased columns, a hypothesis with no estimable
row, zero error df) is never raised: it shows up as NaN or zero fields on
the result together with a warning. NumericalError is reserved for solves
that need a regular inverse, which the SWEEP path never does.
"""


class GLMStatsError(Exception):
    """Base exception for all glmstats errors."""
    pass


class ValidationError(GLMStatsError):
    """
    Input validation failed.

    Raised when user-provided inputs fail validation checks.
    """
    pass


class DimensionError(ValidationError):
    """
    Array dimensions are incorrect or inconsistent.

    Raised when array shapes don't match expected dimensions or
    when multiple arrays have inconsistent shapes.
    """
    pass


class NoValidDataError(ValidationError):
    """
    A variable has no usable observations.

    Raised when listwise deletion leaves nothing to analyze, or when a
    named variable is absent from the data.

    Attributes:
        variable: Name of the variable that has no valid data
    """

    def __init__(self, message: str, variable: str | None = None):
        super().__init__(message)
        self.variable = variable


class UnknownTermError(ValidationError):
    """
    A model term or effect name is not part of the model.

    Attributes:
        term: The name that was requested
        available: The names that would have been accepted
    """

    def __init__(
        self,
        message: str,
        term: str | None = None,
        available: tuple[str, ...] = (),
    ):
        super().__init__(message)
        self.term = term
        self.available = tuple(available)


class NumericalError(GLMStatsError):
    """
    Numerical computation failed.

    Base class for errors arising from numerical issues during computation.
    """
    pass


class SingularMatrixError(NumericalError):
    """
    Matrix is singular or nearly singular.

    Raised only where a regular inverse is mandatory (e.g. an auxiliary
    least-squares fit). The GLM core itself uses generalized inverses and
    never raises this for rank-deficient designs.

    Attributes:
        matrix_name: Name/description of the problematic matrix
        condition_number: Estimated condition number, if available
        rank: Numerical rank, if computed
        expected_rank: Expected rank (typically min(n, p))
    """

    def __init__(
        self,
        message: str,
        matrix_name: str | None = None,
        condition_number: float | None = None,
        rank: int | None = None,
        expected_rank: int | None = None
    ):
        super().__init__(message)
        self.matrix_name = matrix_name
        self.condition_number = condition_number
        self.rank = rank
        self.expected_rank = expected_rank
