"""
GLM design object.

Turns column data plus a model specification into the numeric design
matrix X, the response y, the optional weights w, and the bookkeeping
every downstream computation relies on: the ordered model terms, the
column range of each term, one ParsedParameter per column and the factor
level of every retained record.

Created via GLMDesign.from_data(), not directly.
"""

from dataclasses import dataclass
from itertools import product
from numbers import Real
from typing import Any, Mapping, Sequence

import numpy as np
from numpy.typing import NDArray

from glmstats.core.compute.linalg import numerical_rank
from glmstats.core.exceptions import NoValidDataError, ValidationError
from glmstats.core.validation import check_1d, check_consistent_length
from glmstats.glm._terms import (
    INTERCEPT,
    ParameterComponent,
    ParsedParameter,
    Term,
    default_terms,
    find_term,
    intercept_term,
    parse_term,
)

VALID_CODINGS = ('reference', 'indicator')


@dataclass(frozen=True)
class GLMDesign:
    """
    Validated design matrix and model bookkeeping.

    Attributes:
        X: (n, p) float64 design matrix
        y: (n,) response
        w: (n,) strictly positive weights, or None for OLS
        dependent: Name of the dependent variable
        terms: Model terms in model order (Type I uses this order)
        term_slices: term name -> contiguous column slice of X
        parameters: One ParsedParameter per column of X
        factors: Factor names in declaration order
        covariates: Covariate names in declaration order
        factor_levels: factor -> sorted levels (as strings)
        factor_values: factor -> (n,) level of each retained record
        covariate_values: covariate -> (n,) value of each retained record
        case_indices: Positions of the retained records in the input data
        n_records: Number of records before listwise deletion
        coding: 'reference' (last level dropped) or 'indicator' (all levels)
        rank: Numerical rank of X
    """
    X: NDArray[np.floating[Any]]
    y: NDArray[np.floating[Any]]
    w: NDArray[np.floating[Any]] | None
    dependent: str
    terms: tuple[Term, ...]
    term_slices: dict[str, slice]
    parameters: tuple[ParsedParameter, ...]
    factors: tuple[str, ...]
    covariates: tuple[str, ...]
    factor_levels: dict[str, tuple[str, ...]]
    factor_values: dict[str, NDArray]
    covariate_values: dict[str, NDArray[np.floating[Any]]]
    case_indices: NDArray[np.intp]
    n_records: int
    coding: str
    rank: int

    # -----------------------------------------------------------------
    # Shape and lookup
    # -----------------------------------------------------------------

    @property
    def n(self) -> int:
        return self.X.shape[0]

    @property
    def p(self) -> int:
        return self.X.shape[1]

    @property
    def n_dropped(self) -> int:
        return self.n_records - self.n

    @property
    def term_names(self) -> tuple[str, ...]:
        return tuple(t.name for t in self.terms)

    @property
    def has_intercept(self) -> bool:
        return any(t.is_intercept for t in self.terms)

    @property
    def intercept_column(self) -> int | None:
        if INTERCEPT in self.term_slices and self.has_intercept:
            return self.term_slices[INTERCEPT].start
        return None

    @property
    def parameter_labels(self) -> tuple[str, ...]:
        return tuple(p.label for p in self.parameters)

    @property
    def design_string(self) -> str:
        """``Intercept + x + A + B + A * B``."""
        return ' + '.join(t.display_name for t in self.terms)

    @property
    def absorbing_term(self) -> str | None:
        """
        Without an intercept, the first factor main effect. It takes the
        intercept's place: it keeps every level under reference coding and
        its Type III hypothesis sets every level mean to zero.
        """
        return _absorbing_term(self.terms)

    def term(self, name: str | Term) -> Term:
        """Resolve a term name (or Term) against the model; raises UnknownTermError."""
        if isinstance(name, Term):
            name = name.name
        return find_term(self.terms, name)

    def columns(self, term: str | Term) -> NDArray[np.intp]:
        """Column indices of a term."""
        sl = self.term_slices[self.term(term).name]
        return np.arange(sl.start, sl.stop, dtype=np.intp)

    def n_levels(self, factor: str) -> int:
        return len(self.factor_levels[factor])

    # -----------------------------------------------------------------
    # Weighted quantities
    # -----------------------------------------------------------------

    @property
    def weights(self) -> NDArray[np.floating[Any]]:
        """Weights, with ones for an unweighted design."""
        if self.w is None:
            return np.ones(self.n, dtype=np.float64)
        return self.w

    def weighted_x(self) -> NDArray[np.floating[Any]]:
        """√W X."""
        if self.w is None:
            return self.X
        return self.X * np.sqrt(self.w)[:, None]

    def xtwx(self) -> NDArray[np.floating[Any]]:
        """X'WX."""
        wx = self.weighted_x()
        return wx.T @ wx

    def covariate_means(self) -> dict[str, float]:
        """Weighted sample mean of every covariate over the retained records."""
        return {
            name: float(np.average(values, weights=self.weights))
            for name, values in self.covariate_values.items()
        }

    def observed_cells(self, factors: Sequence[str]) -> set[tuple[str, ...]]:
        """Level combinations of ``factors`` that have at least one record."""
        if not factors:
            return {()} if self.n > 0 else set()
        columns = [self.factor_values[f] for f in factors]
        return set(zip(*columns))

    # -----------------------------------------------------------------
    # Factory
    # -----------------------------------------------------------------

    @staticmethod
    def from_data(
        data: Mapping[str, Any],
        dependent: str,
        *,
        factors: Sequence[str] = (),
        covariates: Sequence[str] = (),
        terms: Sequence[str] | None = None,
        weights: str | None = None,
        intercept: bool = True,
        coding: str = 'reference',
    ) -> 'GLMDesign':
        """
        Build the design for a univariate GLM.

        Records with a missing dependent, factor, covariate or weight value,
        a non-numeric covariate or weight, or a non-positive weight are
        dropped (listwise deletion).

        Args:
            data: Mapping of column name -> 1D array-like (a dict of arrays
                or a pandas DataFrame)
            dependent: Name of the response column
            factors: Names of categorical (fixed) factors
            covariates: Names of continuous covariates
            terms: Explicit model terms such as ["A", "B", "A*B", "x"], or
                None for the full factorial model
            weights: Name of a WLS weight column, or None
            intercept: Whether to include an intercept
            coding: 'reference' drops the last level of every factor;
                'indicator' keeps one column per level (overparameterized)

        Returns:
            GLMDesign

        Raises:
            NoValidDataError: If a named column is absent or nothing survives
            ValidationError: On a non-numeric dependent value, bad names or
                an invalid coding
            UnknownTermError: If a term uses an undeclared variable
        """
        if coding not in VALID_CODINGS:
            raise ValidationError(
                f"coding must be one of {VALID_CODINGS}, got {coding!r}"
            )

        factors = tuple(factors)
        covariates = tuple(covariates)
        _check_names(dependent, factors, covariates, weights)

        # Raw columns
        columns: dict[str, NDArray] = {}
        for name in (dependent,) + factors + covariates + ((weights,) if weights else ()):
            if name not in data:
                raise NoValidDataError(
                    f"no data for variable {name!r}", variable=name,
                )
            arr = np.asarray(data[name])
            check_1d(arr, name)
            columns[name] = arr

        names = tuple(columns)
        check_consistent_length(*columns.values(), names=names)
        n_records = columns[dependent].shape[0]

        # Listwise deletion
        y_all, y_missing, y_invalid = _read_numeric(columns[dependent])
        if np.any(y_invalid):
            first = int(np.flatnonzero(y_invalid)[0])
            raise ValidationError(
                f"{dependent}: non-numeric value {columns[dependent][first]!r} "
                f"at record {first}"
            )
        keep = ~y_missing

        cov_all: dict[str, NDArray] = {}
        for name in covariates:
            values, missing, invalid = _read_numeric(columns[name])
            cov_all[name] = values
            keep &= ~(missing | invalid)

        w_all = None
        if weights is not None:
            w_all, missing, invalid = _read_numeric(columns[weights])
            keep &= ~(missing | invalid)
            with np.errstate(invalid='ignore'):
                keep &= np.nan_to_num(w_all, nan=0.0) > 0.0

        fac_all: dict[str, NDArray] = {}
        for name in factors:
            labels, missing = _read_factor(columns[name])
            fac_all[name] = labels
            keep &= ~missing

        case_indices = np.flatnonzero(keep).astype(np.intp)
        if case_indices.size == 0:
            raise NoValidDataError(
                f"no valid data for dependent variable {dependent!r} "
                f"after listwise deletion of {n_records} records",
                variable=dependent,
            )

        y = y_all[case_indices].astype(np.float64)
        w = w_all[case_indices].astype(np.float64) if w_all is not None else None
        covariate_values = {name: cov_all[name][case_indices] for name in covariates}
        factor_values = {name: fac_all[name][case_indices] for name in factors}

        factor_levels: dict[str, tuple[str, ...]] = {}
        for name in factors:
            levels = _sort_levels(set(factor_values[name]))
            if not levels:
                raise ValidationError(f"{name}: factor has no levels")
            factor_levels[name] = levels

        # Model terms
        if terms is None:
            model_terms = default_terms(factors, covariates, intercept=intercept)
        else:
            model_terms = _explicit_terms(terms, factors, covariates, intercept)

        # Columns, in model order
        coded_levels = {
            name: levels if coding == 'indicator' else levels[:-1]
            for name, levels in factor_levels.items()
        }
        # without an intercept the first factor main effect keeps every level
        full_term = _absorbing_term(model_terms) if coding == 'reference' else None
        n = y.shape[0]
        x_columns: list[NDArray] = []
        parameters: list[ParsedParameter] = []
        term_slices: dict[str, slice] = {}
        offset = 0

        for term in model_terms:
            options = []
            for var in term.variables:
                if var in factor_levels:
                    levels = factor_levels[var] if term.name == full_term else coded_levels[var]
                    options.append([ParameterComponent(var, lvl) for lvl in levels])
                else:
                    options.append([ParameterComponent(var, None)])

            start = offset
            for combo in product(*options):
                col = np.ones(n, dtype=np.float64)
                for comp in combo:
                    if comp.is_factor:
                        col = col * (factor_values[comp.name] == comp.level)
                    else:
                        col = col * covariate_values[comp.name]
                x_columns.append(col)
                parameters.append(ParsedParameter(tuple(combo)))
                offset += 1
            term_slices[term.name] = slice(start, offset)

        if offset == 0:
            raise ValidationError(
                "model has no parameters: no intercept and no terms with columns"
            )

        X = np.column_stack(x_columns).astype(np.float64)
        wx = X * np.sqrt(w)[:, None] if w is not None else X

        return GLMDesign(
            X=X,
            y=y,
            w=w,
            dependent=dependent,
            terms=model_terms,
            term_slices=term_slices,
            parameters=tuple(parameters),
            factors=factors,
            covariates=covariates,
            factor_levels=factor_levels,
            factor_values=factor_values,
            covariate_values=covariate_values,
            case_indices=case_indices,
            n_records=n_records,
            coding=coding,
            rank=numerical_rank(wx),
        )


# =====================================================================
# Record access helpers
# =====================================================================


def get_factor_levels(data: Mapping[str, Any], factor: str) -> tuple[str, ...]:
    """Sorted unique non-missing levels of a column, as strings."""
    if factor not in data:
        raise NoValidDataError(f"no data for variable {factor!r}", variable=factor)
    labels, missing = _read_factor(np.asarray(data[factor]))
    return _sort_levels(set(labels[~missing]))


def _check_names(
    dependent: str,
    factors: tuple[str, ...],
    covariates: tuple[str, ...],
    weights: str | None,
) -> None:
    all_names = (dependent,) + factors + covariates + ((weights,) if weights else ())
    for name in all_names:
        if not isinstance(name, str) or not name:
            raise ValidationError(f"variable names must be non-empty strings, got {name!r}")
        if '*' in name or name == INTERCEPT:
            raise ValidationError(f"{name!r} is not a valid variable name")
    if len(set(all_names)) != len(all_names):
        raise ValidationError(
            f"each variable may play only one role; got dependent={dependent!r}, "
            f"factors={list(factors)}, covariates={list(covariates)}, weights={weights!r}"
        )


def _explicit_terms(
    specs: Sequence[str],
    factors: tuple[str, ...],
    covariates: tuple[str, ...],
    intercept: bool,
) -> tuple[Term, ...]:
    if isinstance(specs, str):
        raise ValidationError("terms must be a sequence of term strings, not a single string")
    parsed = [parse_term(spec, factors, covariates) for spec in specs]
    parsed = [t for t in parsed if not t.is_intercept]

    seen: set[frozenset[str]] = set()
    for term in parsed:
        if term.variable_set in seen:
            raise ValidationError(f"terms: duplicate term {term.name!r}")
        seen.add(term.variable_set)

    head = (intercept_term(),) if intercept else ()
    return head + tuple(parsed)


def _absorbing_term(terms: Sequence[Term]) -> str | None:
    if any(t.is_intercept for t in terms):
        return None
    return next(
        (t.name for t in terms if len(t.factors) == 1 and not t.covariates),
        None,
    )


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ''
    try:
        return bool(value != value)
    except (TypeError, ValueError):
        # pandas.NA and friends refuse boolean conversion
        return True


def _as_float(value: Any) -> float | None:
    if isinstance(value, Real):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _read_numeric(values: NDArray) -> tuple[NDArray, NDArray, NDArray]:
    """
    Convert a column to float.

    Returns:
        (values, missing, invalid): float array with NaN where unusable,
        mask of missing entries, mask of present but non-numeric entries
    """
    n = values.shape[0]
    if values.dtype.kind in 'biuf':
        out = values.astype(np.float64)
        return out, ~np.isfinite(out), np.zeros(n, dtype=bool)

    out = np.full(n, np.nan, dtype=np.float64)
    missing = np.zeros(n, dtype=bool)
    invalid = np.zeros(n, dtype=bool)
    for i, value in enumerate(values):
        if _is_missing(value):
            missing[i] = True
            continue
        x = _as_float(value)
        if x is None:
            invalid[i] = True
        elif not np.isfinite(x):
            missing[i] = True
        else:
            out[i] = x
    return out, missing, invalid


def _level_label(value: Any) -> str:
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return str(int(value))
    if isinstance(value, str):
        return value.strip()
    return str(value)


def _read_factor(values: NDArray) -> tuple[NDArray, NDArray]:
    """Level label (str) of every entry plus the missing mask."""
    n = values.shape[0]
    labels = np.empty(n, dtype=object)
    missing = np.zeros(n, dtype=bool)
    for i, value in enumerate(values):
        if _is_missing(value):
            missing[i] = True
            labels[i] = ''
        else:
            labels[i] = _level_label(value)
    return labels, missing


def _sort_levels(levels: set[str]) -> tuple[str, ...]:
    """Numeric order when every level parses as a number, string order otherwise."""
    try:
        return tuple(sorted(levels, key=float))
    except ValueError:
        return tuple(sorted(levels))
