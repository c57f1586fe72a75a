"""
Estimated marginal means.

Everything that maps a weighting of factor-level cells onto the model
parameters lives here: the EMM vectors of glm_emmeans, the equal-weighted
cell contrasts of the Type III builder and the observed-cell rows of the
Type IV builder all go through cell_weight_row().

For a set of factors F and weights w over the level combinations (cells)
of F, the coefficient of a parameter with factor components S_p is

    Σ { w_c : c agrees with the parameter on S_p ∩ F }  /  Π_{f ∈ S_p \\ F} levels(f)

i.e. factors outside F are averaged with equal weight 1/levels. A
parameter with covariate components is either multiplied by the
covariate means (EMMs) or restricted to a given covariate set (tests).
"""

from itertools import combinations, permutations, product
from typing import Any, Mapping, Sequence

import numpy as np
from numpy.typing import NDArray

from glmstats.core.compute.linalg import row_basis
from glmstats.core.exceptions import UnknownTermError, ValidationError
from glmstats.glm._adjust import adjust_alpha, adjust_p
from glmstats.glm._common import (
    EMMean,
    EMMeansParams,
    PairwiseComparison,
    UnivariateTest,
)
from glmstats.glm._evaluator import (
    ErrorTerm,
    contrast_table,
    estimability,
    estimate_rows,
    test_hypothesis,
)
from glmstats.glm._fit import SweptResult
from glmstats.glm.design import GLMDesign

OVERALL = '(OVERALL)'

Cell = tuple[str, ...]


# =====================================================================
# Cell weights -> L rows
# =====================================================================


def cell_weight_row(
    design: GLMDesign,
    factors: Sequence[str],
    cell_weights: Mapping[Cell, float],
    *,
    covariates: frozenset[str] = frozenset(),
    covariate_means: Mapping[str, float] | None = None,
) -> NDArray[np.floating[Any]]:
    """
    Map weights over the cells of ``factors`` onto a (p,) coefficient row.

    Args:
        design: The model design
        factors: Factors the cells are defined over (cell tuples follow
            this order)
        cell_weights: cell -> weight
        covariates: With covariate_means None, only parameters whose
            covariate set equals this set receive weight
        covariate_means: If given, every parameter receives weight and
            covariate components are replaced by these values
    """
    factors = tuple(factors)
    position = {f: i for i, f in enumerate(factors)}
    row = np.zeros(design.p, dtype=np.float64)

    for j, param in enumerate(design.parameters):
        if covariate_means is None:
            if param.covariates != covariates:
                continue
            scale = 1.0
        else:
            scale = 1.0
            for name in param.covariates:
                scale *= covariate_means[name]

        levels = param.factor_levels
        shared = [(position[f], lvl) for f, lvl in levels.items() if f in position]
        total = 0.0
        for cell, weight in cell_weights.items():
            if all(cell[i] == lvl for i, lvl in shared):
                total += weight
        if total == 0.0:
            continue

        for f in levels:
            if f not in position:
                scale /= design.n_levels(f)
        row[j] = total * scale

    return row


def cells_of(design: GLMDesign, factors: Sequence[str]) -> list[Cell]:
    """All level combinations of ``factors``, first factor slowest."""
    return [tuple(c) for c in product(*(design.factor_levels[f] for f in factors))]


def reference_contrast_weights(
    design: GLMDesign,
    factors: Sequence[str],
    *,
    all_pairs: bool = False,
) -> list[dict[Cell, float]]:
    """
    Level-vs-last-level contrasts of ``factors`` as cell weightings.

    A single factor with k levels gives k-1 weightings (+1 at level i,
    -1 at the last level); an interaction takes the Cartesian product of
    its factors' contrasts. No factors gives the single weighting {(): 1}.

    With all_pairs, every other pair of levels is offered as well. The
    level-vs-last products come first, so a row basis taken in order
    keeps them whenever they are usable.
    """
    per_factor: list[list[tuple[bool, dict[str, float]]]] = []
    for f in factors:
        levels = design.factor_levels[f]
        last = levels[-1]
        options = [(False, {lvl: 1.0, last: -1.0}) for lvl in levels[:-1]]
        if all_pairs:
            options += [(True, {a: 1.0, b: -1.0}) for a, b in combinations(levels[:-1], 2)]
        per_factor.append(options)

    combos = sorted(
        product(*per_factor),
        key=lambda combo: any(extra for extra, _ in combo),
    )

    out: list[dict[Cell, float]] = []
    for combo in combos:
        weights: dict[Cell, float] = {}
        for cell in product(*(tuple(c.items()) for _, c in combo)):
            levels = tuple(lvl for lvl, _ in cell)
            weight = 1.0
            for _, w in cell:
                weight *= w
            weights[levels] = weight
        out.append(weights)
    return out


def emm_vector(
    design: GLMDesign,
    factors: Sequence[str],
    cell: Cell,
    covariate_means: Mapping[str, float],
) -> NDArray[np.floating[Any]]:
    """L vector of the estimated marginal mean of one cell."""
    return cell_weight_row(design, factors, {cell: 1.0}, covariate_means=covariate_means)


# =====================================================================
# Effect resolution
# =====================================================================


def resolve_effect(design: GLMDesign, effect: str) -> tuple[str, tuple[str, ...]]:
    """
    Resolve an EMM effect to (display name, factors).

    '(OVERALL)' gives no factors. A single factor need only be declared;
    a factor interaction must be a model term.
    """
    if not isinstance(effect, str):
        raise ValidationError(f"effect must be a string, got {type(effect).__name__}")
    name = effect.strip()
    if name.upper() == OVERALL:
        return OVERALL, ()

    parts = [part.strip() for part in name.split('*')]
    if len(parts) == 1 and parts[0] in design.factors:
        return parts[0], (parts[0],)

    for part in parts:
        if part in design.covariates:
            raise ValidationError(
                f"effect {effect!r}: marginal means are defined over factors only, "
                f"{part!r} is a covariate"
            )
        if part not in design.factors:
            raise UnknownTermError(
                f"effect {effect!r}: {part!r} is not a factor of the model. "
                f"Factors: {list(design.factors)}",
                term=effect,
                available=(OVERALL,) + design.factors,
            )

    term = design.term(name)
    return term.name, term.factors


# =====================================================================
# EMMeans
# =====================================================================


def compute_emmeans(
    design: GLMDesign,
    fit: SweptResult,
    error: ErrorTerm,
    effect: str,
    *,
    compare: bool | str = False,
    adjustment: str = 'lsd',
    alpha: float = 0.05,
) -> EMMeansParams:
    """
    Estimated marginal means of one effect, with optional pairwise
    comparisons and univariate tests of the compared factor.
    """
    name, factors = resolve_effect(design, effect)
    means = design.covariate_means()
    xtwx = design.xtwx()

    cells = cells_of(design, factors)
    L = np.vstack([emm_vector(design, factors, cell, means) for cell in cells])
    ok = estimability(L, fit, xtwx)
    rows = estimate_rows(L, fit, error, alpha=alpha, estimable=ok)

    estimates = tuple(
        EMMean(
            levels=tuple(zip(factors, cell)),
            mean=r.estimate,
            std_error=r.std_error,
            ci_lower=r.ci_lower,
            ci_upper=r.ci_upper,
        )
        for cell, r in zip(cells, rows)
    )

    compared = _compared_factor(factors, compare)
    pairwise: tuple[PairwiseComparison, ...] = ()
    univariate: tuple[UnivariateTest, ...] = ()
    if compared is not None:
        index = {cell: i for i, cell in enumerate(cells)}
        pairwise = _pairwise(
            design, fit, error, factors, compared, L, ok, index,
            adjustment=adjustment, alpha=alpha,
        )
        univariate = _univariate(
            design, fit, error, factors, compared, L, xtwx, index, alpha=alpha,
        )

    return EMMeansParams(
        effect=name,
        factors=factors,
        estimates=estimates,
        compared_factor=compared,
        pairwise=pairwise,
        univariate=univariate,
        adjustment=adjustment,
        alpha=alpha,
        covariate_means=means,
    )


def _compared_factor(factors: tuple[str, ...], compare: bool | str) -> str | None:
    if compare is False or compare is None:
        return None
    if not factors:
        raise ValidationError("compare requires an effect with at least one factor")
    if compare is True:
        return factors[0]
    if isinstance(compare, str):
        if compare not in factors:
            raise ValidationError(
                f"compare: {compare!r} is not a factor of the effect {list(factors)}"
            )
        return compare
    raise ValidationError(f"compare must be a bool or a factor name, got {compare!r}")


def _given_combinations(
    design: GLMDesign,
    factors: tuple[str, ...],
    compared: str,
) -> tuple[list[str], list[Cell]]:
    others = [f for f in factors if f != compared]
    return others, cells_of(design, others)


def _full_cell(
    factors: tuple[str, ...],
    compared: str,
    level: str,
    others: list[str],
    given: Cell,
) -> Cell:
    fixed = dict(zip(others, given))
    fixed[compared] = level
    return tuple(fixed[f] for f in factors)


def _pairwise(
    design: GLMDesign,
    fit: SweptResult,
    error: ErrorTerm,
    factors: tuple[str, ...],
    compared: str,
    L: NDArray,
    ok: NDArray[np.bool_],
    index: dict[Cell, int],
    *,
    adjustment: str,
    alpha: float,
) -> tuple[PairwiseComparison, ...]:
    levels = design.factor_levels[compared]
    k = len(levels)
    m = k * (k - 1) // 2
    ci_alpha = adjust_alpha(alpha, m, adjustment)
    others, givens = _given_combinations(design, factors, compared)

    out: list[PairwiseComparison] = []
    for given in givens:
        for level_i, level_j in permutations(levels, 2):
            i = index[_full_cell(factors, compared, level_i, others, given)]
            j = index[_full_cell(factors, compared, level_j, others, given)]
            diff = (L[i] - L[j])[None, :]
            estimable = np.array([ok[i] and ok[j]])
            (r,) = estimate_rows(diff, fit, error, alpha=ci_alpha, estimable=estimable)
            out.append(PairwiseComparison(
                factor=compared,
                level_i=level_i,
                level_j=level_j,
                given=tuple(zip(others, given)),
                mean_difference=r.estimate,
                std_error=r.std_error,
                significance=adjust_p(r.significance, m, adjustment),
                ci_lower=r.ci_lower,
                ci_upper=r.ci_upper,
            ))
    return tuple(out)


def _univariate(
    design: GLMDesign,
    fit: SweptResult,
    error: ErrorTerm,
    factors: tuple[str, ...],
    compared: str,
    L: NDArray,
    xtwx: NDArray,
    index: dict[Cell, int],
    *,
    alpha: float,
) -> tuple[UnivariateTest, ...]:
    levels = design.factor_levels[compared]
    last = levels[-1]
    others, givens = _given_combinations(design, factors, compared)

    out: list[UnivariateTest] = []
    for given in givens:
        j = index[_full_cell(factors, compared, last, others, given)]
        rows = [
            L[index[_full_cell(factors, compared, lvl, others, given)]] - L[j]
            for lvl in levels[:-1]
        ]
        H = np.vstack(rows) if rows else np.zeros((0, design.p))
        if H.shape[0]:
            H = H[estimability(H, fit, xtwx)]
        H = row_basis(H)
        test = test_hypothesis(H, fit, error, source='Contrast', alpha=alpha)
        contrast, error_row = contrast_table(test, error)
        out.append(UnivariateTest(
            given=tuple(zip(others, given)),
            contrast=contrast,
            error=error_row,
        ))
    return tuple(out)
