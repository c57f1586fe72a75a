"""
Multiple-comparison adjustments for pairwise EMM comparisons.

Each method is a pair of functions: one maps a raw p-value to an adjusted
one, the other maps the family alpha to the per-comparison alpha used for
the confidence interval. m is the number of unordered pairs.
"""

from dataclasses import dataclass
from typing import Callable

from glmstats.core.exceptions import ValidationError


@dataclass(frozen=True)
class Adjustment:
    name: str
    adjust_p: Callable[[float, int], float]
    adjust_alpha: Callable[[float, int], float]


def _lsd_p(p: float, m: int) -> float:
    return p


def _lsd_alpha(alpha: float, m: int) -> float:
    return alpha


def _bonferroni_p(p: float, m: int) -> float:
    return min(1.0, p * m)


def _bonferroni_alpha(alpha: float, m: int) -> float:
    return alpha / m


def _sidak_p(p: float, m: int) -> float:
    return min(1.0, 1.0 - (1.0 - p) ** m)


def _sidak_alpha(alpha: float, m: int) -> float:
    return 1.0 - (1.0 - alpha) ** (1.0 / m)


ADJUSTMENTS: dict[str, Adjustment] = {
    'lsd': Adjustment('lsd', _lsd_p, _lsd_alpha),
    'bonferroni': Adjustment('bonferroni', _bonferroni_p, _bonferroni_alpha),
    'sidak': Adjustment('sidak', _sidak_p, _sidak_alpha),
}

_ALIASES = {'none': 'lsd', 'šidák': 'sidak'}

VALID_METHODS = tuple(ADJUSTMENTS) + tuple(_ALIASES)


def get_adjustment(method: str) -> Adjustment:
    """Look up an adjustment by (case-insensitive) name."""
    if not isinstance(method, str):
        raise ValidationError(f"adjustment must be a string, got {type(method).__name__}")
    key = method.strip().lower()
    key = _ALIASES.get(key, key)
    if key not in ADJUSTMENTS:
        raise ValidationError(
            f"adjustment must be one of {VALID_METHODS}, got {method!r}"
        )
    return ADJUSTMENTS[key]


def adjust_p(p: float, m: int, method: str = 'lsd') -> float:
    """Adjusted significance of one of m comparisons; NaN stays NaN."""
    if p != p:
        return p
    if m <= 1:
        return p
    return get_adjustment(method).adjust_p(p, m)


def adjust_alpha(alpha: float, m: int, method: str = 'lsd') -> float:
    """Per-comparison alpha for a family of m comparisons."""
    if m <= 1:
        return alpha
    return get_adjustment(method).adjust_alpha(alpha, m)
