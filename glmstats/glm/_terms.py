"""
Model terms and per-column parameter descriptions.

A Term is one source of variation in the model ("Intercept", "x", "A",
"A*B", "A*x"). A ParsedParameter describes exactly one design column as
the tuple of (variable, level) components it was built from, e.g.
[A=1]*[B=2] or [A=1]*x. Both are built once, when the design matrix is
constructed, and every hypothesis builder works from them instead of
parsing column labels.
"""

from dataclasses import dataclass
from itertools import combinations
from typing import Sequence

from glmstats.core.exceptions import UnknownTermError, ValidationError

INTERCEPT = 'Intercept'


# =====================================================================
# Term
# =====================================================================


@dataclass(frozen=True)
class Term:
    """
    One model term.

    Attributes:
        name: Display name, variables joined by '*' in declaration order
        factors: Categorical variables of the term, in declaration order
        covariates: Continuous variables of the term, in declaration order
        variables: All variables in declaration order (factors and
            covariates interleaved as written)
    """
    name: str
    factors: tuple[str, ...]
    covariates: tuple[str, ...]
    variables: tuple[str, ...]

    @property
    def is_intercept(self) -> bool:
        return not self.variables

    @property
    def variable_set(self) -> frozenset[str]:
        return frozenset(self.variables)

    def contains(self, other: 'Term') -> bool:
        """
        True if this term strictly contains ``other``.

        Containment is proper inclusion of variable sets, so the intercept
        (empty set) is contained in every other term and a term never
        contains itself.
        """
        return other.variable_set < self.variable_set

    @property
    def display_name(self) -> str:
        """Name as shown in design strings: ``A * B``."""
        return ' * '.join(self.variables) if self.variables else INTERCEPT


def intercept_term() -> Term:
    return Term(name=INTERCEPT, factors=(), covariates=(), variables=())


def parse_term(
    spec: str,
    factors: Sequence[str],
    covariates: Sequence[str],
) -> Term:
    """
    Parse a term specification such as ``"A*B"`` or ``"A * x"``.

    Raises:
        UnknownTermError: If a part names neither a factor nor a covariate
        ValidationError: If a variable appears twice in the same term
    """
    parts = [part.strip() for part in spec.split('*')]
    if not parts or any(part == '' for part in parts):
        raise ValidationError(f"terms: malformed term specification {spec!r}")

    if len(parts) == 1 and parts[0] == INTERCEPT:
        return intercept_term()

    if len(set(parts)) != len(parts):
        raise ValidationError(
            f"terms: variable repeated within term {spec!r}"
        )

    known = set(factors) | set(covariates)
    for part in parts:
        if part not in known:
            raise UnknownTermError(
                f"terms: {part!r} in {spec!r} is neither a factor nor a covariate. "
                f"Factors: {list(factors)}, covariates: {list(covariates)}",
                term=spec,
                available=tuple(factors) + tuple(covariates),
            )

    return Term(
        name='*'.join(parts),
        factors=tuple(p for p in parts if p in factors),
        covariates=tuple(p for p in parts if p in covariates),
        variables=tuple(parts),
    )


def default_terms(
    factors: Sequence[str],
    covariates: Sequence[str],
    *,
    intercept: bool = True,
) -> tuple[Term, ...]:
    """
    Full factorial model order.

    Intercept, covariates, factor main effects, then every factor
    interaction of size 2..N in combination order.
    """
    terms: list[Term] = []
    if intercept:
        terms.append(intercept_term())
    for name in covariates:
        terms.append(Term(name=name, factors=(), covariates=(name,), variables=(name,)))
    for size in range(1, len(factors) + 1):
        for combo in combinations(factors, size):
            terms.append(
                Term(name='*'.join(combo), factors=combo, covariates=(), variables=combo)
            )
    return tuple(terms)


def find_term(terms: Sequence[Term], name: str) -> Term:
    """
    Look up a term by name.

    ``"B*A"`` finds the term declared as ``"A*B"``; whitespace around
    '*' is ignored.

    Raises:
        UnknownTermError: If no term matches
    """
    wanted = name.strip()
    if wanted == INTERCEPT:
        for term in terms:
            if term.is_intercept:
                return term
    else:
        parts = frozenset(part.strip() for part in wanted.split('*'))
        for term in terms:
            if not term.is_intercept and term.variable_set == parts:
                return term

    raise UnknownTermError(
        f"Unknown term {name!r}. Model terms: {[t.name for t in terms]}",
        term=name,
        available=tuple(t.name for t in terms),
    )


# =====================================================================
# ParsedParameter
# =====================================================================


@dataclass(frozen=True)
class ParameterComponent:
    """One (variable, level) pair of a parameter; level is None for covariates."""
    name: str
    level: str | None

    @property
    def is_factor(self) -> bool:
        return self.level is not None


@dataclass(frozen=True)
class ParsedParameter:
    """
    Structured description of one design column.

    The intercept is the parameter with no components.
    """
    components: tuple[ParameterComponent, ...]

    @property
    def is_intercept(self) -> bool:
        return not self.components

    @property
    def factor_levels(self) -> dict[str, str]:
        """Factor -> level for the factor components."""
        return {c.name: c.level for c in self.components if c.level is not None}

    @property
    def covariates(self) -> frozenset[str]:
        return frozenset(c.name for c in self.components if c.level is None)

    @property
    def label(self) -> str:
        if not self.components:
            return INTERCEPT
        return '*'.join(
            f"[{c.name}={c.level}]" if c.level is not None else c.name
            for c in self.components
        )

    def __str__(self) -> str:
        return self.label
