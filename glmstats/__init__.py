"""
glmstats: univariate general linear models for Python.

Least-squares estimation under arbitrary fixed-factor/covariate designs
(including empty cells and rank deficiency) by the SWEEP operator, and
general linear hypothesis tests built on it: Type I-IV sums of squares,
estimated marginal means, contrasts and pairwise comparisons.

Submodules:
    glm: Model fitting, hypothesis matrices and tests
        (``from glmstats.glm import glm``)
    core: Shared infrastructure (results, exceptions, linear algebra)
"""

__version__ = "0.1.0"

from glmstats import core

__all__ = [
    "__version__",
    "core",
]
