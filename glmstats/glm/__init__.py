"""
Univariate General Linear Model.

Public API:
    glm(data, dependent, ...) -> GLMSolution            # Type I-IV tests
    glm_emmeans(solution, effect, ...) -> EMMeansSolution
    glm_contrast(solution, specification, ...) -> ContrastSolution
    glm_posthoc(solution, factor, ...) -> PostHocSolution
    levene_test(data, dependent, ...) -> LeveneSolution
    heteroscedasticity_tests(solution, ...) -> HeteroscedasticitySolution
"""

from glmstats.glm.solvers import (
    glm,
    glm_contrast,
    glm_emmeans,
    glm_posthoc,
    heteroscedasticity_tests,
    levene_test,
)
from glmstats.glm.solution import (
    ContrastSolution,
    EMMeansSolution,
    GLMSolution,
    HeteroscedasticitySolution,
    LeveneSolution,
    PostHocSolution,
)
from glmstats.glm.design import GLMDesign, get_factor_levels

__all__ = [
    "glm",
    "glm_contrast",
    "glm_emmeans",
    "glm_posthoc",
    "heteroscedasticity_tests",
    "levene_test",
    "GLMDesign",
    "get_factor_levels",
    "ContrastSolution",
    "EMMeansSolution",
    "GLMSolution",
    "HeteroscedasticitySolution",
    "LeveneSolution",
    "PostHocSolution",
]
