"""
Numeric infrastructure shared by the GLM domain.

Domain logic lives in glm/; this package only holds what it is built on.

Submodules:
    timing: Stage timer behind Result.timing
    tolerances: Zero thresholds of the engine and test tolerance tiers
    linalg: SWEEP operator, row bases, pseudo-inverse and QR solve
"""

from glmstats.core.compute.timing import Timer

__all__ = [
    "Timer",
]
