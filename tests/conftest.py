"""
pytest configuration and shared fixtures.
"""

import pytest
import numpy as np


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture
def full_rank_xtx(rng):
    """Cross-product matrix of a well-conditioned design."""
    X = np.column_stack([np.ones(50), rng.standard_normal((50, 3))])
    return X.T @ X


@pytest.fixture
def collinear_design(rng):
    """Design with perfect collinearity: x3 = x1 + x2."""
    n = 60
    x1 = rng.standard_normal(n)
    x2 = rng.standard_normal(n)
    X = np.column_stack([np.ones(n), x1, x2, x1 + x2])
    y = 1.0 + 2.0 * x1 - x2 + rng.standard_normal(n) * 0.1
    return X, y
