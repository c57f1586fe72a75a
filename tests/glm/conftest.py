"""
Shared fixtures for GLM tests.

Datasets are plain dicts of columns, the same shape glm() accepts.
"""

import numpy as np
import pytest


# =====================================================================
# One-way fixtures
# =====================================================================


@pytest.fixture
def two_groups():
    """Groups A = [10, 12, 14] and B = [20, 22, 24]."""
    return {
        'y': np.array([10.0, 12.0, 14.0, 20.0, 22.0, 24.0]),
        'g': np.array(['A', 'A', 'A', 'B', 'B', 'B']),
    }


@pytest.fixture
def oneway_unbalanced():
    """3-group unbalanced design (n=5, 8, 11) with numeric group codes."""
    rng = np.random.default_rng(123)
    y = np.concatenate([
        rng.normal(10.0, 2.0, 5),
        rng.normal(14.0, 2.0, 8),
        rng.normal(15.0, 2.0, 11),
    ])
    group = np.array([1] * 5 + [2] * 8 + [3] * 11)
    return {'y': y, 'g': group}


# =====================================================================
# Two-way fixtures
# =====================================================================


@pytest.fixture
def twoway_balanced():
    """2 x 3 design, 4 replicates per cell."""
    rng = np.random.default_rng(7)
    a = np.repeat(['a1', 'a2'], 12)
    b = np.tile(np.repeat(['b1', 'b2', 'b3'], 4), 2)
    effect_a = np.where(a == 'a2', 3.0, 0.0)
    effect_b = np.select([b == 'b1', b == 'b2'], [0.0, 1.5], 4.0)
    interaction = np.where((a == 'a2') & (b == 'b3'), 2.0, 0.0)
    y = 10.0 + effect_a + effect_b + interaction + rng.normal(0.0, 1.0, 24)
    return {'y': y, 'A': a, 'B': b}


@pytest.fixture
def twoway_unbalanced():
    """2 x 3 design with cell sizes 2..6 (no empty cells)."""
    rng = np.random.default_rng(11)
    sizes = {('a1', 'b1'): 2, ('a1', 'b2'): 5, ('a1', 'b3'): 3,
             ('a2', 'b1'): 6, ('a2', 'b2'): 2, ('a2', 'b3'): 4}
    a, b, y = [], [], []
    means = {'a1': 0.0, 'a2': 2.0}
    shift = {'b1': 0.0, 'b2': 1.0, 'b3': -1.0}
    for (la, lb), n in sizes.items():
        a.extend([la] * n)
        b.extend([lb] * n)
        y.extend(rng.normal(20.0 + means[la] + shift[lb], 1.0, n))
    return {'y': np.array(y), 'A': np.array(a), 'B': np.array(b)}


@pytest.fixture
def twoway_empty_cell():
    """2 x 3 design where cell (a2, b3) has no observations."""
    rng = np.random.default_rng(5)
    cells = [('a1', 'b1'), ('a1', 'b2'), ('a1', 'b3'), ('a2', 'b1'), ('a2', 'b2')]
    a, b, y = [], [], []
    for i, (la, lb) in enumerate(cells):
        n = 3 + i % 2
        a.extend([la] * n)
        b.extend([lb] * n)
        y.extend(rng.normal(10.0 + i, 1.0, n))
    return {'y': np.array(y), 'A': np.array(a), 'B': np.array(b)}


# =====================================================================
# Covariate and weight fixtures
# =====================================================================


@pytest.fixture
def ancova():
    """3 groups with a covariate x and a common slope of 0.8."""
    rng = np.random.default_rng(21)
    n_per = 10
    g = np.repeat(['g1', 'g2', 'g3'], n_per)
    x = rng.uniform(0.0, 10.0, 3 * n_per)
    offset = np.select([g == 'g1', g == 'g2'], [0.0, 2.0], 5.0)
    y = 3.0 + offset + 0.8 * x + rng.normal(0.0, 1.0, 3 * n_per)
    return {'y': y, 'g': g, 'x': x}


@pytest.fixture
def weighted_oneway():
    """3 groups with positive case weights."""
    rng = np.random.default_rng(33)
    g = np.repeat(['1', '2', '3'], 8)
    y = rng.normal(0.0, 1.0, 24) + np.select([g == '1', g == '2'], [0.0, 1.0], 2.0)
    w = rng.uniform(0.5, 3.0, 24)
    return {'y': y, 'g': g, 'w': w}
