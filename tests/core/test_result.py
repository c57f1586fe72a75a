"""
Tests for the Result[P] envelope.

Validates:
    - Generic type parameter works with arbitrary payload types
    - Frozen immutability
    - Default warnings and has_warning()
"""

from dataclasses import FrozenInstanceError, dataclass

import pytest

from glmstats.core.result import Result


# ═══════════════════════════════════════════════════════════════════════
# Test payload types
# ═══════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class FakeParams:
    """Minimal payload for testing."""
    value: float


# ═══════════════════════════════════════════════════════════════════════
# Construction and field access
# ═══════════════════════════════════════════════════════════════════════


class TestResultConstruction:
    """Result can be created with any payload type."""

    def test_basic_creation(self):
        result = Result(
            params=FakeParams(value=42.0),
            info={"rank": 3},
            timing={"total_seconds": 0.01},
            backend_name="cpu_sweep",
        )
        assert result.params.value == 42.0
        assert result.info["rank"] == 3
        assert result.timing["total_seconds"] == 0.01
        assert result.backend_name == "cpu_sweep"

    def test_timing_may_be_none(self):
        result = Result(params=FakeParams(1.0), info={}, timing=None, backend_name="cpu")
        assert result.timing is None

    def test_warnings_default_empty(self):
        result = Result(params=FakeParams(1.0), info={}, timing=None, backend_name="cpu")
        assert result.warnings == ()


class TestResultImmutability:
    """Result is frozen."""

    def test_cannot_reassign_params(self):
        result = Result(params=FakeParams(1.0), info={}, timing=None, backend_name="cpu")
        with pytest.raises(FrozenInstanceError):
            result.params = FakeParams(2.0)


class TestHasWarning:
    """has_warning() matches substrings of collected warnings."""

    def test_substring_match(self):
        result = Result(
            params=FakeParams(1.0), info={}, timing=None, backend_name="cpu",
            warnings=("Design is rank-deficient (rank 5 of 6)",),
        )
        assert result.has_warning("rank-deficient")
        assert not result.has_warning("listwise")

    def test_no_warnings(self):
        result = Result(params=FakeParams(1.0), info={}, timing=None, backend_name="cpu")
        assert not result.has_warning("anything")
