"""
Tests for the GLM design matrix builder.

Validates:
    - Column layout, term slices and parameter labels under both codings
    - Default term order and explicit terms
    - Listwise deletion and weight filtering
    - Level sorting and labels
    - Input errors
"""

import numpy as np
import pytest

from glmstats.core.exceptions import (
    DimensionError,
    NoValidDataError,
    UnknownTermError,
    ValidationError,
)
from glmstats.glm import GLMDesign, get_factor_levels


# ═══════════════════════════════════════════════════════════════════════
# Columns and terms
# ═══════════════════════════════════════════════════════════════════════


class TestDesignColumns:
    """Design matrix columns follow the model term order."""

    def test_reference_coding_layout(self, twoway_balanced):
        d = GLMDesign.from_data(twoway_balanced, 'y', factors=['A', 'B'])
        assert d.term_names == ('Intercept', 'A', 'B', 'A*B')
        assert d.p == 1 + 1 + 2 + 2
        assert d.parameter_labels == (
            'Intercept', '[A=a1]', '[B=b1]', '[B=b2]',
            '[A=a1]*[B=b1]', '[A=a1]*[B=b2]',
        )
        assert d.term_slices['B'] == slice(2, 4)
        assert d.rank == 6

    def test_indicator_coding_layout(self, twoway_balanced):
        d = GLMDesign.from_data(
            twoway_balanced, 'y', factors=['A', 'B'], coding='indicator',
        )
        assert d.p == 1 + 2 + 3 + 6
        assert d.rank == 6
        assert d.parameter_labels[-1] == '[A=a2]*[B=b3]'

    def test_interaction_columns_are_products(self, twoway_balanced):
        d = GLMDesign.from_data(twoway_balanced, 'y', factors=['A', 'B'])
        j = d.parameter_labels.index('[A=a1]*[B=b2]')
        expected = (twoway_balanced['A'] == 'a1') & (twoway_balanced['B'] == 'b2')
        np.testing.assert_array_equal(d.X[:, j], expected.astype(float))

    def test_intercept_column_is_ones(self, two_groups):
        d = GLMDesign.from_data(two_groups, 'y', factors=['g'])
        assert d.intercept_column == 0
        np.testing.assert_array_equal(d.X[:, 0], np.ones(6))

    def test_covariates_come_first(self, ancova):
        d = GLMDesign.from_data(ancova, 'y', factors=['g'], covariates=['x'])
        assert d.term_names == ('Intercept', 'x', 'g')
        np.testing.assert_array_equal(d.X[:, 1], ancova['x'])
        assert d.design_string == 'Intercept + x + g'

    def test_explicit_terms_keep_order(self, ancova):
        d = GLMDesign.from_data(
            ancova, 'y', factors=['g'], covariates=['x'], terms=['g', 'x', 'g*x'],
        )
        assert d.term_names == ('Intercept', 'g', 'x', 'g*x')
        assert d.parameter_labels[-2:] == ('[g=g1]*x', '[g=g2]*x')

    def test_no_intercept(self, two_groups):
        d = GLMDesign.from_data(two_groups, 'y', factors=['g'], intercept=False)
        assert not d.has_intercept
        assert d.intercept_column is None
        assert d.term_names == ('g',)
        assert d.absorbing_term == 'g'
        assert d.parameter_labels == ('[g=A]', '[g=B]')
        assert d.rank == 2

    def test_explicit_intercept_entry_ignored(self, two_groups):
        d = GLMDesign.from_data(two_groups, 'y', factors=['g'], terms=['Intercept', 'g'])
        assert d.term_names == ('Intercept', 'g')

    def test_term_lookup_is_order_insensitive(self, twoway_balanced):
        d = GLMDesign.from_data(twoway_balanced, 'y', factors=['A', 'B'])
        assert d.term('B*A').name == 'A*B'
        np.testing.assert_array_equal(d.columns('B * A'), [4, 5])

    def test_parsed_parameters(self, twoway_balanced):
        d = GLMDesign.from_data(twoway_balanced, 'y', factors=['A', 'B'])
        param = d.parameters[4]
        assert param.factor_levels == {'A': 'a1', 'B': 'b1'}
        assert param.covariates == frozenset()
        assert d.parameters[0].is_intercept


# ═══════════════════════════════════════════════════════════════════════
# Levels
# ═══════════════════════════════════════════════════════════════════════


class TestLevels:
    """Levels are sorted numerically when possible and stored as strings."""

    def test_numeric_levels_sorted_numerically(self):
        data = {'y': np.arange(6.0), 'g': np.array([10, 2, 1, 10, 2, 1])}
        d = GLMDesign.from_data(data, 'y', factors=['g'])
        assert d.factor_levels['g'] == ('1', '2', '10')

    def test_integral_floats_labelled_as_integers(self):
        data = {'y': np.arange(4.0), 'g': np.array([1.0, 2.0, 1.0, 2.0])}
        d = GLMDesign.from_data(data, 'y', factors=['g'])
        assert d.factor_levels['g'] == ('1', '2')

    def test_string_levels_sorted(self):
        data = {'y': np.arange(4.0), 'g': np.array(['b', 'a', 'c', 'a'])}
        assert get_factor_levels(data, 'g') == ('a', 'b', 'c')

    def test_observed_cells(self, twoway_empty_cell):
        d = GLMDesign.from_data(twoway_empty_cell, 'y', factors=['A', 'B'])
        cells = d.observed_cells(['A', 'B'])
        assert len(cells) == 5
        assert ('a2', 'b3') not in cells


# ═══════════════════════════════════════════════════════════════════════
# Listwise deletion
# ═══════════════════════════════════════════════════════════════════════


class TestListwiseDeletion:
    """Records with missing or invalid values are dropped."""

    def test_missing_values_dropped(self):
        data = {
            'y': np.array([1.0, np.nan, 3.0, 4.0, 5.0, 6.0]),
            'g': np.array(['a', 'a', None, 'b', 'b', ''], dtype=object),
            'x': np.array([1.0, 2.0, 3.0, np.nan, 5.0, 6.0]),
        }
        d = GLMDesign.from_data(data, 'y', factors=['g'], covariates=['x'])
        np.testing.assert_array_equal(d.case_indices, [0, 4])
        assert d.n_dropped == 4

    def test_non_numeric_covariate_drops_record(self):
        data = {
            'y': np.array([1.0, 2.0, 3.0, 4.0]),
            'x': np.array(['1.5', 'abc', '2', '3'], dtype=object),
        }
        d = GLMDesign.from_data(data, 'y', covariates=['x'])
        np.testing.assert_array_equal(d.case_indices, [0, 2, 3])
        np.testing.assert_allclose(d.covariate_values['x'], [1.5, 2.0, 3.0])

    def test_non_positive_weights_dropped(self):
        data = {
            'y': np.array([1.0, 2.0, 3.0, 4.0, 5.0]),
            'w': np.array([1.0, 0.0, -2.0, 2.0, 0.5]),
        }
        d = GLMDesign.from_data(data, 'y', weights='w')
        np.testing.assert_array_equal(d.case_indices, [0, 3, 4])
        assert (d.w > 0).all()

    def test_non_numeric_dependent_raises(self):
        data = {'y': np.array([1.0, 'high', 3.0], dtype=object)}
        with pytest.raises(ValidationError, match="non-numeric value 'high'"):
            GLMDesign.from_data(data, 'y')


# ═══════════════════════════════════════════════════════════════════════
# Input errors
# ═══════════════════════════════════════════════════════════════════════


class TestDesignErrors:
    """Input errors are raised immediately."""

    def test_missing_column(self, two_groups):
        with pytest.raises(NoValidDataError, match="'h'") as exc_info:
            GLMDesign.from_data(two_groups, 'y', factors=['h'])
        assert exc_info.value.variable == 'h'

    def test_nothing_survives(self):
        data = {'y': np.array([np.nan, np.nan]), 'g': np.array(['a', 'b'])}
        with pytest.raises(NoValidDataError, match="no valid data"):
            GLMDesign.from_data(data, 'y', factors=['g'])

    def test_unknown_term(self, two_groups):
        with pytest.raises(UnknownTermError, match="neither a factor nor a covariate"):
            GLMDesign.from_data(two_groups, 'y', factors=['g'], terms=['g', 'g*z'])

    def test_duplicate_term(self, twoway_balanced):
        with pytest.raises(ValidationError, match="duplicate term"):
            GLMDesign.from_data(
                twoway_balanced, 'y', factors=['A', 'B'], terms=['A', 'A*B', 'B*A'],
            )

    def test_invalid_coding(self, two_groups):
        with pytest.raises(ValidationError, match="coding"):
            GLMDesign.from_data(two_groups, 'y', factors=['g'], coding='effect')

    def test_variable_in_two_roles(self, ancova):
        with pytest.raises(ValidationError, match="only one role"):
            GLMDesign.from_data(ancova, 'y', factors=['g'], covariates=['g'])

    def test_inconsistent_lengths(self):
        data = {'y': np.arange(4.0), 'g': np.array(['a', 'b', 'a'])}
        with pytest.raises(DimensionError, match="Inconsistent lengths"):
            GLMDesign.from_data(data, 'y', factors=['g'])

    def test_empty_model(self):
        data = {'y': np.arange(4.0)}
        with pytest.raises(ValidationError, match="no parameters"):
            GLMDesign.from_data(data, 'y', intercept=False)
